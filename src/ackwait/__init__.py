"""ackwait: checksum-verified stop-and-wait message delivery over TCP.

Layout mirrors the protocol:
- packet framing (tagged, length-prefixed frames) apart from the exchange logic
- a sender that keeps one message outstanding until it is ACKed
- a receiver that verifies every message before answering, one thread per connection
"""

from .checksum import ChecksumFault, compute_checksum
from .constants import ACK, NAK
from .receiver import ConnectionHandler, serve
from .sender import ProtocolError, RetryLimitExceeded, StopAndWaitSender, send_messages
from .server import Listener, listen

__all__ = [
    "ACK",
    "NAK",
    "ChecksumFault",
    "ConnectionHandler",
    "Listener",
    "ProtocolError",
    "RetryLimitExceeded",
    "StopAndWaitSender",
    "compute_checksum",
    "listen",
    "send_messages",
    "serve",
]
