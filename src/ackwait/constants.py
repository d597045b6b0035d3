from __future__ import annotations

ACK = 0x05
NAK = 0x06

HEADER_FORMAT = "!BI"  # kind tag, body length
TAG_TEXT = 0x74  # "t"
TAG_BYTES = 0x62  # "b"
MAX_FRAME_BODY = 1 << 20

CHECKSUM_FORMAT = "!I"
CHECKSUM_LEN = 4
ENCODING = "utf-8"

DEFAULT_PORT = 5050
DEFAULT_BACKLOG = 16
DEFAULT_FAULT_RATE = 0.1
DEFAULT_MESSAGES_FILE = "data.txt"
ACCEPT_POLL_S = 0.5
