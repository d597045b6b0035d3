from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Sequence

from .checksum import ChecksumFault, compute_checksum
from .constants import ACK, NAK
from .net import StreamConnection
from .packet import Frame

logger = logging.getLogger(__name__)


class ProtocolError(Exception):
    pass


class RetryLimitExceeded(ProtocolError):
    pass


@dataclass(slots=True)
class SendMetrics:
    messages: int = 0
    attempts: int = 0
    naks: int = 0
    faults_injected: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)


@dataclass(slots=True)
class StopAndWaitSender:
    conn: StreamConnection
    messages: Sequence[str]
    fault: ChecksumFault | None = None
    max_retries: int | None = None
    log: logging.Logger = logger

    def run(self) -> SendMetrics:
        metrics = SendMetrics()
        self.log.info("sending %d message(s) to %s", len(self.messages), self.conn.peer)

        for index, message in enumerate(self.messages):
            attempt = 1
            while True:
                verdict = self._transmit(message, attempt, metrics)
                if verdict == ACK:
                    break
                if verdict != NAK:
                    raise ProtocolError(f"unexpected verdict byte 0x{verdict:02x} from {self.conn.peer}")

                metrics.naks += 1
                # attempt is also the number of retries this NAK would cost
                if self.max_retries is not None and attempt > self.max_retries:
                    raise RetryLimitExceeded(
                        f"message {index} still NAKed after {self.max_retries} retries"
                    )
                self.log.warning("NAK for message %d; resending (attempt %d)", index, attempt + 1)
                attempt += 1

            metrics.messages += 1
            self.log.info("ACK for message %d after %d attempt(s)", index, attempt)

        metrics.end_ts = time.monotonic()
        self.log.info(
            "done; messages=%d attempts=%d naks=%d in %.3fs",
            metrics.messages,
            metrics.attempts,
            metrics.naks,
            metrics.duration_s,
        )
        return metrics

    def _transmit(self, message: str, attempt: int, metrics: SendMetrics) -> int:
        self.conn.send_frame(Frame.text(message))
        self.log.debug("sent message %r", message)

        # Recomputed on every attempt; a retry never reuses the previous value.
        checksum = compute_checksum(message)
        if self.fault is not None:
            checksum, corrupted = self.fault.apply(checksum, attempt)
            if corrupted:
                metrics.faults_injected += 1
                self.log.info("injecting checksum error for testing (attempt %d)", attempt)
        self.conn.send_frame(Frame.blob(checksum))
        self.log.debug("sent checksum %s", checksum.hex())

        self.conn.flush()
        metrics.attempts += 1
        return self.conn.recv_verdict()


def send_messages(
    conn: StreamConnection,
    messages: Sequence[str],
    fault: ChecksumFault | None = None,
    max_retries: int | None = None,
    log: logging.Logger = logger,
) -> SendMetrics:
    return StopAndWaitSender(conn, messages, fault=fault, max_retries=max_retries, log=log).run()
