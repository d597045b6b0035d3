from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from .checksum import compute_checksum
from .constants import ACK, NAK
from .net import StreamConnection
from .packet import FrameError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ServeMetrics:
    exchanges: int = 0
    acks: int = 0
    naks: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)


@dataclass(slots=True)
class ConnectionHandler:
    """Verifies message/checksum pairs on one connection until it closes.

    The handler owns the connection and closes it however the loop ends.
    Transport and framing failures are logged here and go no further.
    """

    conn: StreamConnection
    delay_s: float = 0.0
    log: logging.Logger = logger

    def serve(self) -> ServeMetrics:
        metrics = ServeMetrics()
        try:
            self._loop(metrics)
        except FrameError as e:
            self.log.error("bad frame from %s: %s", self.conn.peer, e)
        except OSError as e:
            self.log.error("connection with %s failed: %s", self.conn.peer, e)
        finally:
            self.conn.close()
            metrics.end_ts = time.monotonic()
        return metrics

    def _loop(self, metrics: ServeMetrics) -> None:
        while True:
            frame = self.conn.recv_frame()
            if frame is None:
                self.log.info("%s finished sending data; closing connection", self.conn.peer)
                return
            message = frame.as_text()

            frame = self.conn.recv_frame()
            if frame is None:
                raise FrameError("stream ended between a message and its checksum")
            received = frame.as_bytes()

            self.log.info("received message %r", message)
            expected = compute_checksum(message)
            self.log.debug("checksum received=%s computed=%s", received.hex(), expected.hex())

            if self.delay_s > 0:
                time.sleep(self.delay_s)

            metrics.exchanges += 1
            if received == expected:
                self.log.info("checksums match; sending ACK")
                self.conn.send_verdict(ACK)
                metrics.acks += 1
            else:
                self.log.info("checksums differ; sending NAK")
                self.conn.send_verdict(NAK)
                metrics.naks += 1
            self.conn.flush()


def serve(conn: StreamConnection, delay_s: float = 0.0, log: logging.Logger = logger) -> ServeMetrics:
    return ConnectionHandler(conn, delay_s=delay_s, log=log).serve()
