from __future__ import annotations

import logging
import socket
import threading
from typing import Tuple

from .constants import ACCEPT_POLL_S, DEFAULT_BACKLOG
from .net import StreamConnection
from .receiver import ConnectionHandler

logger = logging.getLogger(__name__)


class Listener:
    """Accept loop that hands every connection to its own handler thread."""

    def __init__(
        self,
        sock: socket.socket,
        delay_s: float = 0.0,
        log: logging.Logger = logger,
    ):
        self.sock = sock
        self.delay_s = delay_s
        self.log = log
        self._closing = threading.Event()
        self._serving = threading.Event()
        self._lock = threading.Lock()
        self._handlers: list[threading.Thread] = []

    @classmethod
    def bind(
        cls,
        host: str,
        port: int,
        backlog: int = DEFAULT_BACKLOG,
        delay_s: float = 0.0,
        log: logging.Logger = logger,
    ) -> "Listener":
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.listen(backlog)
        except OSError:
            sock.close()
            raise
        sock.settimeout(ACCEPT_POLL_S)
        return cls(sock, delay_s=delay_s, log=log)

    @property
    def address(self) -> Tuple[str, int]:
        host, port = self.sock.getsockname()[:2]
        return host, port

    def serve_forever(self) -> None:
        self._serving.set()
        try:
            if not self._closing.is_set():
                self.log.info("listening on %s:%d", *self.address)
            while not self._closing.is_set():
                try:
                    client, addr = self.sock.accept()
                except socket.timeout:
                    continue
                except OSError:
                    if self._closing.is_set():
                        break
                    raise
                self._spawn(client, addr)
        finally:
            self.sock.close()
        self.log.info("listener stopped")

    def _spawn(self, client: socket.socket, addr: Tuple[str, int]) -> None:
        conn = StreamConnection.accepted(client, addr)
        self.log.info("accepted connection from %s", conn.peer)
        handler = ConnectionHandler(conn, delay_s=self.delay_s, log=self.log)
        t = threading.Thread(target=handler.serve, name=f"receiver-{conn.peer}", daemon=True)
        with self._lock:
            self._handlers = [h for h in self._handlers if h.is_alive()]
            self._handlers.append(t)
        t.start()

    def join_handlers(self, timeout: float | None = None) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for t in handlers:
            t.join(timeout)

    def close(self) -> None:
        """Stop accepting. A running accept loop notices within ACCEPT_POLL_S."""
        self._closing.set()
        if not self._serving.is_set():
            self.sock.close()


def listen(
    port: int,
    host: str = "0.0.0.0",
    backlog: int = DEFAULT_BACKLOG,
    delay_s: float = 0.0,
    log: logging.Logger = logger,
) -> None:
    Listener.bind(host, port, backlog=backlog, delay_s=delay_s, log=log).serve_forever()
