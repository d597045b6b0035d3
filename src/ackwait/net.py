from __future__ import annotations

import contextlib
import socket
from typing import Tuple

from .packet import Frame, read_frame


class StreamConnection:
    """One end of a TCP stream with buffered frame and verdict primitives."""

    def __init__(self, sock: socket.socket, peer: str = ""):
        self.sock = sock
        self.peer = peer or _describe_peer(sock)
        self._rfile = sock.makefile("rb")
        self._wfile = sock.makefile("wb")

    @classmethod
    def connect(cls, host: str, port: int, timeout: float | None = None) -> "StreamConnection":
        sock = socket.create_connection((host, port), timeout=timeout)
        return cls(sock, f"{host}:{port}")

    @classmethod
    def accepted(cls, sock: socket.socket, addr: Tuple[str, int]) -> "StreamConnection":
        sock.settimeout(None)
        return cls(sock, f"{addr[0]}:{addr[1]}")

    def send_frame(self, frame: Frame) -> None:
        self._wfile.write(frame.to_bytes())

    def recv_frame(self) -> Frame | None:
        return read_frame(self._rfile)

    def send_verdict(self, verdict: int) -> None:
        self._wfile.write(bytes((verdict,)))

    def recv_verdict(self) -> int:
        b = self._rfile.read(1)
        if not b:
            raise ConnectionError(f"{self.peer} closed the connection while a verdict was pending")
        return b[0]

    def flush(self) -> None:
        self._wfile.flush()

    def close(self) -> None:
        # The peer may already be gone; unflushed bytes have nowhere to go.
        with contextlib.suppress(OSError):
            self._wfile.close()
        self._rfile.close()
        self.sock.close()

    def __enter__(self) -> "StreamConnection":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _describe_peer(sock: socket.socket) -> str:
    try:
        addr = sock.getpeername()
    except OSError:
        return "?"
    if isinstance(addr, tuple):
        return f"{addr[0]}:{addr[1]}"
    return str(addr) or "local"
