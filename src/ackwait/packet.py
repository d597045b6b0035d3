from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import BinaryIO

from .constants import ENCODING, HEADER_FORMAT, MAX_FRAME_BODY, TAG_BYTES, TAG_TEXT

HEADER_LEN = struct.calcsize(HEADER_FORMAT)


class FrameError(ValueError):
    """Malformed, truncated or unexpected frame."""


class FrameKind(enum.IntEnum):
    TEXT = TAG_TEXT
    BYTES = TAG_BYTES


@dataclass(frozen=True, slots=True)
class Frame:
    kind: FrameKind
    body: bytes = b""

    def to_bytes(self) -> bytes:
        if len(self.body) > MAX_FRAME_BODY:
            raise FrameError(f"frame body too large: {len(self.body)}")
        return struct.pack(HEADER_FORMAT, int(self.kind), len(self.body)) + self.body

    def as_text(self) -> str:
        if self.kind != FrameKind.TEXT:
            raise FrameError(f"expected a text frame, got {self.kind.name}")
        try:
            return self.body.decode(ENCODING)
        except UnicodeDecodeError as e:
            raise FrameError(f"text frame is not valid {ENCODING}: {e}") from e

    def as_bytes(self) -> bytes:
        if self.kind != FrameKind.BYTES:
            raise FrameError(f"expected a bytes frame, got {self.kind.name}")
        return self.body

    @staticmethod
    def text(message: str) -> "Frame":
        return Frame(kind=FrameKind.TEXT, body=message.encode(ENCODING))

    @staticmethod
    def blob(data: bytes) -> "Frame":
        return Frame(kind=FrameKind.BYTES, body=bytes(data))

    @staticmethod
    def from_bytes(raw: bytes) -> "Frame":
        if len(raw) < HEADER_LEN:
            raise FrameError("buffer too small to hold a frame header")
        kind, length = _parse_header(raw[:HEADER_LEN])
        body = raw[HEADER_LEN:]
        if len(body) != length:
            raise FrameError(f"body length mismatch: header says {length}, got {len(body)}")
        return Frame(kind=kind, body=body)


def _parse_header(header: bytes) -> tuple[FrameKind, int]:
    tag, length = struct.unpack(HEADER_FORMAT, header)
    try:
        kind = FrameKind(tag)
    except ValueError:
        raise FrameError(f"unknown frame tag 0x{tag:02x}") from None
    if length > MAX_FRAME_BODY:
        raise FrameError(f"declared frame length {length} exceeds {MAX_FRAME_BODY}")
    return kind, length


def _read_exact(stream: BinaryIO, n: int) -> bytes:
    buf = b""
    while len(buf) < n:
        chunk = stream.read(n - len(buf))
        if not chunk:
            break
        buf += chunk
    return buf


def read_frame(stream: BinaryIO) -> Frame | None:
    """Read one frame from a buffered binary stream.

    Returns None when the stream ends cleanly before the first header byte.
    A stream that ends anywhere inside a frame raises FrameError.
    """
    header = _read_exact(stream, HEADER_LEN)
    if not header:
        return None
    if len(header) < HEADER_LEN:
        raise FrameError("stream ended inside a frame header")

    kind, length = _parse_header(header)
    body = _read_exact(stream, length)
    if len(body) < length:
        raise FrameError(f"stream ended inside a frame body ({len(body)}/{length} bytes)")
    return Frame(kind=kind, body=body)
