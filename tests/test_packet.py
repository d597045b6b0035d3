from __future__ import annotations

import io
import struct

import pytest

from ackwait.constants import HEADER_FORMAT, MAX_FRAME_BODY, TAG_TEXT
from ackwait.packet import Frame, FrameError, FrameKind, read_frame


def test_text_frame_layout():
    raw = Frame.text("hello").to_bytes()
    assert raw[0] == TAG_TEXT
    assert struct.unpack("!I", raw[1:5]) == (5,)
    assert raw[5:] == b"hello"


def test_roundtrip_text_and_bytes():
    p = Frame.from_bytes(Frame.text("héllo").to_bytes())
    assert p.kind is FrameKind.TEXT
    assert p.as_text() == "héllo"

    b = Frame.from_bytes(Frame.blob(b"\x00\x01\x02").to_bytes())
    assert b.as_bytes() == b"\x00\x01\x02"


def test_read_frame_keeps_boundaries():
    stream = io.BytesIO(Frame.text("").to_bytes() + Frame.blob(b"\xff").to_bytes())
    first = read_frame(stream)
    second = read_frame(stream)
    assert first is not None and first.as_text() == ""
    assert second is not None and second.as_bytes() == b"\xff"
    assert read_frame(stream) is None


def test_kind_mismatch():
    with pytest.raises(FrameError):
        Frame.blob(b"abc").as_text()
    with pytest.raises(FrameError):
        Frame.text("abc").as_bytes()


def test_unknown_tag():
    raw = struct.pack(HEADER_FORMAT, 0x99, 0)
    with pytest.raises(FrameError):
        read_frame(io.BytesIO(raw))


def test_oversized_length():
    raw = struct.pack(HEADER_FORMAT, TAG_TEXT, MAX_FRAME_BODY + 1)
    with pytest.raises(FrameError):
        read_frame(io.BytesIO(raw))


def test_truncated_header_and_body():
    raw = Frame.text("hello").to_bytes()
    with pytest.raises(FrameError):
        read_frame(io.BytesIO(raw[:3]))
    with pytest.raises(FrameError):
        read_frame(io.BytesIO(raw[:-1]))
    with pytest.raises(FrameError):
        Frame.from_bytes(raw[:-1])


def test_invalid_utf8():
    frame = Frame(kind=FrameKind.TEXT, body=b"\xff\xfe")
    with pytest.raises(FrameError):
        frame.as_text()
