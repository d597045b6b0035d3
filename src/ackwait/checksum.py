from __future__ import annotations

import random
import struct
import zlib
from dataclasses import dataclass, field

from .constants import CHECKSUM_FORMAT, ENCODING


def compute_checksum(message: str) -> bytes:
    """CRC-32 of the UTF-8 encoded message, packed big-endian.

    Not collision resistant; it only has to be cheap and identical on both ends.
    """
    crc = zlib.crc32(message.encode(ENCODING)) & 0xFFFFFFFF
    return struct.pack(CHECKSUM_FORMAT, crc)


def flip_bit(checksum: bytes, bit: int = 0) -> bytes:
    if not checksum:
        raise ValueError("cannot corrupt an empty checksum")
    if not 0 <= bit < 8:
        raise ValueError(f"bit index out of range: {bit}")
    out = bytearray(checksum)
    out[0] ^= 1 << bit
    return bytes(out)


@dataclass(frozen=True, slots=True)
class ChecksumFault:
    """Deliberate checksum corruption used to exercise the NAK path.

    With on_retries set, every attempt rolls again, so a message can in
    principle be NAKed any number of times in a row.
    """

    rate: float = 0.0
    rng: random.Random = field(default_factory=random.Random)
    on_retries: bool = True

    def __post_init__(self) -> None:
        if not 0.0 <= self.rate <= 1.0:
            raise ValueError(f"fault rate must be within [0, 1], got {self.rate}")

    def should_corrupt(self, attempt: int) -> bool:
        if self.rate <= 0.0:
            return False
        if attempt > 1 and not self.on_retries:
            return False
        return self.rng.random() < self.rate

    def apply(self, checksum: bytes, attempt: int) -> tuple[bytes, bool]:
        if self.should_corrupt(attempt):
            return flip_bit(checksum), True
        return checksum, False
