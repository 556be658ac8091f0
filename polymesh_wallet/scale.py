"""Minimal SCALE codec used for the signed envelope and storage values.

SCALE is Substrate's deterministic binary encoding: fixed-width little-endian
integers, no padding, no field names. Variable-length items are prefixed by a
*compact* integer whose two low bits select the width of the prefix itself:

    0b00  single byte,   value < 2**6
    0b01  two bytes,     value < 2**14
    0b10  four bytes,    value < 2**30
    0b11  big integer,   upper six bits hold ``byte_length - 4``

Only the handful of shapes the wallet needs are covered here; call arguments
are encoded against the runtime metadata by :mod:`polymesh_wallet.calls`.
"""

from __future__ import annotations

import struct
from typing import Callable, TypeVar

T = TypeVar("T")

_U128_MAX = (1 << 128) - 1
_COMPACT_MAX = (1 << 536) - 1


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def encode_u8(value: int) -> bytes:
    return struct.pack("<B", value)


def encode_u32(value: int) -> bytes:
    return struct.pack("<I", value)


def encode_u64(value: int) -> bytes:
    return struct.pack("<Q", value)


def encode_u128(value: int) -> bytes:
    if not 0 <= value <= _U128_MAX:
        raise ValueError(f"value out of range for u128: {value}")
    return value.to_bytes(16, "little")


def encode_compact(value: int) -> bytes:
    """Encode a non-negative integer in SCALE compact form."""
    if value < 0 or value > _COMPACT_MAX:
        raise ValueError(f"value out of range for compact encoding: {value}")
    if value < 1 << 6:
        return struct.pack("<B", value << 2)
    if value < 1 << 14:
        return struct.pack("<H", (value << 2) | 0b01)
    if value < 1 << 30:
        return struct.pack("<I", (value << 2) | 0b10)
    length = max(4, (value.bit_length() + 7) // 8)
    return bytes([((length - 4) << 2) | 0b11]) + value.to_bytes(length, "little")


def encode_bytes(data: bytes) -> bytes:
    """Length-prefixed byte vector (``Vec<u8>``)."""
    return encode_compact(len(data)) + data


def encode_vec(items: list[T], encode_item: Callable[[T], bytes]) -> bytes:
    return encode_compact(len(items)) + b"".join(encode_item(i) for i in items)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


class ScaleDecodeError(ValueError):
    """Raised when a byte string does not match the expected SCALE shape."""


class ScaleReader:
    """Cursor over a SCALE-encoded byte string.

    Each ``read_*`` method consumes exactly the bytes of one value. Call
    :meth:`finish` once the expected shape is read to reject trailing data.
    """

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def read_bytes(self, length: int) -> bytes:
        if length < 0 or self._pos + length > len(self._data):
            raise ScaleDecodeError(
                f"need {length} bytes at offset {self._pos}, have {self.remaining}"
            )
        chunk = self._data[self._pos : self._pos + length]
        self._pos += length
        return chunk

    def read_u8(self) -> int:
        return self.read_bytes(1)[0]

    def read_bool(self) -> bool:
        flag = self.read_u8()
        if flag not in (0, 1):
            raise ScaleDecodeError(f"invalid bool byte {flag:#04x}")
        return flag == 1

    def read_u32(self) -> int:
        return struct.unpack("<I", self.read_bytes(4))[0]

    def read_u64(self) -> int:
        return struct.unpack("<Q", self.read_bytes(8))[0]

    def read_u128(self) -> int:
        return int.from_bytes(self.read_bytes(16), "little")

    def read_compact(self) -> int:
        first = self.read_u8()
        mode = first & 0b11
        if mode == 0b00:
            return first >> 2
        if mode == 0b01:
            rest = self.read_bytes(1)
            return int.from_bytes(bytes([first]) + rest, "little") >> 2
        if mode == 0b10:
            rest = self.read_bytes(3)
            return int.from_bytes(bytes([first]) + rest, "little") >> 2
        length = (first >> 2) + 4
        return int.from_bytes(self.read_bytes(length), "little")

    def read_vec(self, read_item: Callable[["ScaleReader"], T]) -> list[T]:
        count = self.read_compact()
        return [read_item(self) for _ in range(count)]

    def read_byte_vec(self) -> bytes:
        return self.read_bytes(self.read_compact())

    def read_option(self, read_item: Callable[["ScaleReader"], T]) -> T | None:
        tag = self.read_u8()
        if tag == 0:
            return None
        if tag == 1:
            return read_item(self)
        raise ScaleDecodeError(f"invalid Option tag {tag:#04x}")

    def finish(self) -> None:
        if self.remaining:
            raise ScaleDecodeError(f"{self.remaining} trailing bytes after decode")
