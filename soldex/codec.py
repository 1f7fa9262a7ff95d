"""Borsh decoding and base58 encoding for Solana instruction data."""

from __future__ import annotations

import struct
from typing import Callable, TypeVar

T = TypeVar("T")

_B58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_B58_INDEX = {char: value for value, char in enumerate(_B58_ALPHABET)}

PUBKEY_LENGTH = 32


class BorshError(ValueError):
    """Raised when a byte stream does not hold the expected Borsh value."""


class BorshReader:
    """Sequential reader over Borsh-encoded bytes."""

    def __init__(self, data):
        self._data = bytes(data)
        self._pos = 0

    def remaining(self) -> int:
        """Number of bytes not yet consumed."""
        return len(self._data) - self._pos

    def read_bytes(self, n: int) -> bytes:
        if n < 0:
            raise BorshError(f"negative length {n}")
        if self.remaining() < n:
            raise BorshError(
                f"unexpected end of data: wanted {n} bytes, {self.remaining()} left"
            )
        chunk = self._data[self._pos : self._pos + n]
        self._pos += n
        return chunk

    def _unpack(self, fmt: str) -> int:
        size = struct.calcsize(fmt)
        (value,) = struct.unpack(fmt, self.read_bytes(size))
        return value

    def read_u8(self) -> int:
        return self._unpack("<B")

    def read_u16(self) -> int:
        return self._unpack("<H")

    def read_u32(self) -> int:
        return self._unpack("<I")

    def read_u64(self) -> int:
        return self._unpack("<Q")

    def read_i64(self) -> int:
        return self._unpack("<q")

    def read_bool(self) -> bool:
        value = self.read_u8()
        if value not in (0, 1):
            raise BorshError(f"invalid bool byte {value}")
        return value == 1

    def read_string(self) -> str:
        length = self.read_u32()
        raw = self.read_bytes(length)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise BorshError("string is not valid UTF-8") from exc

    def read_pubkey(self) -> bytes:
        return self.read_bytes(PUBKEY_LENGTH)

    def read_option(self, read: Callable[[], T]) -> T | None:
        tag = self.read_u8()
        if tag == 0:
            return None
        if tag == 1:
            return read()
        raise BorshError(f"invalid option tag {tag}")

    def read_vec(self, read: Callable[[], T]) -> list[T]:
        count = self.read_u32()
        return [read() for _ in range(count)]


def b58encode(data) -> str:
    """Encode bytes with the Bitcoin base58 alphabet."""
    raw = bytes(data)
    stripped = raw.lstrip(b"\0")
    zeros = len(raw) - len(stripped)
    number = int.from_bytes(stripped, "big")
    digits = []
    while number:
        number, rem = divmod(number, 58)
        digits.append(_B58_ALPHABET[rem])
    return "1" * zeros + "".join(reversed(digits))


def b58decode(text: str) -> bytes:
    """Decode a base58 string; raises ValueError on characters outside the alphabet."""
    stripped = text.lstrip("1")
    zeros = len(text) - len(stripped)
    number = 0
    for char in stripped:
        try:
            number = number * 58 + _B58_INDEX[char]
        except KeyError:
            raise ValueError(f"invalid base58 character {char!r}") from None
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    return b"\0" * zeros + body