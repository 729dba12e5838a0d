"""Byte buffer type with the conversions bundles expect."""

from __future__ import annotations

import base64
import binascii
import struct
from collections.abc import Iterable
from typing import Any

_ENCODING_ALIASES = {
    "utf8": "utf8",
    "utf-8": "utf8",
    "hex": "hex",
    "base64": "base64",
    "base64url": "base64url",
    "ascii": "ascii",
    "latin1": "latin1",
    "binary": "latin1",
    "utf16le": "utf16le",
    "utf-16le": "utf16le",
    "ucs2": "utf16le",
    "ucs-2": "utf16le",
}


def normalize_encoding(encoding: str | None) -> str:
    """Return the canonical encoding name, raising for unknown ones."""
    key = (encoding or "utf8").lower()
    if key not in _ENCODING_ALIASES:
        msg = f"Unknown encoding: {encoding}"
        raise ValueError(msg)
    return _ENCODING_ALIASES[key]


def encode_text(text: str, encoding: str | None = "utf8") -> bytes:
    """Encode ``text`` using a runtime encoding name."""
    name = normalize_encoding(encoding)
    if name == "utf8":
        return text.encode("utf-8")
    if name == "hex":
        usable = len(text) - len(text) % 2
        try:
            return binascii.unhexlify(text[:usable])
        except binascii.Error:
            return b""
    if name in {"base64", "base64url"}:
        cleaned = text.strip().replace("-", "+").replace("_", "/")
        cleaned += "=" * (-len(cleaned) % 4)
        try:
            return base64.b64decode(cleaned)
        except binascii.Error:
            return b""
    if name == "ascii":
        return bytes(ord(ch) & 0x7F for ch in text)
    if name == "latin1":
        return bytes(ord(ch) & 0xFF for ch in text)
    return text.encode("utf-16-le")


def decode_bytes(data: bytes, encoding: str | None = "utf8") -> str:
    """Decode ``data`` using a runtime encoding name."""
    name = normalize_encoding(encoding)
    if name == "utf8":
        return data.decode("utf-8", errors="replace")
    if name == "hex":
        return data.hex()
    if name == "base64":
        return base64.b64encode(data).decode("ascii")
    if name == "base64url":
        return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")
    if name == "ascii":
        return "".join(chr(byte & 0x7F) for byte in data)
    if name == "latin1":
        return data.decode("latin-1")
    return data.decode("utf-16-le", errors="replace")


class Buffer(bytearray):
    """Fixed-length byte array mirroring the runtime's Buffer."""

    @classmethod
    def from_(cls, value: Any, encoding: str | None = "utf8") -> Buffer:
        """Build a buffer from text, bytes, an int sequence, or a JSON form."""
        if isinstance(value, str):
            return cls(encode_text(value, encoding))
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls(bytes(value))
        if isinstance(value, dict) and value.get("type") == "Buffer":
            return cls(bytes(int(item) & 0xFF for item in value.get("data", [])))
        if isinstance(value, Iterable):
            return cls(bytes(int(item) & 0xFF for item in value))
        msg = f"Cannot create a Buffer from {type(value).__name__}"
        raise TypeError(msg)

    @classmethod
    def alloc(cls, size: int, fill: int | str = 0) -> Buffer:
        if size < 0:
            msg = f"Invalid buffer size: {size}"
            raise ValueError(msg)
        buf = cls(size)
        if fill:
            buf.fill(fill)
        return buf

    @classmethod
    def alloc_unsafe(cls, size: int) -> Buffer:
        return cls.alloc(size)

    @classmethod
    def concat(cls, buffers: Iterable[bytes | bytearray], total_length: int | None = None) -> Buffer:
        joined = b"".join(bytes(item) for item in buffers)
        if total_length is not None:
            joined = joined[:total_length].ljust(total_length, b"\x00")
        return cls(joined)

    @staticmethod
    def compare_buffers(a: bytes | bytearray, b: bytes | bytearray) -> int:
        left, right = bytes(a), bytes(b)
        if left == right:
            return 0
        return -1 if left < right else 1

    @staticmethod
    def is_buffer(value: Any) -> bool:
        return isinstance(value, Buffer)

    @staticmethod
    def is_encoding(encoding: Any) -> bool:
        return isinstance(encoding, str) and encoding.lower() in _ENCODING_ALIASES

    @staticmethod
    def byte_length(value: str | bytes | bytearray, encoding: str | None = "utf8") -> int:
        if isinstance(value, str):
            return len(encode_text(value, encoding))
        return len(value)

    @property
    def length(self) -> int:
        return len(self)

    def fill(self, value: int | str, start: int = 0, end: int | None = None) -> Buffer:
        stop = len(self) if end is None else min(end, len(self))
        pattern = encode_text(value) if isinstance(value, str) else bytes([value & 0xFF])
        if not pattern:
            return self
        for offset in range(start, stop):
            self[offset] = pattern[(offset - start) % len(pattern)]
        return self

    def to_string(self, encoding: str | None = "utf8", start: int = 0, end: int | None = None) -> str:
        return decode_bytes(bytes(self[start:end]), encoding)

    def to_json(self) -> dict[str, Any]:
        return {"type": "Buffer", "data": list(self)}

    def equals(self, other: bytes | bytearray) -> bool:
        return bytes(self) == bytes(other)

    def compare(self, other: bytes | bytearray) -> int:
        return Buffer.compare_buffers(self, other)

    def slice(self, start: int = 0, end: int | None = None) -> Buffer:
        return Buffer(bytes(self)[start:end])

    subarray = slice

    def index_of(self, value: int | str | bytes, start: int = 0) -> int:
        needle = encode_text(value) if isinstance(value, str) else value
        if isinstance(needle, int):
            needle = bytes([needle & 0xFF])
        return bytes(self).find(bytes(needle), start)

    def includes(self, value: int | str | bytes) -> bool:
        return self.index_of(value) != -1

    def copy(self, target: bytearray, target_start: int = 0, source_start: int = 0, source_end: int | None = None) -> int:
        chunk = bytes(self[source_start:source_end])
        room = max(0, len(target) - target_start)
        chunk = chunk[:room]
        target[target_start : target_start + len(chunk)] = chunk
        return len(chunk)

    def write(self, text: str, offset: int = 0, encoding: str | None = "utf8") -> int:
        data = encode_text(text, encoding)[: max(0, len(self) - offset)]
        self[offset : offset + len(data)] = data
        return len(data)

    def _read(self, fmt: str, offset: int) -> int:
        size = struct.calcsize(fmt)
        if offset < 0 or offset + size > len(self):
            msg = f"The value of \"offset\" is out of range. It must be >= 0 and <= {len(self) - size}. Received {offset}"
            raise IndexError(msg)
        return struct.unpack_from(fmt, self, offset)[0]

    def read_uint8(self, offset: int = 0) -> int:
        return self._read("<B", offset)

    def read_int8(self, offset: int = 0) -> int:
        return self._read("<b", offset)

    def read_uint16_le(self, offset: int = 0) -> int:
        return self._read("<H", offset)

    def read_uint16_be(self, offset: int = 0) -> int:
        return self._read(">H", offset)

    def read_int16_le(self, offset: int = 0) -> int:
        return self._read("<h", offset)

    def read_int16_be(self, offset: int = 0) -> int:
        return self._read(">h", offset)

    def read_uint32_le(self, offset: int = 0) -> int:
        return self._read("<I", offset)

    def read_uint32_be(self, offset: int = 0) -> int:
        return self._read(">I", offset)

    def read_int32_le(self, offset: int = 0) -> int:
        return self._read("<i", offset)

    def read_int32_be(self, offset: int = 0) -> int:
        return self._read(">i", offset)

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return "<Buffer " + " ".join(f"{byte:02x}" for byte in self[:50]) + ">"


def to_bytes(value: Any, encoding: str | None = "utf8") -> bytes:
    """Coerce text or byte-like input to ``bytes``."""
    if isinstance(value, str):
        return encode_text(value, encoding)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    return str(value).encode("utf-8")
