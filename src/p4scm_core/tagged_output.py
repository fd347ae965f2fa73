"""Decoder for p4's tagged (``-G``) output.

``p4 -G`` writes every result record as a Python ``marshal`` value, one after
another on stdout. This module decodes that byte stream into plain Python
values without touching the ``marshal`` module, so corrupt input surfaces as
``MalformedOutput`` instead of an interpreter-level error.

Supported tags:

- ``0`` dict terminator, ``N`` None, ``F``/``T`` booleans
- ``i`` int32, ``I`` int64, ``l`` arbitrary precision long
- ``f`` text float, ``g`` binary float
- ``s`` byte string (latin-1), ``t``/``u`` unicode (UTF-8),
  ``a``/``A``/``z``/``Z`` ASCII strings
- ``[`` list, ``(`` and ``)`` tuples (decoded as lists), ``{`` dict
"""

from __future__ import annotations

import struct
from typing import Any, Dict, List

from .errors import MalformedOutput

MAX_DEPTH = 64

_INT32 = struct.Struct("<i")
_INT64 = struct.Struct("<q")
_UINT16 = struct.Struct("<H")
_DOUBLE = struct.Struct("<d")

_LONG_SHIFT = 15
_LONG_BASE = 1 << _LONG_SHIFT


class _NoValue:
    """Result of decoding an empty buffer."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_VALUE"

    def __bool__(self) -> bool:
        return False


NO_VALUE = _NoValue()


class _Reader:
    def __init__(self, buffer: bytes):
        self.buffer = memoryview(buffer)
        self.pos = 0

    @property
    def remaining(self) -> int:
        return len(self.buffer) - self.pos

    def take(self, size: int) -> bytes:
        if size < 0:
            raise MalformedOutput(f"Negative length {size}", self.pos)
        if size > self.remaining:
            raise MalformedOutput(
                f"Truncated buffer: need {size} bytes, {self.remaining} left", self.pos
            )
        chunk = self.buffer[self.pos:self.pos + size].tobytes()
        self.pos += size
        return chunk

    def byte(self) -> int:
        return self.take(1)[0]

    def int32(self) -> int:
        return _INT32.unpack(self.take(4))[0]

    def length(self) -> int:
        start = self.pos
        size = self.int32()
        if size < 0:
            raise MalformedOutput(f"Negative length {size}", start)
        return size


def _decode_utf8(raw: bytes, offset: int) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedOutput(f"Invalid UTF-8 in unicode value: {e.reason}", offset) from e


def _read_long(reader: _Reader) -> int:
    start = reader.pos
    count = reader.int32()
    value = 0
    for i in range(abs(count)):
        digit = _UINT16.unpack(reader.take(2))[0]
        if digit >= _LONG_BASE:
            raise MalformedOutput(f"Invalid long digit {digit}", start)
        value |= digit << (_LONG_SHIFT * i)
    return -value if count < 0 else value


def _read_text_float(reader: _Reader) -> float:
    start = reader.pos
    raw = reader.take(reader.byte())
    try:
        return float(raw.decode("ascii"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedOutput(f"Unparseable float literal {raw!r}", start) from e


def _read_value(reader: _Reader, depth: int) -> Any:
    if depth > MAX_DEPTH:
        raise MalformedOutput(f"Nesting deeper than {MAX_DEPTH} levels", reader.pos)

    offset = reader.pos
    tag = chr(reader.byte())

    if tag == "N":
        return None
    if tag == "F":
        return False
    if tag == "T":
        return True
    if tag == "i":
        return reader.int32()
    if tag == "I":
        return _INT64.unpack(reader.take(8))[0]
    if tag == "l":
        return _read_long(reader)
    if tag == "g":
        return _DOUBLE.unpack(reader.take(8))[0]
    if tag == "f":
        return _read_text_float(reader)
    if tag == "s":
        return reader.take(reader.length()).decode("latin-1")
    if tag in ("u", "t"):
        start = reader.pos
        return _decode_utf8(reader.take(reader.length()), start)
    if tag in ("a", "A"):
        return reader.take(reader.length()).decode("latin-1")
    if tag in ("z", "Z"):
        return reader.take(reader.byte()).decode("latin-1")
    if tag in ("[", "("):
        return _read_sequence(reader, reader.length(), depth)
    if tag == ")":
        return _read_sequence(reader, reader.byte(), depth)
    if tag == "{":
        return _read_mapping(reader, depth)
    if tag == "0":
        raise MalformedOutput("Null marker outside of a dict", offset)

    raise MalformedOutput(f"Unknown type tag 0x{ord(tag):02x}", offset)


def _read_sequence(reader: _Reader, count: int, depth: int) -> List[Any]:
    # Every element takes at least one byte.
    if count > reader.remaining:
        raise MalformedOutput(
            f"Truncated buffer: sequence declares {count} items, {reader.remaining} bytes left",
            reader.pos,
        )
    return [_read_value(reader, depth + 1) for _ in range(count)]


def _read_mapping(reader: _Reader, depth: int) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    while True:
        if reader.remaining == 0:
            raise MalformedOutput("Truncated buffer: dict is missing its terminator", reader.pos)
        if reader.buffer[reader.pos] == ord("0"):
            reader.pos += 1
            return result
        key_offset = reader.pos
        key = _read_value(reader, depth + 1)
        if not isinstance(key, str):
            raise MalformedOutput(f"Dict key must be a string, got {type(key).__name__}", key_offset)
        result[key] = _read_value(reader, depth + 1)


def decode(buffer: bytes) -> Any:
    """Decode exactly one tagged value.

    Returns ``NO_VALUE`` for an empty buffer; raises ``MalformedOutput`` on
    corrupt input or trailing bytes.
    """
    if not buffer:
        return NO_VALUE
    reader = _Reader(buffer)
    value = _read_value(reader, 0)
    if reader.remaining:
        raise MalformedOutput(f"{reader.remaining} trailing bytes after value", reader.pos)
    return value


def decode_stream(buffer: bytes) -> List[Any]:
    """Decode a concatenation of tagged values, as written by ``p4 -G``."""
    values: List[Any] = []
    if not buffer:
        return values
    reader = _Reader(buffer)
    while reader.remaining:
        values.append(_read_value(reader, 0))
    return values
