"""Tagged binary encoding for device values.

Buffer layout::

    +-----+----------------------------------------------+
    | Tag |                   Payload                    |
    +-----+----------------------------------------------+

- Nil:   empty buffer, no tag
- Bool:  ``F`` or ``T``, no payload
- Int:   ``I`` + 8 bytes, big-endian two's complement
- Float: ``D`` + 8 bytes, big-endian IEEE754 double
- Str:   ``S`` + 4-byte big-endian length + UTF-8 bytes

This is the byte layout stored in the history logs, so it must not change.
"""

from __future__ import annotations

import struct

from .models import Value

TAG_FALSE = b"F"
TAG_TRUE = b"T"
TAG_INT = b"I"
TAG_FLOAT = b"D"
TAG_STR = b"S"

_I64 = struct.Struct(">q")
_F64 = struct.Struct(">d")
_U32 = struct.Struct(">I")


class DecodeError(TypeError):
    """A buffer could not be decoded as a Value."""


class ShortBufferError(DecodeError):
    pass


class InvalidUtf8Error(DecodeError):
    pass


class UnknownTagError(DecodeError):
    pass


def encode(value: Value) -> bytes:
    """Encode a scalar value.

    Raises:
        TypeError: ``value`` is not one of the supported scalar types.
        OverflowError: an int does not fit in 64 signed bits.
    """
    if value is None:
        return b""
    # bool first: it is a subclass of int
    if isinstance(value, bool):
        return TAG_TRUE if value else TAG_FALSE
    if isinstance(value, int):
        if not -(1 << 63) <= value < (1 << 63):
            raise OverflowError(f"integer {value} does not fit in 64 bits")
        return TAG_INT + _I64.pack(value)
    if isinstance(value, float):
        return TAG_FLOAT + _F64.pack(value)
    if isinstance(value, str):
        data = value.encode("utf-8")
        return TAG_STR + _U32.pack(len(data)) + data
    raise TypeError(f"cannot encode {type(value).__name__} as a device value")


def decode(buf: bytes) -> Value:
    """Decode a buffer produced by :func:`encode`.

    Raises:
        DecodeError: ``buf`` is not a byte buffer, or is malformed.
    """
    if not isinstance(buf, (bytes, bytearray, memoryview)):
        raise DecodeError(f"cannot decode {type(buf).__name__}, expected bytes")

    buf = bytes(buf)
    if not buf:
        return None

    tag = buf[:1]
    body = buf[1:]

    if tag == TAG_FALSE:
        return False
    if tag == TAG_TRUE:
        return True
    if tag == TAG_INT:
        if len(body) < 8:
            raise ShortBufferError("integer data too short")
        return _I64.unpack_from(body)[0]
    if tag == TAG_FLOAT:
        if len(body) < 8:
            raise ShortBufferError("floating point data too short")
        return _F64.unpack_from(body)[0]
    if tag == TAG_STR:
        return _decode_string(body)

    raise UnknownTagError(f"unknown tag {tag!r}")


def _decode_string(body: bytes) -> str:
    if len(body) < 4:
        raise ShortBufferError("string data too short")
    (length,) = _U32.unpack_from(body)
    if len(body) < 4 + length:
        raise ShortBufferError("string data too short")
    try:
        return body[4 : 4 + length].decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidUtf8Error("string not UTF-8") from e
