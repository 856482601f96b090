"""Primitive field codecs.

Every codec reads from an object with ``read(n)`` and writes to an object with
``write(b)``. ``ByteReader`` and ``ByteWriter`` are the in-memory versions;
binary file handles work as writers directly.
"""
from __future__ import annotations

import struct
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from .enums import CDMEnum
from .errors import InvalidFieldValue, MalformedRecord, TruncatedStream
from .protocol import (
    ABSENT,
    BOOL_FMT,
    COUNT_FMT,
    ENUM_FMT,
    INT_FMT,
    LONG_FMT,
    PRESENT,
    SHORT_LEN,
    UUID_LEN,
)
from .schema import SchemaPolicy, enum_by_name


class ByteReader:
    """Bounded in-memory byte source.

    ``framed`` marks a reader over one envelope payload: running out of bytes
    there is a record-local fault, not a loss of stream alignment.
    """

    def __init__(self, data: bytes, *, framed: bool = False):
        self._data = bytes(data)
        self._pos = 0
        self.framed = framed

    def remaining(self) -> int:
        return len(self._data) - self._pos

    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def read(self, n: int) -> bytes:
        end = self._pos + n
        if n < 0 or end > len(self._data):
            raise TruncatedStream(
                f"needed {n} bytes at offset {self._pos}, {self.remaining()} left",
                fatal=not self.framed,
                offset=self._pos,
            )
        out = self._data[self._pos:end]
        self._pos = end
        return out

    def rest(self) -> bytes:
        return self.read(self.remaining())


class ByteWriter:
    def __init__(self):
        self._buf = bytearray()

    def write(self, data: bytes) -> int:
        self._buf += data
        return len(data)

    def getvalue(self) -> bytes:
        return bytes(self._buf)


def read_exact(reader, n: int) -> bytes:
    """Read exactly ``n`` bytes from any ``read(n)`` source.

    A short read from an unframed source (a file, a socket buffer) means the
    stream itself ended mid-record, so alignment is lost.
    """
    data = reader.read(n)
    if len(data) != n:
        raise TruncatedStream(
            f"needed {n} bytes, got {len(data)}",
            fatal=not getattr(reader, "framed", False),
        )
    return data


def pack_into(writer, fmt: str, *values) -> None:
    writer.write(struct.pack(fmt, *values))


def unpack_from(reader, fmt: str):
    return struct.unpack(fmt, read_exact(reader, struct.calcsize(fmt)))


def read_count(reader) -> int:
    return unpack_from(reader, COUNT_FMT)[0]


class Codec:
    """Encode/decode/validate one field type."""

    name = "value"

    def encode(self, writer, value, policy: SchemaPolicy) -> None:
        raise NotImplementedError

    def decode(self, reader, policy: SchemaPolicy):
        raise NotImplementedError

    def coerce(self, value, where: str):
        return value

    def to_json(self, value):
        return value

    def from_json(self, obj, where: str):
        return self.coerce(obj, where)

    def _reject(self, value, where: str):
        raise InvalidFieldValue(f"{where}: expected {self.name}, got {type(value).__name__}", field=where)


class IntCodec(Codec):
    def __init__(self, fmt: str, bits: int, name: str):
        self.fmt = fmt
        self.name = name
        self.lo = -(1 << (bits - 1))
        self.hi = (1 << (bits - 1)) - 1

    def encode(self, writer, value, policy):
        pack_into(writer, self.fmt, value)

    def decode(self, reader, policy):
        return unpack_from(reader, self.fmt)[0]

    def coerce(self, value, where):
        if isinstance(value, bool) or not isinstance(value, int):
            self._reject(value, where)
        if not self.lo <= value <= self.hi:
            raise InvalidFieldValue(f"{where}: {value} out of {self.name} range", field=where)
        return value


class BoolCodec(Codec):
    name = "boolean"

    def encode(self, writer, value, policy):
        pack_into(writer, BOOL_FMT, 1 if value else 0)

    def decode(self, reader, policy):
        (raw,) = unpack_from(reader, BOOL_FMT)
        if raw not in (0, 1):
            raise MalformedRecord(f"boolean byte {raw}")
        return raw == 1

    def coerce(self, value, where):
        if not isinstance(value, bool):
            self._reject(value, where)
        return value


class StringCodec(Codec):
    name = "string"

    def encode(self, writer, value, policy):
        data = value.encode("utf-8")
        pack_into(writer, COUNT_FMT, len(data))
        writer.write(data)

    def decode(self, reader, policy):
        data = read_exact(reader, read_count(reader))
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedRecord(f"string is not UTF-8: {e}") from e

    def coerce(self, value, where):
        if not isinstance(value, str):
            self._reject(value, where)
        return value


class BytesCodec(Codec):
    name = "bytes"

    def encode(self, writer, value, policy):
        pack_into(writer, COUNT_FMT, len(value))
        writer.write(value)

    def decode(self, reader, policy):
        return read_exact(reader, read_count(reader))

    def coerce(self, value, where):
        if not isinstance(value, (bytes, bytearray, memoryview)):
            self._reject(value, where)
        return bytes(value)

    def to_json(self, value):
        return value.hex()

    def from_json(self, obj, where):
        if not isinstance(obj, str):
            self._reject(obj, where)
        try:
            return self.coerce(bytes.fromhex(obj), where)
        except ValueError:
            raise InvalidFieldValue(f"{where}: not a hex string", field=where) from None


class FixedCodec(BytesCodec):
    """Raw fixed-width bytes, no length prefix."""

    def __init__(self, length: int, name: str):
        self.length = length
        self.name = name

    def encode(self, writer, value, policy):
        writer.write(value)

    def decode(self, reader, policy):
        return read_exact(reader, self.length)

    def coerce(self, value, where):
        value = super().coerce(value, where)
        if len(value) != self.length:
            raise InvalidFieldValue(f"{where}: {self.name} must be {self.length} bytes, got {len(value)}", field=where)
        return value


class EnumCodec(Codec):
    def __init__(self, family: type):
        self.family = family
        self.name = family.__name__

    def encode(self, writer, value, policy):
        pack_into(writer, ENUM_FMT, policy.enum_to_wire(value))

    def decode(self, reader, policy):
        (ordinal,) = unpack_from(reader, ENUM_FMT)
        return policy.enum_from_wire(self.family, ordinal)

    def coerce(self, value, where):
        if not isinstance(value, self.family):
            self._reject(value, where)
        return value

    def to_json(self, value):
        return value.name

    def from_json(self, obj, where):
        if isinstance(obj, CDMEnum):
            return self.coerce(obj, where)
        try:
            return enum_by_name(self.family, obj)
        except (KeyError, TypeError):
            raise InvalidFieldValue(f"{where}: {obj!r} is not a {self.name} member", field=where) from None


class ListCodec(Codec):
    def __init__(self, item: Codec):
        self.item = item
        self.name = f"list of {item.name}"

    def encode(self, writer, value, policy):
        pack_into(writer, COUNT_FMT, len(value))
        for item in value:
            self.item.encode(writer, item, policy)

    def decode(self, reader, policy):
        return tuple(self.item.decode(reader, policy) for _ in range(read_count(reader)))

    def coerce(self, value, where):
        if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable):
            self._reject(value, where)
        return tuple(self.item.coerce(v, f"{where}[{i}]") for i, v in enumerate(value))

    def to_json(self, value):
        return [self.item.to_json(v) for v in value]

    def from_json(self, obj, where):
        if not isinstance(obj, list):
            self._reject(obj, where)
        return tuple(self.item.from_json(v, f"{where}[{i}]") for i, v in enumerate(obj))


class MapCodec(Codec):
    """String-to-string map; encoded in key order for deterministic bytes."""

    name = "map of string"

    def encode(self, writer, value, policy):
        pack_into(writer, COUNT_FMT, len(value))
        for key in sorted(value):
            STRING.encode(writer, key, policy)
            STRING.encode(writer, value[key], policy)

    def decode(self, reader, policy):
        out = {}
        for _ in range(read_count(reader)):
            key = STRING.decode(reader, policy)
            if key in out:
                raise MalformedRecord(f"duplicate map key {key!r}")
            out[key] = STRING.decode(reader, policy)
        return MappingProxyType(out)

    def coerce(self, value, where):
        if not isinstance(value, Mapping):
            self._reject(value, where)
        out = {}
        for k, v in value.items():
            if not isinstance(k, str) or not isinstance(v, str):
                raise InvalidFieldValue(f"{where}: keys and values must be strings", field=where)
            out[k] = v
        return MappingProxyType(out)

    def to_json(self, value):
        return dict(value)


BOOLEAN = BoolCodec()
INT = IntCodec(INT_FMT, 32, "int")
LONG = IntCodec(LONG_FMT, 64, "long")
STRING = StringCodec()
BYTES = BytesCodec()
UUID = FixedCodec(UUID_LEN, "UUID")
SHORT = FixedCodec(SHORT_LEN, "SHORT")
PROPERTIES = MapCodec()


def encode_optional(value, writer, codec: Codec, policy: SchemaPolicy) -> None:
    """Write a presence byte, then the payload when present."""
    write_presence(writer, value is not None)
    if value is not None:
        codec.encode(writer, value, policy)


def write_presence(writer, present: bool) -> None:
    pack_into(writer, BOOL_FMT, PRESENT if present else ABSENT)


def read_presence(reader) -> bool:
    (marker,) = unpack_from(reader, BOOL_FMT)
    if marker not in (ABSENT, PRESENT):
        raise MalformedRecord(f"presence byte {marker}")
    return marker == PRESENT


def decode_optional(reader, codec: Codec, policy: SchemaPolicy):
    """Inverse of ``encode_optional``; an absent marker yields ``None``."""
    if not read_presence(reader):
        return None
    return codec.decode(reader, policy)
