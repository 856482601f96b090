"""Field tables shared by every record type.

A record lists its fields in wire order: required fields first, then
optional ones, with fields added by later schema versions last. The same
table drives construction checks, binary encoding and JSON conversion.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import NamedTuple
from warnings import warn

from .errors import InvalidFieldValue, MissingRequiredField, SchemaEvolutionWarning
from .primitives import ByteReader, Codec, decode_optional, encode_optional
from .schema import SchemaPolicy


class Field(NamedTuple):
    name: str
    wire_name: str
    codec: Codec
    required: bool = False
    default: object = None
    since: int = 1


def record_fields(*fields: Field) -> tuple[Field, ...]:
    seen_optional = False
    last_since = 1
    for f in fields:
        if f.required and seen_optional:
            raise ValueError(f"required field {f.name} follows an optional one")
        if f.since < last_since or (f.since > 1 and f.required):
            raise ValueError(f"field {f.name}: later-version fields must be optional and trailing")
        seen_optional = seen_optional or not f.required
        last_since = f.since
    return tuple(fields)


class Record:
    """Mixin for frozen dataclasses described by a ``FIELDS`` table."""

    FIELDS: tuple[Field, ...] = ()

    def __post_init__(self):
        check_fields(self)


def check_fields(record: Record) -> None:
    """Validate and normalize every field before the record is exposed."""
    name = type(record).__name__
    for f in record.FIELDS:
        value = getattr(record, f.name)
        if value is None:
            if f.required:
                raise MissingRequiredField(name, f.name)
            if f.default is not None:
                object.__setattr__(record, f.name, f.default)
            continue
        object.__setattr__(record, f.name, f.codec.coerce(value, f"{name}.{f.name}"))


def encode_fields(record: Record, writer, policy: SchemaPolicy) -> None:
    for f in record.FIELDS:
        value = getattr(record, f.name)
        if not policy.knows_since(f.since):
            if value is not None and value != f.default:
                warn(
                    f"{type(record).__name__}.{f.name} not representable in schema version "
                    f"{policy.version}; dropped",
                    SchemaEvolutionWarning,
                    stacklevel=3,
                )
            continue
        if f.required:
            f.codec.encode(writer, value, policy)
        else:
            encode_optional(value, writer, f.codec, policy)


def decode_fields(cls: type, reader, policy: SchemaPolicy, *, top_level: bool = False):
    """Decode ``cls`` from ``reader``.

    For a top-level payload, running out of bytes on a field boundary means an
    older producer: optional fields take their defaults, required ones fail.
    """
    values = {}
    for f in cls.FIELDS:
        if not policy.knows_since(f.since):
            break
        if top_level and reader.at_end():
            if f.required:
                raise MissingRequiredField(cls.__name__, f.name, schema_version=policy.version)
            values[f.name] = f.default
            continue
        if f.required:
            values[f.name] = f.codec.decode(reader, policy)
        else:
            value = decode_optional(reader, f.codec, policy)
            values[f.name] = f.default if value is None else value
    if top_level:
        finish_payload(reader, cls.__name__)
    return cls(**values)


def finish_payload(reader: ByteReader, record_name: str) -> None:
    """Drop trailing bytes written by a newer producer."""
    if reader.at_end():
        return
    extra = reader.remaining()
    reader.rest()
    warn(
        f"{record_name}: ignored {extra} trailing bytes from a newer schema version",
        SchemaEvolutionWarning,
        stacklevel=3,
    )


def record_to_json(record: Record) -> dict:
    out = {}
    for f in record.FIELDS:
        value = getattr(record, f.name)
        if value is not None:
            out[f.wire_name] = f.codec.to_json(value)
    return out


def record_from_json(cls: type, obj, where: str | None = None):
    where = where or cls.__name__
    if not isinstance(obj, Mapping):
        raise InvalidFieldValue(f"{where}: expected an object, got {type(obj).__name__}", field=where)
    by_wire = {f.wire_name: f for f in cls.FIELDS}
    unknown = sorted(set(obj) - set(by_wire))
    if unknown:
        raise InvalidFieldValue(f"{where}: unknown fields {unknown}", field=where)
    values = {}
    for key, raw in obj.items():
        if raw is None:
            continue
        f = by_wire[key]
        values[f.name] = f.codec.from_json(raw, f"{where}.{key}")
    return cls(**values)


class StructCodec(Codec):
    """A nested record encoded inline, without a length prefix."""

    def __init__(self, cls: type):
        self.cls = cls
        self.name = cls.__name__

    def encode(self, writer, value, policy):
        encode_fields(value, writer, policy)

    def decode(self, reader, policy):
        return decode_fields(self.cls, reader, policy)

    def coerce(self, value, where):
        if not isinstance(value, self.cls):
            self._reject(value, where)
        return value

    def to_json(self, value):
        return record_to_json(value)

    def from_json(self, obj, where):
        if isinstance(obj, self.cls):
            return obj
        return record_from_json(self.cls, obj, where)
