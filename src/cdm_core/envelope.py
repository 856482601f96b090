"""TCCDMDatum envelope: one record kind per envelope on a shared channel.

Envelope layout: [Kind(1) | PayloadLength(4) | payload]. The length prefix
lets a consumer step over kinds it does not know.
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Union
from warnings import warn

from .errors import InvalidFieldValue, MissingRequiredField, OversizedRecord, StreamWarning, UnknownDatumKind
from .fields import decode_fields, encode_fields, finish_payload
from .primitives import ByteReader, ByteWriter, pack_into, read_exact, unpack_from
from .protocol import (
    ENVELOPE_HEADER_FMT,
    ENVELOPE_HEADER_LEN,
    KIND_EVENT,
    KIND_FILE_OBJECT,
    KIND_MEMORY_OBJECT,
    KIND_NETFLOW_OBJECT,
    KIND_PRINCIPAL,
    KIND_PROVENANCE_TAG_NODE,
    KIND_SIMPLE_EDGE,
    KIND_SRCSINK_OBJECT,
    KIND_SUBJECT,
)
from .records import Event, FileObject, MemoryObject, NetFlowObject, Principal, SimpleEdge, SrcSinkObject, Subject
from .schema import DEFAULT_POLICY, SchemaPolicy
from .tags import ProvenanceTagNode, decode_tag_payload, encode_tag_tree

DATUM_TYPES = MappingProxyType({
    KIND_PROVENANCE_TAG_NODE: ProvenanceTagNode,
    KIND_SUBJECT: Subject,
    KIND_EVENT: Event,
    KIND_NETFLOW_OBJECT: NetFlowObject,
    KIND_FILE_OBJECT: FileObject,
    KIND_SRCSINK_OBJECT: SrcSinkObject,
    KIND_MEMORY_OBJECT: MemoryObject,
    KIND_PRINCIPAL: Principal,
    KIND_SIMPLE_EDGE: SimpleEdge,
})
KIND_OF = MappingProxyType({cls: kind for kind, cls in DATUM_TYPES.items()})

Payload = Union[
    ProvenanceTagNode, Subject, Event, NetFlowObject, FileObject,
    SrcSinkObject, MemoryObject, Principal, SimpleEdge,
]


@dataclass(frozen=True)
class TCCDMDatum:
    """Envelope holding exactly one payload record."""

    datum: Payload = None

    __hash__ = None

    def __post_init__(self):
        if self.datum is None:
            raise MissingRequiredField("TCCDMDatum", "datum")
        if type(self.datum) not in KIND_OF:
            raise InvalidFieldValue(
                f"TCCDMDatum.datum: {type(self.datum).__name__} is not a datum kind", field="TCCDMDatum.datum"
            )

    @property
    def kind(self) -> int:
        return KIND_OF[type(self.datum)]

    @property
    def kind_name(self) -> str:
        return type(self.datum).__name__


@dataclass(frozen=True)
class OpaqueDatum:
    """Envelope of a kind this consumer does not know, kept byte-for-byte."""

    kind: int
    payload: bytes

    @property
    def kind_name(self) -> str:
        return f"Opaque{self.kind}"


def encode_payload(record: Payload, policy: SchemaPolicy = DEFAULT_POLICY) -> bytes:
    body = ByteWriter()
    if isinstance(record, ProvenanceTagNode):
        encode_tag_tree(record, body, policy)
    else:
        encode_fields(record, body, policy)
    return body.getvalue()


def encode_datum(datum, writer, policy: SchemaPolicy = DEFAULT_POLICY) -> int:
    """Write one envelope; returns the number of bytes written.

    Accepts a ``TCCDMDatum``, a bare payload record, or an ``OpaqueDatum``
    (passed through unchanged).
    """
    if isinstance(datum, OpaqueDatum):
        kind, payload = datum.kind, datum.payload
    else:
        if not isinstance(datum, TCCDMDatum):
            datum = TCCDMDatum(datum)
        kind = datum.kind
        if not policy.knows_kind(kind):
            raise UnknownDatumKind(kind, schema_version=policy.version)
        payload = encode_payload(datum.datum, policy)
    if len(payload) > policy.max_record_size:
        raise OversizedRecord(f"{len(payload)} > {policy.max_record_size} bytes", kind=kind)
    pack_into(writer, ENVELOPE_HEADER_FMT, kind, len(payload))
    writer.write(payload)
    return ENVELOPE_HEADER_LEN + len(payload)


def read_envelope(reader, policy: SchemaPolicy = DEFAULT_POLICY) -> tuple[int, bytes]:
    kind, length = unpack_from(reader, ENVELOPE_HEADER_FMT)
    if length > policy.max_record_size:
        raise OversizedRecord(f"{length} > {policy.max_record_size} bytes", kind=kind)
    return kind, read_exact(reader, length)


def decode_payload(kind: int, payload: bytes, policy: SchemaPolicy = DEFAULT_POLICY):
    """Decode one envelope body.

    Unknown kinds follow ``policy.unknown_kind``: raise ``UnknownDatumKind``,
    return ``None`` after a warning, or return an ``OpaqueDatum``.
    """
    if kind not in DATUM_TYPES or not policy.knows_kind(kind):
        if policy.unknown_kind == "opaque":
            return OpaqueDatum(kind, bytes(payload))
        if policy.unknown_kind == "skip":
            warn(
                f"Skipping envelope kind {kind} ({len(payload)} bytes) unknown to schema version {policy.version}",
                StreamWarning,
                stacklevel=2,
            )
            return None
        raise UnknownDatumKind(kind, bytes(payload), schema_version=policy.version)

    body = ByteReader(payload, framed=True)
    cls = DATUM_TYPES[kind]
    if cls is ProvenanceTagNode:
        record = decode_tag_payload(body, policy)
        finish_payload(body, cls.__name__)
    else:
        record = decode_fields(cls, body, policy, top_level=True)
    return TCCDMDatum(record)


def decode_datum(reader, policy: SchemaPolicy = DEFAULT_POLICY):
    """Read and decode one envelope from ``reader``."""
    kind, payload = read_envelope(reader, policy)
    return decode_payload(kind, payload, policy)


def datum_identity(record) -> dict:
    """Identity columns of a payload record (vertex uuid or edge endpoints)."""
    if isinstance(record, SimpleEdge):
        return {"uuid": None, "from_uuid": record.from_uuid.hex(), "to_uuid": record.to_uuid.hex()}
    uuid = getattr(record, "uuid", None)
    return {"uuid": uuid.hex() if uuid is not None else None, "from_uuid": None, "to_uuid": None}
