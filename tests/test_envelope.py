import dataclasses
import io
import struct

import pytest

from cdm_core import (
    AbstractObject,
    ByteReader,
    ByteWriter,
    EdgeType,
    Event,
    EventType,
    FileObject,
    OpaqueDatum,
    Principal,
    ProvenanceTagNode,
    SimpleEdge,
    TCCDMDatum,
    decode_datum,
    encode_datum,
    policy_for,
)
from cdm_core.envelope import decode_payload, encode_payload
from cdm_core.errors import (
    InvalidFieldValue,
    MissingRequiredField,
    OversizedRecord,
    SchemaEvolutionWarning,
    StreamWarning,
    TruncatedStream,
    UnknownDatumKind,
    UnknownEnumValue,
)
from cdm_core.fields import encode_fields
from cdm_core.jsonio import dumps_datum, loads_datum
from cdm_core.primitives import STRING, UUID
from cdm_core.protocol import (
    KIND_EVENT,
    KIND_FILE_OBJECT,
    KIND_PRINCIPAL,
    KIND_PROVENANCE_TAG_NODE,
    KIND_SIMPLE_EDGE,
)
from cdm_core.schema import DEFAULT_POLICY

from samples import SRC, U1, U2, full_base, full_records, minimal_base, minimal_records, uid

V1 = policy_for(1)


def round_trip(record, policy=DEFAULT_POLICY):
    w = ByteWriter()
    encode_datum(record, w, policy)
    r = ByteReader(w.getvalue())
    out = decode_datum(r, policy)
    assert r.at_end()
    return out


@pytest.mark.parametrize("record", full_records() + minimal_records(), ids=lambda r: type(r).__name__)
def test_round_trip_every_kind(record):
    assert round_trip(record) == TCCDMDatum(record)


def test_simple_edge_layout_and_round_trip():
    edge = SimpleEdge(from_uuid=U1, to_uuid=U2, type=EdgeType.EDGE_EVENT_AFFECTS_FILE, timestamp=1000)
    w = ByteWriter()
    n = encode_datum(TCCDMDatum(edge), w)
    data = w.getvalue()
    assert n == len(data)
    kind, length = struct.unpack_from("<BI", data)
    assert kind == KIND_SIMPLE_EDGE
    assert length == 32 + 32 + 2 + 8 + 1
    assert data[5:37] == U1
    assert data[37:69] == U2

    out = decode_datum(ByteReader(data)).datum
    assert out.from_uuid == U1
    assert out.to_uuid == U2
    assert out.type is EdgeType.EDGE_EVENT_AFFECTS_FILE
    assert out.timestamp == 1000
    assert out.properties is None


def test_datum_requires_a_known_record():
    with pytest.raises(MissingRequiredField):
        TCCDMDatum()
    with pytest.raises(InvalidFieldValue):
        TCCDMDatum(minimal_base())


def test_file_object_defaults_when_absent_from_payload():
    w = ByteWriter()
    UUID.encode(w, uid(6), DEFAULT_POLICY)
    encode_fields(AbstractObject(source=SRC), w, DEFAULT_POLICY)
    STRING.encode(w, "file:///etc/hosts", DEFAULT_POLICY)

    f = decode_payload(KIND_FILE_OBJECT, w.getvalue()).datum
    assert f.is_pipe is False
    assert f.version == 1
    assert f.size is None


def test_payload_missing_required_field():
    payload = uid(6)  # uuid only
    with pytest.raises(MissingRequiredField) as e:
        decode_payload(KIND_FILE_OBJECT, payload)
    assert e.value.field == "base_object"

    with pytest.raises(MissingRequiredField):
        decode_payload(KIND_PROVENANCE_TAG_NODE, b"")


def test_truncated_payload_is_record_local():
    payload = encode_payload(full_records()[2])
    with pytest.raises(TruncatedStream) as e:
        decode_payload(KIND_EVENT, payload[:35])
    assert not e.value.fatal


def test_unknown_event_type_ordinal_decodes_as_unknown():
    event = Event(uuid=uid(1), type=EventType.EVENT_READ, thread_id=1, source=SRC)
    payload = bytearray(encode_payload(event))
    payload[32:34] = struct.pack("<H", 500)
    with pytest.warns(SchemaEvolutionWarning):
        out = decode_payload(KIND_EVENT, bytes(payload)).datum
    assert out.type is EventType.EVENT_UNKNOWN


def test_unknown_edge_type_ordinal_fails():
    edge = SimpleEdge(from_uuid=U1, to_uuid=U2, type=EdgeType.EDGE_EVENT_AFFECTS_FILE, timestamp=0)
    payload = bytearray(encode_payload(edge))
    payload[64:66] = struct.pack("<H", 500)
    with pytest.raises(UnknownEnumValue):
        decode_payload(KIND_SIMPLE_EDGE, bytes(payload))


def test_principal_under_older_version():
    principal = Principal(uuid=uid(9), user_id="0", source=SRC)
    payload = encode_payload(principal)

    with pytest.raises(UnknownDatumKind) as e:
        decode_payload(KIND_PRINCIPAL, payload, V1)
    assert e.value.kind == KIND_PRINCIPAL
    assert e.value.payload == payload

    with pytest.warns(StreamWarning):
        assert decode_payload(KIND_PRINCIPAL, payload, V1.with_options(unknown_kind="skip")) is None

    opaque = decode_payload(KIND_PRINCIPAL, payload, V1.with_options(unknown_kind="opaque"))
    assert opaque == OpaqueDatum(KIND_PRINCIPAL, payload)

    # Opaque envelopes re-encode byte-for-byte
    w = ByteWriter()
    encode_datum(opaque, w, V1)
    assert w.getvalue() == struct.pack("<BI", KIND_PRINCIPAL, len(payload)) + payload


def test_principal_cannot_be_written_as_version_one():
    with pytest.raises(UnknownDatumKind):
        encode_datum(Principal(uuid=uid(9), user_id="0", source=SRC), ByteWriter(), V1)


def test_kind_outside_the_table_is_unknown():
    with pytest.raises(UnknownDatumKind):
        decode_payload(200, b"\x00")


def test_older_reader_ignores_newer_trailing_fields():
    event = Event(uuid=uid(4), type=EventType.EVENT_READ, thread_id=1, source=SRC, program_point="main+0x10")
    payload = encode_payload(event)
    with pytest.warns(SchemaEvolutionWarning):
        out = decode_payload(KIND_EVENT, payload, V1).datum
    assert out.program_point is None
    assert out.uuid == event.uuid


def test_newer_reader_defaults_fields_missing_from_older_payload():
    f = FileObject(uuid=uid(6), base_object=minimal_base(), url="file:///x", is_pipe=True, version=4)
    payload = encode_payload(f, V1)
    out = decode_payload(KIND_FILE_OBJECT, payload, DEFAULT_POLICY).datum
    assert out == f
    assert out.size is None


def test_writing_older_version_drops_newer_fields():
    f = FileObject(uuid=uid(6), base_object=minimal_base(), url="file:///x", size=10)
    with pytest.warns(SchemaEvolutionWarning):
        payload = encode_payload(f, V1)
    assert decode_payload(KIND_FILE_OBJECT, payload, V1).datum.size is None


def test_oversized_payload():
    policy = policy_for(2, max_record_size=16)
    tag = ProvenanceTagNode(value=uid(1))
    with pytest.raises(OversizedRecord):
        encode_datum(tag, ByteWriter(), policy)

    w = ByteWriter()
    encode_datum(tag, w)
    with pytest.raises(OversizedRecord) as e:
        decode_datum(ByteReader(w.getvalue()), policy)
    assert e.value.fatal


def test_file_source_torn_header_is_fatal():
    with pytest.raises(TruncatedStream) as e:
        decode_datum(io.BytesIO(b"\x08\x01"))
    assert e.value.fatal


def test_file_source_torn_payload_is_fatal():
    edge = SimpleEdge(from_uuid=U1, to_uuid=U2, type=EdgeType.EDGE_EVENT_AFFECTS_FILE, timestamp=1000)
    w = ByteWriter()
    encode_datum(edge, w)
    with pytest.raises(TruncatedStream) as e:
        decode_datum(io.BytesIO(w.getvalue()[:-10]))
    assert e.value.fatal


def test_file_source_reads_consecutive_envelopes():
    records = minimal_records()
    w = ByteWriter()
    for record in records:
        encode_datum(record, w)
    f = io.BytesIO(w.getvalue())
    assert [decode_datum(f).datum for _ in records] == records
    assert f.read() == b""


def test_torn_string_inside_payload_stays_record_local():
    w = ByteWriter()
    UUID.encode(w, uid(6), DEFAULT_POLICY)
    encode_fields(AbstractObject(source=SRC), w, DEFAULT_POLICY)
    w.write(struct.pack("<I", 50) + b"file://")  # url claims 50 bytes
    with pytest.raises(TruncatedStream) as e:
        decode_payload(KIND_FILE_OBJECT, w.getvalue())
    assert not e.value.fatal


@pytest.mark.parametrize(
    "record,field",
    [(record, f.name) for record in full_records() for f in record.FIELDS if not f.required],
    ids=lambda v: v if isinstance(v, str) else type(v).__name__,
)
def test_round_trip_with_one_optional_absent(record, field):
    variant = dataclasses.replace(record, **{field: None})
    assert round_trip(variant) == TCCDMDatum(variant)
    assert loads_datum(dumps_datum(variant)) == TCCDMDatum(variant)


@pytest.mark.parametrize(
    "field",
    [f.name for f in AbstractObject.FIELDS if not f.required],
)
def test_round_trip_with_one_base_optional_absent(field):
    base = dataclasses.replace(full_base(), **{field: None})
    for record in full_records():
        if hasattr(record, "base_object"):
            variant = dataclasses.replace(record, base_object=base)
            assert round_trip(variant) == TCCDMDatum(variant)
            assert loads_datum(dumps_datum(variant)) == TCCDMDatum(variant)


@pytest.mark.parametrize("record", full_records() + minimal_records(), ids=lambda r: type(r).__name__)
def test_records_are_not_hashable(record):
    with pytest.raises(TypeError):
        hash(record)
    with pytest.raises(TypeError):
        hash(TCCDMDatum(record))
