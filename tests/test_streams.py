import io
import json
import struct

import pyarrow.parquet as pq
import pytest

from cdm_core import ByteWriter, Principal, TCCDMDatum, encode_datum, policy_for
from cdm_core.errors import (
    InvalidFieldValue,
    MalformedStream,
    OversizedRecord,
    SchemaEvolutionWarning,
    StreamWarning,
    TruncatedStream,
)
from cdm_core.jsonio import datum_from_dict, datum_to_dict, dumps_datum, loads_datum
from cdm_core.protocol import KIND_EVENT, KIND_PRINCIPAL, MAGIC_STREAM
from cdm_stream import DatumReader, StreamWriter, read_stream, write_stream
from cdm_stream.index import INDEX_SCHEMA, build_index, write_index

from samples import SRC, full_records, minimal_records, uid

V1 = policy_for(1)
V2 = policy_for(2)


def stream_bytes(records, policy=V2):
    buf = io.BytesIO()
    StreamWriter(buf, policy).write_all(records)
    return buf.getvalue()


def test_stream_header():
    data = stream_bytes([])
    assert data == MAGIC_STREAM + struct.pack("<H", 2)


def test_write_and_read_file(tmp_path):
    path = tmp_path / "s.cdm"
    records = full_records() + minimal_records()
    assert write_stream(path, records, V2) == len(records)
    assert read_stream(path, V2) == [TCCDMDatum(r) for r in records]


def test_writer_reports_offsets():
    buf = io.BytesIO()
    w = StreamWriter(buf, V2)
    first = w.write(minimal_records()[0])
    after_first = len(buf.getvalue())
    second = w.write(minimal_records()[1])
    assert first == 6
    assert second == after_first
    assert w.offset == len(buf.getvalue())
    assert w.records == 2


@pytest.mark.parametrize("header", [b"", b"CDM", b"XXXX\x02\x00", b"CDMS\x00\x00"])
def test_bad_header_is_malformed(header):
    with pytest.raises(MalformedStream):
        DatumReader(io.BytesIO(header), V2)


def test_newer_producer_warns():
    with pytest.warns(SchemaEvolutionWarning):
        reader = DatumReader(io.BytesIO(stream_bytes([])), V1)
    assert reader.producer_version == 2
    assert reader.read() is None


def test_reader_continues_after_record_local_error():
    good = minimal_records()
    w = ByteWriter()
    encode_datum(good[1], w)
    w.write(struct.pack("<BI", KIND_EVENT, 3) + b"abc")  # torn inside the payload
    encode_datum(good[2], w)
    data = stream_bytes([]) + w.getvalue()

    reader = DatumReader(io.BytesIO(data), V2)
    assert reader.read().datum == good[1]
    with pytest.raises(TruncatedStream) as e:
        reader.read()
    assert not e.value.fatal
    assert reader.read().datum == good[2]
    assert reader.read() is None


def test_skip_errors_yields_the_rest():
    good = minimal_records()
    w = ByteWriter()
    encode_datum(good[1], w)
    w.write(struct.pack("<BI", KIND_EVENT, 3) + b"abc")
    encode_datum(good[2], w)
    data = stream_bytes([]) + w.getvalue()

    with pytest.warns(StreamWarning):
        out = list(DatumReader(io.BytesIO(data), V2).records(skip_errors=True))
    assert [d.datum for d in out] == good[1:3]


def test_truncated_stream_is_fatal():
    data = stream_bytes(minimal_records())
    reader = DatumReader(io.BytesIO(data[:-3]), V2)
    with pytest.raises(TruncatedStream) as e:
        list(reader.records(skip_errors=True))
    assert e.value.fatal
    # Alignment is lost for good
    with pytest.raises(TruncatedStream):
        reader.read()


def test_truncated_envelope_header_is_fatal():
    data = stream_bytes(minimal_records()[:1]) + b"\x01\x00"
    reader = DatumReader(io.BytesIO(data), V2)
    reader.read()
    with pytest.raises(TruncatedStream):
        reader.read()


def test_oversized_frame_is_fatal():
    data = stream_bytes([]) + struct.pack("<BI", KIND_EVENT, 1 << 30)
    reader = DatumReader(io.BytesIO(data), V2)
    with pytest.raises(OversizedRecord):
        reader.read()


def test_older_reader_skips_unknown_kinds():
    records = minimal_records()
    data = stream_bytes(records)
    policy = V1.with_options(unknown_kind="skip")
    with pytest.warns(SchemaEvolutionWarning):
        reader = DatumReader(io.BytesIO(data), policy)
    with pytest.warns(StreamWarning):
        out = [d.datum for d in reader]
    assert out == [r for r in records if not isinstance(r, Principal)]


def test_index_rows(tmp_path):
    path = tmp_path / "s.cdm"
    records = minimal_records()
    write_stream(path, records, V2)

    rows = build_index(path, V1.with_options(unknown_kind="opaque"))
    assert len(rows) == len(records)
    assert rows[0]["offset"] == 6
    assert all(r["status"] == "DECODED" for r in rows if r["kind"] != KIND_PRINCIPAL)
    (principal,) = [r for r in rows if r["kind"] == KIND_PRINCIPAL]
    assert principal["status"] == "OPAQUE"
    assert principal["uuid"] is None
    edge = rows[-1]
    assert edge["kind_name"] == "SimpleEdge"
    assert edge["from_uuid"] == uid(1).hex()


def test_index_parquet(tmp_path):
    path = tmp_path / "s.cdm"
    write_stream(path, full_records(), V2)
    out = tmp_path / "idx" / "s.parquet"
    assert write_index(path, out, V2) == len(full_records())

    table = pq.read_table(out)
    assert table.schema.names == INDEX_SCHEMA.names
    df = table.to_pandas()
    assert list(df["ordinal"]) == list(range(len(full_records())))
    assert (df["status"] == "DECODED").all()
    assert df["content_hash"].str.len().eq(64).all()


def test_empty_index(tmp_path):
    path = tmp_path / "empty.cdm"
    write_stream(path, [], V2)
    out = tmp_path / "empty.parquet"
    assert write_index(path, out, V2) == 0
    assert pq.read_table(out).num_rows == 0


@pytest.mark.parametrize("record", full_records() + minimal_records(), ids=lambda r: type(r).__name__)
def test_json_round_trip(record):
    text = dumps_datum(record)
    assert loads_datum(text) == TCCDMDatum(record)


def test_json_shape():
    principal = Principal(uuid=uid(9), user_id="0", source=SRC)
    obj = datum_to_dict(principal)
    assert obj == {
        "datum": {
            "Principal": {
                "uuid": uid(9).hex(),
                "userId": "0",
                "source": "SOURCE_LINUX_AUDIT_TRACE",
                "type": "PRINCIPAL_LOCAL",
                "groupIds": [],
            }
        }
    }
    qualified = {"datum": {"com.bbn.tc.schema.avro.Principal": obj["datum"]["Principal"]}}
    assert datum_from_dict(qualified) == TCCDMDatum(principal)


def test_json_rejects_unknown_fields_and_names():
    with pytest.raises(InvalidFieldValue):
        loads_datum(json.dumps({"datum": {"Principal": {"uuid": uid(9).hex(), "bogus": 1}}}))
    with pytest.raises(InvalidFieldValue):
        loads_datum(json.dumps({"datum": {"Widget": {}}}))
    with pytest.raises(InvalidFieldValue):
        loads_datum("{not json")
