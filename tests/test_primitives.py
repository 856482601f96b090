import pytest

from cdm_core import ByteReader, ByteWriter, decode_optional, encode_optional
from cdm_core.errors import InvalidFieldValue, MalformedRecord, TruncatedStream
from cdm_core.primitives import BOOLEAN, BYTES, INT, LONG, PROPERTIES, SHORT, STRING, UUID
from cdm_core.schema import DEFAULT_POLICY


def encode(codec, value):
    w = ByteWriter()
    codec.encode(w, value, DEFAULT_POLICY)
    return w.getvalue()


def test_fixed_width_layouts():
    assert encode(INT, -2) == b"\xfe\xff\xff\xff"
    assert encode(LONG, 1000) == (1000).to_bytes(8, "little")
    assert encode(BOOLEAN, True) == b"\x01"
    assert encode(STRING, "ab") == b"\x02\x00\x00\x00ab"
    # UUID and SHORT are raw, no length prefix
    assert encode(UUID, bytes(32)) == bytes(32)
    assert len(encode(SHORT, bytes(16))) == 16


def test_properties_are_sorted_on_the_wire():
    a = encode(PROPERTIES, {"b": "2", "a": "1"})
    b = encode(PROPERTIES, {"a": "1", "b": "2"})
    assert a == b
    decoded = PROPERTIES.decode(ByteReader(a), DEFAULT_POLICY)
    assert dict(decoded) == {"a": "1", "b": "2"}
    with pytest.raises(TypeError):
        decoded["c"] = "3"


def test_duplicate_map_key_is_malformed():
    w = ByteWriter()
    w.write(b"\x02\x00\x00\x00")
    for _ in range(2):
        STRING.encode(w, "k", DEFAULT_POLICY)
        STRING.encode(w, "v", DEFAULT_POLICY)
    with pytest.raises(MalformedRecord):
        PROPERTIES.decode(ByteReader(w.getvalue()), DEFAULT_POLICY)


def test_optional_presence_marker():
    w = ByteWriter()
    encode_optional(None, w, INT, DEFAULT_POLICY)
    encode_optional(7, w, INT, DEFAULT_POLICY)
    assert w.getvalue() == b"\x00\x01\x07\x00\x00\x00"

    r = ByteReader(w.getvalue())
    assert decode_optional(r, INT, DEFAULT_POLICY) is None
    assert decode_optional(r, INT, DEFAULT_POLICY) == 7
    assert r.at_end()


def test_bad_presence_marker_is_malformed():
    with pytest.raises(MalformedRecord):
        decode_optional(ByteReader(b"\x02\x00\x00\x00\x00"), INT, DEFAULT_POLICY)


def test_bad_boolean_byte_is_malformed():
    with pytest.raises(MalformedRecord):
        BOOLEAN.decode(ByteReader(b"\x05"), DEFAULT_POLICY)


def test_invalid_utf8_is_malformed():
    with pytest.raises(MalformedRecord):
        STRING.decode(ByteReader(b"\x01\x00\x00\x00\xff"), DEFAULT_POLICY)


def test_short_read_fatality_depends_on_framing():
    with pytest.raises(TruncatedStream) as e:
        ByteReader(b"\x01").read(4)
    assert e.value.fatal

    with pytest.raises(TruncatedStream) as e:
        ByteReader(b"\x01", framed=True).read(4)
    assert not e.value.fatal


@pytest.mark.parametrize(
    "codec,value",
    [
        (INT, 1 << 31),
        (INT, True),
        (LONG, "5"),
        (UUID, bytes(31)),
        (SHORT, bytes(32)),
        (STRING, b"bytes"),
        (BYTES, "text"),
        (PROPERTIES, {"a": 1}),
    ],
)
def test_coerce_rejects_wrong_shapes(codec, value):
    with pytest.raises(InvalidFieldValue):
        codec.coerce(value, "field")
