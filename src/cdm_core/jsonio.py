"""JSON interchange for envelopes.

Shape: ``{"datum": {"<RecordName>": {...}}}``, fields under their CDM wire
names, UUIDs and byte strings as hex, enum members by name. Opaque envelopes
render as ``{"opaque": {"kind": n, "payload": "<hex>"}}``.
"""
from __future__ import annotations

import json
from collections.abc import Mapping

from .envelope import DATUM_TYPES, OpaqueDatum, TCCDMDatum
from .errors import InvalidFieldValue
from .fields import record_from_json, record_to_json

CANONICAL_JSON_KW = {"sort_keys": True, "separators": (",", ":"), "ensure_ascii": False}

KIND_BY_NAME = {cls.__name__: cls for cls in DATUM_TYPES.values()}


def datum_to_dict(datum) -> dict:
    if isinstance(datum, OpaqueDatum):
        return {"opaque": {"kind": datum.kind, "payload": datum.payload.hex()}}
    if not isinstance(datum, TCCDMDatum):
        datum = TCCDMDatum(datum)
    return {"datum": {datum.kind_name: record_to_json(datum.datum)}}


def datum_from_dict(obj):
    if not isinstance(obj, Mapping):
        raise InvalidFieldValue(f"expected an object, got {type(obj).__name__}")
    if "opaque" in obj:
        raw = obj["opaque"]
        try:
            return OpaqueDatum(int(raw["kind"]), bytes.fromhex(raw["payload"]))
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidFieldValue(f"opaque envelope: {e}") from e
    body = obj.get("datum")
    if not isinstance(body, Mapping) or len(body) != 1:
        raise InvalidFieldValue("expected {'datum': {<RecordName>: {...}}}")
    ((name, fields),) = body.items()
    # Accept fully qualified names, e.g. com.bbn.tc.schema.avro.Subject
    cls = KIND_BY_NAME.get(name.rsplit(".", 1)[-1])
    if cls is None:
        raise InvalidFieldValue(f"unknown record name {name!r}")
    return TCCDMDatum(record_from_json(cls, fields))


def dumps_datum(datum) -> str:
    return json.dumps(datum_to_dict(datum), **CANONICAL_JSON_KW)


def loads_datum(text: str):
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidFieldValue(f"invalid JSON: {e}") from e
    return datum_from_dict(obj)
