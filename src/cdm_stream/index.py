from __future__ import annotations

import hashlib
from pathlib import Path

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from cdm_core.envelope import DATUM_TYPES, OpaqueDatum, datum_identity, decode_payload
from cdm_core.errors import CDMError
from cdm_core.schema import SchemaPolicy

from .streams import open_reader

INDEX_SCHEMA = pa.schema(
    [
        ("ordinal", pa.int64()),
        ("offset", pa.int64()),
        ("length", pa.int64()),
        ("kind", pa.int32()),
        ("kind_name", pa.string()),
        ("uuid", pa.string()),
        ("from_uuid", pa.string()),
        ("to_uuid", pa.string()),
        ("status", pa.string()),
        ("error_code", pa.string()),
        ("content_hash", pa.string()),
    ]
)


def build_index(stream_path: Path, policy: SchemaPolicy | None = None) -> list[dict]:
    """One row per envelope; record-local decode errors become ERROR rows."""
    rows: list[dict] = []
    with open_reader(stream_path, policy) as reader:
        for ordinal, frame in enumerate(reader.frames()):
            cls = DATUM_TYPES.get(frame.kind)
            row = {
                "ordinal": ordinal,
                "offset": frame.offset,
                "length": frame.length,
                "kind": frame.kind,
                "kind_name": cls.__name__ if cls is not None else None,
                "uuid": None,
                "from_uuid": None,
                "to_uuid": None,
                "status": "DECODED",
                "error_code": None,
                "content_hash": hashlib.sha256(frame.payload).hexdigest(),
            }
            try:
                datum = decode_payload(frame.kind, frame.payload, reader.policy)
            except CDMError as e:
                if e.fatal:
                    raise
                row["status"] = "ERROR"
                row["error_code"] = e.code
            else:
                if datum is None:
                    row["status"] = "SKIPPED"
                elif isinstance(datum, OpaqueDatum):
                    row["status"] = "OPAQUE"
                else:
                    row.update(datum_identity(datum.datum))
            rows.append(row)
    return rows


def write_index(stream_path: Path, out_path: Path, policy: SchemaPolicy | None = None) -> int:
    """Write the envelope index of ``stream_path`` as Parquet; returns the row count."""
    rows = build_index(stream_path, policy)
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    if not rows:
        pq.write_table(INDEX_SCHEMA.empty_table(), out_path)
        return 0

    df = pd.DataFrame(rows, columns=INDEX_SCHEMA.names)
    table = pa.Table.from_pandas(df, schema=INDEX_SCHEMA, preserve_index=False)
    pq.write_table(table, out_path)
    return len(rows)
