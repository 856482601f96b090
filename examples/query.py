"""Query a stream index - envelope counts per kind and records that failed to decode."""
from __future__ import annotations

import sys
from pathlib import Path

import duckdb


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python query.py <index.parquet> [kind_name]")
        print("Example: python query.py stream.parquet Event")
        sys.exit(1)

    index = Path(sys.argv[1])
    kind_name = sys.argv[2] if len(sys.argv) > 2 else None

    con = duckdb.connect(":memory:")
    con.execute(f"CREATE VIEW envelopes AS SELECT * FROM '{index}'")

    print(f"--- Envelopes by kind: {index} ---\n")
    df = con.execute(
        """
        SELECT coalesce(kind_name, 'kind ' || kind) AS kind, status, count(*) AS n, sum(length) AS bytes
        FROM envelopes
        GROUP BY ALL
        ORDER BY kind, status
        """
    ).fetchdf()
    for _, row in df.iterrows():
        print(f"{row['kind']:<18} {row['status']:<8} {row['n']:>6} records {row['bytes']:>10} bytes")

    failed = con.execute(
        "SELECT ordinal, offset, error_code FROM envelopes WHERE status = 'ERROR' ORDER BY ordinal"
    ).fetchdf()
    print()
    if failed.empty:
        print("No records failed to decode.")
    else:
        for _, row in failed.iterrows():
            print(f"ERROR record {row['ordinal']} at offset {row['offset']}: {row['error_code']}")

    if kind_name:
        print(f"\n--- {kind_name} identities ---\n")
        rows = con.execute(
            "SELECT ordinal, uuid, from_uuid, to_uuid FROM envelopes WHERE kind_name = ? ORDER BY ordinal",
            [kind_name],
        ).fetchdf()
        for _, row in rows.iterrows():
            ident = row["uuid"] or f"{row['from_uuid']} -> {row['to_uuid']}"
            print(f"{row['ordinal']:>6}  {ident}")


if __name__ == "__main__":
    main()
