"""CDM Stream - pack, dump and index CDM envelope streams."""
from __future__ import annotations

from pathlib import Path

import click

from cdm_core.config import load_policy
from cdm_core.errors import CDMError
from cdm_core.jsonio import dumps_datum, loads_datum

from .index import write_index
from .streams import open_reader, open_writer

UNKNOWN_KIND_CHOICE = click.Choice(["fail", "skip", "opaque"])


def pack_jsonl(src: Path, out: Path, schema_version: int | None = None) -> int:
    """Encode a JSON-lines file of envelopes into a binary stream."""
    policy = load_policy(schema_version)
    with open(src, "r", encoding="utf-8") as f, open_writer(out, policy) as writer:
        for lineno, line in enumerate(f, 1):
            if not line.strip():
                continue
            try:
                writer.write(loads_datum(line))
            except CDMError as e:
                raise ValueError(f"line {lineno}: {e}") from e
        return writer.records


def _fatal(e: Exception) -> None:
    # Fail closed, with a single-line reason.
    click.echo(f"FATAL: {e}", err=True)
    raise SystemExit(1)


@click.group()
def main() -> None:
    """Pack, dump and index CDM envelope streams."""


@main.command("pack")
@click.argument("src", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("out", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--schema-version", type=int, default=None, help="Schema version to write (default: CDM_SCHEMA_VERSION or current)")
def pack_cmd(src: Path, out: Path, schema_version: int | None) -> None:
    """Encode a JSON-lines file of envelopes into a binary stream."""
    try:
        count = pack_jsonl(src, out, schema_version)
    except Exception as e:
        _fatal(e)
    click.echo(f"PASS: Stream written to {out}")
    click.echo(f"  Records: {count}")


@main.command("dump")
@click.argument("stream", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--schema-version", type=int, default=None, help="Schema version to read with")
@click.option("--unknown-kind", type=UNKNOWN_KIND_CHOICE, default=None, help="Handling of envelope kinds this version does not know")
@click.option("--skip-errors", is_flag=True, help="Skip records that fail to decode instead of stopping")
def dump_cmd(stream: Path, schema_version: int | None, unknown_kind: str | None, skip_errors: bool) -> None:
    """Decode a binary stream to JSON lines on stdout."""
    try:
        policy = load_policy(schema_version, unknown_kind=unknown_kind)
        with open_reader(stream, policy) as reader:
            for datum in reader.records(skip_errors=skip_errors):
                click.echo(dumps_datum(datum))
    except Exception as e:
        _fatal(e)


@main.command("index")
@click.argument("stream", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("out", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--schema-version", type=int, default=None, help="Schema version to read with")
def index_cmd(stream: Path, out: Path, schema_version: int | None) -> None:
    """Write a Parquet index with one row per envelope."""
    try:
        rows = write_index(stream, out, load_policy(schema_version))
    except Exception as e:
        _fatal(e)
    click.echo(f"PASS: Index written to {out}")
    click.echo(f"  Envelopes: {rows}")


if __name__ == "__main__":
    main()
