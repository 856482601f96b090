import json
from pathlib import Path

import click

from cdm_core.config import load_policy

from .logic import verify_stream


@click.group()
def main():
    pass


@main.command("stream")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--schema-version", type=int, default=None, help="Schema version to read with")
def stream_cmd(path: Path, schema_version):
    result = verify_stream(path, load_policy(schema_version))
    click.echo(json.dumps(result, sort_keys=True, separators=(",", ":"), ensure_ascii=False))
    if result["status"] != "PASS":
        raise SystemExit(1)


if __name__ == "__main__":
    main()
