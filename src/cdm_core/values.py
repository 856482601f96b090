"""Transient values and their run-length per-byte tag assignment.

A tag array is read pairwise as ``(runLength, tagId)``. Runs stay compact by
default; ``expand_tag_runs`` materializes one tag id per byte on request.
"""
from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from itertools import accumulate
from typing import Iterable, NamedTuple, Sequence

from .errors import InvalidFieldValue, MalformedRunLength
from .fields import Field, Record, check_fields, record_fields
from .primitives import (
    BYTES,
    INT,
    STRING,
    Codec,
    decode_optional,
    encode_optional,
    pack_into,
    read_count,
    unpack_from,
)
from .protocol import COUNT_FMT, INT_FMT
from .schema import DEFAULT_POLICY, SchemaPolicy


class TagRun(NamedTuple):
    run_length: int
    tag_id: int


def _pairs(flat: Sequence[int]) -> tuple[TagRun, ...]:
    if len(flat) % 2:
        raise MalformedRunLength(f"odd number of tag array entries ({len(flat)})")
    return tuple(TagRun(flat[i], flat[i + 1]) for i in range(0, len(flat), 2))


def _check_runs(runs: Iterable[TagRun]) -> tuple[TagRun, ...]:
    runs = tuple(runs)
    for i, run in enumerate(runs):
        if run.run_length <= 0:
            raise MalformedRunLength(f"run {i} has length {run.run_length}; runs must be > 0", run=i)
    return runs


def check_run_sum(runs: Sequence[TagRun], size: int) -> None:
    total = sum(r.run_length for r in runs)
    if total != size:
        raise MalformedRunLength(f"runs cover {total} bytes, value size is {size}", covered=total, size=size)


class RunsCodec(Codec):
    """Flat int array on the wire, ``TagRun`` tuple in memory."""

    name = "tag runs"

    def encode(self, writer, value, policy):
        pack_into(writer, COUNT_FMT, 2 * len(value))
        for run in value:
            pack_into(writer, INT_FMT + "i", run.run_length, run.tag_id)

    def decode(self, reader, policy):
        count = read_count(reader)
        flat = [unpack_from(reader, INT_FMT)[0] for _ in range(count)]
        return _check_runs(_pairs(flat))

    def coerce(self, value, where):
        if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
            self._reject(value, where)
        items = list(value)
        if all(isinstance(v, int) and not isinstance(v, bool) for v in items):
            runs = _pairs(items)
        else:
            try:
                runs = tuple(TagRun(*pair) for pair in items)
            except TypeError:
                raise InvalidFieldValue(f"{where}: expected (runLength, tagId) pairs", field=where) from None
        for run in runs:
            INT.coerce(run.run_length, where)
            INT.coerce(run.tag_id, where)
        return _check_runs(runs)

    def to_json(self, value):
        return [n for run in value for n in run]


RUNS = RunsCodec()


@dataclass(frozen=True)
class Value(Record):
    size: int = None
    value_data_type: str | None = None
    value_bytes: bytes | None = None
    tag: tuple[TagRun, ...] | None = None

    FIELDS = record_fields(
        Field("size", "size", INT, required=True),
        Field("value_data_type", "valueDataType", STRING),
        Field("value_bytes", "valueBytes", BYTES),
        Field("tag", "tag", RUNS),
    )

    def __post_init__(self):
        check_fields(self)
        if self.size < 0:
            raise InvalidFieldValue(f"Value.size must be >= 0, got {self.size}", field="Value.size")
        if self.tag is not None:
            check_run_sum(self.tag, self.size)


def encode_value_tag(value: Value, writer, policy: SchemaPolicy = DEFAULT_POLICY) -> None:
    """Write the optional tag array of ``value``."""
    if value.tag is not None:
        check_run_sum(_check_runs(value.tag), value.size)
    encode_optional(value.tag, writer, RUNS, policy)


def decode_value_tag(reader, size: int, expand: bool = False, policy: SchemaPolicy = DEFAULT_POLICY):
    """Read an optional tag array for a value of ``size`` bytes.

    Returns ``None`` when absent, the runs by default, or one tag id per byte
    when ``expand`` is set.
    """
    runs = decode_optional(reader, RUNS, policy)
    if runs is None:
        return None
    check_run_sum(runs, size)
    return expand_tag_runs(runs) if expand else runs


def expand_tag_runs(runs: Iterable[TagRun]) -> tuple[int, ...]:
    out: list[int] = []
    for run in runs:
        out.extend([run.tag_id] * run.run_length)
    return tuple(out)


def compress_tags(tags: Iterable[int]) -> tuple[TagRun, ...]:
    """Collapse a per-byte tag sequence into runs."""
    runs: list[TagRun] = []
    for tag_id in tags:
        if runs and runs[-1].tag_id == tag_id:
            runs[-1] = TagRun(runs[-1].run_length + 1, tag_id)
        else:
            runs.append(TagRun(1, tag_id))
    return tuple(runs)


def tag_at(runs: Sequence[TagRun], offset: int) -> int:
    """Tag id of the byte at ``offset`` without expanding the runs."""
    ends = list(accumulate(r.run_length for r in runs))
    if offset < 0 or not ends or offset >= ends[-1]:
        raise IndexError(f"offset {offset} outside tagged range")
    return runs[bisect_right(ends, offset)].tag_id


def value_tag_ids(value: Value) -> tuple[int, ...]:
    """Distinct tag ids referenced by ``value``, in first-use order."""
    if not value.tag:
        return ()
    return tuple(dict.fromkeys(r.tag_id for r in value.tag))
