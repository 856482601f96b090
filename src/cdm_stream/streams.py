from __future__ import annotations

import logging
import struct
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, NamedTuple
from warnings import warn

from cdm_core.config import load_policy
from cdm_core.envelope import decode_payload, encode_datum
from cdm_core.errors import (
    CDMError,
    MalformedStream,
    OversizedRecord,
    SchemaEvolutionWarning,
    StreamWarning,
    TruncatedStream,
)
from cdm_core.protocol import (
    ENVELOPE_HEADER_FMT,
    ENVELOPE_HEADER_LEN,
    MAGIC_STREAM,
    STREAM_HEADER_FMT,
    STREAM_HEADER_LEN,
)
from cdm_core.schema import SchemaPolicy

logger = logging.getLogger(__name__)


class Frame(NamedTuple):
    offset: int
    kind: int
    payload: bytes

    @property
    def length(self) -> int:
        return ENVELOPE_HEADER_LEN + len(self.payload)


class StreamWriter:
    """Producer side: stream header, then one envelope per ``write``."""

    def __init__(self, f: BinaryIO, policy: SchemaPolicy | None = None):
        self.f = f
        self.policy = policy or load_policy()
        self.f.write(struct.pack(STREAM_HEADER_FMT, MAGIC_STREAM, self.policy.version))
        self.offset = STREAM_HEADER_LEN
        self.records = 0

    def write(self, datum) -> int:
        """Append one envelope; returns its stream offset."""
        start = self.offset
        self.offset += encode_datum(datum, self.f, self.policy)
        self.records += 1
        return start

    def write_all(self, datums: Iterable) -> int:
        for datum in datums:
            self.write(datum)
        return self.records


class DatumReader:
    """Consumer side: one envelope at a time, stream header checked up front.

    Record-local errors leave the reader aligned on the next envelope, so the
    caller may call ``read`` again. Framing errors are fatal: every later call
    re-raises them.
    """

    def __init__(self, f: BinaryIO, policy: SchemaPolicy | None = None):
        self.f = f
        self.policy = policy or load_policy()
        self.offset = 0
        self.last_offset: int | None = None
        self._fatal: CDMError | None = None

        header = f.read(STREAM_HEADER_LEN)
        if len(header) < STREAM_HEADER_LEN:
            raise MalformedStream(f"stream header truncated ({len(header)} bytes)")
        magic, version = struct.unpack(STREAM_HEADER_FMT, header)
        if magic != MAGIC_STREAM:
            raise MalformedStream(f"bad magic {magic!r}")
        if version < 1:
            raise MalformedStream(f"bad schema version {version}")
        if version > self.policy.version:
            warn(
                f"Stream written with schema version {version}; reading with version {self.policy.version}",
                SchemaEvolutionWarning,
                stacklevel=2,
            )
        self.producer_version = version
        self.offset = STREAM_HEADER_LEN

    def _fail(self, err: CDMError) -> CDMError:
        self._fatal = err
        return err

    def read_frame(self) -> Frame | None:
        """Next raw envelope, or ``None`` at a clean end of stream."""
        if self._fatal is not None:
            raise self._fatal
        start = self.offset
        header = self.f.read(ENVELOPE_HEADER_LEN)

        # Clean EOF
        if len(header) == 0:
            return None

        # Truncated header
        if len(header) < ENVELOPE_HEADER_LEN:
            raise self._fail(TruncatedStream(f"envelope header at offset {start}", offset=start))

        kind, length = struct.unpack(ENVELOPE_HEADER_FMT, header)

        # Zip bomb protection
        if length > self.policy.max_record_size:
            raise self._fail(
                OversizedRecord(f"{length} > {self.policy.max_record_size} bytes at offset {start}", offset=start)
            )

        payload = self.f.read(length)
        if len(payload) != length:
            raise self._fail(
                TruncatedStream(f"torn payload at offset {start}: {len(payload)} of {length} bytes", offset=start)
            )
        self.offset = start + ENVELOPE_HEADER_LEN + length
        self.last_offset = start
        return Frame(start, kind, payload)

    def frames(self) -> Iterator[Frame]:
        while True:
            frame = self.read_frame()
            if frame is None:
                return
            yield frame

    def read(self):
        """Next decoded datum, or ``None`` at end of stream."""
        while True:
            frame = self.read_frame()
            if frame is None:
                return None
            datum = decode_payload(frame.kind, frame.payload, self.policy)
            if datum is not None:
                return datum

    def records(self, skip_errors: bool = False) -> Iterator:
        while True:
            try:
                datum = self.read()
            except CDMError as e:
                if e.fatal or not skip_errors:
                    raise
                warn(f"Skipping record at offset {self.last_offset}: {e}", StreamWarning, stacklevel=2)
                continue
            if datum is None:
                return
            yield datum

    def __iter__(self):
        return self.records()


@contextmanager
def open_reader(path: Path, policy: SchemaPolicy | None = None) -> Iterator[DatumReader]:
    path = Path(path)
    with open(path, "rb") as f:
        logger.debug("Opened CDM stream %s for reading", path)
        yield DatumReader(f, policy)
    logger.debug("Closed CDM stream %s", path)


@contextmanager
def open_writer(path: Path, policy: SchemaPolicy | None = None) -> Iterator[StreamWriter]:
    path = Path(path)
    with open(path, "wb") as f:
        logger.debug("Opened CDM stream %s for writing", path)
        writer = StreamWriter(f, policy)
        yield writer
        f.flush()
    logger.debug("Closed CDM stream %s after %d records", path, writer.records)


def write_stream(path: Path, datums: Iterable, policy: SchemaPolicy | None = None) -> int:
    with open_writer(path, policy) as writer:
        return writer.write_all(datums)


def read_stream(path: Path, policy: SchemaPolicy | None = None, skip_errors: bool = False) -> list:
    with open_reader(path, policy) as reader:
        return list(reader.records(skip_errors=skip_errors))
