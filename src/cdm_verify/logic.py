from __future__ import annotations

from pathlib import Path

from cdm_core.enums import EdgeType
from cdm_core.envelope import TCCDMDatum, decode_payload
from cdm_core.errors import CDMError, VersionOrderViolation
from cdm_core.records import AbstractObject, Event, FileObject, SimpleEdge
from cdm_core.schema import SchemaPolicy
from cdm_core.tags import ProvenanceTagNode, TagTable, validate_tag_tree
from cdm_core.values import value_tag_ids

from cdm_stream.streams import open_reader


class StreamChecker:
    """Cross-record checks over one stream: tag namespace and file versions."""

    def __init__(self, policy: SchemaPolicy):
        self.policy = policy
        self.tags = TagTable()
        self.file_versions: dict[bytes, list[int]] = {}

    def check(self, record) -> None:
        if isinstance(record, ProvenanceTagNode):
            validate_tag_tree(record, self.policy, self.tags)
            return

        base = getattr(record, "base_object", None)
        if isinstance(base, AbstractObject) and base.tag is not None:
            validate_tag_tree(base.tag, self.policy, self.tags)

        if isinstance(record, Event):
            for value in record.parameters or ():
                for tag_id in value_tag_ids(value):
                    self.tags.resolve(tag_id)
        elif isinstance(record, FileObject):
            self.file_versions.setdefault(record.uuid, []).append(record.version)
        elif isinstance(record, SimpleEdge) and record.type is EdgeType.EDGE_OBJECT_PREV_VERSION:
            self._check_prev_version(record)

    def _check_prev_version(self, edge: SimpleEdge) -> None:
        newer = self.file_versions.get(edge.from_uuid)
        older = self.file_versions.get(edge.to_uuid)
        # Only files seen earlier in the stream can be cross-referenced.
        if not newer or not older:
            return
        if edge.from_uuid == edge.to_uuid:
            ok = all(a < b for a, b in zip(newer, newer[1:]))
        else:
            ok = newer[-1] > older[-1]
        if not ok:
            raise VersionOrderViolation(
                f"{edge.from_uuid.hex()} versions {newer} vs {edge.to_uuid.hex()} versions {older}"
            )


def verify_stream(stream_path: Path, policy: SchemaPolicy | None = None) -> dict:
    errors = []
    records = 0
    producer_version = None
    try:
        with open_reader(stream_path, policy) as reader:
            producer_version = reader.producer_version
            checker = StreamChecker(reader.policy)
            for frame in reader.frames():
                try:
                    datum = decode_payload(frame.kind, frame.payload, reader.policy)
                    if isinstance(datum, TCCDMDatum):
                        checker.check(datum.datum)
                except CDMError as e:
                    if e.fatal:
                        raise
                    errors.append({**e.to_dict(), "record": records, "offset": frame.offset})
                records += 1
    except CDMError as e:
        # Stream-level failure: alignment lost, nothing after this point is trustworthy.
        errors.append({**e.to_dict(), "record": records})

    return {
        "status": "FAIL" if errors else "PASS",
        "error_count": len(errors),
        "errors": errors,
        "records": records,
        "schema_version": producer_version,
    }
