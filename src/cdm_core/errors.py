"""Error taxonomy for the CDM codec.

Every error carries a stable code (the verifier reports it as-is) and a
``fatal`` flag. Record-local errors leave a framed stream aligned on the next
envelope; fatal errors mean byte alignment can no longer be trusted.
"""
from __future__ import annotations

ERRORS = {
    "E_MISSING_FIELD": "Required field missing",
    "E_INVALID_FIELD": "Field value has the wrong shape or type",
    "E_UNKNOWN_ENUM": "Enum ordinal unknown and enum has no catch-all member",
    "E_UNKNOWN_KIND": "Envelope kind unknown to this schema version",
    "E_RUN_LENGTH": "Tag run lengths malformed or do not sum to value size",
    "E_UNRESOLVED_TAG": "Tag reference does not resolve to a defined tag",
    "E_DUPLICATE_TAG": "Tag id defined more than once",
    "E_CYCLIC_TAG_TREE": "Tag tree node refers to one of its ancestors",
    "E_MAX_DEPTH": "Tag tree exceeds maximum depth",
    "E_MALFORMED_RECORD": "Record payload malformed",
    "E_TRUNCATED": "Reader exhausted mid-record",
    "E_MALFORMED_STREAM": "Stream header invalid",
    "E_OVERSIZED_RECORD": "Envelope payload exceeds size limit",
    "E_FILE_VERSION": "File object version does not increase along prev-version edge",
}


class SchemaEvolutionWarning(UserWarning):
    """A decoder applied a documented evolution fallback."""


class StreamWarning(UserWarning):
    """A stream reader skipped data and continued."""


class CDMError(Exception):
    code = "E_MALFORMED_RECORD"
    fatal = False

    def __init__(self, detail: str = "", *, fatal: bool | None = None, **context):
        self.detail = detail
        self.context = context
        if fatal is not None:
            self.fatal = fatal
        msg = ERRORS[self.code]
        super().__init__(f"{msg}: {detail}" if detail else msg)

    @property
    def message(self) -> str:
        return ERRORS[self.code]

    def to_dict(self) -> dict:
        out = {"code": self.code, "message": self.message}
        if self.detail:
            out["detail"] = self.detail
        out.update(self.context)
        return out


class MissingRequiredField(CDMError):
    code = "E_MISSING_FIELD"

    def __init__(self, record: str, field: str, **context):
        self.record = record
        self.field = field
        super().__init__(f"{record}.{field}", record=record, field=field, **context)


class InvalidFieldValue(CDMError):
    code = "E_INVALID_FIELD"


class UnknownEnumValue(CDMError):
    code = "E_UNKNOWN_ENUM"

    def __init__(self, enum_name: str, ordinal: int, **context):
        self.enum_name = enum_name
        self.ordinal = ordinal
        super().__init__(f"{enum_name} ordinal {ordinal}", enum=enum_name, ordinal=ordinal, **context)


class UnknownDatumKind(CDMError):
    code = "E_UNKNOWN_KIND"

    def __init__(self, kind: int, payload: bytes = b"", **context):
        self.kind = kind
        self.payload = payload
        super().__init__(f"kind {kind} ({len(payload)} payload bytes)", kind=kind, **context)


class MalformedRunLength(CDMError):
    code = "E_RUN_LENGTH"


class UnresolvedTagReference(CDMError):
    code = "E_UNRESOLVED_TAG"

    def __init__(self, tag_id: int, **context):
        self.tag_id = tag_id
        super().__init__(f"tag id {tag_id}", tag_id=tag_id, **context)


class DuplicateTagDefinition(CDMError):
    code = "E_DUPLICATE_TAG"

    def __init__(self, tag_id: int, **context):
        self.tag_id = tag_id
        super().__init__(f"tag id {tag_id}", tag_id=tag_id, **context)


class CyclicTagTree(CDMError):
    code = "E_CYCLIC_TAG_TREE"


class MaxDepthExceeded(CDMError):
    code = "E_MAX_DEPTH"


class MalformedRecord(CDMError):
    code = "E_MALFORMED_RECORD"


class TruncatedStream(CDMError):
    code = "E_TRUNCATED"
    fatal = True


class MalformedStream(CDMError):
    code = "E_MALFORMED_STREAM"
    fatal = True


class OversizedRecord(CDMError):
    code = "E_OVERSIZED_RECORD"
    fatal = True


class VersionOrderViolation(CDMError):
    code = "E_FILE_VERSION"
