"""CDM Core - provenance graph records and their stream codec."""
from .enums import (
    ConfidentialityTag,
    EdgeType,
    EventType,
    InstrumentationSource,
    IntegrityTag,
    PrincipalType,
    SrcSinkType,
    SubjectType,
    TagOpCode,
)
from .envelope import OpaqueDatum, TCCDMDatum, decode_datum, encode_datum
from .primitives import ByteReader, ByteWriter, decode_optional, encode_optional
from .records import (
    AbstractObject,
    Event,
    FileObject,
    MemoryObject,
    NetFlowObject,
    Principal,
    SimpleEdge,
    SrcSinkObject,
    Subject,
)
from .schema import DEFAULT_POLICY, SchemaPolicy, policy_for
from .tags import ProvenanceTagNode, TagRef, TagTable, validate_tag_tree
from .values import TagRun, Value, decode_value_tag, encode_value_tag, expand_tag_runs

__all__ = [
    "AbstractObject",
    "ByteReader",
    "ByteWriter",
    "ConfidentialityTag",
    "DEFAULT_POLICY",
    "EdgeType",
    "Event",
    "EventType",
    "FileObject",
    "InstrumentationSource",
    "IntegrityTag",
    "MemoryObject",
    "NetFlowObject",
    "OpaqueDatum",
    "Principal",
    "PrincipalType",
    "ProvenanceTagNode",
    "SchemaPolicy",
    "SimpleEdge",
    "SrcSinkObject",
    "SrcSinkType",
    "Subject",
    "SubjectType",
    "TCCDMDatum",
    "TagOpCode",
    "TagRef",
    "TagRun",
    "TagTable",
    "Value",
    "decode_datum",
    "decode_optional",
    "decode_value_tag",
    "encode_datum",
    "encode_optional",
    "encode_value_tag",
    "expand_tag_runs",
    "policy_for",
    "validate_tag_tree",
]
