"""CDM vertex and edge records.

All records are frozen; sequences are stored as tuples and maps as read-only
mapping proxies. A changed entity is a new record, never an in-place update.
Records compare by value but are not hashable, since mapping proxies are not.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from .enums import EdgeType, EventType, InstrumentationSource, PrincipalType, SrcSinkType, SubjectType
from .errors import InvalidFieldValue
from .fields import Field, Record, StructCodec, check_fields, record_fields
from .primitives import (
    BOOLEAN,
    INT,
    LONG,
    PROPERTIES,
    SHORT,
    STRING,
    UUID,
    EnumCodec,
    ListCodec,
)
from .tags import TAG_NODE, ProvenanceTagNode
from .values import Value

SOURCE = EnumCodec(InstrumentationSource)
STRINGS = ListCodec(STRING)


@dataclass(frozen=True)
class AbstractObject(Record):
    """Base fields embedded by value in every concrete object."""

    source: InstrumentationSource = None
    permission: bytes | None = None
    last_timestamp_micros: int | None = None
    tag: ProvenanceTagNode | None = None
    properties: Mapping[str, str] | None = None

    __hash__ = None

    FIELDS = record_fields(
        Field("source", "source", SOURCE, required=True),
        Field("permission", "permission", SHORT),
        Field("last_timestamp_micros", "lastTimestampMicros", LONG),
        Field("tag", "tag", TAG_NODE),
        Field("properties", "properties", PROPERTIES),
    )


BASE_OBJECT = StructCodec(AbstractObject)


@dataclass(frozen=True)
class Subject(Record):
    uuid: bytes = None
    type: SubjectType = None
    source: InstrumentationSource = None
    start_timestamp_micros: int = None
    pid: int | None = None
    ppid: int | None = None
    end_timestamp_micros: int | None = None
    unit_id: int | None = None
    cmd_line: str | None = None
    imported_libraries: tuple[str, ...] | None = None
    exported_libraries: tuple[str, ...] | None = None
    properties: Mapping[str, str] | None = None

    __hash__ = None

    FIELDS = record_fields(
        Field("uuid", "uuid", UUID, required=True),
        Field("type", "type", EnumCodec(SubjectType), required=True),
        Field("source", "source", SOURCE, required=True),
        Field("start_timestamp_micros", "startTimestampMicros", LONG, required=True),
        Field("pid", "pid", INT),
        Field("ppid", "ppid", INT),
        Field("end_timestamp_micros", "endTimestampMicros", LONG),
        Field("unit_id", "unitId", INT),
        Field("cmd_line", "cmdLine", STRING),
        Field("imported_libraries", "importedLibraries", STRINGS),
        Field("exported_libraries", "exportedLibraries", STRINGS),
        Field("properties", "properties", PROPERTIES),
    )


@dataclass(frozen=True)
class Event(Record):
    """An action performed by a subject.

    ``sequence`` orders events of one subject only; it is never a global
    order, and the subject it belongs to is tracked by the caller.
    """

    uuid: bytes = None
    type: EventType = None
    thread_id: int = None
    source: InstrumentationSource = None
    sequence: int = 0
    timestamp_micros: int | None = None
    name: str | None = None
    parameters: tuple[Value, ...] | None = None
    location: int | None = None
    size: int | None = None
    properties: Mapping[str, str] | None = None
    program_point: str | None = None

    __hash__ = None

    FIELDS = record_fields(
        Field("uuid", "uuid", UUID, required=True),
        Field("type", "type", EnumCodec(EventType), required=True),
        Field("thread_id", "threadId", INT, required=True),
        Field("source", "source", SOURCE, required=True),
        Field("sequence", "sequence", LONG, default=0),
        Field("timestamp_micros", "timestampMicros", LONG),
        Field("name", "name", STRING),
        Field("parameters", "parameters", ListCodec(StructCodec(Value))),
        Field("location", "location", LONG),
        Field("size", "size", LONG),
        Field("properties", "properties", PROPERTIES),
        Field("program_point", "programPoint", STRING, since=2),
    )


@dataclass(frozen=True)
class FileObject(Record):
    uuid: bytes = None
    base_object: AbstractObject = None
    url: str = None
    is_pipe: bool = False
    version: int = 1
    size: int | None = None

    __hash__ = None

    FIELDS = record_fields(
        Field("uuid", "uuid", UUID, required=True),
        Field("base_object", "baseObject", BASE_OBJECT, required=True),
        Field("url", "url", STRING, required=True),
        Field("is_pipe", "isPipe", BOOLEAN, default=False),
        Field("version", "version", INT, default=1),
        Field("size", "size", LONG, since=2),
    )

    def __post_init__(self):
        check_fields(self)
        if self.version < 1:
            raise InvalidFieldValue(f"FileObject.version must be >= 1, got {self.version}", field="FileObject.version")


@dataclass(frozen=True)
class NetFlowObject(Record):
    uuid: bytes = None
    base_object: AbstractObject = None
    src_address: str = None
    src_port: int = None
    dest_address: str = None
    dest_port: int = None

    __hash__ = None

    FIELDS = record_fields(
        Field("uuid", "uuid", UUID, required=True),
        Field("base_object", "baseObject", BASE_OBJECT, required=True),
        Field("src_address", "srcAddress", STRING, required=True),
        Field("src_port", "srcPort", INT, required=True),
        Field("dest_address", "destAddress", STRING, required=True),
        Field("dest_port", "destPort", INT, required=True),
    )

    def __post_init__(self):
        check_fields(self)
        for name in ("src_port", "dest_port"):
            port = getattr(self, name)
            if not 0 <= port <= 0xFFFF:
                raise InvalidFieldValue(f"NetFlowObject.{name} {port} out of port range", field=f"NetFlowObject.{name}")


@dataclass(frozen=True)
class MemoryObject(Record):
    uuid: bytes = None
    base_object: AbstractObject = None
    memory_address: int = None
    page_number: int | None = None

    __hash__ = None

    FIELDS = record_fields(
        Field("uuid", "uuid", UUID, required=True),
        Field("base_object", "baseObject", BASE_OBJECT, required=True),
        Field("memory_address", "memoryAddress", LONG, required=True),
        Field("page_number", "pageNumber", LONG),
    )


@dataclass(frozen=True)
class SrcSinkObject(Record):
    uuid: bytes = None
    base_object: AbstractObject = None
    type: SrcSinkType = None

    __hash__ = None

    FIELDS = record_fields(
        Field("uuid", "uuid", UUID, required=True),
        Field("base_object", "baseObject", BASE_OBJECT, required=True),
        Field("type", "type", EnumCodec(SrcSinkType), required=True),
    )


@dataclass(frozen=True)
class Principal(Record):
    uuid: bytes = None
    user_id: str = None
    source: InstrumentationSource = None
    type: PrincipalType = PrincipalType.PRINCIPAL_LOCAL
    group_ids: tuple[str, ...] = ()
    properties: Mapping[str, str] | None = None

    __hash__ = None

    FIELDS = record_fields(
        Field("uuid", "uuid", UUID, required=True),
        Field("user_id", "userId", STRING, required=True),
        Field("source", "source", SOURCE, required=True),
        Field("type", "type", EnumCodec(PrincipalType), default=PrincipalType.PRINCIPAL_LOCAL),
        Field("group_ids", "groupIds", STRINGS, default=()),
        Field("properties", "properties", PROPERTIES),
    )


@dataclass(frozen=True)
class SimpleEdge(Record):
    """Directed, typed connector; direction is part of the edge type."""

    from_uuid: bytes = None
    to_uuid: bytes = None
    type: EdgeType = None
    timestamp: int = None
    properties: Mapping[str, str] | None = None

    __hash__ = None

    FIELDS = record_fields(
        Field("from_uuid", "fromUuid", UUID, required=True),
        Field("to_uuid", "toUuid", UUID, required=True),
        Field("type", "type", EnumCodec(EdgeType), required=True),
        Field("timestamp", "timestamp", LONG, required=True),
        Field("properties", "properties", PROPERTIES),
    )
