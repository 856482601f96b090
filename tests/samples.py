"""Record builders shared by the test modules."""
from __future__ import annotations

from cdm_core import (
    AbstractObject,
    ConfidentialityTag,
    EdgeType,
    Event,
    EventType,
    FileObject,
    InstrumentationSource,
    IntegrityTag,
    MemoryObject,
    NetFlowObject,
    Principal,
    PrincipalType,
    ProvenanceTagNode,
    SimpleEdge,
    SrcSinkObject,
    SrcSinkType,
    Subject,
    SubjectType,
    TagOpCode,
    TagRef,
    Value,
)

SRC = InstrumentationSource.SOURCE_LINUX_AUDIT_TRACE


def uid(n: int) -> bytes:
    return n.to_bytes(32, "big")


U1 = uid(1)
U2 = uid(2)


def tag_tree() -> ProvenanceTagNode:
    return ProvenanceTagNode(
        value=TagOpCode.TAG_OP_UNION,
        tag_id=10,
        children=[
            ProvenanceTagNode(value=IntegrityTag.INTEGRITY_BENIGN, tag_id=11),
            ProvenanceTagNode(value=ConfidentialityTag.CONFIDENTIALITY_PRIVATE),
            ProvenanceTagNode(value=uid(99), properties={"origin": "netflow"}),
            ProvenanceTagNode(value=TagRef(11)),
        ],
        properties={"note": "merged"},
    )


def full_base() -> AbstractObject:
    return AbstractObject(
        source=SRC,
        permission=b"\x01\xa4" + bytes(14),
        last_timestamp_micros=1_700_000_000_000_000,
        tag=ProvenanceTagNode(value=IntegrityTag.INTEGRITY_UNTRUSTED, tag_id=7),
        properties={"inode": "1234"},
    )


def minimal_base() -> AbstractObject:
    return AbstractObject(source=SRC)


def full_records() -> list:
    """One instance of every datum kind with all optional fields present."""
    return [
        tag_tree(),
        Subject(
            uuid=uid(3),
            type=SubjectType.SUBJECT_PROCESS,
            source=SRC,
            start_timestamp_micros=1000,
            pid=4242,
            ppid=1,
            end_timestamp_micros=9000,
            unit_id=3,
            cmd_line="/bin/cat /etc/passwd",
            imported_libraries=["libc.so.6"],
            exported_libraries=[],
            properties={"cwd": "/root"},
        ),
        Event(
            uuid=uid(4),
            type=EventType.EVENT_READ,
            thread_id=4243,
            source=SRC,
            sequence=17,
            timestamp_micros=1500,
            name="read",
            parameters=[
                Value(size=10, value_data_type="byte[]", value_bytes=b"0123456789", tag=[4, 0, 6, 1]),
                Value(size=0),
            ],
            location=4096,
            size=10,
            properties={"fd": "3"},
            program_point="libc.so.6+0x1f00",
        ),
        NetFlowObject(
            uuid=uid(5),
            base_object=full_base(),
            src_address="10.0.0.1",
            src_port=40000,
            dest_address="10.0.0.2",
            dest_port=443,
        ),
        FileObject(uuid=uid(6), base_object=full_base(), url="file:///etc/passwd", is_pipe=True, version=3, size=1024),
        SrcSinkObject(uuid=uid(7), base_object=full_base(), type=SrcSinkType.SOURCE_GPS),
        MemoryObject(uuid=uid(8), base_object=full_base(), memory_address=0x7FFF0000, page_number=12),
        Principal(
            uuid=uid(9),
            user_id="0",
            source=SRC,
            type=PrincipalType.PRINCIPAL_REMOTE,
            group_ids=["0", "4"],
            properties={"name": "root"},
        ),
        SimpleEdge(from_uuid=U1, to_uuid=U2, type=EdgeType.EDGE_EVENT_AFFECTS_FILE, timestamp=1000, properties={"x": "y"}),
    ]


def minimal_records() -> list:
    """One instance of every datum kind with only required fields."""
    return [
        ProvenanceTagNode(value=TagRef(1)),
        Subject(uuid=uid(3), type=SubjectType.SUBJECT_THREAD, source=SRC, start_timestamp_micros=0),
        Event(uuid=uid(4), type=EventType.EVENT_BLIND, thread_id=0, source=SRC),
        NetFlowObject(uuid=uid(5), base_object=minimal_base(), src_address="", src_port=0, dest_address="", dest_port=0),
        FileObject(uuid=uid(6), base_object=minimal_base(), url="file:///tmp/x"),
        SrcSinkObject(uuid=uid(7), base_object=minimal_base(), type=SrcSinkType.SOURCE_ACCELEROMETER),
        MemoryObject(uuid=uid(8), base_object=minimal_base(), memory_address=0),
        Principal(uuid=uid(9), user_id="1000", source=SRC),
        SimpleEdge(from_uuid=U1, to_uuid=U2, type=EdgeType.EDGE_SUBJECT_AFFECTS_EVENT, timestamp=-5),
    ]
