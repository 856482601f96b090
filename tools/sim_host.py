from __future__ import annotations

import os
import random
import time
from pathlib import Path

from cdm_core import (
    AbstractObject,
    EdgeType,
    Event,
    EventType,
    FileObject,
    InstrumentationSource,
    IntegrityTag,
    MemoryObject,
    NetFlowObject,
    Principal,
    ProvenanceTagNode,
    SimpleEdge,
    SrcSinkObject,
    SrcSinkType,
    Subject,
    SubjectType,
    TagOpCode,
    TagRef,
    Value,
    policy_for,
)
from cdm_core.protocol import CURRENT_SCHEMA_VERSION, UUID_LEN
from cdm_core.values import compress_tags
from cdm_stream import open_writer

# --- CONFIGURATION ---
SOURCE = InstrumentationSource.SOURCE_LINUX_AUDIT_TRACE
READS_PER_SESSION = 5


def new_uuid(rng: random.Random) -> bytes:
    return bytes(rng.getrandbits(8) for _ in range(UUID_LEN))


def generate_session(rng: random.Random, version: int):
    """Yield the records of one process reading a file and sending it over the network."""
    now = int(time.time() * 1_000_000)
    proc = new_uuid(rng)
    file_uuid = new_uuid(rng)
    flow_uuid = new_uuid(rng)

    yield Subject(
        uuid=proc,
        type=SubjectType.SUBJECT_PROCESS,
        source=SOURCE,
        start_timestamp_micros=now,
        pid=rng.randint(100, 65535),
        ppid=1,
        cmd_line="/usr/bin/scp notes.txt backup:/srv",
    )

    if version >= 2:
        yield Principal(uuid=new_uuid(rng), user_id="1000", source=SOURCE, group_ids=["1000", "27"])

    # 1. Tag definitions: the file is untrusted, the socket output derives from it.
    yield ProvenanceTagNode(value=IntegrityTag.INTEGRITY_UNTRUSTED, tag_id=1)
    yield ProvenanceTagNode(
        value=TagOpCode.TAG_OP_UNION,
        tag_id=2,
        children=[ProvenanceTagNode(value=TagRef(1)), ProvenanceTagNode(value=file_uuid)],
    )

    base = AbstractObject(source=SOURCE, permission=bytes(16), tag=ProvenanceTagNode(value=TagRef(1)))
    yield FileObject(uuid=file_uuid, base_object=base, url="file:///home/user/notes.txt")
    yield NetFlowObject(
        uuid=flow_uuid,
        base_object=AbstractObject(source=SOURCE),
        src_address="10.0.0.5",
        src_port=rng.randint(1024, 65535),
        dest_address="10.0.0.9",
        dest_port=22,
    )
    yield MemoryObject(
        uuid=new_uuid(rng),
        base_object=AbstractObject(source=SOURCE),
        memory_address=0x7F0000000000,
        page_number=rng.randint(0, 4096),
    )
    yield SrcSinkObject(uuid=new_uuid(rng), base_object=AbstractObject(source=SOURCE), type=SrcSinkType.SOURCE_ENV_VARIABLE)

    # 2. Activity: reads from the file, one send to the network.
    t = now
    for seq in range(READS_PER_SESSION):
        t += rng.randint(10, 500)
        size = rng.randint(16, 4096)
        evt = new_uuid(rng)
        yield Event(
            uuid=evt,
            type=EventType.EVENT_READ,
            thread_id=1,
            source=SOURCE,
            sequence=seq,
            timestamp_micros=t,
            size=size,
            parameters=[Value(size=size, value_data_type="byte[]", tag=compress_tags([1] * size))],
        )
        yield SimpleEdge(from_uuid=file_uuid, to_uuid=evt, type=EdgeType.EDGE_FILE_AFFECTS_EVENT, timestamp=t)

    t += rng.randint(10, 500)
    send = new_uuid(rng)
    payload = os.urandom(64)
    yield Event(
        uuid=send,
        type=EventType.EVENT_SENDTO,
        thread_id=1,
        source=SOURCE,
        sequence=READS_PER_SESSION,
        timestamp_micros=t,
        parameters=[Value(size=len(payload), value_bytes=payload, tag=[(32, 1), (32, 2)])],
    )
    yield SimpleEdge(from_uuid=send, to_uuid=flow_uuid, type=EdgeType.EDGE_EVENT_AFFECTS_NETFLOW, timestamp=t)

    # 3. The file is rewritten: a new version of the same uuid, linked to the old one.
    if version >= 2:
        t += rng.randint(10, 500)
        yield FileObject(uuid=file_uuid, base_object=AbstractObject(source=SOURCE), url="file:///home/user/notes.txt", version=2, size=2048)
        yield SimpleEdge(from_uuid=file_uuid, to_uuid=file_uuid, type=EdgeType.EDGE_OBJECT_PREV_VERSION, timestamp=t)


def write_session_stream(out_dir: str, version: int = CURRENT_SCHEMA_VERSION, seed: int | None = None) -> Path:
    rng = random.Random(seed)
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    path = out / f"stream-{rng.getrandbits(32):08x}.cdm"
    with open_writer(path, policy_for(version)) as writer:
        writer.write_all(generate_session(rng, version))
        count = writer.records
    print(f"GENERATED: {path} ({count} records, schema version {version})")
    return path


if __name__ == "__main__":
    import sys

    # Usage:
    #   python tools/sim_host.py OUT_DIR [--runs N] [--schema-version V] [--seed S]

    args = [a for a in sys.argv[1:] if a]

    def pop_option(arg_list: list[str], flag: str) -> tuple[str | None, list[str]]:
        """Remove ``flag VALUE`` from an argv-style list."""
        if flag not in arg_list:
            return None, arg_list
        i = arg_list.index(flag)
        if i + 1 >= len(arg_list):
            raise SystemExit(f"{flag} requires a value")
        return arg_list[i + 1], arg_list[:i] + arg_list[i + 2:]

    runs, args = pop_option(args, "--runs")
    version, args = pop_option(args, "--schema-version")
    seed, args = pop_option(args, "--seed")

    out = args[0] if args else "simulated_streams"
    base_seed = int(seed) if seed is not None else None
    for run in range(int(runs or 1)):
        write_session_stream(
            out,
            version=int(version) if version else CURRENT_SCHEMA_VERSION,
            seed=None if base_seed is None else base_seed + run,
        )
