"""Provenance tag trees.

A node carries a closed-union ``value`` (tag reference, UUID, op code,
integrity or confidentiality tag), an optional ``tag_id`` definition, ordered
children and properties.

Node layout: [arm(1) | arm payload | tagId? | children? | properties?].
The tag id precedes the children so a decoder knows the ancestor ids before it
descends.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Union

from .enums import ConfidentialityTag, IntegrityTag, TagOpCode
from .errors import (
    CyclicTagTree,
    DuplicateTagDefinition,
    InvalidFieldValue,
    MalformedRecord,
    MaxDepthExceeded,
    MissingRequiredField,
    UnresolvedTagReference,
)
from .fields import Field, Record, record_fields, record_from_json, record_to_json
from .primitives import (
    INT,
    PROPERTIES,
    UUID,
    Codec,
    EnumCodec,
    ListCodec,
    decode_optional,
    encode_optional,
    pack_into,
    read_count,
    read_presence,
    unpack_from,
    write_presence,
)
from .protocol import (
    ARM_CONFIDENTIALITY,
    ARM_FMT,
    ARM_INTEGRITY,
    ARM_TAG_OP,
    ARM_TAG_REF,
    ARM_UUID,
    COUNT_FMT,
)
from .schema import DEFAULT_POLICY, SchemaPolicy


@dataclass(frozen=True)
class TagRef:
    """Reference to a node defined elsewhere by its ``tag_id``."""

    tag_id: int

    def __post_init__(self):
        INT.coerce(self.tag_id, "TagRef.tag_id")


TagValue = Union[TagRef, bytes, TagOpCode, IntegrityTag, ConfidentialityTag]

# arm -> (python type, payload codec, JSON key)
TAG_VALUE_ARMS = {
    ARM_TAG_REF: (TagRef, INT, "tagRef"),
    ARM_UUID: (bytes, UUID, "UUID"),
    ARM_TAG_OP: (TagOpCode, EnumCodec(TagOpCode), "TagOpCode"),
    ARM_INTEGRITY: (IntegrityTag, EnumCodec(IntegrityTag), "IntegrityTag"),
    ARM_CONFIDENTIALITY: (ConfidentialityTag, EnumCodec(ConfidentialityTag), "ConfidentialityTag"),
}
_ARM_BY_JSON_KEY = {key: arm for arm, (_, _, key) in TAG_VALUE_ARMS.items()}


class TagValueCodec(Codec):
    name = "tag value"

    def arm_of(self, value) -> int:
        for arm, (kind, _, _) in TAG_VALUE_ARMS.items():
            if isinstance(value, kind):
                return arm
        raise InvalidFieldValue(f"tag value of type {type(value).__name__} is not a union arm")

    def encode(self, writer, value, policy):
        arm = self.arm_of(value)
        pack_into(writer, ARM_FMT, arm)
        payload = value.tag_id if arm == ARM_TAG_REF else value
        TAG_VALUE_ARMS[arm][1].encode(writer, payload, policy)

    def decode(self, reader, policy):
        (arm,) = unpack_from(reader, ARM_FMT)
        if arm not in TAG_VALUE_ARMS:
            raise MalformedRecord(f"tag value arm {arm}")
        payload = TAG_VALUE_ARMS[arm][1].decode(reader, policy)
        return TagRef(payload) if arm == ARM_TAG_REF else payload

    def coerce(self, value, where):
        if isinstance(value, (bytearray, memoryview)):
            value = bytes(value)
        arm = self.arm_of(value)
        if arm == ARM_UUID:
            return UUID.coerce(value, where)
        return value

    def to_json(self, value):
        arm = self.arm_of(value)
        _, codec, key = TAG_VALUE_ARMS[arm]
        return {key: value.tag_id if arm == ARM_TAG_REF else codec.to_json(value)}

    def from_json(self, obj, where):
        if not isinstance(obj, Mapping) or len(obj) != 1:
            raise InvalidFieldValue(f"{where}: expected a single-arm object", field=where)
        ((key, raw),) = obj.items()
        if key not in _ARM_BY_JSON_KEY:
            raise InvalidFieldValue(f"{where}: unknown tag value arm {key!r}", field=where)
        arm = _ARM_BY_JSON_KEY[key]
        payload = TAG_VALUE_ARMS[arm][1].from_json(raw, where)
        return TagRef(payload) if arm == ARM_TAG_REF else payload


class TagNodeCodec(Codec):
    name = "ProvenanceTagNode"

    def encode(self, writer, value, policy):
        encode_tag_tree(value, writer, policy)

    def decode(self, reader, policy):
        return decode_tag_tree(reader, policy)

    def coerce(self, value, where):
        if not isinstance(value, ProvenanceTagNode):
            self._reject(value, where)
        return value

    def to_json(self, value):
        return record_to_json(value)

    def from_json(self, obj, where):
        if isinstance(obj, ProvenanceTagNode):
            return obj
        return record_from_json(ProvenanceTagNode, obj, where)


TAG_VALUE = TagValueCodec()
TAG_NODE = TagNodeCodec()


@dataclass(frozen=True)
class ProvenanceTagNode(Record):
    value: TagValue = None
    tag_id: int | None = None
    children: tuple[ProvenanceTagNode, ...] | None = None
    properties: Mapping[str, str] | None = None

    __hash__ = None

    FIELDS = record_fields(
        Field("value", "value", TAG_VALUE, required=True),
        Field("tag_id", "tagId", INT),
        Field("children", "children", ListCodec(TAG_NODE)),
        Field("properties", "properties", PROPERTIES),
    )


def _check_node(value, tag_id, depth: int, ancestors: set, policy: SchemaPolicy) -> None:
    if depth > policy.max_tag_depth:
        raise MaxDepthExceeded(f"depth {depth} > {policy.max_tag_depth}", max_depth=policy.max_tag_depth)
    if isinstance(value, TagRef) and (value.tag_id in ancestors or value.tag_id == tag_id):
        raise CyclicTagTree(f"node refers to ancestor tag {value.tag_id}", tag_id=value.tag_id)
    if tag_id is not None and tag_id in ancestors:
        raise CyclicTagTree(f"tag {tag_id} redefined inside its own subtree", tag_id=tag_id)


def encode_tag_tree(node: ProvenanceTagNode, writer, policy: SchemaPolicy = DEFAULT_POLICY) -> None:
    _encode_node(node, writer, policy, 1)


def _encode_node(node, writer, policy, depth):
    if depth > policy.max_tag_depth:
        raise MaxDepthExceeded(f"depth {depth} > {policy.max_tag_depth}", max_depth=policy.max_tag_depth)
    TAG_VALUE.encode(writer, node.value, policy)
    encode_optional(node.tag_id, writer, INT, policy)
    write_presence(writer, node.children is not None)
    if node.children is not None:
        pack_into(writer, COUNT_FMT, len(node.children))
        for child in node.children:
            _encode_node(child, writer, policy, depth + 1)
    encode_optional(node.properties, writer, PROPERTIES, policy)


def decode_tag_tree(reader, policy: SchemaPolicy = DEFAULT_POLICY) -> ProvenanceTagNode:
    """Depth-first decode, rejecting cycles and trees deeper than the policy allows."""
    return _decode_node(reader, policy, 1, set())


def _decode_node(reader, policy, depth, ancestors):
    if depth > policy.max_tag_depth:
        raise MaxDepthExceeded(f"depth {depth} > {policy.max_tag_depth}", max_depth=policy.max_tag_depth)
    value = TAG_VALUE.decode(reader, policy)
    tag_id = decode_optional(reader, INT, policy)
    _check_node(value, tag_id, depth, ancestors, policy)
    children = None
    if read_presence(reader):
        count = read_count(reader)
        if tag_id is not None:
            ancestors.add(tag_id)
        try:
            children = tuple(_decode_node(reader, policy, depth + 1, ancestors) for _ in range(count))
        finally:
            ancestors.discard(tag_id)
    properties = decode_optional(reader, PROPERTIES, policy)
    return ProvenanceTagNode(value=value, tag_id=tag_id, children=children, properties=properties)


def decode_tag_payload(reader, policy: SchemaPolicy) -> ProvenanceTagNode:
    """Top-level tag node datum; an empty payload lacks the required value."""
    if reader.at_end():
        raise MissingRequiredField("ProvenanceTagNode", "value", schema_version=policy.version)
    return decode_tag_tree(reader, policy)


class TagTable:
    """Tag id resolution table spanning the envelopes of one stream."""

    def __init__(self):
        self._nodes: dict[int, ProvenanceTagNode] = {}

    def __contains__(self, tag_id) -> bool:
        return tag_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def define(self, tag_id: int, node: ProvenanceTagNode) -> None:
        if tag_id in self._nodes:
            raise DuplicateTagDefinition(tag_id)
        self._nodes[tag_id] = node

    def resolve(self, tag_id: int) -> ProvenanceTagNode:
        try:
            return self._nodes[tag_id]
        except KeyError:
            raise UnresolvedTagReference(tag_id) from None


def validate_tag_tree(
    node: ProvenanceTagNode,
    policy: SchemaPolicy = DEFAULT_POLICY,
    table: TagTable | None = None,
) -> frozenset:
    """Check depth, acyclicity and unique definitions of an in-memory tree.

    With a ``table``, references must resolve against it or against a
    definition earlier in the tree (pre-order); the tree's definitions are
    registered only once the whole tree has passed. Returns the defined ids.
    """
    events: list[tuple[str, int, ProvenanceTagNode]] = []
    defined: set[int] = set()

    def walk(n, depth, ancestors):
        _check_node(n.value, n.tag_id, depth, ancestors, policy)
        if n.tag_id is not None:
            if n.tag_id in defined:
                raise DuplicateTagDefinition(n.tag_id)
            defined.add(n.tag_id)
            events.append(("def", n.tag_id, n))
        if isinstance(n.value, TagRef):
            events.append(("ref", n.value.tag_id, n))
        if n.children:
            if n.tag_id is not None:
                ancestors.add(n.tag_id)
            for child in n.children:
                walk(child, depth + 1, ancestors)
            ancestors.discard(n.tag_id)

    walk(node, 1, set())

    if table is not None:
        seen: set[int] = set()
        for op, tag_id, _ in events:
            if op == "def":
                if tag_id in table:
                    raise DuplicateTagDefinition(tag_id)
                seen.add(tag_id)
            elif tag_id not in seen and tag_id not in table:
                raise UnresolvedTagReference(tag_id)
        for op, tag_id, n in events:
            if op == "def":
                table.define(tag_id, n)
    return frozenset(defined)
