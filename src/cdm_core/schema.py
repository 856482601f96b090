"""Schema evolution guard.

The version-to-rule table is built once at import and never mutated. Codec
calls receive a ``SchemaPolicy`` explicitly, so several schema versions can be
exercised side by side in one process.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Mapping
from warnings import warn

from .enums import (
    CDMEnum,
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
from .errors import SchemaEvolutionWarning, UnknownEnumValue
from .protocol import (
    CURRENT_SCHEMA_VERSION,
    DEFAULT_MAX_RECORD_SIZE,
    DEFAULT_MAX_TAG_DEPTH,
    KIND_EVENT,
    KIND_FILE_OBJECT,
    KIND_MEMORY_OBJECT,
    KIND_NETFLOW_OBJECT,
    KIND_PRINCIPAL,
    KIND_PROVENANCE_TAG_NODE,
    KIND_SIMPLE_EDGE,
    KIND_SRCSINK_OBJECT,
    KIND_SUBJECT,
    MAX_TAG_DEPTH_LIMIT,
    SCHEMA_VERSIONS,
)

ENUM_FAMILIES = (
    SubjectType,
    InstrumentationSource,
    EventType,
    EdgeType,
    SrcSinkType,
    PrincipalType,
    TagOpCode,
    IntegrityTag,
    ConfidentialityTag,
)

# Members appended after version 1, keyed by the version that added them.
ENUM_ADDITIONS: Mapping[int, tuple[CDMEnum, ...]] = MappingProxyType({
    2: (
        EventType.EVENT_UI_UNKNOWN,
        EventType.EVENT_UPDATE,
        EdgeType.EDGE_OBJECT_PREV_VERSION,
    ),
})

# Designated catch-all per enum family. Families absent here fail on unknown ordinals.
CATCH_ALL: Mapping[type, CDMEnum] = MappingProxyType({
    EventType: EventType.EVENT_UNKNOWN,
})

# Former member names, still accepted when parsing by name.
RENAMED_MEMBERS: Mapping[type, Mapping[str, CDMEnum]] = MappingProxyType({
    EdgeType: MappingProxyType({
        "EDGE_EVENT_CAUSES_EVENT": EdgeType.EDGE_EVENT_HASPARENT_EVENT,
    }),
})

BASE_KINDS = frozenset({
    KIND_PROVENANCE_TAG_NODE,
    KIND_SUBJECT,
    KIND_EVENT,
    KIND_NETFLOW_OBJECT,
    KIND_FILE_OBJECT,
    KIND_SRCSINK_OBJECT,
    KIND_MEMORY_OBJECT,
    KIND_SIMPLE_EDGE,
})

KIND_ADDITIONS: Mapping[int, frozenset] = MappingProxyType({
    2: frozenset({KIND_PRINCIPAL}),
})

UNKNOWN_KIND_ACTIONS = ("fail", "skip", "opaque")


@dataclass(frozen=True)
class VersionRules:
    version: int
    enum_limits: Mapping[type, int]
    datum_kinds: frozenset


def _introduced_in(member: CDMEnum) -> int:
    for version, members in ENUM_ADDITIONS.items():
        if member in members:
            return version
    return 1


def _build_rules(version: int) -> VersionRules:
    limits = {}
    for family in ENUM_FAMILIES:
        known = [m for m in family if _introduced_in(m) <= version]
        limit = len(known)
        # Append-only: the known members must be exactly the ordinal prefix.
        if [m.ordinal for m in known] != list(range(limit)):
            raise RuntimeError(f"{family.__name__}: members must only be appended")
        limits[family] = limit
    kinds = set(BASE_KINDS)
    for added_in, added in KIND_ADDITIONS.items():
        if added_in <= version:
            kinds |= added
    return VersionRules(version, MappingProxyType(limits), frozenset(kinds))


SCHEMA_RULES: Mapping[int, VersionRules] = MappingProxyType(
    {v: _build_rules(v) for v in SCHEMA_VERSIONS}
)


@dataclass(frozen=True)
class SchemaPolicy:
    """Decoding/encoding rules for one schema version plus safety bounds."""

    rules: VersionRules
    unknown_kind: str = "fail"
    max_tag_depth: int = DEFAULT_MAX_TAG_DEPTH
    max_record_size: int = DEFAULT_MAX_RECORD_SIZE

    def __post_init__(self):
        if self.unknown_kind not in UNKNOWN_KIND_ACTIONS:
            raise ValueError(f"unknown_kind must be one of {UNKNOWN_KIND_ACTIONS}, got {self.unknown_kind!r}")
        if not 1 <= self.max_tag_depth <= MAX_TAG_DEPTH_LIMIT:
            raise ValueError(f"max_tag_depth must be between 1 and {MAX_TAG_DEPTH_LIMIT}, got {self.max_tag_depth}")
        if self.max_record_size < 0:
            raise ValueError("max_record_size must be >= 0")

    @property
    def version(self) -> int:
        return self.rules.version

    def with_options(self, **changes) -> SchemaPolicy:
        return replace(self, **changes)

    def knows_kind(self, kind: int) -> bool:
        return kind in self.rules.datum_kinds

    def knows_since(self, since: int) -> bool:
        return since <= self.rules.version

    def enum_from_wire(self, family: type, ordinal: int) -> CDMEnum:
        """Map a wire ordinal to a member, applying the catch-all rule."""
        if 0 <= ordinal < self.rules.enum_limits[family]:
            return family(ordinal)
        fallback = CATCH_ALL.get(family)
        if fallback is None:
            raise UnknownEnumValue(family.__name__, ordinal, schema_version=self.version)
        warn(
            f"{family.__name__} ordinal {ordinal} unknown to schema version {self.version}; "
            f"decoded as {fallback.name}",
            SchemaEvolutionWarning,
            stacklevel=2,
        )
        return fallback

    def enum_to_wire(self, member: CDMEnum) -> int:
        """Ordinal to write for ``member`` under this version."""
        family = type(member)
        if member.ordinal < self.rules.enum_limits[family]:
            return member.ordinal
        fallback = CATCH_ALL.get(family)
        if fallback is None:
            raise UnknownEnumValue(family.__name__, member.ordinal, schema_version=self.version)
        warn(
            f"{member.name} not representable in schema version {self.version}; "
            f"encoded as {fallback.name}",
            SchemaEvolutionWarning,
            stacklevel=2,
        )
        return fallback.ordinal


def policy_for(version: int = CURRENT_SCHEMA_VERSION, **options) -> SchemaPolicy:
    try:
        rules = SCHEMA_RULES[version]
    except KeyError:
        raise ValueError(f"Unsupported schema version {version}; known: {sorted(SCHEMA_RULES)}") from None
    return SchemaPolicy(rules, **options)


def enum_by_name(family: type, name: str) -> CDMEnum:
    """Look up a member by its current or former name."""
    try:
        return family[name]
    except KeyError:
        renamed = RENAMED_MEMBERS.get(family, {})
        if name in renamed:
            return renamed[name]
        raise


DEFAULT_POLICY = policy_for(CURRENT_SCHEMA_VERSION)
