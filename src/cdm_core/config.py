"""Environment-driven codec settings.

Wire constants live in ``protocol``; only tunables are read here:

    CDM_SCHEMA_VERSION   schema version to read/write (default: current)
    CDM_UNKNOWN_KIND     fail | skip | opaque (default: fail)
    CDM_MAX_TAG_DEPTH    tag tree depth bound (default: 64, at most 128)
    CDM_MAX_RECORD_SIZE  envelope payload bound in bytes (default: 16 MiB)
"""
from __future__ import annotations

import os

from .protocol import CURRENT_SCHEMA_VERSION, DEFAULT_MAX_RECORD_SIZE, DEFAULT_MAX_TAG_DEPTH
from .schema import SchemaPolicy, policy_for


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def get_schema_version() -> int:
    return _env_int("CDM_SCHEMA_VERSION", CURRENT_SCHEMA_VERSION)


def get_unknown_kind() -> str:
    return os.environ.get("CDM_UNKNOWN_KIND", "fail").strip().lower() or "fail"


def get_max_tag_depth() -> int:
    return _env_int("CDM_MAX_TAG_DEPTH", DEFAULT_MAX_TAG_DEPTH)


def get_max_record_size() -> int:
    return _env_int("CDM_MAX_RECORD_SIZE", DEFAULT_MAX_RECORD_SIZE)


def load_policy(version: int | None = None, **overrides) -> SchemaPolicy:
    """Build a policy from the environment; explicit arguments win."""
    options = {
        "unknown_kind": get_unknown_kind(),
        "max_tag_depth": get_max_tag_depth(),
        "max_record_size": get_max_record_size(),
    }
    options.update({k: v for k, v in overrides.items() if v is not None})
    return policy_for(version if version is not None else get_schema_version(), **options)
