"""CDM stream protocol constants.

Single source of truth for wire magic values, record layouts and
discriminants. Keep this file stable. Producers and consumers must remain
synchronized: discriminants and enum ordinals are only ever appended.
"""

# Stream file magic
MAGIC_STREAM = b"CDMS"

# Stream header: [Magic(4) | SchemaVersion(2)] = 6 bytes
STREAM_HEADER_FMT = "<4sH"
STREAM_HEADER_LEN = 6

# Envelope header: [Kind(1) | PayloadLength(4)] = 5 bytes
ENVELOPE_HEADER_FMT = "<BI"
ENVELOPE_HEADER_LEN = 5

# Primitive layouts (little-endian)
BOOL_FMT = "<B"
INT_FMT = "<i"
LONG_FMT = "<q"
ENUM_FMT = "<H"
COUNT_FMT = "<I"
ARM_FMT = "<B"

# Fixed-width fields, no length prefix
UUID_LEN = 32
SHORT_LEN = 16

# Presence markers for optional fields
ABSENT = 0
PRESENT = 1

# Envelope discriminants (stable, never renumbered)
KIND_PROVENANCE_TAG_NODE = 0
KIND_SUBJECT = 1
KIND_EVENT = 2
KIND_NETFLOW_OBJECT = 3
KIND_FILE_OBJECT = 4
KIND_SRCSINK_OBJECT = 5
KIND_MEMORY_OBJECT = 6
KIND_PRINCIPAL = 7
KIND_SIMPLE_EDGE = 8

# Provenance tag value union arms
ARM_TAG_REF = 0
ARM_UUID = 1
ARM_TAG_OP = 2
ARM_INTEGRITY = 3
ARM_CONFIDENTIALITY = 4

# Schema versions
SCHEMA_VERSIONS = (1, 2)
CURRENT_SCHEMA_VERSION = 2

# Default safety bounds
DEFAULT_MAX_TAG_DEPTH = 64
# Tag trees are walked recursively; deeper bounds would outrun the interpreter stack
MAX_TAG_DEPTH_LIMIT = 128
DEFAULT_MAX_RECORD_SIZE = 16 * 1024 * 1024  # 16 MiB per envelope payload
