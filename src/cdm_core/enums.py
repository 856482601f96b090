"""CDM enumerations.

Member values are wire ordinals. Never renumber a member; new members are
appended and registered with the version that introduced them in
``cdm_core.schema``.
"""
from __future__ import annotations

import enum


class CDMEnum(enum.Enum):
    @property
    def ordinal(self) -> int:
        return self.value


class SubjectType(CDMEnum):
    SUBJECT_PROCESS = 0
    SUBJECT_THREAD = 1
    SUBJECT_UNIT = 2


class InstrumentationSource(CDMEnum):
    SOURCE_LINUX_AUDIT_TRACE = 0
    SOURCE_LINUX_PROC_TRACE = 1
    SOURCE_LINUX_BEEP_TRACE = 2
    SOURCE_FREEBSD_OPENBSM_TRACE = 3
    SOURCE_ANDROID_JAVA_CLEARSCOPE = 4
    SOURCE_ANDROID_NATIVE_CLEARSCOPE = 5
    SOURCE_FREEBSD_DTRACE_CADETS = 6
    SOURCE_FREEBSD_TESLA_CADETS = 7
    SOURCE_FREEBSD_LOOM_CADETS = 8
    SOURCE_FREEBSD_MACIF_CADETS = 9
    SOURCE_WINDOWS_DIFT_FAROS = 10
    SOURCE_LINUX_THEIA = 11
    SOURCE_WINDOWS_FIVEDIRECTIONS = 12


class EventType(CDMEnum):
    EVENT_ACCEPT = 0
    EVENT_BIND = 1
    EVENT_CHANGE_PRINCIPAL = 2
    EVENT_CHECK_FILE_ATTRIBUTES = 3
    EVENT_CLONE = 4
    EVENT_CLOSE = 5
    EVENT_CONNECT = 6
    EVENT_CREATE_OBJECT = 7
    EVENT_CREATE_THREAD = 8
    EVENT_EXECUTE = 9
    EVENT_FORK = 10
    EVENT_LINK = 11
    EVENT_UNLINK = 12
    EVENT_MMAP = 13
    EVENT_MODIFY_FILE_ATTRIBUTES = 14
    EVENT_MPROTECT = 15
    EVENT_OPEN = 16
    EVENT_READ = 17
    EVENT_RECVFROM = 18
    EVENT_RENAME = 19
    EVENT_WRITE = 20
    EVENT_SENDTO = 21
    # Synthetic kinds
    EVENT_BLIND = 22
    EVENT_UNIT = 23
    EVENT_UNKNOWN = 24
    EVENT_OS_UNKNOWN = 25
    EVENT_KERNEL_UNKNOWN = 26
    EVENT_APP_UNKNOWN = 27
    # Version 2
    EVENT_UI_UNKNOWN = 28
    EVENT_UPDATE = 29


class EdgeType(CDMEnum):
    EDGE_EVENT_AFFECTS_MEMORY = 0
    EDGE_EVENT_AFFECTS_FILE = 1
    EDGE_EVENT_AFFECTS_NETFLOW = 2
    EDGE_EVENT_AFFECTS_SUBJECT = 3
    EDGE_EVENT_AFFECTS_SRCSINK = 4
    EDGE_EVENT_HASPARENT_EVENT = 5
    EDGE_EVENT_ISGENERATEDBY_SUBJECT = 6
    EDGE_SUBJECT_AFFECTS_EVENT = 7
    EDGE_SUBJECT_HASPARENT_SUBJECT = 8
    EDGE_SUBJECT_HASLOCALPRINCIPAL = 9
    EDGE_SUBJECT_RUNSON = 10
    EDGE_FILE_AFFECTS_EVENT = 11
    EDGE_NETFLOW_AFFECTS_EVENT = 12
    EDGE_MEMORY_AFFECTS_EVENT = 13
    EDGE_SRCSINK_AFFECTS_EVENT = 14
    # Version 2
    EDGE_OBJECT_PREV_VERSION = 15


class SrcSinkType(CDMEnum):
    SOURCE_ACCELEROMETER = 0
    SOURCE_TEMPERATURE = 1
    SOURCE_GYROSCOPE = 2
    SOURCE_MAGNETIC_FIELD = 3
    SOURCE_HEART_RATE = 4
    SOURCE_LIGHT = 5
    SOURCE_PROXIMITY = 6
    SOURCE_PRESSURE = 7
    SOURCE_RELATIVE_HUMIDITY = 8
    SOURCE_LINEAR_ACCELERATION = 9
    SOURCE_MOTION = 10
    SOURCE_STEP_DETECTOR = 11
    SOURCE_STEP_COUNTER = 12
    SOURCE_TILT_DETECTOR = 13
    SOURCE_ROTATION_VECTOR = 14
    SOURCE_GRAVITY = 15
    SOURCE_GEOMAGNETIC_ROTATION_VECTOR = 16
    SOURCE_CAMERA = 17
    SOURCE_GPS = 18
    SOURCE_AUDIO = 19
    SOURCE_SYSTEM_PROPERTY = 20
    SOURCE_ENV_VARIABLE = 21
    SOURCE_SINK_IPC = 22


class PrincipalType(CDMEnum):
    PRINCIPAL_LOCAL = 0
    PRINCIPAL_REMOTE = 1


class TagOpCode(CDMEnum):
    TAG_OP_SEQUENCE = 0
    TAG_OP_UNION = 1
    TAG_OP_ENCODE = 2
    TAG_OP_STRONG = 3
    TAG_OP_MEDIUM = 4
    TAG_OP_WEAK = 5


class IntegrityTag(CDMEnum):
    INTEGRITY_UNTRUSTED = 0
    INTEGRITY_BENIGN = 1
    INTEGRITY_INVULNERABLE = 2


class ConfidentialityTag(CDMEnum):
    CONFIDENTIALITY_SECRET = 0
    CONFIDENTIALITY_SENSITIVE = 1
    CONFIDENTIALITY_PRIVATE = 2
    CONFIDENTIALITY_PUBLIC = 3
