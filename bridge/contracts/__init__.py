"""
Contracts Module

Immutable types shared by every layer. Layers import from here and
never from each other's implementations.
"""

from .base import (
    ErrorCode, RejectReason, Error, Verdict, Timestamp,
    BridgeError, ConfigError, KeyDecodeError,
)
from .events import (
    EventKind, NostrEvent, EventDisposition, EventOutcome,
    CycleStatus, CycleReport, AuditEventType, AuditLogEntry,
    Profile, EventContext,
)

__all__ = [
    'ErrorCode', 'RejectReason', 'Error', 'Verdict', 'Timestamp',
    'BridgeError', 'ConfigError', 'KeyDecodeError',
    'EventKind', 'NostrEvent', 'EventDisposition', 'EventOutcome',
    'CycleStatus', 'CycleReport', 'AuditEventType', 'AuditLogEntry',
    'Profile', 'EventContext',
]
