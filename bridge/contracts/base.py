"""
Base Contracts and Shared Types

These are the foundational types used across all layers.
All types here are IMMUTABLE and represent pure data.
No behavior, no side effects, no I/O.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Layers may import types but MUST NOT modify this module
- All types are frozen dataclasses for immutability guarantee
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple
from enum import Enum, auto


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    No silent fallbacks - every error state is enumerated.
    """
    # Per-event (terminal for the event, never a cycle failure)
    MALFORMED_EVENT = auto()
    HASH_MISMATCH = auto()
    INVALID_SIGNATURE = auto()
    STALE_EVENT = auto()
    LIKELY_DUPLICATE = auto()
    UNMONITORED_EVENT = auto()

    # Sink
    SINK_RATE_LIMITED = auto()
    SINK_FAILED = auto()

    # Sources
    SOURCE_UNAVAILABLE = auto()

    # Configuration
    CONFIG_MISSING = auto()
    INVALID_KEY = auto()


class RejectReason(Enum):
    """Why a candidate event was not forwarded."""
    MALFORMED = "malformed"
    HASH_MISMATCH = "hash_mismatch"
    BAD_SIGNATURE = "bad_signature"
    TOO_OLD = "too_old"
    LIKELY_DUPLICATE_PRE_CURSOR = "likely_duplicate_pre_cursor"
    ALREADY_FORWARDED = "already_forwarded"
    UNMONITORED_KIND = "unmonitored_kind"
    UNMONITORED_AUTHOR = "unmonitored_author"

    @property
    def error_code(self) -> ErrorCode:
        return _REASON_CODES[self]


_REASON_CODES = {
    RejectReason.MALFORMED: ErrorCode.MALFORMED_EVENT,
    RejectReason.HASH_MISMATCH: ErrorCode.HASH_MISMATCH,
    RejectReason.BAD_SIGNATURE: ErrorCode.INVALID_SIGNATURE,
    RejectReason.TOO_OLD: ErrorCode.STALE_EVENT,
    RejectReason.LIKELY_DUPLICATE_PRE_CURSOR: ErrorCode.LIKELY_DUPLICATE,
    RejectReason.ALREADY_FORWARDED: ErrorCode.LIKELY_DUPLICATE,
    RejectReason.UNMONITORED_KIND: ErrorCode.UNMONITORED_EVENT,
    RejectReason.UNMONITORED_AUTHOR: ErrorCode.UNMONITORED_EVENT,
}


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and queried.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @staticmethod
    def now(code: ErrorCode, message: str) -> Error:
        return Error(code=code, message=message, timestamp=datetime.now(timezone.utc))

    def with_context(self, key: str, value: str) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            context=self.context + ((key, value),)
        )


@dataclass(frozen=True)
class Verdict:
    """
    Outcome of one admission gate (validator or window filter).

    Either admitted, or rejected with exactly one reason.
    """
    admitted: bool
    reason: Optional[RejectReason] = None
    detail: str = ""

    def __post_init__(self):
        if self.admitted and self.reason is not None:
            raise ValueError("An admitted verdict cannot carry a reject reason")
        if not self.admitted and self.reason is None:
            raise ValueError("A rejected verdict requires a reason")

    @staticmethod
    def ok() -> Verdict:
        return _OK

    @staticmethod
    def reject(reason: RejectReason, detail: str = "") -> Verdict:
        return Verdict(admitted=False, reason=reason, detail=detail)

    def __bool__(self) -> bool:
        return self.admitted


_OK = Verdict(admitted=True)


# =============================================================================
# TEMPORAL TYPES (Immutable, explicit semantics)
# =============================================================================

@dataclass(frozen=True)
class Timestamp:
    """
    Immutable timestamp with explicit semantics.
    All timestamps are UTC, never local time.
    """
    value: datetime

    def __post_init__(self):
        # Ensure UTC timezone
        if self.value.tzinfo is None:
            object.__setattr__(self, 'value', self.value.replace(tzinfo=timezone.utc))

    @staticmethod
    def now() -> Timestamp:
        return Timestamp(value=datetime.now(timezone.utc))

    def to_iso(self) -> str:
        return self.value.isoformat()


# =============================================================================
# EXCEPTIONS (configuration and programming errors only)
# =============================================================================

class BridgeError(Exception):
    """Base class for errors that abort startup rather than a single event."""

    code: ErrorCode = ErrorCode.CONFIG_MISSING


class ConfigError(BridgeError):
    """Required configuration is missing or invalid."""
    code = ErrorCode.CONFIG_MISSING


class KeyDecodeError(BridgeError, ValueError):
    """A public key could not be decoded to its raw hex form."""
    code = ErrorCode.INVALID_KEY
