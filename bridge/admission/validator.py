"""
Event Validator

Pure verification of an event's identity hash and signature.

GUARANTEES:
===========
1. No I/O, no side effects, no clock reads
2. Runs before any window or ledger check - a forged event never
   occupies ledger capacity
3. validate(E) is ok iff sha256(serialized E) == E.id and E.sig verifies
"""

from __future__ import annotations
from typing import Callable, Optional
import hashlib
import json
import re

from coincurve import PublicKeyXOnly

from ..contracts.base import RejectReason, Verdict
from ..contracts.events import NostrEvent


HEX64 = re.compile(r'^[0-9a-f]{64}$')

SignatureVerifier = Callable[[str, str, str], bool]


def serialize_event(
    pubkey: str,
    created_at: int,
    kind: int,
    tags,
    content: str
) -> str:
    """Canonical serialization hashed into the event id."""
    return json.dumps(
        [0, pubkey, created_at, kind, [list(t) for t in tags], content],
        separators=(',', ':'),
        ensure_ascii=False,
    )


def compute_event_id(
    pubkey: str,
    created_at: int,
    kind: int,
    tags,
    content: str
) -> str:
    serialized = serialize_event(pubkey, created_at, kind, tags, content)
    return hashlib.sha256(serialized.encode('utf-8')).hexdigest()


def schnorr_verify(pubkey: str, event_id: str, sig: str) -> bool:
    """BIP-340 verification of `sig` by x-only `pubkey` over the 32-byte id."""
    try:
        key = PublicKeyXOnly(bytes.fromhex(pubkey))
        return key.verify(bytes.fromhex(sig), bytes.fromhex(event_id))
    except (ValueError, TypeError):
        return False


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_utf8(value: str) -> bool:
    # json.loads accepts lone surrogates such as "\ud800"
    try:
        value.encode('utf-8')
    except UnicodeEncodeError:
        return False
    return True


class EventValidator:
    """
    Authenticity gate.

    CHECK ORDER:
    ============
    0. Completeness: id, author, content and every hashed field present,
       well typed and encodable as UTF-8 -> MALFORMED
    1. Recomputed content hash == id             -> else HASH_MISMATCH
    2. Signature verifies against author over id -> else BAD_SIGNATURE

    Completeness runs first although it is the least specific check: the
    hash is computed over those fields, so an event missing one has no
    hash to compare.
    """

    def __init__(self, verifier: Optional[SignatureVerifier] = None):
        self._verify = verifier or schnorr_verify

    def validate(self, event: NostrEvent) -> Verdict:
        problem = self._completeness_problem(event)
        if problem:
            return Verdict.reject(RejectReason.MALFORMED, problem)

        expected = compute_event_id(
            event.pubkey, event.created_at, event.kind, event.tags, event.content
        )
        if expected != event.id:
            return Verdict.reject(
                RejectReason.HASH_MISMATCH,
                f"computed {expected[:8]}... != claimed {event.id[:8]}..."
            )

        if not isinstance(event.sig, str) or not self._verify(event.pubkey, event.id, event.sig):
            return Verdict.reject(RejectReason.BAD_SIGNATURE, "signature does not verify")

        return Verdict.ok()

    @staticmethod
    def _completeness_problem(event: NostrEvent) -> Optional[str]:
        if not isinstance(event.id, str) or not event.id:
            return "missing id"
        if not isinstance(event.pubkey, str) or not HEX64.match(event.pubkey):
            return "missing or malformed author"
        if not isinstance(event.content, str):
            return "missing content"
        if not _is_utf8(event.content):
            return "content is not valid UTF-8"
        if not _is_int(event.created_at) or event.created_at < 0:
            return "missing or malformed created_at"
        if not _is_int(event.kind) or not 0 <= event.kind <= 65535:
            return "missing or malformed kind"
        if event.tags is None:
            return "missing tags"
        for tag in event.tags:
            if not all(isinstance(part, str) for part in tag):
                return "tag values must be strings"
            if not all(_is_utf8(part) for part in tag):
                return "tag values are not valid UTF-8"
        return None
