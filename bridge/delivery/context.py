"""
Context Resolver

Looks up display context for an admitted event: the author's profile and,
for replies, the parent post and its author's profile.

Lookups go through an injected `EventLookup` so this module never talks to
relays directly. Anything that cannot be found resolves to None.
"""

from __future__ import annotations
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence
import logging

from ..contracts.events import EventContext, EventKind, NostrEvent, Profile
from ..admission.validator import EventValidator

logger = logging.getLogger(__name__)


EventLookup = Callable[[Dict[str, Any]], Awaitable[Sequence[NostrEvent]]]


class ContextResolver:
    """
    Resolves EventContext with a per-process profile cache.

    Fetched profile and parent events are signature-checked before use;
    forged records are ignored.
    """

    def __init__(
        self,
        lookup: EventLookup,
        reply_context: bool = True,
        validator: Optional[EventValidator] = None,
    ):
        self._lookup = lookup
        self._reply_context = reply_context
        self._validator = validator or EventValidator()
        self._profiles: Dict[str, Optional[Profile]] = {}

    async def resolve(self, event: NostrEvent) -> EventContext:
        author = await self.profile(event.pubkey)

        parent = None
        parent_author = None
        if self._reply_context and event.kind == EventKind.TEXT_NOTE and event.is_reply:
            parent = await self.parent(event)
            if parent is not None:
                parent_author = await self.profile(parent.pubkey)

        return EventContext(author=author, parent=parent, parent_author=parent_author)

    async def profile(self, pubkey: Optional[str]) -> Optional[Profile]:
        """Newest valid kind-0 record for `pubkey`. Cached, including misses."""
        if not pubkey:
            return None
        if pubkey in self._profiles:
            return self._profiles[pubkey]

        events = await self._fetch({'kinds': [EventKind.METADATA], 'authors': [pubkey], 'limit': 1})
        candidates = [e for e in events if e.pubkey == pubkey and e.kind == EventKind.METADATA]
        candidates.sort(key=lambda e: e.sort_key, reverse=True)

        profile = None
        for candidate in candidates:
            profile = Profile.from_metadata_event(candidate)
            if profile is not None:
                break

        if profile is None:
            logger.debug(f"No profile found for {pubkey[:8]}...")
        self._profiles[pubkey] = profile
        return profile

    async def parent(self, event: NostrEvent) -> Optional[NostrEvent]:
        parent_id = event.first_tag_value('e')
        if not parent_id:
            return None
        events = await self._fetch({'ids': [parent_id], 'limit': 1})
        for candidate in events:
            if candidate.id == parent_id:
                return candidate
        logger.debug(f"Parent {parent_id[:8]}... of {event.short_id} not found")
        return None

    async def _fetch(self, event_filter: Dict[str, Any]) -> Sequence[NostrEvent]:
        events = await self._lookup(event_filter)
        return [e for e in events if self._validator.validate(e)]

    def clear_cache(self):
        self._profiles.clear()

    @property
    def cached_profiles(self) -> int:
        return len(self._profiles)
