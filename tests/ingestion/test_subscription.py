"""
Live Subscription Tests

The stream yields stored events, then BACKLOG_EXHAUSTED exactly once,
then live events.
"""

import asyncio

from ingestion.contracts import EventFilter, RelaySource, StreamMarker
from ingestion.subscription import RelaySubscription

from ..fixtures import NOW, PUBKEY_A, FakeRelays, make_event, silent, stored


FILTERS = (EventFilter(authors=(PUBKEY_A,), kinds=(1,)),)
MARKER = StreamMarker.BACKLOG_EXHAUSTED


def collect(relays, urls, eose_timeout=0.2, stop_after_marker=False):
    subscription = RelaySubscription(
        [RelaySource(u) for u in urls], FILTERS, eose_timeout=eose_timeout, connect=relays,
    )

    async def run():
        items = []
        stream = subscription.stream()
        try:
            async for item in stream:
                items.append(item)
                if stop_after_marker and item is MARKER:
                    break
        finally:
            await stream.aclose()
        return items

    return asyncio.run(run())


class TestBacklogMarker:

    def test_marker_separates_stored_from_live(self):
        old = make_event(created_at=NOW - 100)
        new = make_event(created_at=NOW - 1)
        relays = FakeRelays().add("wss://a.test", stored(old, live=[new]))

        assert collect(relays, ["wss://a.test"]) == [old, MARKER, new]

    def test_marker_waits_for_every_relay(self):
        a = make_event(created_at=NOW - 100)
        b = make_event(created_at=NOW - 90)
        relays = (
            FakeRelays()
            .add("wss://a.test", stored(a))
            .add("wss://b.test", stored(b))
        )

        items = collect(relays, ["wss://a.test", "wss://b.test"])
        assert items.count(MARKER) == 1
        assert items[-1] is MARKER
        assert set(items[:-1]) == {a, b}

    def test_failed_relay_does_not_block_marker(self):
        event = make_event()
        relays = FakeRelays().add("wss://a.test", stored(event))

        items = collect(relays, ["wss://a.test", "wss://down.test"])
        assert items == [event, MARKER]

    def test_marker_after_eose_timeout(self):
        event = make_event()
        relays = FakeRelays().add("wss://slow.test", stored(event, eose=False, close=False))

        items = collect(relays, ["wss://slow.test"], eose_timeout=0.05, stop_after_marker=True)
        assert items == [event, MARKER]

    def test_silent_relay_still_yields_marker(self):
        relays = FakeRelays().add("wss://quiet.test", silent())
        assert collect(relays, ["wss://quiet.test"], eose_timeout=0.05, stop_after_marker=True) == [MARKER]

    def test_no_sources_yields_only_marker(self):
        assert collect(FakeRelays(), []) == [MARKER]

    def test_req_is_sent_with_filters(self):
        relays = FakeRelays().add("wss://a.test", stored())
        collect(relays, ["wss://a.test"])
        req = relays.sent_to("wss://a.test")[0]
        assert req[0] == "REQ"
        assert req[2] == {'authors': [PUBKEY_A], 'kinds': [1]}
