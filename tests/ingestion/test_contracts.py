"""
Ingestion Contract and Registry Tests
"""

from datetime import datetime, timedelta, timezone

from ingestion.contracts import (
    EventFilter, FetchBatch, FetchResult, FetchStatus, RelayRole, RelaySource, account_filters,
)
from ingestion.registry import RelayRegistry

from ..fixtures import PUBKEY_A, make_config, make_event

T0 = datetime(2026, 1, 1, 10, 0, 0, tzinfo=timezone.utc)


def result(source, status=FetchStatus.SUCCESS, events=()):
    return FetchResult(
        source=source, status=status, attempted_at=T0,
        completed_at=T0 + timedelta(milliseconds=250), events=tuple(events),
    )


class TestFilters:

    def test_account_filters_split_zaps_onto_p_tag(self):
        authored, zaps = account_filters(PUBKEY_A, (1, 7, 9735), since=100)
        assert authored.to_dict() == {'authors': [PUBKEY_A], 'kinds': [1, 7], 'since': 100}
        assert zaps.to_dict() == {'kinds': [9735], '#p': [PUBKEY_A], 'since': 100}

    def test_account_filters_without_zaps(self):
        filters = account_filters(PUBKEY_A, (1,))
        assert len(filters) == 1
        assert 'since' not in filters[0].to_dict()

    def test_filter_dict_round_trip(self):
        event_filter = EventFilter(ids=("ab" * 32,), limit=1)
        assert EventFilter.from_dict(event_filter.to_dict()) == event_filter


class TestFetchBatch:

    def test_timeout_counts_as_responded(self):
        assert FetchStatus.TIMEOUT.responded
        assert not FetchStatus.CLOSED.responded
        assert not FetchStatus.NETWORK_ERROR.responded

    def test_counts_and_duration(self):
        a, b = RelaySource("wss://a.test"), RelaySource("wss://b.test")
        batch = FetchBatch("b1", T0, T0, (
            result(a, events=[make_event()]),
            result(b, FetchStatus.NETWORK_ERROR),
        ))
        assert batch.ok_count == 1
        assert batch.failed_count == 1
        assert batch.event_count == 1
        assert batch.failures()[0].source == b
        assert batch.results[0].duration_ms == 250

    def test_all_failed(self):
        a = RelaySource("wss://a.test")
        assert FetchBatch("b", T0, T0, (result(a, FetchStatus.CLOSED),)).all_failed
        assert not FetchBatch("b", T0, T0, ()).all_failed

    def test_event_groups_put_primaries_first(self):
        fallback = RelaySource("wss://fb.test", RelayRole.FALLBACK)
        primary = RelaySource("wss://p.test", RelayRole.PRIMARY)
        e1, e2 = make_event(content="fb"), make_event(content="p")
        batch = FetchBatch("b", T0, T0, (result(fallback, events=[e1]), result(primary, events=[e2])))
        assert batch.event_groups() == ((e2,), (e1,))

    def test_combine(self):
        a = FetchBatch("one", T0, T0, (result(RelaySource("wss://a.test")),))
        b = FetchBatch("two", T0 + timedelta(seconds=1), T0 + timedelta(seconds=2), ())
        combined = FetchBatch.combine(a, b)
        assert combined.batch_id == "one+two"
        assert combined.completed_at == T0 + timedelta(seconds=2)
        assert len(combined.results) == 1


class TestRegistry:

    def test_primary_url_is_not_reused_as_fallback(self):
        registry = RelayRegistry.from_urls(
            ["wss://a.test", "wss://a.test", " wss://b.test "],
            ["wss://b.test", "wss://c.test", ""],
        )
        assert [s.url for s in registry.primary_sources()] == ["wss://a.test", "wss://b.test"]
        assert [s.url for s in registry.fallback_sources()] == ["wss://c.test"]
        assert registry.fallback_sources()[0].role == RelayRole.FALLBACK
        assert registry.total_count == 3
        assert [s.url for s in registry.all_sources()][0] == "wss://a.test"

    def test_from_config(self):
        registry = RelayRegistry.from_config(make_config().ingestion)
        assert registry.stats() == {
            'total': 3,
            'primary': ["wss://primary-1.test", "wss://primary-2.test"],
            'fallback': ["wss://fallback.test"],
        }

    def test_source_id_strips_scheme(self):
        assert RelaySource("wss://relay.damus.io/").source_id == "relay.damus.io"
