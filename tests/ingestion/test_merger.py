"""
Fan-in Merger Tests

INVARIANTS TESTED:
1. Each id appears at most once, first copy wins
2. Output sorted by (created_at, id)
3. Merging is insensitive to how events are split across sources
"""

from dataclasses import replace

from hypothesis import given, strategies as st

from bridge.contracts.events import NostrEvent
from ingestion.merger import FanInMerger

from ..fixtures import make_event


def stub(event_id: str, created_at: int, content: str = "") -> NostrEvent:
    return NostrEvent(
        id=event_id, pubkey=None, created_at=created_at, kind=1,
        tags=(), content=content, sig=None,
    )


class TestMerge:

    def test_duplicate_across_relays_collapses_and_sorts(self):
        x = stub("x", 10)
        y = stub("y", 5)
        assert FanInMerger().merge([[x, x], [y]]) == (y, x)

    def test_first_copy_wins(self):
        first = make_event(content="a")
        second = replace(first, sig="00" * 64)
        merged = FanInMerger().merge([[first], [second]])
        assert merged == (first,)

    def test_ties_broken_by_id(self):
        merged = FanInMerger().merge([[stub("b", 7), stub("a", 7)]])
        assert [e.id for e in merged] == ["a", "b"]

    def test_events_without_id_pass_through(self):
        anonymous = stub(None, 3)
        merged = FanInMerger().merge([[anonymous, stub("z", 1)]])
        assert merged == (stub("z", 1), anonymous)

    def test_empty_input(self):
        assert FanInMerger().merge([]) == ()
        assert FanInMerger().merge([[], []]) == ()


event_stubs = st.builds(
    stub,
    st.sampled_from([f"id{i}" for i in range(12)]),
    st.integers(min_value=0, max_value=50),
)


class TestMergeProperties:

    @given(st.lists(st.lists(event_stubs, max_size=8), max_size=4))
    def test_unique_and_sorted(self, batches):
        merged = FanInMerger().merge(batches)
        ids = [e.id for e in merged]
        assert len(ids) == len(set(ids))
        assert list(merged) == sorted(merged, key=lambda e: e.sort_key)
        assert set(ids) == {e.id for b in batches for e in b}

    @given(st.lists(event_stubs, max_size=15), st.integers(min_value=0, max_value=15))
    def test_split_point_does_not_matter_for_unique_ids(self, events, split):
        unique = list({e.id: e for e in events}.values())
        whole = FanInMerger().merge([unique])
        halves = FanInMerger().merge([unique[:split], unique[split:]])
        assert whole == halves
