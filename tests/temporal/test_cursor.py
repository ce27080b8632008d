"""
Progress Cursor Tests

INVARIANTS TESTED:
1. A cold cursor looks back lookback_seconds from now
2. A warm cursor queries from last_seen
3. last_seen never decreases
4. Timestamps above the ceiling count as the ceiling
"""

import pytest
from hypothesis import given, strategies as st

from bridge.temporal import ProgressCursor


class TestQueryBound:

    def test_cold_cursor_looks_back(self):
        assert ProgressCursor().query_since(10000, 3600) == 6400

    def test_cold_lookback_is_clamped_at_zero(self):
        assert ProgressCursor().query_since(100, 3600) == 0

    def test_warm_cursor_uses_last_seen(self):
        assert ProgressCursor(9000).query_since(10000, 3600) == 9000

    def test_negative_start_is_rejected(self):
        with pytest.raises(ValueError):
            ProgressCursor(-1)


class TestAdvance:

    def test_advances_to_newest_timestamp(self):
        cursor = ProgressCursor()
        assert cursor.advance([5, 30, 10]) == 30
        assert not cursor.is_cold

    def test_never_moves_backwards(self):
        cursor = ProgressCursor(100)
        assert cursor.advance([50, 60]) == 100

    def test_floor_seeds_a_cold_cursor(self):
        cursor = ProgressCursor()
        assert cursor.advance([], floor=6400) == 6400
        assert cursor.query_since(10000, 3600) == 6400

    def test_non_integer_timestamps_are_ignored(self):
        cursor = ProgressCursor(10)
        assert cursor.advance([None, "99", True, 11.5, 12]) == 12

    def test_ceiling_caps_future_timestamps(self):
        cursor = ProgressCursor(100)
        assert cursor.advance([150, 10**9], ceiling=200) == 200
        assert cursor.advance([180], ceiling=200) == 200

    def test_ceiling_never_pulls_the_cursor_back(self):
        cursor = ProgressCursor(500)
        assert cursor.advance([900], ceiling=300) == 500

    @given(st.lists(st.lists(st.integers(min_value=0, max_value=2**40), max_size=10), max_size=10))
    def test_monotonic_over_any_batches(self, batches):
        cursor = ProgressCursor()
        previous = cursor.last_seen
        for batch in batches:
            current = cursor.advance(batch)
            assert current >= previous
            assert all(current >= t for t in batch)
            previous = current
