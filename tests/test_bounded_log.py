"""
Tests for the bounded rolling log.

Ensures capacity is enforced with oldest-first eviction and order is kept.
"""

import pytest

from core.bounded_log import BoundedLog


class TestBoundedLogCapacity:
    """Test capacity validation and eviction"""

    @pytest.mark.parametrize("capacity", [0, -1])
    def test_non_positive_capacity_rejected(self, capacity):
        """Capacity must be positive"""
        with pytest.raises(ValueError, match="capacity must be positive"):
            BoundedLog(capacity)

    def test_keeps_everything_below_capacity(self):
        log = BoundedLog(5)
        for i in range(3):
            log.append(i)

        assert len(log) == 3
        assert log.snapshot() == [0, 1, 2]

    def test_evicts_oldest_beyond_capacity(self):
        """After N appends only the last `capacity` entries remain, in order"""
        log = BoundedLog(500)
        for i in range(600):
            log.append(i)

        assert len(log) == 500
        assert log[0] == 100
        assert log.snapshot() == list(range(100, 600))

    def test_total_appended_counts_evicted_entries(self):
        log = BoundedLog(2)
        log.extend(["a", "b", "c"])

        assert log.total_appended == 3
        assert log.snapshot() == ["b", "c"]


class TestBoundedLogAccess:
    """Test read helpers"""

    def test_initial_entries_are_appended(self):
        log = BoundedLog(3, initial=["seed"])

        assert log.snapshot() == ["seed"]
        assert log.total_appended == 1

    def test_append_returns_entry(self):
        log = BoundedLog(3)
        entry = {"k": 1}
        assert log.append(entry) is entry

    def test_snapshot_is_a_copy(self):
        log = BoundedLog(3, initial=[1, 2])
        snap = log.snapshot()
        snap.append(99)

        assert log.snapshot() == [1, 2]
        assert list(log) == [1, 2]
