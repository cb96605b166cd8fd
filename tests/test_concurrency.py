"""
Tests for deadline propagation and the bounded worker pool
"""
import threading
import time

import pytest

from concurrency import Deadline, DeadlineExceeded, bounded_map


class TestDeadline:
    """Tests for Deadline"""

    def test_unbounded_deadline(self):
        """No timeout means no remaining-time limit"""
        d = Deadline()
        assert d.remaining() is None
        assert d.expired() is False
        assert d.timeout_for(15) == 15

    def test_timeout_for_caps_at_remaining(self):
        """Per-request timeout never exceeds what is left"""
        d = Deadline(5)
        assert d.timeout_for(30) <= 5
        assert d.timeout_for(1) == 1

    def test_cancel_raises_on_check(self):
        d = Deadline(60)
        d.cancel()
        assert d.cancelled is True
        with pytest.raises(DeadlineExceeded):
            d.check()

    def test_expired_deadline_raises(self):
        d = Deadline(0)
        assert d.expired() is True
        assert d.remaining() == 0.0
        with pytest.raises(DeadlineExceeded):
            d.timeout_for(10)


class TestBoundedMap:
    """Tests for bounded_map"""

    def test_results_keyed_by_item(self):
        assert bounded_map(lambda x: x * 2, [1, 2, 3], max_workers=2) == {1: 2, 2: 4, 3: 6}

    def test_empty_items(self):
        assert bounded_map(lambda x: x, [], max_workers=4) == {}

    def test_failures_are_dropped(self):
        """A failing unit does not abort the batch"""
        def fn(x):
            if x == "bad":
                raise RuntimeError("boom")
            return x.upper()

        assert bounded_map(fn, ["a", "bad", "c"], max_workers=3) == {"a": "A", "c": "C"}

    def test_pool_is_bounded(self):
        """Never more than max_workers units in flight"""
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def fn(x):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.01)
            with lock:
                state["active"] -= 1
            return x

        bounded_map(fn, range(12), max_workers=3)
        assert state["peak"] <= 3

    def test_deadline_exceeded_propagates_and_cancels(self):
        """DeadlineExceeded escapes after the pool drains and cancels the deadline"""
        d = Deadline(60)

        def fn(x):
            if x == 2:
                raise DeadlineExceeded("deadline exceeded")
            return x

        with pytest.raises(DeadlineExceeded):
            bounded_map(fn, [1, 2, 3], max_workers=2, deadline=d)
        assert d.cancelled is True

    def test_deadline_exceeded_carries_finished_units(self):
        def fn(x):
            if x == 2:
                raise DeadlineExceeded("deadline exceeded")
            return x * 10

        with pytest.raises(DeadlineExceeded) as exc:
            bounded_map(fn, [1, 2, 3], max_workers=1)
        assert exc.value.partial_results == {1: 10, 3: 30}
        assert str(exc.value) == "deadline exceeded"
