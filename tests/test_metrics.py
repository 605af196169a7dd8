from __future__ import annotations

from stockmeta.metrics import FAILURE, TIMEOUT, MetricsTracker


def test_summary_separates_timeouts_from_other_failures() -> None:
    tracker = MetricsTracker()
    tracker.record_batch(5, 0.4, completed=4, errored=1)
    tracker.record_batch(5, 2.0, errored=5, failure=TIMEOUT)
    tracker.record_batch(2, 0.6, errored=2, failure=FAILURE)

    stats = tracker.summary()

    assert stats["batches"] == 3
    assert stats["items_sent"] == 12
    assert (stats["items_completed"], stats["items_errored"]) == (4, 8)
    assert (stats["timeouts"], stats["failures"]) == (1, 1)
    assert stats["max_latency"] == 2.0
    assert abs(stats["avg_latency"] - 1.0) < 1e-9


def test_reset_empties_the_summary() -> None:
    tracker = MetricsTracker()
    tracker.record_batch(3, 0.1, completed=3)

    tracker.reset()

    assert tracker.summary() == {
        "batches": 0,
        "items_sent": 0,
        "items_completed": 0,
        "items_errored": 0,
        "timeouts": 0,
        "failures": 0,
        "avg_latency": 0.0,
        "max_latency": 0.0,
    }
