"""Tests for the sliding-window OI history."""
from datetime import datetime, timedelta

import pytest

from core.oi_history import SymbolOIHistory

NOW = datetime(2025, 1, 1, 12, 0, 0)


def minutes_ago(m: float) -> datetime:
    return NOW - timedelta(minutes=m)


def test_record_keeps_order():
    history = SymbolOIHistory("BTCUSDT")
    history.record(minutes_ago(5), 100)
    history.record(minutes_ago(4), 101)
    history.record(minutes_ago(4), 102)  # equal timestamps allowed

    assert [s.value for s in history.samples] == [100, 101, 102]
    assert history.latest().value == 102


def test_record_rejects_older_sample():
    history = SymbolOIHistory("BTCUSDT")
    history.record(minutes_ago(1), 100)

    with pytest.raises(ValueError):
        history.record(minutes_ago(2), 99)
    assert len(history) == 1


def test_prune_drops_samples_at_or_beyond_retention():
    history = SymbolOIHistory("BTCUSDT")
    for m in (45, 31, 30, 29.5, 10, 0):
        history.record(minutes_ago(m), m)

    removed = history.prune(NOW)

    assert removed == 3
    assert [s.value for s in history.samples] == [29.5, 10, 0]
    assert all(NOW - s.timestamp < timedelta(minutes=30) for s in history.samples)


def test_prune_custom_retention():
    history = SymbolOIHistory("BTCUSDT")
    history.record(minutes_ago(30.5), 1)
    history.record(minutes_ago(5), 2)

    history.prune(NOW, retention=timedelta(minutes=31))

    assert [s.value for s in history.samples] == [1, 2]


def test_value_near_exact_offset():
    history = SymbolOIHistory("BTCUSDT")
    history.record(minutes_ago(15), 1000)
    history.record(NOW, 1100)

    assert history.value_near(NOW, timedelta(minutes=15)) == 1000


def test_value_near_tolerance_edges():
    history = SymbolOIHistory("BTCUSDT")
    history.record(minutes_ago(16), 1000)

    assert history.value_near(NOW, timedelta(minutes=15)) == 1000

    history = SymbolOIHistory("BTCUSDT")
    history.record(minutes_ago(16) - timedelta(seconds=1), 1000)

    assert history.value_near(NOW, timedelta(minutes=15)) is None


def test_value_near_ignores_samples_newer_than_offset():
    history = SymbolOIHistory("BTCUSDT")
    history.record(minutes_ago(14.9), 1000)

    assert history.value_near(NOW, timedelta(minutes=15)) is None


def test_value_near_absent_when_nearest_is_too_old():
    history = SymbolOIHistory("BTCUSDT")
    history.record(minutes_ago(20), 1000)
    history.record(NOW, 1100)

    assert history.value_near(NOW, timedelta(minutes=15)) is None


def test_value_near_prefers_most_recent_in_window():
    history = SymbolOIHistory("BTCUSDT")
    history.record(minutes_ago(15.9), 900)
    history.record(minutes_ago(15.5), 950)
    history.record(minutes_ago(15.1), 990)
    history.record(minutes_ago(1), 1200)

    assert history.value_near(NOW, timedelta(minutes=15)) == 990


def test_value_near_zero_reference_is_returned_not_absent():
    history = SymbolOIHistory("BTCUSDT")
    history.record(minutes_ago(15), 0.0)

    assert history.value_near(NOW, timedelta(minutes=15)) == 0.0


def test_thirty_minute_reference_pruned_with_default_retention():
    history = SymbolOIHistory("BTCUSDT")
    history.record(minutes_ago(30), 500)
    history.record(NOW, 600)

    history.prune(NOW)

    assert history.value_near(NOW, timedelta(minutes=30)) is None
