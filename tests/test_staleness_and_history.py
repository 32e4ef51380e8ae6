from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from menu_cache.exceptions import MenuValidationError
from menu_cache.services.provenance import AttemptRecord, ScrapingHistory, prepend
from menu_cache.services.staleness import age_hours, describe_age, is_stale
from tests.fixtures_data import T0


def _attempt(n: int, success: bool = True) -> AttemptRecord:
    return AttemptRecord(
        timestamp=T0 + timedelta(minutes=n),
        source=f"https://example.com/{n}",
        success=success,
        items_found=n,
        processing_time_ms=10 * n,
        error=None if success else "boom",
    )


def test_absent_timestamp_is_always_stale() -> None:
    assert is_stale(None, 0, now=T0) is True
    assert is_stale(None, 10_000, now=T0) is True


def test_staleness_uses_strict_greater_than_threshold() -> None:
    assert is_stale(T0 - timedelta(hours=2), 1, now=T0) is True
    assert is_stale(T0 - timedelta(hours=1), 1, now=T0) is False
    assert is_stale(T0 - timedelta(minutes=30), 1, now=T0) is False
    assert is_stale(T0 - timedelta(minutes=45), 0.5, now=T0) is True


def test_naive_timestamps_are_treated_as_utc() -> None:
    naive = datetime(2024, 5, 1, 10, 0)
    assert age_hours(naive, now=T0) == pytest.approx(2.0)
    assert is_stale(naive, 1, now=T0) is True


def test_negative_threshold_is_rejected() -> None:
    with pytest.raises(MenuValidationError):
        is_stale(T0, -1, now=T0)


def test_describe_age_labels() -> None:
    assert describe_age(None, now=T0) == "never"
    assert describe_age(T0 - timedelta(minutes=20), now=T0) == "20 minutes"
    assert describe_age(T0 - timedelta(hours=3, minutes=10), now=T0) == "3 hours"


def test_prepend_puts_newest_first_and_truncates() -> None:
    history: tuple[AttemptRecord, ...] = ()
    for n in range(12):
        history = prepend(history, _attempt(n), cap=10)

    assert len(history) == 10
    assert history[0].items_found == 11
    assert history[-1].items_found == 2


def test_prepend_rejects_non_positive_capacity() -> None:
    with pytest.raises(ValueError):
        prepend((), _attempt(1), cap=0)


def test_scraping_history_is_immutable_and_bounded() -> None:
    first = ScrapingHistory(capacity=3)
    grown = first
    for n in range(5):
        grown = grown.add(_attempt(n, success=n % 2 == 0))

    assert len(first) == 0
    assert len(grown) == 3
    assert [entry.items_found for entry in grown] == [4, 3, 2]
    assert grown.latest == _attempt(4, success=True)


def test_scraping_history_serializes_with_camel_case_keys() -> None:
    history = ScrapingHistory().add(_attempt(1)).add(_attempt(2, success=False))

    data = history.to_list()

    assert data[0]["success"] is False
    assert data[0]["error"] == "boom"
    assert data[1]["itemsFound"] == 1
    assert "error" not in data[1]
    assert ScrapingHistory.from_list(data) == history
