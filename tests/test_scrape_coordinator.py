from __future__ import annotations

import threading
import time
from threading import Event

import pytest

from menu_cache.core.metrics import InMemoryRefreshMetrics
from menu_cache.exceptions import MenuValidationError, TenantMenuNotFoundError
from menu_cache.services.menu_records import DataSource
from menu_cache.services.menu_repository import InMemoryMenuRepository
from menu_cache.services.scrape_coordinator import RefreshResult, ScrapeCoordinator, ScrapeFailure
from menu_cache.services.tenant_locks import TenantSingleFlight
from tests.fixtures_data import URL_A, BlockingFetcher, CountingFetcher, FakeClock, build_service


def test_first_refresh_stores_record_with_one_success_attempt() -> None:
    fetcher = CountingFetcher()
    service = build_service(fetcher)

    outcome = service.refresh("t1", URL_A)

    assert isinstance(outcome, RefreshResult)
    assert outcome.cached is False
    record = outcome.record
    assert len(record.items) == 5
    assert record.data_source is DataSource.SCRAPED
    assert record.source == URL_A
    assert record.restaurant_name == "Trattoria Roma"
    assert record.special_offers == ("Lunch Combo: Pizza + drink",)
    assert record.last_scraped == record.last_updated
    assert len(record.scraping_history) == 1
    assert record.scraping_history[0].success is True
    assert record.scraping_history[0].items_found == 5
    assert fetcher.calls == 1


def test_scraped_items_get_defaults() -> None:
    service = build_service()

    record = service.refresh("t1", URL_A).record
    by_name = {item.name: item for item in record.items}

    assert by_name["Caesar Salad"].category == "Menu Item"
    assert by_name["Margherita"].price == "$14.50"
    assert by_name["Tiramisu"].availability is False
    assert by_name["Margherita"].availability is True
    assert by_name["Espresso"].is_popular is True
    assert by_name["Diavola"].is_popular is False
    assert by_name["Diavola"].allergens == frozenset({"dairy"})


def test_refresh_within_cache_window_does_not_fetch() -> None:
    fetcher = CountingFetcher()
    clock = FakeClock()
    service = build_service(fetcher, clock=clock)
    service.refresh("t1", URL_A)

    clock.advance(minutes=59)
    outcome = service.refresh("t1", URL_A)

    assert isinstance(outcome, RefreshResult)
    assert outcome.cached is True
    assert fetcher.calls == 1
    assert len(outcome.record.scraping_history) == 1


def test_refresh_after_cache_window_fetches_again_and_prepends() -> None:
    fetcher = CountingFetcher()
    clock = FakeClock()
    service = build_service(fetcher, clock=clock)
    first = service.refresh("t1", URL_A).record

    clock.advance(hours=2)
    second = service.refresh("t1", URL_A).record

    assert fetcher.calls == 2
    assert len(second.scraping_history) == 2
    assert second.scraping_history[1] == first.scraping_history[0]
    assert second.last_scraped > first.last_scraped


def test_force_refresh_bypasses_cache() -> None:
    fetcher = CountingFetcher()
    service = build_service(fetcher)
    service.refresh("t1", URL_A)

    outcome = service.refresh("t1", URL_A, force_refresh=True)

    assert outcome.cached is False
    assert fetcher.calls == 2


def test_history_is_bounded_after_many_refreshes() -> None:
    service = build_service()

    for _ in range(12):
        record = service.refresh("t1", URL_A, force_refresh=True).record

    assert len(record.scraping_history) == 10
    assert len(service.get("t1").record.scraping_history) == 10


def test_failed_fetch_without_record_reports_no_fallback() -> None:
    fetcher = CountingFetcher()
    fetcher.fail_with = "upstream 503"
    service = build_service(fetcher)

    outcome = service.refresh("t1", URL_A)

    assert isinstance(outcome, ScrapeFailure)
    assert outcome.fallback_available is False
    assert outcome.fallback_record is None
    assert outcome.error == "upstream 503"
    with pytest.raises(TenantMenuNotFoundError):
        service.get("t1")


def test_failed_fetch_keeps_data_and_prepends_failure() -> None:
    fetcher = CountingFetcher()
    clock = FakeClock()
    service = build_service(fetcher, clock=clock)
    before = service.refresh("t1", URL_A).record

    clock.advance(hours=3)
    fetcher.fail_with = "connection reset"
    outcome = service.refresh("t1", URL_A, force_refresh=True)

    assert isinstance(outcome, ScrapeFailure)
    assert outcome.fallback_available is True
    after = service.get("t1").record
    assert outcome.fallback_record == after
    assert after.items == before.items
    assert after.special_offers == before.special_offers
    assert after.ai_context == before.ai_context
    assert after.last_scraped == before.last_scraped
    assert len(after.scraping_history) == len(before.scraping_history) + 1
    failure = after.scraping_history[0]
    assert failure.success is False
    assert failure.items_found == 0
    assert failure.source == URL_A
    assert failure.error == "connection reset"
    assert list(after.scraping_history)[1:] == list(before.scraping_history)


@pytest.mark.parametrize("url", ["", "   ", "not a url", "ftp://example.com/menu"])
def test_refresh_rejects_missing_or_invalid_url(url: str) -> None:
    fetcher = CountingFetcher()
    service = build_service(fetcher)

    with pytest.raises(MenuValidationError):
        service.refresh("t1", url)
    assert fetcher.calls == 0


def test_scenario_chain_fetch_cache_fail_merge() -> None:
    fetcher = CountingFetcher()
    clock = FakeClock()
    service = build_service(fetcher, clock=clock)

    # A: first fetch
    a = service.refresh("t1", URL_A)
    assert len(a.record.items) == 5
    assert [entry.success for entry in a.record.scraping_history] == [True]

    # B: cached within the hour
    clock.advance(minutes=30)
    b = service.refresh("t1", URL_A)
    assert b.cached is True
    assert fetcher.calls == 1

    # C: forced refresh fails, old data still served but stale at a 1h threshold
    clock.advance(hours=2)
    fetcher.fail_with = "timeout"
    c = service.refresh("t1", URL_A, force_refresh=True)
    assert isinstance(c, ScrapeFailure)
    history = service.get("t1").record.scraping_history
    assert [entry.success for entry in history] == [False, True]
    assert history[1].items_found == 5
    snapshot = service.get("t1", max_age_hours=1)
    assert snapshot.is_stale is True
    assert len(snapshot.record.items) == 5

    # D: manual merge wins over staleness
    d = service.merge("t1", {"restaurant_name": "New Name"})
    assert d.record.restaurant_name == "New Name"
    assert d.record.data_source is DataSource.MANUAL
    assert d.is_stale is False
    assert d.record.items == snapshot.record.items
    assert d.record.scraping_history == history
    assert d.record.last_scraped == snapshot.record.last_scraped


def test_concurrent_refreshes_for_one_tenant_issue_a_single_fetch() -> None:
    fetcher = BlockingFetcher()
    single_flight = TenantSingleFlight()
    metrics = InMemoryRefreshMetrics()
    coordinator = ScrapeCoordinator(
        InMemoryMenuRepository(),
        fetcher,
        single_flight=single_flight,
        clock=FakeClock(),
        metrics=metrics,
    )
    results = []

    def _refresh() -> None:
        results.append(coordinator.refresh("t1", URL_A))

    leader = threading.Thread(target=_refresh)
    leader.start()
    assert fetcher.entered.wait(timeout=5)

    followers = [threading.Thread(target=_refresh) for _ in range(3)]
    for thread in followers:
        thread.start()
    deadline = time.monotonic() + 5
    while single_flight.waiting("t1") < 3 and time.monotonic() < deadline:
        time.sleep(0.01)

    fetcher.release.set()
    for thread in [leader, *followers]:
        thread.join(timeout=5)
    coordinator.close()

    assert fetcher.calls == 1
    assert len(results) == 4
    assert sum(1 for result in results if result.coalesced) == 3
    assert len({id(result.record) for result in results}) == 1
    assert metrics.snapshot()["t1"]["coalesced_waiters"] == 3
    assert metrics.snapshot()["t1"]["fetches"] == 1


def test_caller_delayed_after_stale_read_reuses_finished_refresh() -> None:
    class GatedRepository(InMemoryMenuRepository):
        """Pauses one thread right after its first read."""

        def __init__(self) -> None:
            super().__init__()
            self.gated_thread: threading.Thread | None = None
            self.first_read_done = Event()
            self.resume = Event()

        def get(self, tenant_id: str):
            record = super().get(tenant_id)
            if threading.current_thread() is self.gated_thread and not self.first_read_done.is_set():
                self.first_read_done.set()
                self.resume.wait(timeout=5)
            return record

    fetcher = CountingFetcher()
    repository = GatedRepository()
    coordinator = ScrapeCoordinator(repository, fetcher, clock=FakeClock(), metrics=InMemoryRefreshMetrics())
    results = []

    late = threading.Thread(target=lambda: results.append(coordinator.refresh("t1", URL_A)))
    repository.gated_thread = late
    late.start()
    assert repository.first_read_done.wait(timeout=5)

    first = coordinator.refresh("t1", URL_A)
    repository.resume.set()
    late.join(timeout=5)
    coordinator.close()

    assert first.cached is False
    assert fetcher.calls == 1
    assert len(results) == 1
    assert results[0].cached is True
    assert results[0].record == first.record
    assert len(repository.get("t1").scraping_history) == 1


def test_refreshes_for_different_tenants_do_not_block_each_other() -> None:
    slow_entered = Event()
    slow_release = Event()
    counting = CountingFetcher()

    class PerTenantFetcher:
        name = "per-tenant"

        def fetch(self, url: str):
            if "slow" in url:
                slow_entered.set()
                slow_release.wait(timeout=5)
            return counting.fetch(url)

    coordinator = ScrapeCoordinator(
        InMemoryMenuRepository(),
        PerTenantFetcher(),
        clock=FakeClock(),
        metrics=InMemoryRefreshMetrics(),
    )
    thread = threading.Thread(target=coordinator.refresh, args=("slow", "https://slow.example.com/menu"))
    thread.start()
    assert slow_entered.wait(timeout=5)

    outcome = coordinator.refresh("fast", URL_A)
    fast_calls_while_slow_blocked = counting.calls

    slow_release.set()
    thread.join(timeout=5)
    coordinator.close()

    assert isinstance(outcome, RefreshResult)
    assert outcome.record.tenant_id == "fast"
    assert fast_calls_while_slow_blocked == 1


def test_hung_fetch_is_cut_off_by_timeout() -> None:
    release = Event()

    class HungFetcher:
        name = "hung"

        def fetch(self, url: str):
            release.wait(timeout=5)
            raise AssertionError("should have timed out first")

    coordinator = ScrapeCoordinator(
        InMemoryMenuRepository(),
        HungFetcher(),
        clock=FakeClock(),
        fetch_timeout_seconds=0.1,
        metrics=InMemoryRefreshMetrics(),
    )

    started = time.monotonic()
    outcome = coordinator.refresh("t1", URL_A)
    elapsed = time.monotonic() - started
    release.set()
    coordinator.close()

    assert isinstance(outcome, ScrapeFailure)
    assert "timed out" in outcome.error
    assert outcome.fallback_available is False
    assert elapsed < 2


def test_unexpected_fetcher_exception_becomes_fetch_failure() -> None:
    class BrokenFetcher:
        name = "broken"

        def fetch(self, url: str):
            raise KeyError("menu")

    service = build_service(BrokenFetcher())

    outcome = service.refresh("t1", URL_A)

    assert isinstance(outcome, ScrapeFailure)
    assert "Unexpected fetch error" in outcome.error
