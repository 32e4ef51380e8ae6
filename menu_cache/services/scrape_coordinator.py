from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable
from urllib.parse import urlparse

from menu_cache.core.config import (
    MENU_CACHE_HIT_WINDOW_HOURS,
    MENU_FETCH_MAX_WORKERS,
    MENU_FETCH_TIMEOUT_SECONDS,
    SCRAPING_HISTORY_LIMIT,
)
from menu_cache.core.metrics import InMemoryRefreshMetrics, refresh_metrics
from menu_cache.exceptions import MenuFetchError, MenuValidationError
from menu_cache.fetchers.base import MenuFetcher
from menu_cache.fetchers.schema import RawMenu
from menu_cache.services.menu_records import (
    DEFAULT_SCRAPED_CATEGORY,
    DataSource,
    MenuItem,
    MenuRecord,
    build_scraped_ai_context,
)
from menu_cache.services.menu_repository import MenuRepository
from menu_cache.services.provenance import AttemptRecord, ScrapingHistory
from menu_cache.services.staleness import is_stale, utcnow
from menu_cache.services.tenant_locks import TenantLockRegistry, TenantSingleFlight

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshResult:
    record: MenuRecord
    cached: bool
    coalesced: bool = False
    processing_time_ms: int = 0


@dataclass(frozen=True)
class ScrapeFailure:
    tenant_id: str
    url: str
    error: str
    fallback_available: bool
    fallback_record: MenuRecord | None = None
    coalesced: bool = False
    processing_time_ms: int = 0


def validate_fetch_url(url: str | None) -> str:
    value = (url or "").strip()
    if not value:
        raise MenuValidationError("URL is required")
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise MenuValidationError("Invalid URL format")
    return value


class ScrapeCoordinator:
    """Decides reuse vs refetch for a tenant and records every fetch attempt."""

    def __init__(
        self,
        repository: MenuRepository,
        fetcher: MenuFetcher,
        *,
        locks: TenantLockRegistry | None = None,
        single_flight: TenantSingleFlight | None = None,
        clock: Callable[[], datetime] = utcnow,
        fetch_timeout_seconds: float = MENU_FETCH_TIMEOUT_SECONDS,
        cache_hit_window_hours: float = MENU_CACHE_HIT_WINDOW_HOURS,
        history_limit: int = SCRAPING_HISTORY_LIMIT,
        max_workers: int = MENU_FETCH_MAX_WORKERS,
        metrics: InMemoryRefreshMetrics = refresh_metrics,
    ) -> None:
        self._repository = repository
        self._fetcher = fetcher
        self._locks = locks or TenantLockRegistry()
        self._single_flight = single_flight or TenantSingleFlight()
        self._clock = clock
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.cache_hit_window_hours = cache_hit_window_hours
        self.history_limit = history_limit
        self._metrics = metrics
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="menu-fetch")

    def refresh(self, tenant_id: str, url: str, force_refresh: bool = False) -> RefreshResult | ScrapeFailure:
        url = validate_fetch_url(url)
        if not force_refresh:
            cached = self._cache_hit(tenant_id, url)
            if cached is not None:
                return cached

        outcome, shared = self._single_flight.run(
            tenant_id, lambda: self._fetch_and_store(tenant_id, url, force_refresh)
        )
        if shared:
            self._metrics.record_coalesced(tenant_id)
            logger.info("joined in-flight refresh", extra={"tenant_id": tenant_id, "url": url})
            outcome = replace(outcome, coalesced=True)
        return outcome

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _cache_hit(self, tenant_id: str, url: str) -> RefreshResult | None:
        existing = self._repository.get(tenant_id)
        if existing is None or is_stale(existing.last_scraped, self.cache_hit_window_hours, self._clock()):
            return None
        logger.info(
            "menu cache hit",
            extra={"tenant_id": tenant_id, "url": url, "cached": True, "items_found": len(existing.items)},
        )
        self._metrics.record_cache_hit(tenant_id)
        return RefreshResult(record=existing, cached=True)

    def _fetch_and_store(self, tenant_id: str, url: str, force_refresh: bool = False) -> RefreshResult | ScrapeFailure:
        # A refresh that finished between our first read and taking the lead already did the work.
        if not force_refresh:
            cached = self._cache_hit(tenant_id, url)
            if cached is not None:
                return cached

        start = time.perf_counter()
        try:
            raw = self._fetch_with_timeout(url)
        except MenuFetchError as exc:
            elapsed_ms = _elapsed_ms(start)
            self._metrics.record_fetch(tenant_id, duration_ms=elapsed_ms, success=False)
            return self._record_failure(tenant_id, url, str(exc), elapsed_ms)

        elapsed_ms = _elapsed_ms(start)
        self._metrics.record_fetch(tenant_id, duration_ms=elapsed_ms, success=True)

        with self._locks.hold(tenant_id):
            # Reload under the lock so history written meanwhile (e.g. a manual edit) is kept.
            existing = self._repository.get(tenant_id)
            record = self._build_scraped_record(tenant_id, url, raw, existing, elapsed_ms)
            self._repository.put(tenant_id, record)

        logger.info(
            "menu refreshed",
            extra={
                "tenant_id": tenant_id,
                "url": url,
                "cached": False,
                "items_found": len(record.items),
                "history_length": len(record.scraping_history),
                "duration_ms": elapsed_ms,
            },
        )
        return RefreshResult(record=record, cached=False, processing_time_ms=elapsed_ms)

    def _fetch_with_timeout(self, url: str) -> RawMenu:
        future = self._executor.submit(self._fetcher.fetch, url)
        try:
            return future.result(timeout=self.fetch_timeout_seconds)
        except FutureTimeoutError as exc:
            future.cancel()
            raise MenuFetchError(f"Menu fetch timed out after {self.fetch_timeout_seconds}s") from exc
        except MenuFetchError:
            raise
        except Exception as exc:
            logger.exception("fetch collaborator raised unexpectedly", extra={"url": url})
            raise MenuFetchError(f"Unexpected fetch error: {exc}") from exc

    def _record_failure(self, tenant_id: str, url: str, error: str, elapsed_ms: int) -> ScrapeFailure:
        with self._locks.hold(tenant_id):
            existing = self._repository.get(tenant_id)
            if existing is None:
                logger.warning(
                    "menu fetch failed without fallback",
                    extra={"tenant_id": tenant_id, "url": url, "error": error, "fallback_available": False},
                )
                return ScrapeFailure(
                    tenant_id=tenant_id,
                    url=url,
                    error=error,
                    fallback_available=False,
                    processing_time_ms=elapsed_ms,
                )

            attempt = AttemptRecord(
                timestamp=self._clock(),
                source=url,
                success=False,
                items_found=0,
                processing_time_ms=elapsed_ms,
                error=error,
            )
            history = ScrapingHistory(existing.scraping_history, self.history_limit).add(attempt)
            updated = replace(existing, scraping_history=history)
            self._repository.put(tenant_id, updated)

        self._metrics.record_fallback(tenant_id)
        logger.warning(
            "menu fetch failed; serving last known good data",
            extra={
                "tenant_id": tenant_id,
                "url": url,
                "error": error,
                "fallback_available": True,
                "history_length": len(history),
            },
        )
        return ScrapeFailure(
            tenant_id=tenant_id,
            url=url,
            error=error,
            fallback_available=True,
            fallback_record=updated,
            processing_time_ms=elapsed_ms,
        )

    def _build_scraped_record(
        self,
        tenant_id: str,
        url: str,
        raw: RawMenu,
        existing: MenuRecord | None,
        elapsed_ms: int,
    ) -> MenuRecord:
        now = self._clock()
        items = tuple(
            MenuItem.from_dict(item.model_dump(), default_category=DEFAULT_SCRAPED_CATEGORY) for item in raw.items
        )
        restaurant_name = raw.restaurant_name.strip() or urlparse(url).netloc
        attempt = AttemptRecord(
            timestamp=now,
            source=url,
            success=True,
            items_found=len(items),
            processing_time_ms=elapsed_ms,
        )
        previous = existing.scraping_history if existing is not None else ()
        return MenuRecord(
            tenant_id=tenant_id,
            restaurant_name=restaurant_name,
            cuisine=raw.cuisine or "",
            location=raw.location or "",
            phone=raw.phone or "",
            hours=raw.hours or "",
            website=raw.website or url,
            items=items,
            special_offers=tuple(raw.special_offers),
            ai_context=build_scraped_ai_context(restaurant_name, items, raw.ai_context_hint),
            source=url,
            data_source=DataSource.SCRAPED,
            last_scraped=now,
            last_updated=now,
            scraping_history=ScrapingHistory(previous, self.history_limit).add(attempt),
        )


def _elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000))
