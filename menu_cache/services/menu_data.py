from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping

from menu_cache.core.config import MENU_STALE_AFTER_HOURS
from menu_cache.exceptions import PersistenceError, TenantMenuNotFoundError
from menu_cache.services.manual_override import ManualOverrideMerger
from menu_cache.services.menu_records import MenuRecord
from menu_cache.services.menu_repository import MenuRepository
from menu_cache.services.scrape_coordinator import RefreshResult, ScrapeCoordinator, ScrapeFailure
from menu_cache.services.staleness import describe_age, ensure_aware, is_stale, utcnow
from menu_cache.services.submissions import SubmissionLog, SubmissionRecord, new_manual_submission
from menu_cache.services.tenant_locks import TenantLockRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MenuSnapshot:
    """A stored record plus the read-time staleness verdict; `is_stale` is never persisted."""

    record: MenuRecord
    is_stale: bool
    metadata: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        payload = self.record.to_dict()
        payload["isStale"] = self.is_stale
        return payload


@dataclass(frozen=True)
class ManualCreation:
    snapshot: MenuSnapshot
    submission: SubmissionRecord


class MenuDataService:
    """Entry point used by the HTTP layer; routes each operation to its owner."""

    def __init__(
        self,
        repository: MenuRepository,
        coordinator: ScrapeCoordinator,
        merger: ManualOverrideMerger,
        submissions: SubmissionLog,
        *,
        locks: TenantLockRegistry | None = None,
        clock: Callable[[], datetime] = utcnow,
        default_max_age_hours: float = MENU_STALE_AFTER_HOURS,
    ) -> None:
        self.repository = repository
        self.coordinator = coordinator
        self.merger = merger
        self.submissions = submissions
        self._locks = locks or TenantLockRegistry()
        self._clock = clock
        self.default_max_age_hours = default_max_age_hours

    def get(self, tenant_id: str, max_age_hours: float | None = None) -> MenuSnapshot:
        record = self.repository.get(tenant_id)
        if record is None:
            raise TenantMenuNotFoundError(tenant_id)
        threshold = self.default_max_age_hours if max_age_hours is None else max_age_hours
        now = self._clock()
        return MenuSnapshot(
            record=record,
            is_stale=is_stale(record.last_scraped, threshold, now),
            metadata=self._metadata(record, now),
        )

    def refresh(self, tenant_id: str, url: str, force_refresh: bool = False) -> RefreshResult | ScrapeFailure:
        return self.coordinator.refresh(tenant_id, url, force_refresh=force_refresh)

    def merge(self, tenant_id: str, partial_fields: Mapping[str, Any]) -> MenuSnapshot:
        record = self.merger.merge(tenant_id, partial_fields)
        # Manual edits are trusted as current whatever the age of the last fetch.
        return MenuSnapshot(record=record, is_stale=False, metadata=self._metadata(record, self._clock()))

    def create(self, tenant_id: str, items: Iterable[Mapping[str, Any]]) -> ManualCreation:
        record = self.merger.create(tenant_id, items)
        submission = new_manual_submission(tenant_id, len(record.items), clock=self._clock)
        try:
            self.submissions.add(submission)
        except PersistenceError:
            # A manual record never outlives its failed submission write.
            with self._locks.hold(tenant_id):
                self.repository.delete(tenant_id)
            logger.exception("manual submission not recorded, menu rolled back", extra={"tenant_id": tenant_id})
            raise
        logger.info(
            "manual submission recorded",
            extra={"tenant_id": tenant_id, "items_found": submission.items_added},
        )
        snapshot = MenuSnapshot(record=record, is_stale=False, metadata=self._metadata(record, self._clock()))
        return ManualCreation(snapshot=snapshot, submission=submission)

    def delete(self, tenant_id: str) -> bool:
        with self._locks.hold(tenant_id):
            deleted = self.repository.delete(tenant_id)
        if deleted:
            logger.info("menu data deleted", extra={"tenant_id": tenant_id})
        return deleted

    def get_submission(self, submission_id: str) -> SubmissionRecord | None:
        return self.submissions.get(submission_id)

    def list_submissions(self, tenant_id: str) -> list[SubmissionRecord]:
        return self.submissions.list_for_tenant(tenant_id)

    def close(self) -> None:
        self.coordinator.close()

    @staticmethod
    def _metadata(record: MenuRecord, now: datetime) -> dict[str, Any]:
        return {
            "item_count": len(record.items),
            "last_scraped": ensure_aware(record.last_scraped).isoformat() if record.last_scraped else None,
            "age_description": describe_age(record.last_scraped, now),
            "source": record.source,
            "history_length": len(record.scraping_history),
        }
