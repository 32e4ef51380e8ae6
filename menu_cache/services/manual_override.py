from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping

from menu_cache.core.config import SCRAPING_HISTORY_LIMIT
from menu_cache.exceptions import MenuAlreadyExistsError, MenuValidationError, TenantMenuNotFoundError
from menu_cache.services.menu_records import (
    DEFAULT_MANUAL_CATEGORY,
    MANUAL_ENTRY_SOURCE,
    MERGEABLE_COLLECTION_FIELDS,
    MERGEABLE_SCALAR_FIELDS,
    DataSource,
    MenuItem,
    MenuRecord,
    build_manual_ai_context,
    parse_items,
)
from menu_cache.services.menu_repository import MenuRepository
from menu_cache.services.provenance import AttemptRecord, ScrapingHistory
from menu_cache.services.staleness import utcnow
from menu_cache.services.tenant_locks import TenantLockRegistry

logger = logging.getLogger(__name__)


class ManualOverrideMerger:
    """Applies trusted manual edits; a manual edit always wins over automated staleness."""

    def __init__(
        self,
        repository: MenuRepository,
        *,
        locks: TenantLockRegistry | None = None,
        clock: Callable[[], datetime] = utcnow,
        history_limit: int = SCRAPING_HISTORY_LIMIT,
    ) -> None:
        self._repository = repository
        self._locks = locks or TenantLockRegistry()
        self._clock = clock
        self.history_limit = history_limit

    def merge(self, tenant_id: str, partial_fields: Mapping[str, Any]) -> MenuRecord:
        """Shallow merge; `items` and `special_offers` are replaced wholesale when present."""
        unknown = set(partial_fields) - MERGEABLE_SCALAR_FIELDS - MERGEABLE_COLLECTION_FIELDS
        if unknown:
            raise MenuValidationError(f"Fields cannot be updated manually: {', '.join(sorted(unknown))}")

        with self._locks.hold(tenant_id):
            existing = self._repository.get(tenant_id)
            if existing is None:
                raise TenantMenuNotFoundError(tenant_id)

            changes: dict[str, Any] = {}
            for name in MERGEABLE_SCALAR_FIELDS & set(partial_fields):
                value = partial_fields[name]
                if value is None:
                    continue
                changes[name] = str(value)

            if partial_fields.get("items") is not None:
                items = _coerce_items(partial_fields["items"], default_category=DEFAULT_MANUAL_CATEGORY)
                changes["items"] = items
                if "ai_context" not in changes:
                    changes["ai_context"] = build_manual_ai_context(items) if items else ""

            if partial_fields.get("special_offers") is not None:
                offers = partial_fields["special_offers"]
                if not isinstance(offers, (list, tuple)):
                    raise MenuValidationError("special_offers must be a list of strings")
                changes["special_offers"] = tuple(str(offer).strip() for offer in offers if str(offer).strip())

            updated = replace(
                existing,
                **changes,
                data_source=DataSource.MANUAL,
                last_updated=self._clock(),
            )
            self._repository.put(tenant_id, updated)

        logger.info(
            "manual menu update applied",
            extra={"tenant_id": tenant_id, "items_found": len(updated.items)},
        )
        return updated

    def create(self, tenant_id: str, items: Iterable[Mapping[str, Any] | MenuItem]) -> MenuRecord:
        valid_items = _coerce_items(items, default_category=DEFAULT_MANUAL_CATEGORY)
        if not valid_items:
            raise MenuValidationError("No valid menu items provided")

        with self._locks.hold(tenant_id):
            if self._repository.get(tenant_id) is not None:
                raise MenuAlreadyExistsError(tenant_id)

            now = self._clock()
            attempt = AttemptRecord(
                timestamp=now,
                source=MANUAL_ENTRY_SOURCE,
                success=True,
                items_found=len(valid_items),
                processing_time_ms=0,
            )
            record = MenuRecord(
                tenant_id=tenant_id,
                restaurant_name=f"Restaurant {tenant_id}",
                cuisine="Various",
                items=valid_items,
                ai_context=build_manual_ai_context(valid_items),
                source=MANUAL_ENTRY_SOURCE,
                data_source=DataSource.MANUAL,
                last_scraped=now,
                last_updated=now,
                scraping_history=ScrapingHistory((attempt,), self.history_limit),
            )
            self._repository.put(tenant_id, record)

        logger.info(
            "manual menu created",
            extra={"tenant_id": tenant_id, "items_found": len(valid_items)},
        )
        return record


def _coerce_items(raw_items: Iterable[Mapping[str, Any] | MenuItem], *, default_category: str) -> tuple[MenuItem, ...]:
    """Parses manual items, dropping the ones without a name."""
    if not isinstance(raw_items, (list, tuple)):
        raise MenuValidationError("items must be a list of menu items")
    items: list[MenuItem] = []
    mappings: list[Mapping[str, Any]] = []
    for raw in raw_items:
        if isinstance(raw, MenuItem):
            items.extend(parse_items(mappings, default_category=default_category))
            mappings = []
            items.append(raw)
        elif isinstance(raw, Mapping):
            mappings.append(raw)
        else:
            raise MenuValidationError("Each menu item must be an object")
    items.extend(parse_items(mappings, default_category=default_category))
    return tuple(item for item in items if item.name)
