from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from threading import Lock
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from menu_cache.exceptions import PersistenceError
from menu_cache.models.tenant_menu_data import TenantMenuData
from menu_cache.services.menu_records import DataSource, MenuItem, MenuRecord
from menu_cache.services.provenance import ScrapingHistory
from menu_cache.services.staleness import ensure_aware

logger = logging.getLogger(__name__)


class MenuRepository(ABC):
    """Associative store of one MenuRecord per tenant. No business logic lives here."""

    @abstractmethod
    def get(self, tenant_id: str) -> MenuRecord | None:
        """Returns the stored record, or None when the tenant has none."""

    @abstractmethod
    def put(self, tenant_id: str, record: MenuRecord) -> None:
        """Full overwrite of the tenant's record."""

    @abstractmethod
    def delete(self, tenant_id: str) -> bool:
        """Removes the record and its history; True if something was removed."""


class InMemoryMenuRepository(MenuRepository):
    def __init__(self) -> None:
        self._records: dict[str, MenuRecord] = {}
        self._lock = Lock()

    def get(self, tenant_id: str) -> MenuRecord | None:
        with self._lock:
            return self._records.get(tenant_id)

    def put(self, tenant_id: str, record: MenuRecord) -> None:
        with self._lock:
            self._records[tenant_id] = record

    def delete(self, tenant_id: str) -> bool:
        with self._lock:
            return self._records.pop(tenant_id, None) is not None


class SqlAlchemyMenuRepository(MenuRepository):
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get(self, tenant_id: str) -> MenuRecord | None:
        db = self._session_factory()
        try:
            row = db.query(TenantMenuData).filter(TenantMenuData.tenant_id == tenant_id).first()
            return _row_to_record(row) if row else None
        except SQLAlchemyError as exc:
            logger.exception("menu repository read failed", extra={"tenant_id": tenant_id})
            raise PersistenceError(f"Failed to load menu data for tenant {tenant_id}") from exc
        finally:
            db.close()

    def put(self, tenant_id: str, record: MenuRecord) -> None:
        db = self._session_factory()
        try:
            row = db.query(TenantMenuData).filter(TenantMenuData.tenant_id == tenant_id).first()
            if row is None:
                row = TenantMenuData(tenant_id=tenant_id)
                db.add(row)
            _apply_record(row, record)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("menu repository write failed", extra={"tenant_id": tenant_id})
            raise PersistenceError(f"Failed to store menu data for tenant {tenant_id}") from exc
        finally:
            db.close()

    def delete(self, tenant_id: str) -> bool:
        db = self._session_factory()
        try:
            deleted = (
                db.query(TenantMenuData)
                .filter(TenantMenuData.tenant_id == tenant_id)
                .delete(synchronize_session=False)
            )
            db.commit()
            return deleted > 0
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("menu repository delete failed", extra={"tenant_id": tenant_id})
            raise PersistenceError(f"Failed to delete menu data for tenant {tenant_id}") from exc
        finally:
            db.close()


def _apply_record(row: TenantMenuData, record: MenuRecord) -> None:
    row.restaurant_name = record.restaurant_name
    row.cuisine = record.cuisine
    row.location = record.location
    row.phone = record.phone
    row.hours = record.hours
    row.website = record.website
    row.items_json = json.dumps([item.to_dict() for item in record.items], ensure_ascii=False)
    row.special_offers_json = json.dumps(list(record.special_offers), ensure_ascii=False)
    row.ai_context = record.ai_context
    row.source = record.source
    row.data_source = record.data_source.value
    row.last_scraped = ensure_aware(record.last_scraped) if record.last_scraped else None
    row.last_updated = ensure_aware(record.last_updated)
    row.scraping_history_json = json.dumps(record.scraping_history.to_list(), ensure_ascii=False)


def _row_to_record(row: TenantMenuData) -> MenuRecord:
    items = tuple(MenuItem.from_dict(item) for item in json.loads(row.items_json or "[]"))
    return MenuRecord(
        tenant_id=row.tenant_id,
        restaurant_name=row.restaurant_name,
        cuisine=row.cuisine or "",
        location=row.location or "",
        phone=row.phone or "",
        hours=row.hours or "",
        website=row.website or "",
        items=items,
        special_offers=tuple(str(offer) for offer in json.loads(row.special_offers_json or "[]")),
        ai_context=row.ai_context or "",
        source=row.source,
        data_source=DataSource(row.data_source),
        last_scraped=ensure_aware(row.last_scraped) if row.last_scraped else None,
        last_updated=ensure_aware(row.last_updated),
        scraping_history=ScrapingHistory.from_list(json.loads(row.scraping_history_json or "[]")),
    )
