# menu_cache/deps.py
from __future__ import annotations

import logging
from threading import Lock

from menu_cache.core.config import MENU_REPOSITORY
from menu_cache.core.database import SessionLocal
from menu_cache.fetchers.service import get_fetcher
from menu_cache.services.manual_override import ManualOverrideMerger
from menu_cache.services.menu_data import MenuDataService
from menu_cache.services.menu_repository import InMemoryMenuRepository, MenuRepository, SqlAlchemyMenuRepository
from menu_cache.services.scrape_coordinator import ScrapeCoordinator
from menu_cache.services.submissions import InMemorySubmissionLog, SqlAlchemySubmissionLog, SubmissionLog
from menu_cache.services.tenant_locks import TenantLockRegistry

logger = logging.getLogger(__name__)

_service: MenuDataService | None = None
_service_lock = Lock()


def build_menu_service(backend: str | None = None, fetch_provider: str | None = None) -> MenuDataService:
    selected = (backend or MENU_REPOSITORY or "sql").strip().lower()
    repository: MenuRepository
    submissions: SubmissionLog
    if selected == "memory":
        repository = InMemoryMenuRepository()
        submissions = InMemorySubmissionLog()
    else:
        if selected != "sql":
            logger.warning("unknown menu repository %s; falling back to sql", selected)
        repository = SqlAlchemyMenuRepository(SessionLocal)
        submissions = SqlAlchemySubmissionLog(SessionLocal)

    # Coordinator, merger and delete share one registry so a tenant's writes never interleave.
    locks = TenantLockRegistry()
    coordinator = ScrapeCoordinator(repository, get_fetcher(fetch_provider), locks=locks)
    merger = ManualOverrideMerger(repository, locks=locks)
    return MenuDataService(repository, coordinator, merger, submissions, locks=locks)


def get_menu_service() -> MenuDataService:
    """FastAPI dependency; one service per process."""
    global _service
    with _service_lock:
        if _service is None:
            _service = build_menu_service()
        return _service


def shutdown_menu_service() -> None:
    global _service
    with _service_lock:
        if _service is not None:
            _service.close()
            _service = None
