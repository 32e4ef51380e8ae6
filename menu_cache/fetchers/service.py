from __future__ import annotations

import logging

from menu_cache.core.config import MENU_FETCH_PROVIDER
from menu_cache.fetchers.base import MenuFetcher
from menu_cache.fetchers.http_provider import HttpMenuFetcher
from menu_cache.fetchers.mock_provider import MockMenuFetcher

logger = logging.getLogger(__name__)


def get_fetcher(provider: str | None = None) -> MenuFetcher:
    selected = (provider or MENU_FETCH_PROVIDER or "http").strip().lower()
    if selected == "mock":
        return MockMenuFetcher()
    if selected != "http":
        logger.warning("unknown fetch provider %s; falling back to http", selected)
    return HttpMenuFetcher()
