from __future__ import annotations

import json
import logging

import httpx

from menu_cache.core.config import MENU_FETCH_API_KEY, MENU_FETCH_ENDPOINT, MENU_FETCH_TIMEOUT_SECONDS
from menu_cache.exceptions import MenuFetchError
from menu_cache.fetchers.base import MenuFetcher, parse_raw_menu
from menu_cache.fetchers.schema import RawMenu

logger = logging.getLogger(__name__)


class HttpMenuFetcher(MenuFetcher):
    """Delegates scraping to the external scraping service over HTTP."""

    name = "http"

    def __init__(
        self,
        *,
        endpoint: str = MENU_FETCH_ENDPOINT,
        timeout_seconds: float = MENU_FETCH_TIMEOUT_SECONDS,
        api_key: str = MENU_FETCH_API_KEY,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout_seconds = timeout_seconds
        self.api_key = api_key
        self._transport = transport

    def fetch(self, url: str) -> RawMenu:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = client.post(self.endpoint, headers=headers, json={"url": url})
        except httpx.TimeoutException as exc:
            raise MenuFetchError(f"Scraping service timed out after {self.timeout_seconds}s") from exc
        except httpx.HTTPError as exc:
            raise MenuFetchError(f"Scraping service unreachable: {exc}") from exc

        if not 200 <= response.status_code < 300:
            logger.warning(
                "scraping service returned error",
                extra={"url": url, "status_code": response.status_code},
            )
            raise MenuFetchError(f"Scraping service error {response.status_code}: {response.text[:200]}")

        try:
            payload = response.json()
        except json.JSONDecodeError as exc:
            raise MenuFetchError("Scraping service returned invalid JSON") from exc

        # Some deployments wrap the result as {"success": ..., "scrapedData": {...}}
        if isinstance(payload, dict) and isinstance(payload.get("scrapedData"), dict):
            if payload.get("success") is False:
                raise MenuFetchError(str(payload.get("error") or "Scraping service reported failure"))
            payload = payload["scrapedData"]

        return parse_raw_menu(payload)
