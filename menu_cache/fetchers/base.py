from __future__ import annotations

from typing import Any, Protocol

from pydantic import ValidationError

from menu_cache.exceptions import MenuFetchError
from menu_cache.fetchers.schema import RawMenu


class MenuFetcher(Protocol):
    """External collaborator that owns all site-specific fetching and parsing."""

    name: str

    def fetch(self, url: str) -> RawMenu:
        """Returns the parsed menu or raises MenuFetchError."""
        ...


def parse_raw_menu(payload: Any) -> RawMenu:
    if not isinstance(payload, dict):
        raise MenuFetchError("Fetch collaborator returned a non-object payload")
    try:
        return RawMenu.model_validate(payload)
    except ValidationError as exc:
        raise MenuFetchError(f"Fetch collaborator returned unusable data: {exc.error_count()} invalid fields") from exc
