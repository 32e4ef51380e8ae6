from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Iterator, Sequence

from menu_cache.core.config import SCRAPING_HISTORY_LIMIT
from menu_cache.services.staleness import ensure_aware


@dataclass(frozen=True)
class AttemptRecord:
    timestamp: datetime
    source: str
    success: bool
    items_found: int
    processing_time_ms: int
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "timestamp": ensure_aware(self.timestamp).isoformat(),
            "source": self.source,
            "success": self.success,
            "itemsFound": self.items_found,
            "processingTimeMs": self.processing_time_ms,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AttemptRecord":
        return cls(
            timestamp=ensure_aware(datetime.fromisoformat(str(data["timestamp"]))),
            source=str(data.get("source") or "unknown"),
            success=bool(data.get("success")),
            items_found=int(data.get("itemsFound") or 0),
            processing_time_ms=int(data.get("processingTimeMs") or 0),
            error=data.get("error"),
        )


def prepend(
    history: Sequence[AttemptRecord],
    entry: AttemptRecord,
    cap: int = SCRAPING_HISTORY_LIMIT,
) -> tuple[AttemptRecord, ...]:
    """Return a new most-recent-first history with `entry` first and at most `cap` entries."""
    if cap < 1:
        raise ValueError("History capacity must be at least 1")
    return (entry, *tuple(history)[: cap - 1])


class ScrapingHistory:
    """Fixed-capacity, most-recent-first attempt log.

    Instances are immutable; `add` returns a new history truncated to capacity.
    """

    __slots__ = ("_entries", "capacity")

    def __init__(self, entries: Iterable[AttemptRecord] = (), capacity: int = SCRAPING_HISTORY_LIMIT) -> None:
        self.capacity = capacity
        self._entries = tuple(entries)[:capacity]

    def add(self, entry: AttemptRecord) -> "ScrapingHistory":
        return ScrapingHistory(prepend(self._entries, entry, self.capacity), self.capacity)

    @property
    def latest(self) -> AttemptRecord | None:
        return self._entries[0] if self._entries else None

    def __iter__(self) -> Iterator[AttemptRecord]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> AttemptRecord:
        return self._entries[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ScrapingHistory):
            return self._entries == other._entries
        if isinstance(other, (tuple, list)):
            return self._entries == tuple(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"ScrapingHistory(len={len(self._entries)}, capacity={self.capacity})"

    def to_list(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]

    @classmethod
    def from_list(cls, data: Iterable[dict[str, Any]] | None, capacity: int = SCRAPING_HISTORY_LIMIT) -> "ScrapingHistory":
        return cls((AttemptRecord.from_dict(item) for item in (data or [])), capacity)
