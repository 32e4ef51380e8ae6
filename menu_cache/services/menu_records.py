from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping

from menu_cache.services.provenance import ScrapingHistory
from menu_cache.services.staleness import ensure_aware

DEFAULT_SCRAPED_CATEGORY = "Menu Item"
DEFAULT_MANUAL_CATEGORY = "Main Course"
MANUAL_ENTRY_SOURCE = "manual-entry"


class DataSource(str, Enum):
    SCRAPED = "scraped"
    MANUAL = "manual"


@dataclass(frozen=True)
class MenuItem:
    name: str
    description: str = ""
    price: str = ""
    category: str = DEFAULT_SCRAPED_CATEGORY
    allergens: frozenset[str] = field(default_factory=frozenset)
    availability: bool = True
    is_popular: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "category": self.category,
            "allergens": sorted(self.allergens),
            "availability": self.availability,
            "isPopular": self.is_popular,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, default_category: str = DEFAULT_SCRAPED_CATEGORY) -> "MenuItem":
        return cls(
            name=str(data.get("name") or "").strip(),
            description=str(data.get("description") or "").strip(),
            price=format_price(data.get("price")),
            category=str(data.get("category") or "").strip() or default_category,
            allergens=frozenset(str(a).strip() for a in (data.get("allergens") or []) if str(a).strip()),
            availability=data.get("availability") is not False,
            is_popular=_popular_flag(data),
        )


def _popular_flag(data: Mapping[str, Any]) -> bool:
    value = data.get("isPopular", data.get("is_popular"))
    return value is True


def format_price(value: Any) -> str:
    """Prices are stored as currency-formatted strings."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return f"${value:.2f}"
    return str(value).strip()


@dataclass(frozen=True)
class MenuRecord:
    tenant_id: str
    restaurant_name: str
    items: tuple[MenuItem, ...]
    source: str
    data_source: DataSource
    last_scraped: datetime | None
    last_updated: datetime
    scraping_history: ScrapingHistory = field(default_factory=ScrapingHistory)
    cuisine: str = ""
    location: str = ""
    phone: str = ""
    hours: str = ""
    website: str = ""
    special_offers: tuple[str, ...] = ()
    ai_context: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenantId": self.tenant_id,
            "restaurantName": self.restaurant_name,
            "cuisine": self.cuisine,
            "location": self.location,
            "phone": self.phone,
            "hours": self.hours,
            "website": self.website,
            "items": [item.to_dict() for item in self.items],
            "specialOffers": list(self.special_offers),
            "aiContext": self.ai_context,
            "source": self.source,
            "dataSource": self.data_source.value,
            "lastScraped": ensure_aware(self.last_scraped).isoformat() if self.last_scraped else None,
            "lastUpdated": ensure_aware(self.last_updated).isoformat(),
            "scrapingHistory": self.scraping_history.to_list(),
        }


# Scalar fields a manual update may overwrite, keyed by their attribute name.
MERGEABLE_SCALAR_FIELDS = frozenset(
    {"restaurant_name", "cuisine", "location", "phone", "hours", "website", "ai_context"}
)
MERGEABLE_COLLECTION_FIELDS = frozenset({"items", "special_offers"})


def parse_items(raw_items: Iterable[Mapping[str, Any]] | None, *, default_category: str) -> tuple[MenuItem, ...]:
    return tuple(
        MenuItem.from_dict(raw, default_category=default_category)
        for raw in (raw_items or [])
        if isinstance(raw, Mapping)
    )


def build_scraped_ai_context(restaurant_name: str, items: tuple[MenuItem, ...], hint: str | None = None) -> str:
    if hint and hint.strip():
        return hint.strip()
    return f"Menu for {restaurant_name} with {len(items)} items."


def build_manual_ai_context(items: tuple[MenuItem, ...]) -> str:
    categories = list(dict.fromkeys(item.category for item in items))
    lines = []
    for category in categories:
        for item in items:
            if item.category != category:
                continue
            line = item.name
            if item.price:
                line += f" - {item.price}"
            if item.description:
                line += f": {item.description}"
            lines.append(line)

    item_list = "\n".join(lines)
    return (
        f"Menu Categories: {', '.join(categories)}\n\n"
        f"Menu Items:\n{item_list}\n\n"
        f"This restaurant offers {len(items)} menu items across {len(categories)} categories. "
        "All items are manually entered and verified."
    )
