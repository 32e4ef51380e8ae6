from __future__ import annotations

from urllib.parse import urlparse

from menu_cache.exceptions import MenuFetchError
from menu_cache.fetchers.base import MenuFetcher, parse_raw_menu
from menu_cache.fetchers.schema import RawMenu

_DEMO_ITEMS = [
    {
        "name": "Margherita Pizza",
        "description": "Fresh tomato sauce, mozzarella, basil, extra virgin olive oil",
        "price": 16.99,
        "category": "Pizza",
        "allergens": ["dairy", "gluten"],
        "isPopular": True,
    },
    {
        "name": "Pepperoni Pizza",
        "description": "Classic pepperoni with mozzarella and tomato sauce",
        "price": 18.99,
        "category": "Pizza",
        "allergens": ["dairy", "gluten"],
    },
    {
        "name": "Caesar Salad",
        "description": "Romaine lettuce, parmesan cheese, croutons, Caesar dressing",
        "price": 12.99,
        "category": "Salads",
        "allergens": ["dairy", "gluten"],
    },
    {
        "name": "Tiramisu",
        "description": "Traditional Italian dessert with coffee and mascarpone",
        "price": 8.99,
        "category": "Desserts",
        "allergens": ["dairy", "eggs"],
    },
    {
        "name": "House Wine",
        "description": "Red or white wine selection",
        "price": 7.99,
        "category": "Beverages",
    },
]

_DEMO_OFFERS = [
    {"name": "Lunch Combo", "description": "Any personal pizza + salad + drink"},
    {"name": "Family Night", "description": "2 Large pizzas + dessert"},
]


class MockMenuFetcher(MenuFetcher):
    """Offline fetcher returning a fixed demo menu; hosts containing "fail" raise."""

    name = "mock"

    def fetch(self, url: str) -> RawMenu:
        host = urlparse(url).netloc or url
        if "fail" in host:
            raise MenuFetchError(f"Mock fetch failure for {host}")

        restaurant_name = host.split(".")[0].replace("-", " ").title() or "Demo Restaurant"
        return parse_raw_menu(
            {
                "restaurantName": restaurant_name,
                "cuisine": "Italian",
                "website": url,
                "menu": _DEMO_ITEMS,
                "specialOffers": _DEMO_OFFERS,
            }
        )
