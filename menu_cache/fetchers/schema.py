from __future__ import annotations

from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class RawMenuItem(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: Any = None
    category: Optional[str] = None
    allergens: List[str] = Field(default_factory=list)
    availability: Optional[bool] = None
    is_popular: Optional[bool] = Field(default=None, validation_alias=AliasChoices("isPopular", "is_popular"))

    @field_validator("allergens", mode="before")
    @classmethod
    def _none_allergens(cls, value: Any) -> Any:
        return value or []


class RawMenu(BaseModel):
    """Payload returned by the external fetch collaborator."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    restaurant_name: str = Field(
        default="",
        validation_alias=AliasChoices("restaurantName", "restaurant_name", "name"),
    )
    cuisine: Optional[str] = None
    location: Optional[str] = None
    phone: Optional[str] = None
    hours: Optional[str] = None
    website: Optional[str] = None
    items: List[RawMenuItem] = Field(default_factory=list, validation_alias=AliasChoices("items", "menu"))
    special_offers: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("specialOffers", "special_offers"),
    )
    ai_context_hint: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("aiContextHint", "aiContext", "ai_context_hint"),
    )

    @field_validator("items", mode="before")
    @classmethod
    def _drop_nameless_items(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [item for item in value if isinstance(item, dict) and str(item.get("name") or "").strip()]
        return value

    @field_validator("special_offers", mode="before")
    @classmethod
    def _offers_as_text(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, list):
            return value
        offers: list[str] = []
        for offer in value:
            if isinstance(offer, dict):
                name = str(offer.get("name") or "").strip()
                description = str(offer.get("description") or "").strip()
                text = f"{name}: {description}" if name and description else name or description
            else:
                text = str(offer).strip()
            if text:
                offers.append(text)
        return offers
