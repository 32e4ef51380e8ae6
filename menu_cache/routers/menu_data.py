from __future__ import annotations

import logging
from typing import Any, Dict, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from menu_cache.deps import get_menu_service
from menu_cache.exceptions import (
    MenuAlreadyExistsError,
    MenuCacheError,
    MenuValidationError,
    PersistenceError,
    TenantMenuNotFoundError,
)
from menu_cache.services.menu_data import MenuDataService, MenuSnapshot
from menu_cache.services.scrape_coordinator import ScrapeFailure

router = APIRouter(prefix="/api/tenants", tags=["menu-data"])

logger = logging.getLogger(__name__)

# Request keys accepted by PUT, mapped to record attributes.
_UPDATE_FIELD_ALIASES = {
    "restaurantName": "restaurant_name",
    "restaurant_name": "restaurant_name",
    "cuisine": "cuisine",
    "location": "location",
    "phone": "phone",
    "hours": "hours",
    "website": "website",
    "menu": "items",
    "items": "items",
    "specialOffers": "special_offers",
    "special_offers": "special_offers",
    "aiContext": "ai_context",
    "ai_context": "ai_context",
}


class RefreshRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: Optional[str] = None
    force_refresh: bool = Field(default=False, alias="forceRefresh")


def raise_http_error(exc: MenuCacheError, *, error: str) -> NoReturn:
    if isinstance(exc, TenantMenuNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, MenuAlreadyExistsError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, MenuValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, PersistenceError):
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        logger.exception("unexpected menu cache error")
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    raise HTTPException(status_code=code, detail={"error": error, "details": str(exc)}) from exc


def _snapshot_metadata(snapshot: MenuSnapshot) -> dict:
    meta = snapshot.metadata
    return {
        "itemCount": meta["item_count"],
        "lastScraped": meta["last_scraped"],
        "ageDescription": meta["age_description"],
        "source": meta["source"],
        "historyLength": meta["history_length"],
    }


def _translate_update(payload: Dict[str, Any]) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    unknown = []
    for key, value in payload.items():
        name = _UPDATE_FIELD_ALIASES.get(key)
        if name is None:
            unknown.append(key)
            continue
        fields[name] = value
    if unknown:
        raise MenuValidationError(f"Fields cannot be updated manually: {', '.join(sorted(unknown))}")
    return fields


@router.get("/{tenant_id}/menu-data")
def get_menu_data(
    tenant_id: str,
    max_age: float = Query(24, alias="maxAge", ge=0),
    service: MenuDataService = Depends(get_menu_service),
):
    try:
        snapshot = service.get(tenant_id, max_age_hours=max_age)
    except MenuCacheError as exc:
        raise_http_error(exc, error="Failed to retrieve menu data")

    return {
        "success": True,
        "tenantId": tenant_id,
        "menuData": snapshot.to_dict(),
        "isStale": snapshot.is_stale,
        "metadata": _snapshot_metadata(snapshot),
    }


@router.post("/{tenant_id}/menu-data")
def refresh_menu_data(
    tenant_id: str,
    payload: RefreshRequest,
    service: MenuDataService = Depends(get_menu_service),
):
    try:
        outcome = service.refresh(tenant_id, payload.url or "", force_refresh=payload.force_refresh)
    except MenuCacheError as exc:
        raise_http_error(exc, error="Failed to scrape and store menu data")

    if isinstance(outcome, ScrapeFailure):
        if not outcome.fallback_available:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail={
                    "error": "Failed to scrape and store menu data",
                    "details": outcome.error,
                    "fallbackAvailable": False,
                },
            )
        menu_data = outcome.fallback_record.to_dict()
        menu_data["isStale"] = True
        return {
            "success": False,
            "error": "Failed to scrape and store menu data",
            "details": outcome.error,
            "fallbackAvailable": True,
            "tenantId": tenant_id,
            "menuData": menu_data,
            "isStale": True,
        }

    menu_data = outcome.record.to_dict()
    menu_data["isStale"] = False
    if outcome.cached:
        return {
            "success": True,
            "message": "Using cached data (less than 1 hour old)",
            "tenantId": tenant_id,
            "menuData": menu_data,
            "cached": True,
        }

    return {
        "success": True,
        "message": "Successfully scraped and stored menu data",
        "tenantId": tenant_id,
        "menuData": menu_data,
        "cached": False,
        "metadata": {
            "itemsScraped": len(outcome.record.items),
            "processingTime": f"{outcome.processing_time_ms}ms",
            "source": outcome.record.source,
            "coalesced": outcome.coalesced,
        },
    }


@router.put("/{tenant_id}/menu-data")
def update_menu_data(
    tenant_id: str,
    payload: Dict[str, Any] = Body(...),
    service: MenuDataService = Depends(get_menu_service),
):
    try:
        snapshot = service.merge(tenant_id, _translate_update(payload))
    except MenuCacheError as exc:
        raise_http_error(exc, error="Failed to update menu data")

    return {
        "success": True,
        "message": "Menu data updated successfully",
        "tenantId": tenant_id,
        "menuData": snapshot.to_dict(),
        "isStale": snapshot.is_stale,
    }


@router.delete("/{tenant_id}/menu-data")
def delete_menu_data(
    tenant_id: str,
    service: MenuDataService = Depends(get_menu_service),
):
    try:
        deleted = service.delete(tenant_id)
    except MenuCacheError as exc:
        raise_http_error(exc, error="Failed to delete menu data")

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "No menu data found to delete", "details": f"tenant {tenant_id}"},
        )
    return {"success": True, "message": "Menu data deleted successfully", "tenantId": tenant_id}
