from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from menu_cache.deps import get_menu_service
from menu_cache.exceptions import MenuCacheError
from menu_cache.routers.menu_data import raise_http_error
from menu_cache.services.menu_data import MenuDataService
from menu_cache.services.menu_records import MANUAL_ENTRY_SOURCE

router = APIRouter(prefix="/api/tenants", tags=["manual-menu-submission"])


class ManualSubmissionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tenant_id: Optional[str] = Field(default=None, alias="tenantId")
    submission_type: str = Field(default=MANUAL_ENTRY_SOURCE, alias="submissionType")
    menu_items: Optional[List[Dict[str, Any]]] = Field(default=None, alias="menuItems")


def _bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": message, "details": message},
    )


@router.post("/manual-menu-submission")
def submit_manual_menu(
    payload: ManualSubmissionRequest,
    service: MenuDataService = Depends(get_menu_service),
):
    if payload.submission_type != MANUAL_ENTRY_SOURCE:
        raise _bad_request(f"Unsupported submission type: {payload.submission_type}")
    tenant_id = (payload.tenant_id or "").strip()
    if not tenant_id or not payload.menu_items:
        raise _bad_request("Missing tenant ID or menu items")

    try:
        created = service.create(tenant_id, payload.menu_items)
    except MenuCacheError as exc:
        raise_http_error(exc, error="Manual entry failed")

    items_added = created.submission.items_added
    return {
        "success": True,
        "submissionId": created.submission.id,
        "itemsAdded": items_added,
        "message": f"Successfully added {items_added} menu items. Your menu is now active!",
        "menuData": created.snapshot.to_dict(),
    }


@router.get("/manual-menu-submission")
def get_manual_submissions(
    submission_id: Optional[str] = Query(None, alias="submissionId"),
    tenant_id: Optional[str] = Query(None, alias="tenantId"),
    service: MenuDataService = Depends(get_menu_service),
):
    try:
        if submission_id:
            submission = service.get_submission(submission_id)
            if submission is None:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail={"error": "Submission not found", "details": submission_id},
                )
            return {"success": True, "submission": submission.to_dict()}

        if tenant_id:
            submissions = service.list_submissions(tenant_id)
            return {"success": True, "submissions": [sub.to_dict() for sub in submissions]}
    except MenuCacheError as exc:
        raise_http_error(exc, error="Failed to load menu submissions")

    raise _bad_request("Missing submissionId or tenantId parameter")
