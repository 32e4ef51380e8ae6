from __future__ import annotations

from fastapi import APIRouter

from menu_cache.core.metrics import refresh_metrics, request_metrics

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


@router.get("/tenants")
def tenant_metrics():
    return {"tenants": request_metrics.snapshot_per_tenant()}


@router.get("/refresh")
def refresh_counters():
    return {"tenants": refresh_metrics.snapshot(), "endpoints": request_metrics.snapshot()}
