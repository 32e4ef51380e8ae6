from __future__ import annotations

from dataclasses import dataclass
from threading import Lock


@dataclass
class EndpointMetric:
    total_requests: int = 0
    total_duration_ms: float = 0.0
    error_count: int = 0


@dataclass
class RefreshMetric:
    cache_hits: int = 0
    fetches: int = 0
    fetch_failures: int = 0
    fallbacks_served: int = 0
    coalesced_waiters: int = 0
    total_fetch_ms: float = 0.0


class InMemoryRequestMetrics:
    def __init__(self) -> None:
        self._metrics: dict[tuple[str, str], EndpointMetric] = {}
        self._tenant_metrics: dict[str, EndpointMetric] = {}
        self._lock = Lock()

    def observe(
        self,
        endpoint: str,
        method: str,
        status_code: int,
        duration_ms: float,
        tenant_id: str | None = None,
    ) -> None:
        key = (endpoint, method)
        with self._lock:
            metric = self._metrics.setdefault(key, EndpointMetric())
            _accumulate(metric, status_code, duration_ms)

            if tenant_id:
                tenant_metric = self._tenant_metrics.setdefault(tenant_id, EndpointMetric())
                _accumulate(tenant_metric, status_code, duration_ms)

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            result: dict[str, dict[str, float | int]] = {}
            for (endpoint, method), metric in self._metrics.items():
                avg = metric.total_duration_ms / metric.total_requests if metric.total_requests else 0.0
                result[f"{method} {endpoint}"] = {
                    "total_requests": metric.total_requests,
                    "total_duration_ms": round(metric.total_duration_ms, 2),
                    "avg_duration_ms": round(avg, 2),
                    "error_count": metric.error_count,
                }
            return result

    def snapshot_per_tenant(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            result: dict[str, dict[str, float | int]] = {}
            for tenant_id, metric in self._tenant_metrics.items():
                avg = metric.total_duration_ms / metric.total_requests if metric.total_requests else 0.0
                result[tenant_id] = {
                    "requests": metric.total_requests,
                    "errors": metric.error_count,
                    "avg_latency_ms": round(avg, 2),
                }
            return result


def _accumulate(metric: EndpointMetric, status_code: int, duration_ms: float) -> None:
    metric.total_requests += 1
    metric.total_duration_ms += duration_ms
    if status_code >= 400:
        metric.error_count += 1


class InMemoryRefreshMetrics:
    """Per-tenant counters for the refresh decision path."""

    def __init__(self) -> None:
        self._metrics: dict[str, RefreshMetric] = {}
        self._lock = Lock()

    def record_cache_hit(self, tenant_id: str) -> None:
        with self._lock:
            self._metrics.setdefault(tenant_id, RefreshMetric()).cache_hits += 1

    def record_fetch(self, tenant_id: str, *, duration_ms: float, success: bool) -> None:
        with self._lock:
            metric = self._metrics.setdefault(tenant_id, RefreshMetric())
            metric.fetches += 1
            metric.total_fetch_ms += duration_ms
            if not success:
                metric.fetch_failures += 1

    def record_fallback(self, tenant_id: str) -> None:
        with self._lock:
            self._metrics.setdefault(tenant_id, RefreshMetric()).fallbacks_served += 1

    def record_coalesced(self, tenant_id: str) -> None:
        with self._lock:
            self._metrics.setdefault(tenant_id, RefreshMetric()).coalesced_waiters += 1

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            result: dict[str, dict[str, float | int]] = {}
            for tenant_id, metric in self._metrics.items():
                avg = metric.total_fetch_ms / metric.fetches if metric.fetches else 0.0
                result[tenant_id] = {
                    "cache_hits": metric.cache_hits,
                    "fetches": metric.fetches,
                    "fetch_failures": metric.fetch_failures,
                    "fallbacks_served": metric.fallbacks_served,
                    "coalesced_waiters": metric.coalesced_waiters,
                    "avg_fetch_ms": round(avg, 2),
                }
            return result


request_metrics = InMemoryRequestMetrics()
refresh_metrics = InMemoryRefreshMetrics()
