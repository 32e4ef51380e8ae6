from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Event, Lock
from typing import Any, Callable, Iterator


class TenantLockRegistry:
    """One mutex per tenant; tenants never contend with each other."""

    def __init__(self) -> None:
        self._locks: dict[str, Lock] = {}
        self._guard = Lock()

    def lock_for(self, tenant_id: str) -> Lock:
        with self._guard:
            lock = self._locks.get(tenant_id)
            if lock is None:
                lock = Lock()
                self._locks[tenant_id] = lock
            return lock

    @contextmanager
    def hold(self, tenant_id: str) -> Iterator[None]:
        lock = self.lock_for(tenant_id)
        with lock:
            yield


@dataclass
class _InFlightCall:
    done: Event = field(default_factory=Event)
    result: Any = None
    error: BaseException | None = None
    waiters: int = 0


class TenantSingleFlight:
    """Coalesces concurrent calls per key: one caller runs, the rest share its outcome."""

    def __init__(self) -> None:
        self._calls: dict[str, _InFlightCall] = {}
        self._lock = Lock()

    def run(self, key: str, fn: Callable[[], Any]) -> tuple[Any, bool]:
        """Returns (result, shared). `shared` is True when another caller did the work."""
        with self._lock:
            call = self._calls.get(key)
            if call is not None:
                call.waiters += 1
                leader = False
            else:
                call = _InFlightCall()
                self._calls[key] = call
                leader = True

        if not leader:
            call.done.wait()
            if call.error is not None:
                raise call.error
            return call.result, True

        try:
            call.result = fn()
            return call.result, False
        except BaseException as exc:
            call.error = exc
            raise
        finally:
            with self._lock:
                self._calls.pop(key, None)
            call.done.set()

    def waiting(self, key: str) -> int:
        """Number of callers currently blocked on the in-flight call for `key`."""
        with self._lock:
            call = self._calls.get(key)
            return call.waiters if call is not None else 0
