from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from threading import Lock
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from menu_cache.exceptions import PersistenceError
from menu_cache.models.menu_submission import MenuSubmission
from menu_cache.services.menu_records import MANUAL_ENTRY_SOURCE
from menu_cache.services.staleness import ensure_aware, utcnow

logger = logging.getLogger(__name__)

SUBMISSION_STATUS_COMPLETED = "completed"


@dataclass(frozen=True)
class SubmissionRecord:
    id: str
    tenant_id: str
    type: str
    status: str
    items_added: int
    processing_fee: Decimal
    submitted_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "type": self.type,
            "status": self.status,
            "itemsAdded": self.items_added,
            "processingFee": float(self.processing_fee),
            "submittedAt": ensure_aware(self.submitted_at).isoformat(),
        }


class SubmissionLog(ABC):
    @abstractmethod
    def add(self, submission: SubmissionRecord) -> None:
        ...

    @abstractmethod
    def get(self, submission_id: str) -> SubmissionRecord | None:
        ...

    @abstractmethod
    def list_for_tenant(self, tenant_id: str) -> list[SubmissionRecord]:
        """Newest first."""


class InMemorySubmissionLog(SubmissionLog):
    def __init__(self) -> None:
        self._submissions: dict[str, SubmissionRecord] = {}
        self._lock = Lock()

    def add(self, submission: SubmissionRecord) -> None:
        with self._lock:
            self._submissions[submission.id] = submission

    def get(self, submission_id: str) -> SubmissionRecord | None:
        with self._lock:
            return self._submissions.get(submission_id)

    def list_for_tenant(self, tenant_id: str) -> list[SubmissionRecord]:
        with self._lock:
            matches = [sub for sub in self._submissions.values() if sub.tenant_id == tenant_id]
        return sorted(matches, key=lambda sub: ensure_aware(sub.submitted_at), reverse=True)


class SqlAlchemySubmissionLog(SubmissionLog):
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def add(self, submission: SubmissionRecord) -> None:
        db = self._session_factory()
        try:
            db.add(
                MenuSubmission(
                    id=submission.id,
                    tenant_id=submission.tenant_id,
                    type=submission.type,
                    status=submission.status,
                    items_added=submission.items_added,
                    processing_fee=submission.processing_fee,
                    submitted_at=ensure_aware(submission.submitted_at),
                )
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("submission write failed", extra={"tenant_id": submission.tenant_id})
            raise PersistenceError("Failed to store menu submission") from exc
        finally:
            db.close()

    def get(self, submission_id: str) -> SubmissionRecord | None:
        db = self._session_factory()
        try:
            row = db.query(MenuSubmission).filter(MenuSubmission.id == submission_id).first()
            return _row_to_submission(row) if row else None
        except SQLAlchemyError as exc:
            logger.exception("submission read failed")
            raise PersistenceError("Failed to load menu submission") from exc
        finally:
            db.close()

    def list_for_tenant(self, tenant_id: str) -> list[SubmissionRecord]:
        db = self._session_factory()
        try:
            rows = (
                db.query(MenuSubmission)
                .filter(MenuSubmission.tenant_id == tenant_id)
                .order_by(MenuSubmission.submitted_at.desc(), MenuSubmission.id.desc())
                .all()
            )
            return [_row_to_submission(row) for row in rows]
        except SQLAlchemyError as exc:
            logger.exception("submission list failed", extra={"tenant_id": tenant_id})
            raise PersistenceError("Failed to list menu submissions") from exc
        finally:
            db.close()


def _row_to_submission(row: MenuSubmission) -> SubmissionRecord:
    return SubmissionRecord(
        id=row.id,
        tenant_id=row.tenant_id,
        type=row.type,
        status=row.status,
        items_added=row.items_added or 0,
        processing_fee=Decimal(row.processing_fee or 0),
        submitted_at=ensure_aware(row.submitted_at),
    )


def new_manual_submission(
    tenant_id: str,
    items_added: int,
    *,
    clock: Callable[[], datetime] = utcnow,
) -> SubmissionRecord:
    now = clock()
    # Epoch millis keep ids sortable; the suffix keeps same-millisecond submissions apart.
    submission_id = f"manual-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:6]}"
    return SubmissionRecord(
        id=submission_id,
        tenant_id=tenant_id,
        type=MANUAL_ENTRY_SOURCE,
        status=SUBMISSION_STATUS_COMPLETED,
        items_added=items_added,
        processing_fee=Decimal("0"),
        submitted_at=now,
    )
