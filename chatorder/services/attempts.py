from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import Session

from chatorder.models.attempt_counter import AttemptCounter


def _get_row(db: Session, tenant_id: int, phone: str) -> AttemptCounter | None:
    return (
        db.query(AttemptCounter)
        .filter(AttemptCounter.tenant_id == tenant_id, AttemptCounter.customer_phone == phone)
        .first()
    )


def get_attempts(db: Session, tenant_id: int, phone: str) -> int:
    row = _get_row(db, tenant_id, phone)
    return int(row.failed_attempts or 0) if row else 0


def inc_attempts(db: Session, tenant_id: int, phone: str) -> int:
    row = _get_row(db, tenant_id, phone)
    if row is None:
        row = AttemptCounter(tenant_id=tenant_id, customer_phone=phone, failed_attempts=0)
        db.add(row)
    row.failed_attempts = int(row.failed_attempts or 0) + 1
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    return row.failed_attempts


def reset_attempts(db: Session, tenant_id: int, phone: str) -> int:
    row = _get_row(db, tenant_id, phone)
    if row is not None and row.failed_attempts:
        row.failed_attempts = 0
        row.updated_at = datetime.now(timezone.utc)
        db.commit()
    return 0
