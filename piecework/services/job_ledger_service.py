from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from piecework.core.errors import ConflictError, NotFoundError, ValidationError
from piecework.database import SessionLocal
from piecework.models.job_ledger import JobLedger
from piecework.models.operation_quota import OperationQuota
from piecework.services.validation import (
    Rejection,
    clean_identifier,
    coerce_non_negative,
    fit_quantity,
    validate_operation_specs,
)

logger = logging.getLogger(__name__)


@dataclass
class LedgerWrite:
    ledger: JobLedger
    created: bool
    added: List[str] = field(default_factory=list)
    rejected: List[Rejection] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _coerce_total_units(total_units: Any) -> Decimal:
    # an omitted quantity means "no units yet", not an error
    if total_units is None or (isinstance(total_units, str) and not total_units.strip()):
        return Decimal(0)

    result = coerce_non_negative(total_units)
    if not result.ok:
        raise ValidationError(f"totalUnits {result.reason}")
    return result.value


def _find_ledger(db: Session, job_id: str, *, for_update: bool = False) -> Optional[JobLedger]:
    q = db.query(JobLedger).filter(JobLedger.job_id == job_id)
    if for_update:
        q = q.with_for_update()
    return q.first()


def create_or_extend(
    job_id: Any,
    total_units: Any,
    operation_specs: Any,
    *,
    db: Optional[Session] = None,
) -> LedgerWrite:
    """
    Create the ledger for a job number, or extend an existing one.

    totalUnits is overwritten on every call. Quotas already on the ledger are
    never recomputed or duplicated; only operation ids not yet present are
    appended, with totals computed against the new totalUnits.

    If db is provided, this function will NOT commit/close. Caller owns the transaction.
    """
    clean_job_id = clean_identifier(job_id)
    if clean_job_id is None:
        raise ValidationError("jobId is required")

    units = _coerce_total_units(total_units)

    if not isinstance(operation_specs, list) or not operation_specs:
        raise ValidationError("At least one operation is required")

    batch = validate_operation_specs(operation_specs)
    rejected = list(batch.rejected)
    if not batch.accepted:
        raise ValidationError(
            "No valid operations to save",
            rejected=[r.to_dict() for r in rejected],
        )

    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        now = _utcnow()
        ledger = _find_ledger(db, clean_job_id, for_update=True)
        created = ledger is None

        if created:
            ledger = JobLedger(job_id=clean_job_id, total_units=units, created_at=now, updated_at=now)
            db.add(ledger)
            existing_ids: set[str] = set()
        else:
            ledger.total_units = units
            ledger.updated_at = now
            existing_ids = {q.operation_id for q in ledger.operations}

        position = len(ledger.operations)
        added: List[str] = []

        for spec in batch.accepted:
            if spec.operation_id in existing_ids:
                rejected.append(
                    Rejection(index=spec.index, reason="operationId already assigned to job")
                )
                continue

            total_quantity = fit_quantity(spec.quantity_per_unit * units)
            if not total_quantity.ok:
                rejected.append(Rejection(index=spec.index, reason=f"totalQuantity {total_quantity.reason}"))
                continue

            ledger.operations.append(
                OperationQuota(
                    operation_id=spec.operation_id,
                    position=position,
                    quantity_per_unit=spec.quantity_per_unit,
                    total_quantity=total_quantity.value,
                    pending_quantity=total_quantity.value,
                    value_per_unit=spec.value_per_unit,
                    created_at=now,
                )
            )
            existing_ids.add(spec.operation_id)
            added.append(spec.operation_id)
            position += 1

        rejected.sort(key=lambda r: r.index)
        if created and not added:
            raise ValidationError(
                "No valid operations to save",
                rejected=[r.to_dict() for r in rejected],
            )

        try:
            db.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Job ledger {clean_job_id} was modified concurrently") from exc

        logger.info(
            "Job ledger saved",
            extra={
                "job_id": clean_job_id,
                "created": created,
                "added_operations": added,
                "rejected_count": len(rejected),
            },
        )

        if owns_db:
            db.commit()

        return LedgerWrite(ledger=ledger, created=created, added=added, rejected=rejected)
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def get_ledger(job_id: str, *, db: Session) -> JobLedger:
    ledger = _find_ledger(db, str(job_id))
    if ledger is None:
        raise NotFoundError("Job not found in ledger")
    return ledger


def list_job_numbers(*, db: Session) -> List[str]:
    rows = db.query(JobLedger.job_id).all()
    # codepoint order, independent of database collation
    return sorted(str(r.job_id) for r in rows)
