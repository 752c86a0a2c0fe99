from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from piecework.core.errors import NotFoundError
from piecework.database import SessionLocal
from piecework.models.completion_event import CompletionEvent
from piecework.models.contractor_work_log import ContractorWorkLog
from piecework.models.job_ledger import JobLedger
from piecework.models.operation_quota import OperationQuota
from piecework.services.operation_catalog import (
    UNKNOWN_OPERATION_NAME,
    contractor_names_or_empty,
    operation_names_or_empty,
)

logger = logging.getLogger(__name__)

ZERO = Decimal(0)


def _decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def completed_by_contractor_and_operation(
    *, job_id: str, db: Session
) -> Dict[Tuple[str, str], Decimal]:
    """
    SUM(completion_events.quantity_completed) grouped by (contractor_id, operation_id)
    for every work log of the job. Unclamped.
    """
    rows = (
        db.query(
            ContractorWorkLog.contractor_id.label("contractor_id"),
            CompletionEvent.operation_id.label("operation_id"),
            func.coalesce(func.sum(CompletionEvent.quantity_completed), 0).label("quantity"),
        )
        .join(ContractorWorkLog, CompletionEvent.work_log_id == ContractorWorkLog.id)
        .filter(ContractorWorkLog.job_id == str(job_id))
        .group_by(ContractorWorkLog.contractor_id, CompletionEvent.operation_id)
        .all()
    )
    return {(str(r.contractor_id), str(r.operation_id)): _decimal(r.quantity) for r in rows}


def _completed_by_operation(job_id: str, db: Session) -> Dict[str, Decimal]:
    totals: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for (_contractor_id, operation_id), quantity in completed_by_contractor_and_operation(
        job_id=job_id, db=db
    ).items():
        totals[operation_id] += quantity
    return totals


def compute_job_summary(job_id: str, *, db: Session) -> Dict[str, Any]:
    """
    Authoritative completion matrix for a job, rebuilt from the work logs.

    totalCompleted is the raw event sum and may exceed totalQuantity;
    pending = max(0, totalQuantity - totalCompleted) and never reads the
    stored pending counter. A job without a ledger yields an empty summary.
    """
    job_id = str(job_id)
    ledger = db.query(JobLedger).filter(JobLedger.job_id == job_id).first()
    if ledger is None:
        return {"job_id": job_id, "contractors": [], "operations": []}

    quotas = list(ledger.operations)
    ledger_operation_ids = {q.operation_id for q in quotas}

    contractor_ids = sorted(
        str(r.contractor_id)
        for r in db.query(ContractorWorkLog.contractor_id)
        .filter(ContractorWorkLog.job_id == job_id)
        .distinct()
        .all()
    )

    by_operation: Dict[str, Dict[str, Decimal]] = defaultdict(dict)
    for (contractor_id, operation_id), quantity in completed_by_contractor_and_operation(
        job_id=job_id, db=db
    ).items():
        # events for operations no longer (or never) on the ledger are not reported
        if operation_id not in ledger_operation_ids:
            continue
        by_operation[operation_id][contractor_id] = quantity

    operation_names = operation_names_or_empty(ledger_operation_ids, db=db)
    names = contractor_names_or_empty(contractor_ids, db=db)

    operations: List[Dict[str, Any]] = []
    for quota in quotas:
        per_contractor = dict(sorted(by_operation.get(quota.operation_id, {}).items()))
        total_quantity = _decimal(quota.total_quantity)
        total_completed = sum(per_contractor.values(), ZERO)

        operations.append(
            {
                "operation_id": quota.operation_id,
                "name": operation_names.get(quota.operation_id, UNKNOWN_OPERATION_NAME),
                "total_quantity": total_quantity,
                "total_completed": total_completed,
                "pending": max(ZERO, total_quantity - total_completed),
                "completed_by_contractor": per_contractor,
            }
        )

    return {
        "job_id": job_id,
        "contractors": [{"id": cid, "name": names.get(cid, cid)} for cid in contractor_ids],
        "operations": operations,
    }


def list_pending_operations(job_id: str, *, db: Session) -> Dict[str, Any]:
    """Fast path: reads the stored pending counters, no event recomputation."""
    job_id = str(job_id)
    ledger = db.query(JobLedger).filter(JobLedger.job_id == job_id).first()
    if ledger is None:
        raise NotFoundError("Job not found in ledger")

    pending = [q for q in ledger.operations if _decimal(q.pending_quantity) > 0]
    names = operation_names_or_empty([q.operation_id for q in pending], db=db)

    return {
        "job_id": job_id,
        "operations": [
            {
                "operation_id": q.operation_id,
                "name": names.get(q.operation_id, UNKNOWN_OPERATION_NAME),
                "total_quantity": _decimal(q.total_quantity),
                "pending_quantity": _decimal(q.pending_quantity),
                "quantity_per_unit": _decimal(q.quantity_per_unit),
                "unit_rate": q.unit_rate,
            }
            for q in pending
        ],
    }


def repair_pending_balances(job_id: str, *, db: Optional[Session] = None) -> Dict[str, Any]:
    """
    Rewrite each quota's stored pending counter from the event log.

    Returns every operation with its stored and recomputed pending figures;
    only rows whose counter drifted are updated.

    If db is provided, this function will NOT commit/close. Caller owns the transaction.
    """
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        job_id = str(job_id)
        quotas = (
            db.query(OperationQuota)
            .filter(OperationQuota.job_id == job_id)
            .order_by(OperationQuota.position.asc())
            .with_for_update()
            .all()
        )
        if not quotas and db.query(JobLedger).filter(JobLedger.job_id == job_id).first() is None:
            raise NotFoundError("Job not found in ledger")

        completed = _completed_by_operation(job_id, db)

        report: List[Dict[str, Any]] = []
        repaired = 0
        for quota in quotas:
            stored = _decimal(quota.pending_quantity)
            total_quantity = _decimal(quota.total_quantity)
            recomputed = max(ZERO, total_quantity - completed.get(quota.operation_id, ZERO))
            drifted = stored != recomputed
            if drifted:
                quota.pending_quantity = recomputed
                repaired += 1
            report.append(
                {
                    "operation_id": quota.operation_id,
                    "stored_pending": stored,
                    "recomputed_pending": recomputed,
                    "repaired": drifted,
                }
            )

        db.flush()

        if repaired:
            logger.warning(
                "Pending balances drifted from work logs; repaired",
                extra={"job_id": job_id, "repaired": repaired},
            )

        if owns_db:
            db.commit()

        return {"job_id": job_id, "repaired": repaired, "operations": report}
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()
