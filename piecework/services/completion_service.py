from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from piecework.core.errors import ConflictError, NotFoundError, ValidationError
from piecework.database import SessionLocal
from piecework.models.completion_batch import CompletionBatch
from piecework.models.completion_event import CompletionEvent
from piecework.models.contractor_work_log import ContractorWorkLog
from piecework.models.job_ledger import JobLedger
from piecework.models.operation_quota import OperationQuota
from piecework.services.validation import clean_identifier, validate_completion_entries

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    contractor_id: str
    job_id: str
    updates: List[Dict[str, Any]] = field(default_factory=list)
    rejected: List[Dict[str, Any]] = field(default_factory=list)
    replayed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contractor_id": self.contractor_id,
            "job_id": self.job_id,
            "updates": self.updates,
            "rejected": self.rejected,
            "replayed": self.replayed,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _stored_result(updates: List[Dict[str, Any]], rejected: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "updates": [
            {"operation_id": u["operation_id"], "new_pending_quantity": str(u["new_pending_quantity"])}
            for u in updates
        ],
        "rejected": rejected,
    }


def _replay(batch: CompletionBatch) -> CompletionResult:
    stored = batch.result or {}
    return CompletionResult(
        contractor_id=batch.contractor_id,
        job_id=batch.job_id,
        updates=[
            {
                "operation_id": u["operation_id"],
                "new_pending_quantity": Decimal(u["new_pending_quantity"]),
            }
            for u in stored.get("updates", [])
        ],
        rejected=list(stored.get("rejected", [])),
        replayed=True,
    )


def _find_batch(db: Session, contractor_id: str, job_id: str, idempotency_key: str) -> Optional[CompletionBatch]:
    return (
        db.query(CompletionBatch)
        .filter(
            CompletionBatch.contractor_id == contractor_id,
            CompletionBatch.job_id == job_id,
            CompletionBatch.idempotency_key == idempotency_key,
        )
        .first()
    )


def _find_work_log(db: Session, contractor_id: str, job_id: str) -> Optional[ContractorWorkLog]:
    return (
        db.query(ContractorWorkLog)
        .filter(
            ContractorWorkLog.contractor_id == contractor_id,
            ContractorWorkLog.job_id == job_id,
        )
        .first()
    )


def _get_or_create_work_log(db: Session, contractor_id: str, job_id: str) -> ContractorWorkLog:
    work_log = _find_work_log(db, contractor_id, job_id)
    if work_log is not None:
        return work_log

    try:
        with db.begin_nested():
            work_log = ContractorWorkLog(contractor_id=contractor_id, job_id=job_id)
            db.add(work_log)
    except IntegrityError:
        # another request created the pair first; append to theirs
        logger.info(
            "Work log created concurrently; reusing it",
            extra={"job_id": job_id, "contractor_id": contractor_id},
        )
        work_log = _find_work_log(db, contractor_id, job_id)
        if work_log is None:
            raise

    return work_log


def record_completions(
    contractor_id: Any,
    job_id: Any,
    entries: Any,
    *,
    idempotency_key: Optional[str] = None,
    db: Optional[Session] = None,
) -> CompletionResult:
    """
    Apply a contractor's completion report to a job.

    For each accepted entry the quota's pending balance is decremented by
    min(quantity, pending) and a completion event carrying the full requested
    quantity is appended to the (contractor, job) work log. Both writes happen
    in the same transaction; quota rows are locked for the duration.

    Without an idempotency key the call is not safe to retry: a retry appends
    the events a second time. With a key, a repeated call returns the stored
    result and applies nothing.

    If db is provided, this function will NOT commit/close. Caller owns the transaction.
    """
    clean_contractor_id = clean_identifier(contractor_id)
    clean_job_id = clean_identifier(job_id)
    if clean_contractor_id is None or clean_job_id is None:
        raise ValidationError("contractorId and jobId are required")
    if not isinstance(entries, list):
        raise ValidationError("entries must be a list")

    key = clean_identifier(idempotency_key)

    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        if key is not None:
            previous = _find_batch(db, clean_contractor_id, clean_job_id, key)
            if previous is not None:
                logger.info(
                    "Replaying completion batch",
                    extra={"job_id": clean_job_id, "contractor_id": clean_contractor_id, "idempotency_key": key},
                )
                return _replay(previous)

        ledger = db.query(JobLedger).filter(JobLedger.job_id == clean_job_id).first()
        if ledger is None:
            raise NotFoundError("Job not found in ledger")

        quotas = (
            db.query(OperationQuota)
            .filter(OperationQuota.job_id == clean_job_id)
            .order_by(OperationQuota.position.asc())
            .with_for_update()
            .all()
        )
        by_operation = {q.operation_id: q for q in quotas}

        batch = validate_completion_entries(entries)
        rejected = [r.to_dict() for r in batch.rejected]
        applicable = []
        for entry in batch.accepted:
            if entry.operation_id not in by_operation:
                rejected.append({"index": entry.index, "reason": "operation not assigned to job"})
                continue
            applicable.append(entry)

        rejected.sort(key=lambda r: r["index"])

        if not applicable:
            raise ValidationError("No valid operations to update", rejected=rejected)

        now = _utcnow()
        updates: List[Dict[str, Any]] = []

        for entry in applicable:
            quota = by_operation[entry.operation_id]
            pending = Decimal(quota.pending_quantity)
            quota.pending_quantity = pending - min(entry.quantity, pending)
            quota.last_updated = now
            updates.append(
                {
                    "operation_id": quota.operation_id,
                    "new_pending_quantity": Decimal(quota.pending_quantity),
                }
            )

        db.flush()

        work_log = _get_or_create_work_log(db, clean_contractor_id, clean_job_id)

        batch_id = None
        if key is not None:
            batch_row = CompletionBatch(
                id=str(uuid4()),
                contractor_id=clean_contractor_id,
                job_id=clean_job_id,
                idempotency_key=key,
                result=_stored_result(updates, rejected),
                created_at=now,
            )
            db.add(batch_row)
            try:
                db.flush()
            except IntegrityError as exc:
                raise ConflictError("Completion batch with this idempotency key is already being recorded") from exc
            batch_id = batch_row.id

        for entry in applicable:
            db.add(
                CompletionEvent(
                    work_log_id=work_log.id,
                    batch_id=batch_id,
                    operation_id=entry.operation_id,
                    quantity_completed=entry.quantity,
                    completed_at=now,
                )
            )

        db.flush()

        logger.info(
            "Completions recorded",
            extra={
                "job_id": clean_job_id,
                "contractor_id": clean_contractor_id,
                "applied": len(applicable),
                "rejected_count": len(rejected),
            },
        )

        if owns_db:
            db.commit()

        return CompletionResult(
            contractor_id=clean_contractor_id,
            job_id=clean_job_id,
            updates=updates,
            rejected=rejected,
        )
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()
