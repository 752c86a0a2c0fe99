from typing import List

from fastapi import APIRouter, Depends

from piecework.core.authorization import Role, require_role
from piecework.database import SessionLocal
from piecework.deps.auth import require_auth
from piecework.models.job_ledger import JobLedger
from piecework.schemas.common import ErrorResponse
from piecework.schemas.job_ledger import (
    BalanceRepairResponse,
    JobLedgerResponse,
    JobLedgerSave,
    JobLedgerSaveResponse,
    PendingOperationsResponse,
)
from piecework.schemas.summary import JobSummaryResponse
from piecework.services import job_ledger_service, reconciliation_service

router = APIRouter(
    prefix="/job-ledgers",
    tags=["Job Ledgers"],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)


def _ledger_to_response(ledger: JobLedger) -> dict:
    return {
        "job_id": ledger.job_id,
        "total_units": ledger.total_units,
        "created_at": ledger.created_at,
        "updated_at": ledger.updated_at,
        "operations": [
            {
                "operation_id": q.operation_id,
                "quantity_per_unit": q.quantity_per_unit,
                "total_quantity": q.total_quantity,
                "pending_quantity": q.pending_quantity,
                "value_per_unit": q.value_per_unit,
                "unit_rate": q.unit_rate,
                "last_updated": q.last_updated,
            }
            for q in ledger.operations
        ],
    }


@router.post("", response_model=JobLedgerSaveResponse, status_code=201)
def save_job_ledger(
    payload: JobLedgerSave,
    _auth: str = Depends(require_auth),
):
    db = SessionLocal()
    try:
        result = job_ledger_service.create_or_extend(
            payload.job_id,
            payload.total_units,
            payload.operations,
            db=db,
        )
        db.commit()
        return {
            **_ledger_to_response(result.ledger),
            "created": result.created,
            "added": result.added,
            "rejected": [r.to_dict() for r in result.rejected],
        }
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.get("", response_model=List[str])
def list_job_numbers(_auth: str = Depends(require_auth)):
    db = SessionLocal()
    try:
        return job_ledger_service.list_job_numbers(db=db)
    finally:
        db.close()


@router.get("/{job_id}", response_model=JobLedgerResponse)
def get_job_ledger(job_id: str, _auth: str = Depends(require_auth)):
    db = SessionLocal()
    try:
        return _ledger_to_response(job_ledger_service.get_ledger(job_id, db=db))
    finally:
        db.close()


@router.get("/{job_id}/pending", response_model=PendingOperationsResponse)
def list_pending_operations(job_id: str, _auth: str = Depends(require_auth)):
    db = SessionLocal()
    try:
        return reconciliation_service.list_pending_operations(job_id, db=db)
    finally:
        db.close()


@router.get("/{job_id}/summary", response_model=JobSummaryResponse)
def get_job_summary(job_id: str, _auth: str = Depends(require_auth)):
    db = SessionLocal()
    try:
        return reconciliation_service.compute_job_summary(job_id, db=db)
    finally:
        db.close()


@router.post("/{job_id}/reconcile", response_model=BalanceRepairResponse)
def reconcile_job_ledger(
    job_id: str,
    _role=Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        report = reconciliation_service.repair_pending_balances(job_id, db=db)
        db.commit()
        return report
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
