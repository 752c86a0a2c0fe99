from fastapi import APIRouter, Depends

from piecework.database import SessionLocal
from piecework.deps.auth import require_auth
from piecework.schemas.common import ErrorResponse
from piecework.schemas.completion import CompletionsRecord, CompletionsResponse
from piecework.services import completion_service

router = APIRouter(
    prefix="/completions",
    tags=["Completions"],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)


@router.post("", response_model=CompletionsResponse)
def record_completions(
    payload: CompletionsRecord,
    _auth: str = Depends(require_auth),
):
    db = SessionLocal()
    try:
        result = completion_service.record_completions(
            payload.contractor_id,
            payload.job_id,
            payload.entries,
            idempotency_key=payload.idempotency_key,
            db=db,
        )
        db.commit()
        return result.to_dict()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
