from typing import Any, List, Optional

from piecework.schemas.common import CamelModel, RejectionResponse


class CompletionsRecord(CamelModel):
    contractor_id: Any = None
    job_id: Any = None
    entries: Optional[List[Any]] = None
    idempotency_key: Optional[str] = None


class AppliedUpdate(CamelModel):
    operation_id: str
    new_pending_quantity: float


class CompletionsResponse(CamelModel):
    contractor_id: str
    job_id: str
    updates: List[AppliedUpdate]
    rejected: List[RejectionResponse]
    replayed: bool
