from datetime import datetime
from typing import Any, List, Optional

from piecework.schemas.common import CamelModel, RejectionResponse


class JobLedgerSave(CamelModel):
    job_id: Any = None
    total_units: Any = None
    operations: Optional[List[Any]] = None


class OperationQuotaResponse(CamelModel):
    operation_id: str
    quantity_per_unit: float
    total_quantity: float
    pending_quantity: float
    value_per_unit: float
    unit_rate: float
    last_updated: Optional[datetime]


class JobLedgerResponse(CamelModel):
    job_id: str
    total_units: float
    created_at: datetime
    updated_at: datetime
    operations: List[OperationQuotaResponse]


class JobLedgerSaveResponse(JobLedgerResponse):
    created: bool
    added: List[str]
    rejected: List[RejectionResponse]


class PendingOperation(CamelModel):
    operation_id: str
    name: str
    total_quantity: float
    pending_quantity: float
    quantity_per_unit: float
    unit_rate: float


class PendingOperationsResponse(CamelModel):
    job_id: str
    operations: List[PendingOperation]


class BalanceRepair(CamelModel):
    operation_id: str
    stored_pending: float
    recomputed_pending: float
    repaired: bool


class BalanceRepairResponse(CamelModel):
    job_id: str
    repaired: int
    operations: List[BalanceRepair]
