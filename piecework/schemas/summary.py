from typing import Dict, List

from piecework.schemas.common import CamelModel


class ContractorRef(CamelModel):
    id: str
    name: str


class OperationSummary(CamelModel):
    operation_id: str
    name: str
    total_quantity: float
    total_completed: float
    pending: float
    # keyed by contractor id, never camel-cased
    completed_by_contractor: Dict[str, float]


class JobSummaryResponse(CamelModel):
    job_id: str
    contractors: List[ContractorRef]
    operations: List[OperationSummary]
