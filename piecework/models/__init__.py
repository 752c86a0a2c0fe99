from piecework.models.completion_batch import CompletionBatch
from piecework.models.completion_event import CompletionEvent
from piecework.models.contractor import Contractor
from piecework.models.contractor_work_log import ContractorWorkLog
from piecework.models.job_ledger import JobLedger
from piecework.models.operation import Operation
from piecework.models.operation_quota import OperationQuota

__all__ = [
    "CompletionBatch",
    "CompletionEvent",
    "Contractor",
    "ContractorWorkLog",
    "JobLedger",
    "Operation",
    "OperationQuota",
]
