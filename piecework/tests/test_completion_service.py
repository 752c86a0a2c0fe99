from decimal import Decimal

import pytest

from piecework.core.errors import NotFoundError, ValidationError
from piecework.database import SessionLocal
from piecework.models.completion_event import CompletionEvent
from piecework.models.contractor_work_log import ContractorWorkLog
from piecework.models.operation_quota import OperationQuota
from piecework.services import completion_service, job_ledger_service


def _create_j100():
    job_ledger_service.create_or_extend(
        "J100",
        100,
        [{"operationId": "op1", "quantityPerUnit": 2, "valuePerUnit": 5}],
    )


def _pending(job_id: str, operation_id: str) -> Decimal:
    db = SessionLocal()
    try:
        quota = (
            db.query(OperationQuota)
            .filter(OperationQuota.job_id == job_id, OperationQuota.operation_id == operation_id)
            .one()
        )
        return quota.pending_quantity
    finally:
        db.close()


def _events(contractor_id: str, job_id: str):
    db = SessionLocal()
    try:
        return (
            db.query(CompletionEvent)
            .join(ContractorWorkLog, CompletionEvent.work_log_id == ContractorWorkLog.id)
            .filter(ContractorWorkLog.contractor_id == contractor_id, ContractorWorkLog.job_id == job_id)
            .order_by(CompletionEvent.id.asc())
            .all()
        )
    finally:
        db.close()


def test_completion_decrements_pending_and_appends_event():
    _create_j100()

    result = completion_service.record_completions(
        "C1", "J100", [{"operationId": "op1", "quantity": 150}]
    )

    assert result.updates == [{"operation_id": "op1", "new_pending_quantity": Decimal(50)}]
    assert result.rejected == []
    assert result.replayed is False
    assert _pending("J100", "op1") == Decimal(50)

    events = _events("C1", "J100")
    assert len(events) == 1
    assert events[0].operation_id == "op1"
    assert events[0].quantity_completed == Decimal(150)


def test_decrement_is_clamped_but_event_keeps_requested_quantity():
    _create_j100()
    completion_service.record_completions("C1", "J100", [{"operationId": "op1", "quantity": 150}])

    result = completion_service.record_completions(
        "C2", "J100", [{"operationId": "op1", "quantity": 80}]
    )

    assert result.updates[0]["new_pending_quantity"] == Decimal(0)
    assert _pending("J100", "op1") == Decimal(0)

    events = _events("C2", "J100")
    assert [e.quantity_completed for e in events] == [Decimal(80)]


def test_pending_never_goes_below_zero_across_many_calls():
    _create_j100()
    for quantity in [90, 90, 90, 1000, 1]:
        completion_service.record_completions("C1", "J100", [{"operationId": "op1", "quantity": quantity}])
        assert _pending("J100", "op1") >= 0

    assert _pending("J100", "op1") == Decimal(0)


def test_ledger_agrees_with_event_sum_without_over_completion():
    job_ledger_service.create_or_extend(
        "J700",
        10,
        [
            {"operationId": "a", "quantityPerUnit": 3, "valuePerUnit": 1},
            {"operationId": "b", "quantityPerUnit": 1, "valuePerUnit": 1},
        ],
    )
    completion_service.record_completions("C1", "J700", [{"operationId": "a", "quantity": 7}])
    completion_service.record_completions(
        "C2", "J700", [{"operationId": "a", "quantity": 4}, {"operationId": "b", "quantity": 2}]
    )
    completion_service.record_completions("C1", "J700", [{"operationId": "a", "quantity": "1.5"}])

    events = _events("C1", "J700") + _events("C2", "J700")
    for operation_id, total in [("a", Decimal(30)), ("b", Decimal(10))]:
        done = sum((e.quantity_completed for e in events if e.operation_id == operation_id), Decimal(0))
        assert total - done == _pending("J700", operation_id)


def test_one_work_log_per_contractor_and_job():
    _create_j100()
    completion_service.record_completions("C1", "J100", [{"operationId": "op1", "quantity": 1}])
    completion_service.record_completions("C1", "J100", [{"operationId": "op1", "quantity": 2}])

    db = SessionLocal()
    try:
        logs = db.query(ContractorWorkLog).filter(ContractorWorkLog.job_id == "J100").all()
        assert len(logs) == 1
        assert [e.quantity_completed for e in logs[0].events] == [Decimal(1), Decimal(2)]
    finally:
        db.close()


def test_invalid_and_unassigned_entries_are_rejected_individually():
    _create_j100()

    result = completion_service.record_completions(
        "C1",
        "J100",
        [
            {"operationId": "op1", "quantity": 0},
            {"operationId": "ghost", "quantity": 5},
            {"operationId": "op1", "quantity": 10},
        ],
    )

    assert [u["operation_id"] for u in result.updates] == ["op1"]
    assert result.rejected == [
        {"index": 0, "reason": "quantity must be greater than zero"},
        {"index": 1, "reason": "operation not assigned to job"},
    ]
    assert _pending("J100", "op1") == Decimal(190)


def test_unknown_job_raises_not_found():
    with pytest.raises(NotFoundError):
        completion_service.record_completions("C1", "missing", [{"operationId": "op1", "quantity": 1}])


def test_empty_batch_after_filtering_raises_and_writes_nothing():
    _create_j100()

    with pytest.raises(ValidationError) as excinfo:
        completion_service.record_completions(
            "C1", "J100", [{"operationId": "ghost", "quantity": 1}, {"operationId": "op1", "quantity": -2}]
        )

    assert len(excinfo.value.rejected) == 2
    assert _pending("J100", "op1") == Decimal(200)
    assert _events("C1", "J100") == []


def test_missing_identifiers_raise_validation_error():
    with pytest.raises(ValidationError):
        completion_service.record_completions("", "J100", [])
    with pytest.raises(ValidationError):
        completion_service.record_completions("C1", "J100", "not-a-list")


def test_idempotency_key_replays_instead_of_double_counting():
    _create_j100()

    first = completion_service.record_completions(
        "C1", "J100", [{"operationId": "op1", "quantity": 30}], idempotency_key="batch-1"
    )
    retry = completion_service.record_completions(
        "C1", "J100", [{"operationId": "op1", "quantity": 30}], idempotency_key="batch-1"
    )

    assert first.replayed is False
    assert retry.replayed is True
    assert retry.updates == first.updates
    assert _pending("J100", "op1") == Decimal(170)
    assert len(_events("C1", "J100")) == 1

    # same key from another contractor is a different batch
    completion_service.record_completions(
        "C2", "J100", [{"operationId": "op1", "quantity": 30}], idempotency_key="batch-1"
    )
    assert _pending("J100", "op1") == Decimal(140)


def test_caller_owned_session_is_not_committed():
    _create_j100()

    db = SessionLocal()
    try:
        completion_service.record_completions(
            "C1", "J100", [{"operationId": "op1", "quantity": 10}], db=db
        )
        db.rollback()
    finally:
        db.close()

    assert _pending("J100", "op1") == Decimal(200)
    assert _events("C1", "J100") == []


def test_quantity_that_rounds_to_zero_is_rejected_not_lost():
    _create_j100()

    with pytest.raises(ValidationError) as excinfo:
        completion_service.record_completions("C1", "J100", [{"operationId": "op1", "quantity": "0.00004"}])

    assert excinfo.value.rejected == [{"index": 0, "reason": "quantity must be greater than zero"}]
    assert _pending("J100", "op1") == Decimal(200)
    assert _events("C1", "J100") == []


def test_reported_pending_matches_stored_pending_for_fractional_quantities():
    _create_j100()

    result = completion_service.record_completions(
        "C1", "J100", [{"operationId": "op1", "quantity": "1.23456"}]
    )

    assert result.updates[0]["new_pending_quantity"] == Decimal("198.7654")
    assert _pending("J100", "op1") == Decimal("198.7654")
    assert [e.quantity_completed for e in _events("C1", "J100")] == [Decimal("1.2346")]


def test_quantity_beyond_storage_range_is_rejected():
    _create_j100()

    with pytest.raises(ValidationError) as excinfo:
        completion_service.record_completions("C1", "J100", [{"operationId": "op1", "quantity": "1e14"}])

    assert excinfo.value.rejected == [{"index": 0, "reason": "quantity out of range"}]
    assert _pending("J100", "op1") == Decimal(200)
