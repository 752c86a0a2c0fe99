"""
Input boundary for loosely-typed request payloads.

Every numeric field goes through ``coerce_number`` which returns a tagged
result instead of raising. Batch validators split a list of raw items into
``accepted`` and ``rejected`` so one bad row never aborts a batch, while the
caller can still report exactly why each row was dropped.

Quantities are stored as NUMERIC(18, 4): accepted values are rounded to four
places and must stay below 10**14 in magnitude.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

logger = logging.getLogger(__name__)

QUANTITY_PLACES = Decimal("0.0001")
QUANTITY_LIMIT = Decimal(10) ** 14


@dataclass(frozen=True)
class NumberCoercion:
    value: Optional[Decimal] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None


@dataclass(frozen=True)
class Rejection:
    index: int
    reason: str
    item: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "reason": self.reason}


@dataclass(frozen=True)
class OperationSpec:
    index: int
    operation_id: str
    quantity_per_unit: Decimal
    value_per_unit: Decimal


@dataclass(frozen=True)
class CompletionEntry:
    index: int
    operation_id: str
    quantity: Decimal


@dataclass
class BatchValidation:
    accepted: list = field(default_factory=list)
    rejected: list[Rejection] = field(default_factory=list)

    def reject(self, index: int, reason: str, item: Any = None) -> None:
        self.rejected.append(Rejection(index=index, reason=reason, item=item))


def coerce_number(value: Any) -> NumberCoercion:
    if value is None:
        return NumberCoercion(reason="missing")
    if isinstance(value, bool):
        return NumberCoercion(reason="not a number")

    if isinstance(value, str):
        value = value.strip()
        if value == "":
            return NumberCoercion(reason="missing")

    if not isinstance(value, (int, float, str, Decimal)):
        return NumberCoercion(reason="not a number")

    try:
        number = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, ValueError):
        return NumberCoercion(reason="not a number")

    if not number.is_finite():
        return NumberCoercion(reason="not a finite number")

    return fit_quantity(number)


def fit_quantity(number: Decimal) -> NumberCoercion:
    """Round to the stored scale; reject what the column cannot hold."""
    if abs(number) >= QUANTITY_LIMIT:
        return NumberCoercion(reason="out of range")
    number = number.quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)
    # 99999999999999.99999 rounds up onto the limit
    if abs(number) >= QUANTITY_LIMIT:
        return NumberCoercion(reason="out of range")
    return NumberCoercion(value=number)


def coerce_non_negative(value: Any) -> NumberCoercion:
    result = coerce_number(value)
    if result.ok and result.value < 0:
        return NumberCoercion(reason="negative")
    return result


def coerce_positive(value: Any) -> NumberCoercion:
    result = coerce_number(value)
    if result.ok and result.value <= 0:
        return NumberCoercion(reason="must be greater than zero")
    return result


def clean_identifier(value: Any) -> Optional[str]:
    """Non-empty trimmed string form of an id, or None."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def _field(item: dict, *names: str) -> Any:
    for name in names:
        if name in item:
            return item[name]
    return None


def validate_operation_specs(items: list) -> BatchValidation:
    result = BatchValidation()
    seen: set[str] = set()

    for index, item in enumerate(items):
        if not isinstance(item, dict):
            result.reject(index, "not an object", item)
            continue

        operation_id = clean_identifier(_field(item, "operationId", "operation_id"))
        if operation_id is None:
            result.reject(index, "operationId is required", item)
            continue

        quantity_per_unit = coerce_non_negative(_field(item, "quantityPerUnit", "quantity_per_unit"))
        if not quantity_per_unit.ok:
            result.reject(index, f"quantityPerUnit {quantity_per_unit.reason}", item)
            continue

        value_per_unit = coerce_non_negative(_field(item, "valuePerUnit", "value_per_unit"))
        if not value_per_unit.ok:
            result.reject(index, f"valuePerUnit {value_per_unit.reason}", item)
            continue

        if operation_id in seen:
            result.reject(index, "duplicate operationId in batch", item)
            continue
        seen.add(operation_id)

        result.accepted.append(
            OperationSpec(
                index=index,
                operation_id=operation_id,
                quantity_per_unit=quantity_per_unit.value,
                value_per_unit=value_per_unit.value,
            )
        )

    _log_rejections("operation spec", result)
    return result


def validate_completion_entries(items: list) -> BatchValidation:
    result = BatchValidation()

    for index, item in enumerate(items):
        if not isinstance(item, dict):
            result.reject(index, "not an object", item)
            continue

        operation_id = clean_identifier(_field(item, "operationId", "operation_id"))
        if operation_id is None:
            result.reject(index, "operationId is required", item)
            continue

        quantity = coerce_positive(_field(item, "quantity"))
        if not quantity.ok:
            result.reject(index, f"quantity {quantity.reason}", item)
            continue

        result.accepted.append(CompletionEntry(index=index, operation_id=operation_id, quantity=quantity.value))

    _log_rejections("completion entry", result)
    return result


def _log_rejections(kind: str, result: BatchValidation) -> None:
    for rejection in result.rejected:
        logger.info(
            "Dropped invalid %s",
            kind,
            extra={"index": rejection.index, "reason": rejection.reason},
        )
