from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from piecework.core.errors import DependencyError
from piecework.models.contractor import Contractor
from piecework.models.operation import Operation

logger = logging.getLogger(__name__)

UNKNOWN_OPERATION_NAME = "Unknown"


def operation_names(ids: Iterable[str], *, db: Session) -> dict[str, str]:
    wanted = sorted({str(i) for i in ids})
    if not wanted:
        return {}

    try:
        rows = db.query(Operation.id, Operation.name).filter(Operation.id.in_(wanted)).all()
    except SQLAlchemyError as exc:
        raise DependencyError("Operation catalog unavailable") from exc

    return {str(r.id): r.name for r in rows}


def contractor_names(ids: Iterable[str], *, db: Session) -> dict[str, str]:
    wanted = sorted({str(i) for i in ids})
    if not wanted:
        return {}

    try:
        rows = (
            db.query(Contractor.contractor_id, Contractor.name)
            .filter(Contractor.contractor_id.in_(wanted))
            .all()
        )
    except SQLAlchemyError as exc:
        raise DependencyError("Contractor directory unavailable") from exc

    return {str(r.contractor_id): r.name for r in rows}


def operation_names_or_empty(ids: Iterable[str], *, db: Session) -> dict[str, str]:
    """Degraded lookup: callers fall back to UNKNOWN_OPERATION_NAME."""
    try:
        return operation_names(ids, db=db)
    except DependencyError:
        db.rollback()
        logger.warning("Operation names unavailable; using fallback", exc_info=True)
        return {}


def contractor_names_or_empty(ids: Iterable[str], *, db: Session) -> dict[str, str]:
    try:
        return contractor_names(ids, db=db)
    except DependencyError:
        db.rollback()
        logger.warning("Contractor names unavailable; using ids", exc_info=True)
        return {}
