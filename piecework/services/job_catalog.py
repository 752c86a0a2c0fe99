"""
Read-only adapter for the external job catalog.

The catalog is a separate relational system exposing two stored procedures.
It is used for job-number search and form autofill only; once a job ledger
exists, the ledger's totalUnits is authoritative.
"""

from __future__ import annotations

import logging
import os
import time
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError

from piecework.core.errors import DependencyError, NotFoundError, ValidationError
from piecework.services.validation import coerce_number

logger = logging.getLogger(__name__)

SEARCH_PROCEDURE = "dbo.contractor_search_jobnumbers"
DETAILS_PROCEDURE = "dbo.contractor_get_job_details"

_JOB_NUMBER_COLUMNS = ("JobNumber", "Job_Number", "jobNumber", "job_number", "JobNo", "Job_NO")
_CLIENT_COLUMNS = ("Client Name", "ClientName", "clientName")
_TITLE_COLUMNS = ("Job Title", "JobTitle", "jobTitle")
_QUANTITY_COLUMNS = ("OrderQty", "orderQty", "Qty", "qty")
_CATEGORY_COLUMNS = ("ProductCategory", "productCategory", "ProductCat", "productCat")
_UNIT_PRICE_COLUMNS = ("UnitPrice", "unitPrice", "unit_price")


def _search_min_length() -> int:
    return int(os.getenv("JOB_SEARCH_MIN_LENGTH", "4"))


def _first_present(row: Mapping[str, Any], columns: tuple, default: Any = None) -> Any:
    for column in columns:
        value = row.get(column)
        if value not in (None, ""):
            return value
    return default


def job_number_from_row(row: Mapping[str, Any]) -> Optional[str]:
    value = _first_present(row, _JOB_NUMBER_COLUMNS)
    if value is None and row:
        value = next(iter(row.values()))
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _number_from_row(row: Mapping[str, Any], columns: tuple) -> Decimal:
    result = coerce_number(_first_present(row, columns))
    return result.value if result.ok else Decimal(0)


def metadata_from_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "client_name": str(_first_present(row, _CLIENT_COLUMNS, "")),
        "title": str(_first_present(row, _TITLE_COLUMNS, "")),
        "total_units": _number_from_row(row, _QUANTITY_COLUMNS),
        "category": str(_first_present(row, _CATEGORY_COLUMNS, "")),
        "unit_price": _number_from_row(row, _UNIT_PRICE_COLUMNS),
    }


class JobCatalog:
    def __init__(self, engine=None):
        self._engine = engine

    def _execute(self, sql: str, params: Dict[str, Any]) -> List[Mapping[str, Any]]:
        if self._engine is None:
            raise DependencyError("Job catalog is not configured")

        started = time.monotonic()
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(text(sql), params).mappings().all()
        except SQLAlchemyError as exc:
            logger.exception("Job catalog call failed", extra={"sql": sql})
            raise DependencyError("Job catalog unavailable") from exc

        logger.info(
            "Job catalog call completed",
            extra={"sql": sql, "rows": len(rows), "elapsed_ms": int((time.monotonic() - started) * 1000)},
        )
        return [dict(r) for r in rows]

    def search_job_numbers(self, fragment: str) -> List[str]:
        fragment = (fragment or "").strip()
        min_length = _search_min_length()
        if len(fragment) < min_length:
            raise ValidationError(f"Job number part must be at least {min_length} characters")

        rows = self._execute(
            f"EXEC {SEARCH_PROCEDURE} @JobNumberPart = :part",
            {"part": fragment},
        )
        numbers = [job_number_from_row(r) for r in rows]
        return [n for n in numbers if n]

    def get_job_metadata(self, job_number: str) -> Dict[str, Any]:
        job_number = (job_number or "").strip()
        if not job_number:
            raise ValidationError("Job number is required")

        rows = self._execute(
            f"EXEC {DETAILS_PROCEDURE} @JobBookingNo = :job_number",
            {"job_number": job_number},
        )
        if not rows:
            raise NotFoundError("Job not found in catalog")
        return metadata_from_row(rows[0])


_catalog: Optional[JobCatalog] = None
_configured_catalog_url: Optional[str] = None


def get_job_catalog() -> JobCatalog:
    """FastAPI dependency. Unset JOB_CATALOG_DATABASE_URL yields an unconfigured catalog."""
    global _catalog, _configured_catalog_url

    catalog_url = os.getenv("JOB_CATALOG_DATABASE_URL") or None

    if _catalog is not None and _configured_catalog_url == catalog_url:
        return _catalog

    engine = None
    if catalog_url:
        try:
            engine = create_engine(catalog_url, pool_pre_ping=True)
        except (SQLAlchemyError, ImportError):
            # missing driver or malformed url: surface as unavailable on use
            logger.exception("Job catalog engine could not be created")
            engine = None

    _catalog = JobCatalog(engine)
    _configured_catalog_url = catalog_url
    return _catalog
