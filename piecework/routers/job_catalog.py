from typing import List

from fastapi import APIRouter, Depends

from piecework.deps.auth import require_auth
from piecework.schemas.common import ErrorResponse
from piecework.schemas.job_catalog import JobMetadataResponse
from piecework.services.job_catalog import JobCatalog, get_job_catalog

router = APIRouter(
    prefix="/job-catalog",
    tags=["Job Catalog"],
    responses={503: {"model": ErrorResponse}},
)


@router.get("/search/{fragment}", response_model=List[str])
def search_job_numbers(
    fragment: str,
    catalog: JobCatalog = Depends(get_job_catalog),
    _auth: str = Depends(require_auth),
):
    return catalog.search_job_numbers(fragment)


@router.get("/{job_number}", response_model=JobMetadataResponse)
def get_job_metadata(
    job_number: str,
    catalog: JobCatalog = Depends(get_job_catalog),
    _auth: str = Depends(require_auth),
):
    return {"job_number": job_number, **catalog.get_job_metadata(job_number)}
