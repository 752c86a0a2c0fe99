from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from piecework.core.errors import PieceworkError
from piecework.core.logging import configure_logging
from piecework.models import (  # noqa: F401
    completion_batch,
    completion_event,
    contractor,
    contractor_work_log,
    job_ledger,
    operation,
    operation_quota,
)
from piecework.routers.auth import router as auth_router
from piecework.routers.completions import router as completions_router
from piecework.routers.job_catalog import router as job_catalog_router
from piecework.routers.job_ledgers import router as job_ledgers_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    yield


app = FastAPI(
    title="Piecework Operation Ledger",
    lifespan=lifespan,
)


@app.middleware("http")
async def catch_unhandled_exceptions(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception:
        logger.exception("Unhandled exception")
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


@app.exception_handler(PieceworkError)
async def handle_piecework_error(request: Request, exc: PieceworkError):
    if exc.status_code >= 500:
        logger.error("Request failed: %s", exc.message, extra={"path": request.url.path})
    else:
        logger.info("Request rejected: %s", exc.message, extra={"path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    # auth guards and unknown routes answer with the same body as service errors
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"error": "Malformed request body", "details": jsonable_encoder(exc.errors())},
    )


app.include_router(auth_router)
app.include_router(job_ledgers_router)
app.include_router(completions_router)
app.include_router(job_catalog_router)


@app.get("/")
def root():
    return {"status": "Piecework Operation Ledger running"}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "version": "1.0.0",
    }
