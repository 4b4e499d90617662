"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .routes import migrate, reports
from ..errors import (
    CapabilityMismatchError,
    ConnectorError,
    MalformedRecordError,
    ValidationFailedError,
)
from ..services.job_runner import JobAlreadyRunningError, JobNotFoundError

logger = logging.getLogger(__name__)

app = FastAPI(
    title="StoreBridge API",
    description="Compare and migrate data between WooCommerce and Shopify",
    version="0.1.0",
)

# Include routers
app.include_router(reports.router, prefix="/api", tags=["reports"])
app.include_router(migrate.router, prefix="/api/migrate", tags=["migrate"])


@app.exception_handler(CapabilityMismatchError)
async def capability_mismatch_handler(request: Request, exc: CapabilityMismatchError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(MalformedRecordError)
async def malformed_record_handler(request: Request, exc: MalformedRecordError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(ValidationFailedError)
async def validation_failed_handler(request: Request, exc: ValidationFailedError):
    return JSONResponse(status_code=422, content={"detail": "Validation failed", "errors": exc.errors})


@app.exception_handler(JobNotFoundError)
async def job_not_found_handler(request: Request, exc: JobNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(JobAlreadyRunningError)
async def job_running_handler(request: Request, exc: JobAlreadyRunningError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ConnectorError)
async def connector_error_handler(request: Request, exc: ConnectorError):
    logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc), "status_code": exc.status_code})


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
