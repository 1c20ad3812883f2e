# ============================================================================
# API ROUTES
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: API - FastAPI route definitions
# PURPOSE: HTTP endpoints for health, thread dumps and heap dumps
# CREATED: 19 OCT 2026
# ============================================================================
"""
API Routes

Thin HTTP layer over DiagnosticsServices.

Endpoints:
    GET    /health                 Aggregate health (200 UP, 503 DOWN)
    GET    /health/indicators      Registered indicators and their flags
    GET    /health/{name}          Single indicator (404 if unknown)
    GET    /threaddump             Thread / event loop snapshot
    POST   /heapdump               Write a heap dump (200, or 500 on failure)
    GET    /heapdump/stats         Dump files currently on disk
    DELETE /heapdump               Delete dumps older than max_age_ms
    GET    /heapdump/download      Download a dump (403 outside dump dir)
"""

import logging
import os

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import FileResponse, JSONResponse

from core.errors import DumpAccessError, RetryExhaustedError
from diagnostics.heap_dump import DEFAULT_MAX_AGE_MS
from health.core import HealthStatus

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================
# Set by the main app at startup

_services = None


def set_services(services) -> None:
    """Set the DiagnosticsServices instance used by the routes."""
    global _services
    _services = services


def get_services():
    if _services is None:
        raise HTTPException(500, "Diagnostics services not initialized")
    return _services


def _status_to_http_code(status: HealthStatus) -> int:
    """Map aggregate health status to HTTP status code."""
    return 503 if status == HealthStatus.DOWN else 200


# ============================================================================
# HEALTH
# ============================================================================

@router.get("/health", tags=["Health"])
async def aggregate_health():
    """
    Run every enabled indicator and fold the results.

    Returns:
        200: UP
        503: A critical indicator is DOWN
    """
    services = get_services()
    try:
        result = await services.check_health()
    except RetryExhaustedError as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(500, str(e))

    return JSONResponse(
        status_code=_status_to_http_code(result.status),
        content=result.to_dict(),
    )


@router.get("/health/indicators", tags=["Health"])
async def list_indicators():
    """Registered indicators, including disabled ones."""
    services = get_services()
    return {"indicators": services.registry.list_all()}


@router.get("/health/{name}", tags=["Health"])
async def single_indicator(name: str):
    """
    Run a single indicator by name.

    Useful for debugging specific components.
    """
    services = get_services()
    if name not in services.registry:
        raise HTTPException(404, f"Health indicator not found: {name}")

    try:
        report = await services.check_indicator(name)
    except RetryExhaustedError as e:
        logger.error(f"Health check {name} failed: {e}")
        raise HTTPException(500, str(e))

    if report is None:
        raise HTTPException(404, f"Health indicator not found: {name}")

    body = report.to_dict()
    body["critical"] = report.critical
    body["durationMs"] = round(report.duration_ms, 2)
    return body


# ============================================================================
# THREAD DUMP
# ============================================================================

@router.get("/threaddump", tags=["Diagnostics"])
async def thread_dump():
    """Structured snapshot of threads, event loop and pending tasks."""
    services = get_services()
    try:
        snapshot = await services.collect_thread_dump()
    except RetryExhaustedError as e:
        logger.error(f"Thread dump failed: {e}")
        raise HTTPException(500, str(e))
    return snapshot.to_dict()


# ============================================================================
# HEAP DUMP
# ============================================================================

@router.post("/heapdump", tags=["Diagnostics"])
async def create_heap_dump():
    """
    Write a heap dump into the configured directory.

    Returns:
        200: Dump written (body has filePath and metadata)
        500: Dump failed (body has error and metadata)
    """
    services = get_services()
    try:
        result = await services.generate_heap_dump()
    except RetryExhaustedError as e:
        logger.error(f"Heap dump failed: {e}")
        raise HTTPException(500, str(e))

    return JSONResponse(
        status_code=200 if result.success else 500,
        content=result.to_dict(),
    )


@router.get("/heapdump/stats", tags=["Diagnostics"])
async def heap_dump_stats():
    """Count, total size and listing of dump files."""
    services = get_services()
    stats = await services.heap_dump_stats()
    return stats.to_dict()


@router.delete("/heapdump", tags=["Diagnostics"])
async def cleanup_heap_dumps(
    max_age_ms: int = Query(DEFAULT_MAX_AGE_MS, ge=0, description="Delete dumps older than this"),
):
    """Delete dump files older than max_age_ms."""
    services = get_services()
    deleted = await services.cleanup_heap_dumps(max_age_ms)
    return {"deleted": deleted, "count": len(deleted)}


@router.get("/heapdump/download", tags=["Diagnostics"])
async def download_heap_dump(file: str = Query(..., min_length=1)):
    """
    Download a dump file by name.

    Returns:
        403: Path resolves outside the dump directory
        404: File does not exist
    """
    services = get_services()
    try:
        path = services.heap_dump.resolve_dump_path(file)
    except DumpAccessError as e:
        logger.warning(f"Rejected heap dump download: {file}")
        raise HTTPException(403, str(e))

    if not os.path.isfile(path):
        raise HTTPException(404, f"Heap dump not found: {file}")

    return FileResponse(
        path,
        media_type="application/octet-stream",
        filename=os.path.basename(path),
    )
