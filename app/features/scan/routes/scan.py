from fastapi import APIRouter, Depends, status

from app.features.scan.dependencies.scan import get_scan_orchestrator, get_scan_registry
from app.features.scan.schemas.scan import (
    ScanListItem,
    ScanRecordResponse,
    ScanStartRequest,
    ScanStartResponse,
    ScanStopResponse,
)
from app.features.scan.services.orchestration.orchestrator import ScanOrchestrator
from app.features.scan.services.registry.scan_registry import ScanRegistry
from app.platform.exceptions import ScanValidationError
from app.platform.logger import get_logger
from app.platform.response import api_response

logger = get_logger(__name__)

router = APIRouter(tags=["scan"])


@router.post("/scan")
async def start_scan(
    data: ScanStartRequest,
    orchestrator: ScanOrchestrator = Depends(get_scan_orchestrator),
):
    """
    Start a comprehensive scan (crawl, performance & SEO, accessibility, security).

    Responds as soon as the scan is registered; poll GET /scan/{scan_id}
    for progress and results.

    The top-level `status` of the envelope reports the HTTP outcome
    ("success"/"error"); the scan's own state is `data.status`.
    """
    if not data.url:
        raise ScanValidationError("URL is required")

    record = await orchestrator.submit(data.url)
    logger.info(f"[Scan {record.id}] Scan initiated for {record.url}")

    return api_response(
        data=ScanStartResponse(
            scan_id=record.id,
            status=record.status,
            message="Scan initiated successfully",
        ),
        message="Scan initiated successfully",
        status_code=status.HTTP_200_OK,
    )


@router.get("/scan/{scan_id}")
async def get_scan(
    scan_id: int,
    registry: ScanRegistry = Depends(get_scan_registry),
):
    """
    Scan status, progress and, once finished, results or error.

    A scan that failed is still a successful read: the envelope says
    "success" while `data.status` is "error" and `data.error` holds the reason.
    """
    record = await registry.get(scan_id)
    return api_response(
        data=ScanRecordResponse.from_record(record),
        message="Scan retrieved successfully",
    )


@router.post("/scan/{scan_id}/stop")
async def stop_scan(
    scan_id: int,
    orchestrator: ScanOrchestrator = Depends(get_scan_orchestrator),
):
    stopped = await orchestrator.cancel(scan_id)
    return api_response(
        data=ScanStopResponse(scan_id=scan_id, stopped=stopped),
        message="Scan stopped" if stopped else "Scan already finished",
    )


@router.get("/scans")
async def list_scans(registry: ScanRegistry = Depends(get_scan_registry)):
    """Scan history, newest first, with only the headline scores."""
    records = await registry.list()
    return api_response(
        data=[ScanListItem.from_record(record) for record in records],
        message="Scans retrieved successfully",
    )
