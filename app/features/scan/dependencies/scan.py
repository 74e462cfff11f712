from fastapi import Request

from app.features.scan.services.orchestration.orchestrator import ScanOrchestrator
from app.features.scan.services.registry.scan_registry import ScanRegistry


def get_scan_registry(request: Request) -> ScanRegistry:
    """Registry built in the application lifespan."""
    return request.app.state.scan_registry


def get_scan_orchestrator(request: Request) -> ScanOrchestrator:
    return request.app.state.scan_orchestrator
