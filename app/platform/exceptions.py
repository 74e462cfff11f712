from typing import Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.platform.logger import get_logger
from app.platform.response import api_response

logger = get_logger(__name__)


class AppError(Exception):
    """Base error surfaced to API clients with its own status code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ScanValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class ScanNotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, scan_id: int):
        super().__init__(f"Scan {scan_id} not found")
        self.scan_id = scan_id


class ScanQueueFullError(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class StageFailure(Exception):
    """An audit stage raised or returned something unusable. Terminal for the scan."""

    def __init__(self, stage: str, message: str):
        super().__init__(f"{stage} stage failed: {message}")
        self.stage = stage
        self.message = message


class SnapshotWriteError(Exception):
    """A stage snapshot could not be written. Never fatal for the scan."""


def add_exception_handlers(app):
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return api_response(message=exc.message, status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return api_response(message=str(exc.detail) or "Error", status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return api_response(
            message="Validation failed",
            status_code=status.HTTP_400_BAD_REQUEST,
            data={"errors": exc.errors()},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return api_response(
            message="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
