import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from app.features.scan.schemas.scan import AggregateResult


class ScanStatus(str, enum.Enum):
    """Scan status state machine: queued -> scanning -> success | error"""
    queued = "queued"
    scanning = "scanning"
    success = "success"
    error = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.success, ScanStatus.error)


class ScanProgress:
    """Progress checkpoints reported while a scan moves through its stages."""
    STARTED = 0
    CRAWLED = 10
    PERFORMANCE_STARTED = 30
    PERFORMANCE_DONE = 60
    SECURITY_STARTED = 80
    AGGREGATING = 95
    COMPLETE = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ScanRecord:
    """
    One submitted URL and everything known about its scan.

    Mutated only by the orchestration task that owns it. `results` is set
    iff status is success, `error` iff status is error.
    """
    id: int
    url: str
    created_at: datetime = field(default_factory=_utcnow)
    status: ScanStatus = ScanStatus.queued
    progress: int = ScanProgress.STARTED
    results: Optional["AggregateResult"] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def _ensure_active(self) -> None:
        if self.is_terminal:
            raise RuntimeError(f"Scan {self.id} is already {self.status.value}")

    def start(self) -> None:
        self._ensure_active()
        self.status = ScanStatus.scanning
        if self.started_at is None:
            self.started_at = _utcnow()

    def advance(self, progress: int) -> None:
        """Move progress forward; lower values are ignored so readers never see it drop."""
        self._ensure_active()
        progress = max(0, min(ScanProgress.COMPLETE, int(progress)))
        if progress > self.progress:
            self.progress = progress

    def succeed(self, results: "AggregateResult") -> None:
        self._ensure_active()
        self.results = results
        self.error = None
        self.status = ScanStatus.success
        self.progress = ScanProgress.COMPLETE
        self.finished_at = _utcnow()

    def fail(self, message: str) -> None:
        self._ensure_active()
        self.results = None
        self.error = message or "Unknown error occurred"
        self.status = ScanStatus.error
        self.progress = ScanProgress.COMPLETE
        self.finished_at = _utcnow()
