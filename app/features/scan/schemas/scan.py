"""
Scan Schemas

Request and response models for the scan API endpoints, plus the
aggregate report produced once per successful scan. All models serialize
with camelCase aliases (scanId, createdAt, pageResults, ...).
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from app.features.scan.models.scan_record import ScanRecord, ScanStatus
from app.features.scan.services.normalization.scoring import calculate_overall_score


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


DEFAULT_METRICS: Dict[str, float] = {
    "firstContentfulPaint": 0,
    "largestContentfulPaint": 0,
    "totalBlockingTime": 0,
    "cumulativeLayoutShift": 0,
    "speedIndex": 0,
}


# ============================================================================
# Requests / acknowledgements
# ============================================================================

class ScanStartRequest(CamelModel):
    """Request to start a complete scan."""
    url: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={"example": {"url": "https://example.com"}},
    )


class ScanStartResponse(CamelModel):
    """Returned as soon as the scan is accepted; audit work continues in the background."""
    scan_id: int
    status: ScanStatus
    message: str


class ScanStopResponse(CamelModel):
    scan_id: int
    stopped: bool


# ============================================================================
# Aggregate report
# ============================================================================

class PerformanceReport(CamelModel):
    score: Union[int, float] = 0  # as reported by the engine
    metrics: Dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_METRICS))
    issues: List[Any] = Field(default_factory=list)
    page_results: List[Dict[str, Any]] = Field(default_factory=list)


class SeoReport(CamelModel):
    score: Union[int, float] = 0
    issues: List[Any] = Field(default_factory=list)


class UxReport(CamelModel):
    score: int = 0
    issues: List[Dict[str, Any]] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class Vulnerability(CamelModel):
    title: Optional[str] = None
    severity: str = "medium"
    description: Optional[str] = None
    count: int = 1
    impact: Any = 5
    effort: Any = "Medium"


class SecurityReport(CamelModel):
    score: int = 0
    vulnerabilities: List[Vulnerability] = Field(default_factory=list)


class ScanSummary(CamelModel):
    total_pages: int
    scanned_pages: int
    performance_grade: str = "F"
    seo_grade: str = "F"


class AggregateResult(CamelModel):
    """Combined report for one successful scan. `overall` is always derived."""
    performance: PerformanceReport
    seo: SeoReport
    ux: UxReport
    security: SecurityReport
    summary: ScanSummary

    @computed_field
    @property
    def overall(self) -> int:
        return calculate_overall_score(
            self.performance.score,
            self.seo.score,
            self.ux.score,
            self.security.score,
        )


# ============================================================================
# Query surface
# ============================================================================

class ScanRecordResponse(CamelModel):
    """Full view of one scan, polled by clients until it is terminal."""
    id: int
    url: str
    created_at: datetime
    status: ScanStatus
    progress: int
    results: Optional[AggregateResult] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: ScanRecord) -> "ScanRecordResponse":
        return cls(
            id=record.id,
            url=record.url,
            created_at=record.created_at,
            status=record.status,
            progress=record.progress,
            results=record.results,
            error=record.error,
            started_at=record.started_at,
            finished_at=record.finished_at,
        )


class ScoreOnly(CamelModel):
    score: Union[int, float]


class ScanScoreSummary(CamelModel):
    overall: int
    performance: ScoreOnly
    seo: ScoreOnly
    ux: ScoreOnly
    security: ScoreOnly

    @classmethod
    def from_results(cls, results: AggregateResult) -> "ScanScoreSummary":
        return cls(
            overall=results.overall,
            performance=ScoreOnly(score=results.performance.score),
            seo=ScoreOnly(score=results.seo.score),
            ux=ScoreOnly(score=results.ux.score),
            security=ScoreOnly(score=results.security.score),
        )


class ScanListItem(CamelModel):
    """History row: identity, progress and only the headline scores."""
    id: int
    url: str
    created_at: datetime
    status: ScanStatus
    progress: int
    results: Optional[ScanScoreSummary] = None

    @classmethod
    def from_record(cls, record: ScanRecord) -> "ScanListItem":
        return cls(
            id=record.id,
            url=record.url,
            created_at=record.created_at,
            status=record.status,
            progress=record.progress,
            results=ScanScoreSummary.from_results(record.results) if record.results else None,
        )
