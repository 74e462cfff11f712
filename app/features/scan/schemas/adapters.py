"""
Inputs handed to the audit adapters. Outputs stay raw dicts because each
audit engine reports in its own shape; the score normalizer reads them.
"""
from typing import List, Optional

from pydantic import Field

from app.features.scan.schemas.scan import CamelModel


class CrawlRequest(CamelModel):
    url: str
    max_depth: int = 2


class PerformanceAuditRequest(CamelModel):
    endpoints: List[str]
    batch_size: int = 3
    output_target: Optional[str] = None


class AccessibilityAuditRequest(CamelModel):
    scan_id: str
    endpoints: List[str]


class SecurityScanOptions(CamelModel):
    max_depth: int = 2
    timeout: float = 180  # seconds
    passive_scan_only: bool = False
    batch_size: int = 2


class SecurityAuditRequest(CamelModel):
    endpoints: List[str]
    output_target: Optional[str] = None
    options: SecurityScanOptions = Field(default_factory=SecurityScanOptions)
