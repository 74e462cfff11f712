"""
Contracts for the external audit engines.

The orchestrator only knows these shapes; any engine that accepts the
request model and returns the documented dict can be swapped in.
"""
from dataclasses import dataclass
from typing import Any, Dict, Protocol

from app.features.scan.schemas.adapters import (
    AccessibilityAuditRequest,
    CrawlRequest,
    PerformanceAuditRequest,
    SecurityAuditRequest,
)

RawOutput = Dict[str, Any]


class Crawler(Protocol):
    """Returns {"endpoints": [absolute urls]}."""

    async def crawl(self, request: CrawlRequest) -> RawOutput:
        ...


class PerformanceAuditor(Protocol):
    """
    Returns {"summary": {overallPerformanceScore, overallSeoScore, performanceGrade, seoGrade},
             "pageResults": [{url, metrics, ...}],
             "issues": {"performance": [...], "seo": [...]}}.
    """

    async def audit(self, request: PerformanceAuditRequest) -> RawOutput:
        ...


class AccessibilityAuditor(Protocol):
    """
    Returns {"results": [{url, status, accessibility_score,
                          violations: [{id, description, helpUrl, impact}]}]}.
    """

    async def audit(self, request: AccessibilityAuditRequest) -> RawOutput:
        ...


class SecurityAuditor(Protocol):
    """
    Returns {"summary": {"riskDistribution": {high, medium, low},
                         "topVulnerabilities": [{title, risk, occurrences, impact, effort}]},
             "websites": [{url, issues: [{title, risk, description, impact, effort}]}]}.
    """

    async def audit(self, request: SecurityAuditRequest) -> RawOutput:
        ...


@dataclass
class AuditAdapters:
    crawler: Crawler
    performance: PerformanceAuditor
    accessibility: AccessibilityAuditor
    security: SecurityAuditor


def build_default_adapters() -> AuditAdapters:
    """Wire the built-in engines: Selenium crawl, Lighthouse, axe-core, OWASP ZAP."""
    from app.features.scan.services.adapters.axe import AxeAccessibilityAuditor
    from app.features.scan.services.adapters.crawler import SeleniumCrawler
    from app.features.scan.services.adapters.lighthouse import LighthouseAuditor
    from app.features.scan.services.adapters.zap import ZapSecurityAuditor

    return AuditAdapters(
        crawler=SeleniumCrawler(),
        performance=LighthouseAuditor(),
        accessibility=AxeAccessibilityAuditor(),
        security=ZapSecurityAuditor(),
    )
