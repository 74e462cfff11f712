"""
Turn raw audit adapter output into comparable {score, issues} reports.

Every function here is pure: it reads one adapter's raw dict (tolerating
missing keys the way the engines tend to omit them) and returns a report
model. Derived scores (UX, security) are 0-100 integers, rounded half up;
performance and SEO scores are the engine's own values, passed through.
"""
import math
from typing import Any, Dict, List, Optional, Union

from app.features.scan.schemas.scan import (
    DEFAULT_METRICS,
    AggregateResult,
    PerformanceReport,
    ScanSummary,
    SecurityReport,
    SeoReport,
    UxReport,
    Vulnerability,
)
from app.features.scan.services.normalization.scoring import clamp_score, round_score
from app.platform.logger import get_logger

logger = get_logger(__name__)

MAX_VULNERABILITIES = 15

SECURITY_DEDUCTIONS = {
    "high": 15,
    "medium": 5,
    "low": 2,
}

INFORMATIONAL_RISKS = {"informational", "info"}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _as_number(value: Any) -> float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    return 0


def _engine_score(value: Any) -> Union[int, float]:
    """An engine-reported score as-is. Numeric strings are read as numbers; anything else is 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return 0
        if not math.isfinite(number):
            return 0
        return int(number) if number.is_integer() else number
    return 0


def _is_informational(risk: Any) -> bool:
    return str(risk or "").strip().lower() in INFORMATIONAL_RISKS


# ============================================================================
# Performance / SEO
# ============================================================================

def normalize_performance(raw: Optional[Dict[str, Any]]) -> PerformanceReport:
    """Pass the engine's own performance score and issues through untouched."""
    raw = _as_dict(raw)
    summary = _as_dict(raw.get("summary"))
    page_results = [page for page in _as_list(raw.get("pageResults")) if isinstance(page, dict)]

    metrics = page_results[0].get("metrics") if page_results else None
    if not metrics:
        metrics = dict(DEFAULT_METRICS)

    return PerformanceReport(
        score=_engine_score(summary.get("overallPerformanceScore")),
        metrics=metrics,
        issues=_as_list(_as_dict(raw.get("issues")).get("performance")),
        page_results=page_results,
    )


def normalize_seo(raw: Optional[Dict[str, Any]]) -> SeoReport:
    raw = _as_dict(raw)
    summary = _as_dict(raw.get("summary"))

    return SeoReport(
        score=_engine_score(summary.get("overallSeoScore")),
        issues=_as_list(_as_dict(raw.get("issues")).get("seo")),
    )


# ============================================================================
# UX / accessibility
# ============================================================================

def normalize_ux(raw: Optional[Dict[str, Any]]) -> UxReport:
    """
    Average accessibility score over completed pages and group violations.

    Pages that did not complete are left out of the average and contribute
    no violations. Recommendations read
    "<description> (<count> instances across <N> pages)" per rule id.
    """
    raw = _as_dict(raw)
    if "results" not in raw:
        return UxReport()

    all_violations: List[Dict[str, Any]] = []
    total_score = 0.0
    completed_audits = 0

    for page in _as_list(raw.get("results")):
        page = _as_dict(page)
        if str(page.get("status", "")).lower() != "completed":
            continue

        total_score += _as_number(page.get("accessibility_score"))
        completed_audits += 1

        for violation in _as_list(page.get("violations")):
            violation = _as_dict(violation)
            all_violations.append({
                **violation,
                "url": page.get("url"),
                "severity": violation.get("impact") or "minor",
            })

    average_score = round_score(total_score / completed_audits) if completed_audits else 0

    # insertion order keeps rules in first-seen order
    violations_by_rule: Dict[Any, Dict[str, Any]] = {}
    for violation in all_violations:
        rule_id = violation.get("id")
        grouped = violations_by_rule.setdefault(rule_id, {
            "description": violation.get("description"),
            "count": 0,
            "affected_pages": [],
        })
        grouped["count"] += 1
        if violation["url"] not in grouped["affected_pages"]:
            grouped["affected_pages"].append(violation["url"])

    recommendations = [
        f"{grouped['description']} ({grouped['count']} instances across "
        f"{len(grouped['affected_pages'])} pages)"
        for grouped in violations_by_rule.values()
    ]

    return UxReport(score=average_score, issues=all_violations, recommendations=recommendations)


# ============================================================================
# Security
# ============================================================================

def calculate_security_score(risk_distribution: Optional[Dict[str, Any]]) -> int:
    """100 minus 15 per high, 5 per medium, 2 per low finding, clamped to 0-100."""
    risks = _as_dict(risk_distribution)
    score = 100.0
    for risk, deduction in SECURITY_DEDUCTIONS.items():
        score -= _as_number(risks.get(risk)) * deduction
    return clamp_score(score)


def _vulnerability_from_summary(entry: Dict[str, Any]) -> Vulnerability:
    return Vulnerability(
        title=entry.get("title"),
        severity=str(entry.get("risk") or "").lower() or "medium",
        description=entry.get("description") or entry.get("title"),
        count=int(_as_number(entry.get("occurrences"))) or 1,
        impact=entry.get("impact") or 5,
        effort=entry.get("effort") or "Medium",
    )


def _vulnerability_from_issue(issue: Dict[str, Any]) -> Vulnerability:
    return Vulnerability(
        title=issue.get("title"),
        severity=str(issue.get("risk") or "").lower() or "medium",
        description=issue.get("description") or issue.get("title"),
        count=1,
        impact=issue.get("impact") or 5,
        effort=issue.get("effort") or "Medium",
    )


def collect_vulnerabilities(raw: Dict[str, Any]) -> List[Vulnerability]:
    """
    Prefer the engine's own top-vulnerabilities summary (first 15 non-informational).
    When that yields nothing, walk each site's issue list, 15 per site.
    """
    summary = _as_dict(raw.get("summary"))
    vulnerabilities: List[Vulnerability] = []

    top = summary.get("topVulnerabilities")
    if isinstance(top, list):
        relevant = [
            _as_dict(entry) for entry in top
            if not _is_informational(_as_dict(entry).get("risk"))
        ]
        vulnerabilities.extend(
            _vulnerability_from_summary(entry) for entry in relevant[:MAX_VULNERABILITIES]
        )

    if not vulnerabilities:
        for website in _as_list(raw.get("websites")):
            issues = [
                _as_dict(issue) for issue in _as_list(_as_dict(website).get("issues"))
                if _as_dict(issue).get("risk") and not _is_informational(_as_dict(issue).get("risk"))
            ]
            vulnerabilities.extend(
                _vulnerability_from_issue(issue) for issue in issues[:MAX_VULNERABILITIES]
            )

    return vulnerabilities


def normalize_security(raw: Optional[Dict[str, Any]]) -> SecurityReport:
    raw = _as_dict(raw)
    summary = raw.get("summary")
    if not isinstance(summary, dict):
        return SecurityReport()

    risks = _as_dict(summary.get("riskDistribution"))
    score = calculate_security_score(risks)
    vulnerabilities = collect_vulnerabilities(raw)

    logger.info(
        f"Security score calculated: {score} (High: {risks.get('high', 0)}, "
        f"Medium: {risks.get('medium', 0)}, Low: {risks.get('low', 0)}); "
        f"{len(vulnerabilities)} vulnerabilities to display"
    )
    return SecurityReport(score=score, vulnerabilities=vulnerabilities)


# ============================================================================
# Aggregate
# ============================================================================

def build_aggregate(
    *,
    performance_raw: Optional[Dict[str, Any]],
    ux_raw: Optional[Dict[str, Any]],
    security_raw: Optional[Dict[str, Any]],
    total_pages: int,
    scanned_pages: int,
) -> AggregateResult:
    """Normalize every dimension and fold them into one report."""
    summary = _as_dict(_as_dict(performance_raw).get("summary"))

    return AggregateResult(
        performance=normalize_performance(performance_raw),
        seo=normalize_seo(performance_raw),
        ux=normalize_ux(ux_raw),
        security=normalize_security(security_raw),
        summary=ScanSummary(
            total_pages=total_pages,
            scanned_pages=scanned_pages,
            performance_grade=summary.get("performanceGrade") or "F",
            seo_grade=summary.get("seoGrade") or "F",
        ),
    )
