import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.features.scan.schemas.adapters import PerformanceAuditRequest
from app.features.scan.services.adapters.base import RawOutput
from app.features.scan.services.normalization.scoring import letter_grade, mean_score
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)

CATEGORIES = ("performance", "seo")

# lighthouse audit id -> metric key reported to clients
METRIC_AUDITS = {
    "first-contentful-paint": "firstContentfulPaint",
    "largest-contentful-paint": "largestContentfulPaint",
    "total-blocking-time": "totalBlockingTime",
    "cumulative-layout-shift": "cumulativeLayoutShift",
    "speed-index": "speedIndex",
}

PASSING_AUDIT_SCORE = 0.9
SKIPPED_DISPLAY_MODES = {"manual", "notApplicable", "informative", "error"}


class LighthouseError(RuntimeError):
    pass


def _category_score(lhr: Dict[str, Any], category: str) -> Optional[float]:
    score = lhr.get("categories", {}).get(category, {}).get("score")
    return score * 100 if isinstance(score, (int, float)) else None


def extract_metrics(lhr: Dict[str, Any]) -> Dict[str, float]:
    audits = lhr.get("audits", {})
    return {
        key: audits.get(audit_id, {}).get("numericValue") or 0
        for audit_id, key in METRIC_AUDITS.items()
    }


def extract_failing_audits(lhr: Dict[str, Any], category: str) -> List[Dict[str, Any]]:
    """Audits in `category` that scored below the passing threshold."""
    audits = lhr.get("audits", {})
    refs = lhr.get("categories", {}).get(category, {}).get("auditRefs", [])
    failing = []
    for ref in refs:
        audit = audits.get(ref.get("id"), {})
        score = audit.get("score")
        if audit.get("scoreDisplayMode") in SKIPPED_DISPLAY_MODES or score is None:
            continue
        if score < PASSING_AUDIT_SCORE:
            failing.append({
                "id": audit.get("id", ref.get("id")),
                "title": audit.get("title"),
                "description": audit.get("description"),
                "score": round(score * 100),
                "displayValue": audit.get("displayValue"),
            })
    return failing


def summarize_reports(reports: Dict[str, Dict[str, Any]]) -> RawOutput:
    """
    Fold per-page Lighthouse reports into the performance/SEO output shape.

    `reports` maps each url to its Lighthouse result, or to {"error": msg}
    when the run failed. Failed pages are listed but left out of the averages.
    """
    page_results = []
    issues: Dict[str, Dict[str, Dict[str, Any]]] = {category: {} for category in CATEGORIES}

    for url, lhr in reports.items():
        if "error" in lhr:
            page_results.append({
                "url": url,
                "performanceScore": None,
                "seoScore": None,
                "metrics": {},
                "error": lhr["error"],
            })
            continue

        page_results.append({
            "url": url,
            "performanceScore": _category_score(lhr, "performance"),
            "seoScore": _category_score(lhr, "seo"),
            "metrics": extract_metrics(lhr),
            "fetchedAt": lhr.get("fetchTime"),
        })

        for category in CATEGORIES:
            for audit in extract_failing_audits(lhr, category):
                entry = issues[category].setdefault(audit["id"], {**audit, "pages": []})
                entry["pages"].append(url)
                entry["score"] = min(entry["score"], audit["score"])

    performance = mean_score(
        page["performanceScore"] for page in page_results if page["performanceScore"] is not None
    )
    seo = mean_score(page["seoScore"] for page in page_results if page["seoScore"] is not None)

    return {
        "summary": {
            "totalPages": len(page_results),
            "successfulPages": sum(1 for page in page_results if "error" not in page),
            "overallPerformanceScore": performance or 0,
            "overallSeoScore": seo or 0,
            "performanceGrade": letter_grade(performance),
            "seoGrade": letter_grade(seo),
            "generatedAt": datetime.now(timezone.utc).isoformat(),
        },
        "pageResults": page_results,
        "issues": {category: list(found.values()) for category, found in issues.items()},
    }


class LighthouseAuditor:
    """Runs the Lighthouse CLI once per page, `batch_size` pages at a time."""

    def __init__(self, binary: Optional[str] = None, timeout: Optional[float] = None):
        self.binary = binary or settings.LIGHTHOUSE_BINARY
        self.timeout = timeout or settings.LIGHTHOUSE_TIMEOUT_SECONDS

    def command_for(self, url: str) -> List[str]:
        return [
            self.binary,
            url,
            "--output=json",
            "--output-path=stdout",
            "--quiet",
            f"--only-categories={','.join(CATEGORIES)}",
            "--chrome-flags=--headless --no-sandbox --disable-dev-shm-usage",
        ]

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()

    async def run_page(self, url: str) -> Dict[str, Any]:
        logger.info(f"Running Lighthouse for: {url}")
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command_for(url),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"Could not start Lighthouse for {url}: {e}")
            return {"error": f"Could not start Lighthouse: {e}"}

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Lighthouse timed out for {url}")
            return {"error": f"Lighthouse timed out after {self.timeout}s"}
        finally:
            # also reached on cancellation; never leave Chrome running
            if process.returncode is None:
                await self._kill(process)

        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip() or f"exit code {process.returncode}"
            logger.error(f"Lighthouse failed for {url}: {message}")
            return {"error": message}

        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            logger.error(f"Lighthouse returned invalid JSON for {url}: {e}")
            return {"error": f"Invalid Lighthouse output: {e}"}

    async def audit(self, request: PerformanceAuditRequest) -> RawOutput:
        if not request.endpoints:
            raise LighthouseError("No endpoints to audit")

        batch_size = max(1, request.batch_size)
        reports: Dict[str, Dict[str, Any]] = {}
        for start in range(0, len(request.endpoints), batch_size):
            batch = request.endpoints[start:start + batch_size]
            results = await asyncio.gather(*(self.run_page(url) for url in batch))
            reports.update(zip(batch, results))

        output = summarize_reports(reports)
        if output["summary"]["successfulPages"] == 0:
            raise LighthouseError(f"Lighthouse failed for all {len(reports)} pages")

        logger.info(
            f"Completed Lighthouse evaluation of {len(reports)} pages "
            f"(performance={output['summary']['overallPerformanceScore']}, "
            f"seo={output['summary']['overallSeoScore']})"
        )
        return output
