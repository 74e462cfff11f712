import asyncio
from typing import Any, Dict, List, Optional

import httpx
from selenium.common.exceptions import WebDriverException

from app.features.scan.schemas.adapters import AccessibilityAuditRequest
from app.features.scan.services.adapters.base import RawOutput
from app.features.scan.services.adapters.browser import build_driver
from app.features.scan.services.normalization.scoring import round_score
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)

STATUS_COMPLETED = "COMPLETED"
STATUS_FAILED = "FAILED"

AXE_RUN_SCRIPT = """
var done = arguments[arguments.length - 1];
axe.run(document).then(function (result) {
    done({
        violations: result.violations.map(function (v) {
            return {id: v.id, description: v.description, help: v.help,
                    helpUrl: v.helpUrl, impact: v.impact, nodes: v.nodes.length};
        }),
        passes: result.passes.length,
        incomplete: result.incomplete.length
    });
}).catch(function (err) { done({error: String(err)}); });
"""


def accessibility_score(passes: int, violations: int) -> int:
    """Share of evaluated rules that passed, as 0-100."""
    evaluated = passes + violations
    if evaluated == 0:
        return 100
    return round_score(passes / evaluated * 100)


def page_result(url: str, axe_result: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(axe_result, dict) or "error" in axe_result:
        error = axe_result.get("error") if isinstance(axe_result, dict) else "No result from axe"
        return {"url": url, "status": STATUS_FAILED, "accessibility_score": None,
                "violations": [], "error": error}

    violations = axe_result.get("violations") or []
    return {
        "url": url,
        "status": STATUS_COMPLETED,
        "accessibility_score": accessibility_score(axe_result.get("passes", 0), len(violations)),
        "violations": violations,
        "incomplete": axe_result.get("incomplete", 0),
    }


class AxeAccessibilityAuditor:
    """Injects axe-core into each page loaded in headless Chrome."""

    def __init__(self, script_url: Optional[str] = None):
        self.script_url = script_url or settings.AXE_SCRIPT_URL
        self._script: Optional[str] = None

    async def load_script(self) -> str:
        if self._script is None:
            async with httpx.AsyncClient(timeout=30, follow_redirects=True) as client:
                response = await client.get(self.script_url)
                response.raise_for_status()
                self._script = response.text
        return self._script

    def _audit_pages(self, endpoints: List[str], script: str) -> List[Dict[str, Any]]:
        results = []
        driver = build_driver()
        try:
            driver.set_script_timeout(settings.PAGE_LOAD_TIMEOUT)
            for url in endpoints:
                try:
                    driver.get(url)
                    driver.execute_script(script)
                    axe_result = driver.execute_async_script(AXE_RUN_SCRIPT)
                except WebDriverException as e:
                    logger.warning(f"axe audit failed for {url}: {e.msg or e}")
                    axe_result = {"error": e.msg or str(e)}
                results.append(page_result(url, axe_result))
        finally:
            driver.quit()
        return results

    async def audit(self, request: AccessibilityAuditRequest) -> RawOutput:
        script = await self.load_script()
        results = await asyncio.to_thread(self._audit_pages, request.endpoints, script)

        completed = sum(1 for result in results if result["status"] == STATUS_COMPLETED)
        logger.info(f"[{request.scan_id}] axe audited {completed}/{len(results)} pages")
        return {
            "scan_id": request.scan_id,
            "results": results,
            "summary": {"total": len(results), "completed": completed},
        }
