import asyncio
from typing import Any, Dict, List, Optional

import httpx

from app.features.scan.schemas.adapters import SecurityAuditRequest, SecurityScanOptions
from app.features.scan.services.adapters.base import RawOutput
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)

RISK_ORDER = ["High", "Medium", "Low", "Informational"]
RISK_IMPACT = {"High": 9, "Medium": 6, "Low": 3, "Informational": 1}
RISK_EFFORT = {"High": "High", "Medium": "Medium", "Low": "Low", "Informational": "Low"}


class ZapError(RuntimeError):
    pass


def _risk_label(risk: Any) -> str:
    """ZAP reports risk as 'High', or 'High (Medium)' with confidence appended on some versions."""
    label = str(risk or "").split("(")[0].strip().capitalize()
    if label == "Info":
        return "Informational"
    return label if label in RISK_IMPACT else "Informational"


def issues_from_alerts(alerts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """One issue per distinct alert, counting how many times ZAP raised it."""
    issues: Dict[str, Dict[str, Any]] = {}
    for alert in alerts:
        title = alert.get("alert") or alert.get("name") or "Unnamed alert"
        risk = _risk_label(alert.get("risk"))
        key = f"{alert.get('pluginId')}:{title}"
        issue = issues.setdefault(key, {
            "title": title,
            "risk": risk,
            "description": alert.get("description") or title,
            "solution": alert.get("solution"),
            "pluginId": alert.get("pluginId"),
            "impact": RISK_IMPACT[risk],
            "effort": RISK_EFFORT[risk],
            "occurrences": 0,
            "urls": [],
        })
        issue["occurrences"] += 1
        if alert.get("url") and alert["url"] not in issue["urls"]:
            issue["urls"].append(alert["url"])

    return sorted(issues.values(), key=lambda i: (RISK_ORDER.index(i["risk"]), -i["occurrences"]))


def summarize_alerts(alerts_by_site: Dict[str, List[Dict[str, Any]]]) -> RawOutput:
    """
    Build the security output shape from raw ZAP alerts grouped by scanned site.

    riskDistribution counts distinct issues per site, not raw alert instances.
    """
    websites = []
    distribution = {"high": 0, "medium": 0, "low": 0, "informational": 0}
    top: Dict[str, Dict[str, Any]] = {}

    for url, alerts in alerts_by_site.items():
        issues = issues_from_alerts(alerts)
        websites.append({"url": url, "issues": issues})

        for issue in issues:
            distribution[issue["risk"].lower()] += 1
            entry = top.setdefault(issue["title"], {
                "title": issue["title"],
                "risk": issue["risk"],
                "description": issue["description"],
                "occurrences": 0,
                "impact": issue["impact"],
                "effort": issue["effort"],
            })
            entry["occurrences"] += issue["occurrences"]

    top_vulnerabilities = sorted(
        top.values(), key=lambda v: (RISK_ORDER.index(v["risk"]), -v["occurrences"])
    )

    return {
        "summary": {
            "totalWebsites": len(websites),
            "totalIssues": sum(len(site["issues"]) for site in websites),
            "riskDistribution": distribution,
            "topVulnerabilities": top_vulnerabilities,
        },
        "websites": websites,
    }


class ZapSecurityAuditor:
    """Drives an OWASP ZAP daemon through its JSON API."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        poll_interval: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url or settings.ZAP_API_URL
        self.api_key = api_key if api_key is not None else settings.ZAP_API_KEY
        self.poll_interval = settings.ZAP_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"X-ZAP-API-Key": self.api_key} if self.api_key else {}
        return httpx.AsyncClient(
            base_url=self.api_url, headers=headers, timeout=30, transport=self.transport
        )

    async def _call(self, client: httpx.AsyncClient, path: str, **params: Any) -> Dict[str, Any]:
        try:
            response = await client.get(f"/JSON/{path}/", params=params)
        except httpx.HTTPError as e:
            raise ZapError(f"ZAP request {path} failed: {e}") from e
        if response.status_code != 200:
            raise ZapError(f"ZAP request {path} returned {response.status_code}: {response.text[:200]}")
        return response.json()

    async def _pause(self, deadline: float) -> None:
        """Sleep one poll interval, but never past the deadline."""
        remaining = deadline - asyncio.get_running_loop().time()
        await asyncio.sleep(max(0.0, min(self.poll_interval, remaining)))

    async def _wait_for(
        self, client: httpx.AsyncClient, component: str, scan_id: str, deadline: float
    ) -> bool:
        """Poll a spider/ascan until 100%. Returns False if the deadline passed first."""
        loop = asyncio.get_running_loop()
        while True:
            status = await self._call(client, f"{component}/view/status", scanId=scan_id)
            if int(status.get("status", 0)) >= 100:
                return True
            if loop.time() >= deadline:
                await self._call(client, f"{component}/action/stop", scanId=scan_id)
                return False
            await self._pause(deadline)

    async def _wait_for_passive(self, client: httpx.AsyncClient, deadline: float) -> None:
        loop = asyncio.get_running_loop()
        while loop.time() < deadline:
            records = await self._call(client, "pscan/view/recordsToScan")
            if int(records.get("recordsToScan", 0)) == 0:
                return
            await self._pause(deadline)

    async def scan_site(
        self,
        client: httpx.AsyncClient,
        url: str,
        options: SecurityScanOptions,
        deadline: float,
    ) -> List[Dict[str, Any]]:
        """
        Spider, optionally active-scan, then collect alerts for one site.

        Scans still running at `deadline` are stopped and whatever ZAP has
        found so far is returned.
        """
        spider = await self._call(client, "spider/action/scan", url=url, recurse="true")
        if not await self._wait_for(client, "spider", spider["scan"], deadline):
            logger.warning(f"ZAP spider hit the time budget for {url}")

        if not options.passive_scan_only:
            active = await self._call(client, "ascan/action/scan", url=url, recurse="true")
            if not await self._wait_for(client, "ascan", active["scan"], deadline):
                logger.warning(f"ZAP active scan hit the time budget for {url}")

        await self._wait_for_passive(client, deadline)
        alerts = await self._call(client, "core/view/alerts", baseurl=url)
        return alerts.get("alerts", [])

    async def audit(self, request: SecurityAuditRequest) -> RawOutput:
        options = request.options
        batch_size = max(1, options.batch_size)
        alerts_by_site: Dict[str, List[Dict[str, Any]]] = {}
        # one budget for the whole audit, shared by every batch
        deadline = asyncio.get_running_loop().time() + options.timeout

        async with self._client() as client:
            await self._call(client, "spider/action/setOptionMaxDepth", Integer=options.max_depth)
            for start in range(0, len(request.endpoints), batch_size):
                batch = request.endpoints[start:start + batch_size]
                results = await asyncio.gather(
                    *(self.scan_site(client, url, options, deadline) for url in batch)
                )
                alerts_by_site.update(zip(batch, results))

        output = summarize_alerts(alerts_by_site)
        logger.info(
            f"ZAP scanned {len(alerts_by_site)} sites: {output['summary']['riskDistribution']}"
        )
        return output
