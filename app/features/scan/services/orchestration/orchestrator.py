import asyncio
from typing import Any, Awaitable, Dict, Optional

from app.features.scan.models.scan_record import ScanProgress, ScanRecord
from app.features.scan.schemas.adapters import (
    AccessibilityAuditRequest,
    CrawlRequest,
    PerformanceAuditRequest,
    SecurityAuditRequest,
    SecurityScanOptions,
)
from app.features.scan.services.adapters.base import AuditAdapters
from app.features.scan.services.normalization.score_normalizer import build_aggregate
from app.features.scan.services.orchestration import snapshots as modules
from app.features.scan.services.orchestration.snapshots import SnapshotStore
from app.features.scan.services.registry.scan_registry import ScanRegistry
from app.platform.config import Settings, settings as default_settings
from app.platform.exceptions import ScanQueueFullError, ScanValidationError, StageFailure
from app.platform.logger import get_logger
from app.platform.utils.url_validator import validate_url

logger = get_logger(__name__)

CANCELLED_MESSAGE = "Scan cancelled"


class ScanOrchestrator:
    """
    Drives each scan from crawl to aggregate report.

    One asyncio task per scan; at most MAX_CONCURRENT_SCANS run at once and
    the rest wait for a slot. Inside a scan the stages run strictly one after
    another, since later stages need the crawl's endpoints and each stage may
    launch a browser or scanner process. Any stage failure ends the scan in
    `error`; snapshots from stages that already finished stay on disk.
    """

    def __init__(
        self,
        registry: ScanRegistry,
        adapters: AuditAdapters,
        snapshots: SnapshotStore,
        config: Optional[Settings] = None,
    ):
        self.registry = registry
        self.adapters = adapters
        self.snapshots = snapshots
        self.config = config or default_settings
        self._slots = asyncio.Semaphore(max(1, self.config.MAX_CONCURRENT_SCANS))
        self._admission = asyncio.Lock()
        self._tasks: Dict[int, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Submission and control
    # ------------------------------------------------------------------

    async def submit(self, url: Optional[str]) -> ScanRecord:
        """Accept a URL, register the scan and start it in the background."""
        is_valid, url_str, error_message = validate_url(url or "")
        if not is_valid:
            raise ScanValidationError(f"Invalid URL: {error_message}")

        async with self._admission:
            active = await self.registry.count_active()
            if active >= self.config.MAX_PENDING_SCANS:
                logger.warning(f"Rejecting scan for {url_str}: {active} scans already pending")
                raise ScanQueueFullError("Too many scans in progress. Please try again shortly.")
            record = await self.registry.create(url_str)

        task = asyncio.create_task(self.run(record.id), name=f"scan-{record.id}")
        self._tasks[record.id] = task
        task.add_done_callback(lambda _t, scan_id=record.id: self._tasks.pop(scan_id, None))
        return record

    def task_for(self, scan_id: int) -> Optional[asyncio.Task]:
        return self._tasks.get(scan_id)

    @property
    def running_tasks(self) -> int:
        return len(self._tasks)

    async def cancel(self, scan_id: int) -> bool:
        """
        Stop a scan that has not finished. The record ends in `error` with
        "Scan cancelled". Returns False when the scan was already terminal.
        """
        record = await self.registry.get(scan_id)
        if record.is_terminal:
            return False

        task = self._tasks.get(scan_id)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

        # a task cancelled before it ever ran never reaches its own handler
        if not record.is_terminal:
            record.fail(CANCELLED_MESSAGE)
        logger.info(f"[Scan {scan_id}] Cancelled")
        return True

    async def shutdown(self) -> None:
        """Cancel every unfinished scan; each one ends in `error` with "Scan cancelled"."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} unfinished scans on shutdown")

        # tasks cancelled before they started never ran their own handler
        for record in await self.registry.list():
            if not record.is_terminal:
                record.fail(CANCELLED_MESSAGE)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(self, scan_id: int) -> ScanRecord:
        """Run one scan to a terminal state. Never raises for stage failures."""
        record = await self.registry.get(scan_id)
        try:
            async with self._slots:
                await self._execute(record)
        except asyncio.CancelledError:
            if not record.is_terminal:
                record.fail(CANCELLED_MESSAGE)
            logger.warning(f"[Scan {scan_id}] Cancelled at {record.progress}%")
            raise
        except StageFailure as e:
            logger.error(f"[Scan {scan_id}] Failed: {e}", exc_info=True)
            record.fail(str(e))
        except Exception as e:
            logger.exception(f"[Scan {scan_id}] Failed unexpectedly: {e}")
            record.fail(str(e) or e.__class__.__name__)
        return record

    async def _stage(self, scan_id: int, stage: str, call: Awaitable[Any]) -> Dict[str, Any]:
        try:
            output = await call
        except asyncio.TimeoutError as e:
            raise StageFailure(stage, "timed out") from e
        except Exception as e:
            raise StageFailure(stage, str(e) or e.__class__.__name__) from e

        if not isinstance(output, dict):
            raise StageFailure(stage, f"returned unusable output ({type(output).__name__})")
        logger.info(f"[Scan {scan_id}] {stage} stage finished")
        return output

    async def _execute(self, record: ScanRecord) -> None:
        scan_id, url, cfg = record.id, record.url, self.config
        logger.info(f"[Scan {scan_id}] Starting scan for {url}")

        # Step 1/4: crawl
        logger.info(f"[Scan {scan_id}] Step 1/4: Crawling website...")
        crawl_output = await self._stage(
            scan_id, "crawl",
            self.adapters.crawler.crawl(CrawlRequest(url=url, max_depth=cfg.CRAWL_MAX_DEPTH)),
        )
        await self.snapshots.write(modules.CRAWLER, scan_id, crawl_output)
        endpoints = [e for e in crawl_output.get("endpoints") or [] if isinstance(e, str) and e]
        if not endpoints:
            endpoints = [url]
        record.advance(ScanProgress.CRAWLED)
        logger.info(f"[Scan {scan_id}] Found {len(endpoints)} endpoints")

        audit_endpoints = endpoints[:cfg.AUDIT_PAGE_LIMIT]

        # Step 2/4: performance & SEO
        logger.info(f"[Scan {scan_id}] Step 2/4: Running performance & SEO audit...")
        record.advance(ScanProgress.PERFORMANCE_STARTED)
        performance_output = await self._stage(
            scan_id, "performance",
            self.adapters.performance.audit(PerformanceAuditRequest(
                endpoints=audit_endpoints,
                batch_size=cfg.PERFORMANCE_BATCH_SIZE,
                output_target=str(self.snapshots.path_for(modules.PERFORMANCE, scan_id)),
            )),
        )
        await self.snapshots.write(modules.PERFORMANCE, scan_id, performance_output)
        record.advance(ScanProgress.PERFORMANCE_DONE)

        # Step 3/4: accessibility
        logger.info(f"[Scan {scan_id}] Step 3/4: Running UX/accessibility audit...")
        ux_output = await self._stage(
            scan_id, "accessibility",
            self.adapters.accessibility.audit(AccessibilityAuditRequest(
                scan_id=f"scan-{scan_id}",
                endpoints=audit_endpoints,
            )),
        )
        await self.snapshots.write(modules.UX_AUDIT, scan_id, ux_output)

        # Step 4/4: security. The engine gets the budget and stops itself at it;
        # the outer timeout is a backstop for an engine that overruns it.
        logger.info(f"[Scan {scan_id}] Step 4/4: Running security audit...")
        record.advance(ScanProgress.SECURITY_STARTED)
        security_output = await self._stage(
            scan_id, "security",
            asyncio.wait_for(
                self.adapters.security.audit(SecurityAuditRequest(
                    endpoints=endpoints[:cfg.SECURITY_PAGE_LIMIT],
                    output_target=str(self.snapshots.path_for(modules.SECURITY, scan_id)),
                    options=SecurityScanOptions(
                        max_depth=cfg.CRAWL_MAX_DEPTH,
                        timeout=cfg.SECURITY_TIMEOUT_SECONDS,
                        passive_scan_only=cfg.SECURITY_PASSIVE_ONLY,
                        batch_size=cfg.SECURITY_BATCH_SIZE,
                    ),
                )),
                timeout=cfg.SECURITY_TIMEOUT_SECONDS + cfg.SECURITY_GRACE_SECONDS,
            ),
        )
        await self.snapshots.write(modules.SECURITY, scan_id, security_output)

        logger.info(f"[Scan {scan_id}] Processing results...")
        record.advance(ScanProgress.AGGREGATING)
        try:
            results = build_aggregate(
                performance_raw=performance_output,
                ux_raw=ux_output,
                security_raw=security_output,
                total_pages=len(endpoints),
                scanned_pages=len(audit_endpoints),
            )
        except Exception as e:
            raise StageFailure("aggregation", str(e) or e.__class__.__name__) from e

        record.succeed(results)
        logger.info(
            f"[Scan {scan_id}] Completed successfully. Overall: {results.overall}, "
            f"Performance: {results.performance.score}, SEO: {results.seo.score}, "
            f"UX: {results.ux.score}, Security: {results.security.score}"
        )
