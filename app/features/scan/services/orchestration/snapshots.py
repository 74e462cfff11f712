import asyncio
import json
from pathlib import Path
from typing import Any, Optional, Union

from app.platform.exceptions import SnapshotWriteError
from app.platform.logger import get_logger

logger = get_logger(__name__)

CRAWLER = "crawler"
PERFORMANCE = "performance"
UX_AUDIT = "ux-audit"
SECURITY = "security"


class SnapshotStore:
    """
    Writes each completed stage's raw output to <root>/<module>/scan-<id>-results.json.

    Snapshots outlive failed scans; a failed write is logged and the scan goes on.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def path_for(self, module: str, scan_id: int) -> Path:
        return self.root / module / f"scan-{scan_id}-results.json"

    def _write_sync(self, path: Path, data: Any) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            raise SnapshotWriteError(f"Could not write {path}: {e}") from e

    async def write(self, module: str, scan_id: int, data: Any) -> Optional[Path]:
        path = self.path_for(module, scan_id)
        try:
            await asyncio.to_thread(self._write_sync, path, data)
        except SnapshotWriteError as e:
            logger.error(f"[Scan {scan_id}] Failed to save {module} results: {e}")
            return None

        logger.info(f"[Scan {scan_id}] Saved {module} results to {path}")
        return path
