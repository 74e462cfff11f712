import asyncio
from typing import Dict, List

from app.features.scan.models.scan_record import ScanRecord
from app.platform.exceptions import ScanNotFoundError
from app.platform.logger import get_logger

logger = get_logger(__name__)


class ScanRegistry:
    """
    Process-local store of scan records keyed by a strictly increasing id.

    Built once at application startup and injected wherever records are
    needed. Ids are never reused and records are never evicted.
    """

    def __init__(self, first_id: int = 1):
        self._records: Dict[int, ScanRecord] = {}
        self._next_id = first_id
        self._lock = asyncio.Lock()

    async def create(self, url: str) -> ScanRecord:
        """Allocate the next id and store a fresh record already in `scanning`."""
        async with self._lock:
            scan_id = self._next_id
            self._next_id += 1
            record = ScanRecord(id=scan_id, url=url)
            record.start()
            self._records[scan_id] = record

        logger.info(f"[Scan {scan_id}] Registered scan for {url}")
        return record

    async def get(self, scan_id: int) -> ScanRecord:
        async with self._lock:
            record = self._records.get(scan_id)
        if record is None:
            raise ScanNotFoundError(scan_id)
        return record

    async def list(self) -> List[ScanRecord]:
        """All records, newest first."""
        async with self._lock:
            records = list(self._records.values())
        return sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)

    async def count_active(self) -> int:
        async with self._lock:
            return sum(1 for record in self._records.values() if not record.is_terminal)

    def __len__(self) -> int:
        return len(self._records)
