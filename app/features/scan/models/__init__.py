"""
Scan models package.
"""
from app.features.scan.models.scan_record import ScanProgress, ScanRecord, ScanStatus

__all__ = ["ScanRecord", "ScanStatus", "ScanProgress"]
