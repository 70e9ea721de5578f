"""
Source Health Tracker

Per-source run counters for the admin data-sources view. Counters are kept
in memory and only reset by a process restart.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from warwatch.api.schemas import SourceHealthEntry
from warwatch.core.timestamps import utc_now_iso


class SourceStatus(Enum):
    DISABLED = "disabled"
    IDLE = "idle"
    HEALTHY = "healthy"
    ERROR = "error"


@dataclass
class SourceHealthRecord:
    name: str
    enabled: bool
    interval_ms: Optional[int]
    run_count: int = 0
    error_count: int = 0
    last_run_at: Optional[str] = None
    last_success_at: Optional[str] = None
    last_error: Optional[str] = None
    last_run_failed: bool = False

    @property
    def status(self) -> SourceStatus:
        if not self.enabled:
            return SourceStatus.DISABLED
        if self.run_count == 0:
            return SourceStatus.IDLE
        return SourceStatus.ERROR if self.last_run_failed else SourceStatus.HEALTHY


class SourceHealthTracker:
    """Thread-safe registry of SourceHealthRecord, one per source name."""

    def __init__(self) -> None:
        self._records: Dict[str, SourceHealthRecord] = {}
        self._lock = threading.Lock()

    def register(self, name: str, enabled: bool = True, interval_ms: Optional[int] = None) -> None:
        with self._lock:
            record = self._records.get(name)
            if record is None:
                self._records[name] = SourceHealthRecord(name=name, enabled=enabled, interval_ms=interval_ms)
            else:
                record.enabled = enabled
                record.interval_ms = interval_ms

    def record_success(self, name: str) -> None:
        now = utc_now_iso()
        with self._lock:
            record = self._get_or_create(name)
            record.run_count += 1
            record.last_run_at = now
            record.last_success_at = now
            record.last_run_failed = False

    def record_error(self, name: str, error: str) -> None:
        with self._lock:
            record = self._get_or_create(name)
            record.run_count += 1
            record.error_count += 1
            record.last_run_at = utc_now_iso()
            record.last_error = error
            record.last_run_failed = True

    def get(self, name: str) -> Optional[SourceHealthRecord]:
        with self._lock:
            record = self._records.get(name)
            return None if record is None else SourceHealthRecord(**record.__dict__)

    def snapshot(self) -> List[SourceHealthEntry]:
        with self._lock:
            records = list(self._records.values())
            return [
                SourceHealthEntry(
                    name=r.name,
                    enabled=r.enabled,
                    interval_ms=r.interval_ms,
                    status=r.status.value,
                    last_run_at=r.last_run_at,
                    last_success_at=r.last_success_at,
                    last_error=r.last_error,
                    run_count=r.run_count,
                    error_count=r.error_count,
                )
                for r in records
            ]

    def _get_or_create(self, name: str) -> SourceHealthRecord:
        record = self._records.get(name)
        if record is None:
            record = SourceHealthRecord(name=name, enabled=True, interval_ms=None)
            self._records[name] = record
        return record
