"""Data retention manager — purges aged snapshots. Alerts are kept forever."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from ..schemas import SnapshotKind
from ..utils.logging import get_logger

logger = get_logger("maintenance.retention")


class RetentionManager:
    """Deletes snapshots older than ``retention_days`` through the snapshot store."""

    def __init__(self, snapshot_store, retention_days: int = 90, check_interval_hours: float = 6.0):
        self._store = snapshot_store
        self._retention_days = retention_days
        self._check_interval = timedelta(hours=check_interval_hours)
        self.last_run: Optional[datetime] = None

    def is_due(self, now: Optional[datetime] = None) -> bool:
        if self.last_run is None:
            return True
        now = now or datetime.now(timezone.utc)
        return now - self.last_run >= self._check_interval

    async def run_cleanup(self, now: Optional[datetime] = None) -> dict:
        """Purge both snapshot kinds. Returns deleted counts keyed by kind."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=self._retention_days)
        summary = {}
        for kind in SnapshotKind:
            summary[kind.value] = await self._store.purge_before(kind, cutoff)
            logger.info(
                "retention_cleanup",
                kind=kind.value,
                deleted=summary[kind.value],
                cutoff_days=self._retention_days,
            )
        self.last_run = now
        return summary
