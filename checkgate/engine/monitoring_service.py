"""Monitoring service — the read and lifecycle operations offered to dashboards and the API."""

from datetime import datetime
from typing import Optional

from ..schemas import (
    Alert,
    AlertSeverity,
    Baseline,
    Page,
    PodPhase,
    Snapshot,
    SnapshotKind,
    Summary,
)
from ..utils.logging import get_logger

logger = get_logger("engine.monitoring_service")


class MonitoringService:
    """Facade over the snapshot store, alert repository, summarizer and exporter."""

    def __init__(self, snapshot_store, alert_repository, summarizer, exporter):
        self._store = snapshot_store
        self._alerts = alert_repository
        self._summarizer = summarizer
        self._exporter = exporter

    async def get_latest(self, kind: SnapshotKind, instance: Optional[str] = None) -> Optional[Snapshot]:
        return await self._store.load_latest(kind, instance=instance)

    async def get_history(
        self,
        kind: SnapshotKind,
        start: datetime,
        end: datetime,
        page: int = 1,
        page_size: int = 50,
        instance: Optional[str] = None,
    ) -> Page:
        return await self._store.load_range(kind, start, end, page=page, page_size=page_size, instance=instance)

    async def get_summary(
        self,
        kind: SnapshotKind,
        start: datetime,
        end: datetime,
        instance: Optional[str] = None,
    ) -> Summary:
        return await self._summarizer.summarize(kind, start, end, instance=instance)

    async def get_active_alerts(self, severity: Optional[AlertSeverity] = None, limit: int = 50) -> list[Alert]:
        return await self._alerts.get_active(severity=severity, limit=limit)

    async def get_alert(self, alert_id: int) -> Alert:
        return await self._alerts.get(alert_id)

    async def acknowledge(self, alert_id: int, actor: str) -> Alert:
        alert = await self._alerts.acknowledge(alert_id, actor)
        logger.info("alert_acknowledged", alert_id=alert_id, actor=actor)
        return alert

    async def resolve(self, alert_id: int, actor: str, notes: Optional[str] = None) -> Alert:
        alert = await self._alerts.resolve(alert_id, actor, notes)
        logger.info("alert_resolved", alert_id=alert_id, actor=actor)
        return alert

    async def list_pods(
        self,
        namespace: Optional[str] = None,
        phase: Optional[PodPhase] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page:
        return await self._store.list_pods(namespace=namespace, phase=phase, page=page, page_size=page_size)

    async def baseline(self, kind: SnapshotKind, days: int = 7, instance: Optional[str] = None) -> Baseline:
        return await self._summarizer.baseline(kind, days, instance=instance)

    async def export(
        self,
        kind: SnapshotKind,
        start: datetime,
        end: datetime,
        fmt: str = "csv",
        instance: Optional[str] = None,
    ) -> bytes:
        return await self._exporter.export(kind, start, end, fmt, instance=instance)
