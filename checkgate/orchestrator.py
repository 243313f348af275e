"""Collection Orchestrator — drives collect -> store -> evaluate cycles on an interval.

Cycles run strictly one after another: the next tick is only scheduled once
the previous cycle, including storage and evaluation, has finished. A cycle
never raises. Stopping ends the wait for the next tick immediately but lets
an in-flight cycle complete.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .collectors.base_collector import BaseCollector
from .engine.alert_evaluator import AlertEvaluator
from .errors import CollectionError, StorageError
from .schemas import AlertTransition, ClusterSnapshot, HostSnapshot, Snapshot, SnapshotKind
from .utils.logging import get_logger

logger = get_logger("checkgate.orchestrator")


@dataclass
class CycleReport:
    """What one cycle did. Snapshot ids are keyed by kind."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    stored: dict[SnapshotKind, int] = field(default_factory=dict)
    collection_errors: list[CollectionError] = field(default_factory=list)
    storage_errors: dict[SnapshotKind, str] = field(default_factory=dict)
    transitions: list[AlertTransition] = field(default_factory=list)
    evaluation_error: Optional[str] = None
    notifications_sent: int = 0
    retention: Optional[dict] = None

    @property
    def ok(self) -> bool:
        return not (self.collection_errors or self.storage_errors or self.evaluation_error)

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "stored": {k.value: v for k, v in self.stored.items()},
            "collection_errors": [str(e) for e in self.collection_errors],
            "storage_errors": {k.value: v for k, v in self.storage_errors.items()},
            "transitions": [
                {"action": t.action.value, "alert_id": t.alert.id, "key": t.alert.key}
                for t in self.transitions
            ],
            "evaluation_error": self.evaluation_error,
            "notifications_sent": self.notifications_sent,
            "retention": self.retention,
            "ok": self.ok,
        }


class CollectionOrchestrator:
    """Schedules both collectors and fans their results into storage and evaluation."""

    def __init__(
        self,
        host_collector: Optional[BaseCollector],
        cluster_collector: Optional[BaseCollector],
        snapshot_store,
        alert_repository,
        evaluator: AlertEvaluator,
        interval_seconds: float = 30.0,
        notifier=None,
        retention=None,
    ):
        self._collectors = [c for c in (host_collector, cluster_collector) if c is not None]
        self._store = snapshot_store
        self._alerts = alert_repository
        self._evaluator = evaluator
        self._interval = interval_seconds
        self._notifier = notifier
        self._retention = retention

        self.running = False
        self.cycles_completed = 0
        self.last_report: Optional[CycleReport] = None
        self._stop_event = asyncio.Event()
        self._poll_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self.running:
            return
        self.running = True
        self._stop_event.clear()
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info(
            "orchestrator_started",
            interval=self._interval,
            collectors=[c.name for c in self._collectors],
        )

    async def stop(self) -> None:
        """Stop scheduling; wait for an in-flight cycle to finish."""
        if not self.running:
            return
        self.running = False
        self._stop_event.set()
        if self._poll_task is not None:
            await self._poll_task
            self._poll_task = None
        logger.info("orchestrator_stopped", cycles_completed=self.cycles_completed)

    async def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            started = time.monotonic()
            try:
                await self.run_cycle()
            except Exception as e:
                # run_cycle contains its own failures; this guards the schedule itself
                logger.error("cycle_error", error=str(e), exc_info=True)

            delay = max(0.0, self._interval - (time.monotonic() - started))
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

    async def run_cycle(self) -> CycleReport:
        report = CycleReport(started_at=datetime.now(timezone.utc))

        results = await asyncio.gather(*(c.collect_async() for c in self._collectors))

        fresh: dict[SnapshotKind, Snapshot] = {}
        for result in results:
            if isinstance(result, CollectionError):
                report.collection_errors.append(result)
                continue
            try:
                report.stored[result.kind] = await self._store.store(result)
                fresh[result.kind] = result
            except StorageError as e:
                report.storage_errors[result.kind] = str(e)
                logger.error(
                    "storage_failed",
                    stage="store",
                    kind=result.kind.value,
                    instance=result.instance,
                    transient=e.transient,
                    error=str(e),
                )

        if fresh:
            await self._evaluate(fresh, report)

        if self._retention is not None and self._retention.is_due():
            try:
                report.retention = await self._retention.run_cleanup()
            except StorageError as e:
                logger.error("storage_failed", stage="retention", error=str(e))

        report.finished_at = datetime.now(timezone.utc)
        self.cycles_completed += 1
        self.last_report = report
        logger.info(
            "cycle_completed",
            stored=[k.value for k in report.stored],
            collection_errors=len(report.collection_errors),
            storage_errors=len(report.storage_errors),
            transitions=len(report.transitions),
            duration_ms=round((report.finished_at - report.started_at).total_seconds() * 1000, 1),
        )
        return report

    async def _evaluate(self, fresh: dict[SnapshotKind, Snapshot], report: CycleReport) -> None:
        """Evaluate the kinds stored this cycle against their latest persisted state."""
        try:
            latest: dict[SnapshotKind, Optional[Snapshot]] = {}
            for kind, snapshot in fresh.items():
                latest[kind] = await self._store.load_latest(kind, instance=snapshot.instance)
            host = latest.get(SnapshotKind.HOST)
            cluster = latest.get(SnapshotKind.CLUSTER)

            open_alerts = await self._alerts.open_alerts()
            transitions = self._evaluator.evaluate(
                host if isinstance(host, HostSnapshot) else None,
                cluster if isinstance(cluster, ClusterSnapshot) else None,
                open_alerts,
            )
            report.transitions = await self._alerts.apply(transitions)
        except StorageError as e:
            report.evaluation_error = str(e)
            logger.error("storage_failed", stage="evaluate", transient=e.transient, error=str(e))
            return
        except Exception as e:
            report.evaluation_error = str(e)
            logger.error("evaluation_failed", error=str(e), exc_info=True)
            return

        if self._notifier is not None and report.transitions:
            report.notifications_sent = await self._notifier.notify(report.transitions)

    def get_status(self) -> dict:
        return {
            "running": self.running,
            "interval_seconds": self._interval,
            "cycles_completed": self.cycles_completed,
            "collectors": [c.get_status() for c in self._collectors],
            "last_cycle": self.last_report.to_dict() if self.last_report else None,
        }
