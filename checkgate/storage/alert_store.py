"""Alert repository — open-alert lookup, transition persistence and manual lifecycle actions."""

import json
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..errors import AlertNotFoundError, InvalidAlertTransitionError
from ..models import AlertRecord
from ..schemas import (
    Alert,
    AlertMetric,
    AlertSeverity,
    AlertStatus,
    AlertTransition,
    AlertType,
    TransitionAction,
)
from ..utils.logging import get_logger
from .retry import StorageRetry

logger = get_logger("storage.alert_store")

OPEN_STATUSES = (AlertStatus.ACTIVE.value, AlertStatus.ACKNOWLEDGED.value)

# Manual lifecycle actions; the evaluator resolves through apply()
VALID_TRANSITIONS = {
    AlertStatus.ACTIVE: [AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED],
    AlertStatus.ACKNOWLEDGED: [AlertStatus.RESOLVED],
    AlertStatus.RESOLVED: [],
}


def record_to_alert(record: AlertRecord) -> Alert:
    return Alert(
        id=record.id,
        key=record.alert_key,
        metric=AlertMetric(record.metric),
        created_at=record.created_at,
        updated_at=record.updated_at,
        severity=AlertSeverity(record.severity),
        type=AlertType(record.type),
        title=record.title,
        description=record.description,
        source=record.source,
        hostname=record.hostname,
        status=AlertStatus(record.status),
        observed_value=record.observed_value,
        threshold_value=record.threshold_value,
        unit=record.unit,
        metadata=json.loads(record.metadata_json) if record.metadata_json else {},
        acknowledged_at=record.acknowledged_at,
        acknowledged_by=record.acknowledged_by,
        resolved_at=record.resolved_at,
        resolved_by=record.resolved_by,
        resolution_notes=record.resolution_notes,
    )


def _copy_onto(record: AlertRecord, alert: Alert) -> None:
    record.alert_key = alert.key
    record.metric = alert.metric.value
    record.created_at = alert.created_at
    record.updated_at = alert.updated_at
    record.severity = alert.severity.value
    record.type = alert.type.value
    record.title = alert.title
    record.description = alert.description
    record.source = alert.source
    record.hostname = alert.hostname
    record.status = alert.status.value
    record.observed_value = alert.observed_value
    record.threshold_value = alert.threshold_value
    record.unit = alert.unit
    record.metadata_json = json.dumps(alert.metadata, default=str)
    record.acknowledged_at = alert.acknowledged_at
    record.acknowledged_by = alert.acknowledged_by
    record.resolved_at = alert.resolved_at
    record.resolved_by = alert.resolved_by
    record.resolution_notes = alert.resolution_notes


def _apply_update(record: AlertRecord, alert: Alert) -> None:
    """Write the evaluator-owned fields only.

    Status and acknowledgement belong to the row; they may have changed since
    the evaluator read the open alerts. Severity may only drop on a row that
    is acknowledged now.
    """
    record.updated_at = alert.updated_at
    record.observed_value = alert.observed_value
    lowered = alert.severity.rank < AlertSeverity(record.severity).rank
    if lowered and record.status != AlertStatus.ACKNOWLEDGED.value:
        return
    record.severity = alert.severity.value
    record.threshold_value = alert.threshold_value
    record.description = alert.description


def _apply_resolve(record: AlertRecord, alert: Alert) -> None:
    record.status = AlertStatus.RESOLVED.value
    record.updated_at = alert.updated_at
    record.resolved_at = alert.resolved_at
    record.resolved_by = alert.resolved_by
    record.resolution_notes = alert.resolution_notes


class AlertRepository:
    """Owns the alerts table. Alerts are transitioned, never deleted."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.5,
    ):
        self._session_factory = session_factory
        self._retry = StorageRetry(retry_attempts, retry_backoff_seconds)

    async def open_alerts(self) -> dict[str, Alert]:
        """Active and Acknowledged alerts keyed by alert key."""

        async def _read() -> dict[str, Alert]:
            async with self._session_factory() as session:
                rows = (
                    await session.execute(
                        select(AlertRecord)
                        .where(AlertRecord.status.in_(OPEN_STATUSES))
                        .order_by(AlertRecord.created_at.asc(), AlertRecord.id.asc())
                    )
                ).scalars().all()
                # A later row for the same key wins; there should only ever be one
                return {row.alert_key: record_to_alert(row) for row in rows}

        return await self._retry.run("open_alerts", _read)

    async def apply(self, transitions: Iterable[AlertTransition]) -> list[AlertTransition]:
        """Persist evaluator transitions in one transaction.

        Returns the transitions that were applied, with stored ids filled in.
        UPDATE/RESOLVE transitions whose alert was resolved externally in the
        meantime are skipped.
        """
        transitions = list(transitions)
        if not transitions:
            return []

        async def _write() -> list[AlertTransition]:
            applied: list[tuple[AlertTransition, AlertRecord]] = []
            async with self._session_factory() as session:
                async with session.begin():
                    for transition in transitions:
                        if transition.action == TransitionAction.CREATE:
                            record = AlertRecord()
                            _copy_onto(record, transition.alert)
                            session.add(record)
                            applied.append((transition, record))
                            continue

                        record = await session.get(AlertRecord, transition.alert.id)
                        if record is None or record.status == AlertStatus.RESOLVED.value:
                            logger.info(
                                "alert_transition_skipped",
                                alert_id=transition.alert.id,
                                action=transition.action.value,
                            )
                            continue
                        if transition.action == TransitionAction.UPDATE:
                            _apply_update(record, transition.alert)
                        else:
                            _apply_resolve(record, transition.alert)
                        applied.append((transition, record))
                    await session.flush()
                    return [t.model_copy(update={"alert": record_to_alert(r)}) for t, r in applied]

        result = await self._retry.run("apply_alert_transitions", _write)
        for t in result:
            logger.info(
                "alert_transition_applied",
                action=t.action.value,
                alert_id=t.alert.id,
                key=t.alert.key,
                severity=t.alert.severity.value,
                observed_value=t.alert.observed_value,
            )
        return result

    async def get_active(self, severity: Optional[AlertSeverity] = None, limit: int = 50) -> list[Alert]:
        """Unresolved alerts, newest first."""

        async def _read() -> list[Alert]:
            async with self._session_factory() as session:
                query = select(AlertRecord).where(AlertRecord.status.in_(OPEN_STATUSES))
                if severity is not None:
                    query = query.where(AlertRecord.severity == AlertSeverity(severity).value)
                query = query.order_by(AlertRecord.created_at.desc(), AlertRecord.id.desc()).limit(limit)
                rows = (await session.execute(query)).scalars().all()
                return [record_to_alert(r) for r in rows]

        return await self._retry.run("get_active_alerts", _read)

    async def get(self, alert_id: int) -> Alert:
        async def _read() -> Optional[Alert]:
            async with self._session_factory() as session:
                record = await session.get(AlertRecord, alert_id)
                return record_to_alert(record) if record else None

        alert = await self._retry.run("get_alert", _read)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        return alert

    async def _transition(self, alert_id: int, new_status: AlertStatus, mutate) -> Alert:
        async def _write():
            async with self._session_factory() as session:
                async with session.begin():
                    record = await session.get(AlertRecord, alert_id)
                    if record is None:
                        return None, None
                    current = AlertStatus(record.status)
                    if new_status not in VALID_TRANSITIONS[current]:
                        return current, None
                    mutate(record, datetime.now(timezone.utc))
                    record.status = new_status.value
                    await session.flush()
                    return current, record_to_alert(record)

        previous, alert = await self._retry.run(f"{new_status.value}_alert", _write)
        if previous is None:
            raise AlertNotFoundError(alert_id)
        if alert is None:
            raise InvalidAlertTransitionError(alert_id, previous.value, new_status.value)
        logger.info("alert_status_updated", alert_id=alert_id, old=previous.value, new=new_status.value)
        return alert

    async def acknowledge(self, alert_id: int, actor: str) -> Alert:
        """Active -> Acknowledged."""

        def _ack(record: AlertRecord, now: datetime) -> None:
            record.acknowledged_at = now
            record.acknowledged_by = actor
            record.updated_at = now

        return await self._transition(alert_id, AlertStatus.ACKNOWLEDGED, _ack)

    async def resolve(self, alert_id: int, actor: str, notes: Optional[str] = None) -> Alert:
        """Active/Acknowledged -> Resolved."""

        def _resolve(record: AlertRecord, now: datetime) -> None:
            record.resolved_at = now
            record.resolved_by = actor
            record.resolution_notes = notes
            record.updated_at = now

        return await self._transition(alert_id, AlertStatus.RESOLVED, _resolve)

    async def count_active(
        self,
        metrics: Optional[Iterable[AlertMetric]] = None,
        instance: Optional[str] = None,
    ) -> int:
        """Unresolved alerts, optionally limited to metrics and to one host or cluster."""
        metric_values = [AlertMetric(m).value for m in metrics] if metrics is not None else None

        async def _read() -> int:
            async with self._session_factory() as session:
                if instance is None:
                    query = select(func.count()).select_from(AlertRecord)
                else:
                    query = select(AlertRecord.metadata_json)
                query = query.where(AlertRecord.status.in_(OPEN_STATUSES))
                if metric_values is not None:
                    query = query.where(AlertRecord.metric.in_(metric_values))
                if instance is None:
                    return (await session.execute(query)).scalar_one()
                blobs = (await session.execute(query)).scalars().all()
                return sum(1 for blob in blobs if blob and json.loads(blob).get("instance") == instance)

        return await self._retry.run("count_active_alerts", _read)

    async def critical_overlapping(
        self,
        start: datetime,
        end: datetime,
        metrics: Optional[Iterable[AlertMetric]] = None,
    ) -> int:
        """Number of Critical alerts that were open at some point in [start, end]."""
        metric_values = [AlertMetric(m).value for m in metrics] if metrics is not None else None

        async def _read() -> int:
            async with self._session_factory() as session:
                query = (
                    select(func.count())
                    .select_from(AlertRecord)
                    .where(
                        AlertRecord.severity == AlertSeverity.CRITICAL.value,
                        AlertRecord.created_at <= end,
                        or_(AlertRecord.resolved_at.is_(None), AlertRecord.resolved_at >= start),
                    )
                )
                if metric_values is not None:
                    query = query.where(AlertRecord.metric.in_(metric_values))
                return (await session.execute(query)).scalar_one()

        return await self._retry.run("critical_overlapping", _read)
