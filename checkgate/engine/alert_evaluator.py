"""Alert Evaluator — turns the latest snapshots plus the open-alert map into transitions.

Pure: no I/O, no clock unless ``now`` is omitted. The caller loads the open
alerts, passes them in, and persists the returned transitions.

State machine per alert key (``cpu:<host>``, ``memory:<host>``,
``disk:<host>:<drive>``, ``failed_pods:<cluster>``, ``not_ready_nodes:<cluster>``):

    no open alert + breach      -> CREATE (Active)
    open alert    + breach      -> UPDATE (value, updated_at; severity only escalates
                                   unless the alert was acknowledged)
    open alert    + no breach   -> RESOLVE (resolved_by="system")
    resolved alerts are invisible here, so a new breach creates a new alert
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from ..schemas import (
    Alert,
    AlertMetric,
    AlertSeverity,
    AlertStatus,
    AlertThresholds,
    AlertTransition,
    AlertType,
    ClusterHealth,
    ClusterSnapshot,
    HostSnapshot,
    TransitionAction,
)

SYSTEM_ACTOR = "system"

HOST_METRICS = (AlertMetric.CPU, AlertMetric.MEMORY, AlertMetric.DISK)
CLUSTER_METRICS = (AlertMetric.FAILED_PODS, AlertMetric.NOT_READY_NODES)


def alert_key(metric: AlertMetric, instance: str, *parts: str) -> str:
    return ":".join((metric.value, instance) + parts)


@dataclass
class Reading:
    """One metric value for one key, with the presentation fields of its alert."""

    key: str
    metric: AlertMetric
    instance: str
    value: float
    title: str
    unit: str
    type: AlertType
    source: str
    hostname: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)


def host_readings(snapshot: HostSnapshot) -> list[Reading]:
    host = snapshot.hostname
    readings = [
        Reading(
            key=alert_key(AlertMetric.CPU, host),
            metric=AlertMetric.CPU,
            instance=host,
            value=snapshot.cpu.utilization_percent,
            title="High CPU usage",
            unit="%",
            type=AlertType.PERFORMANCE,
            source="host_collector",
            hostname=host,
        ),
        Reading(
            key=alert_key(AlertMetric.MEMORY, host),
            metric=AlertMetric.MEMORY,
            instance=host,
            value=snapshot.memory.physical_utilization_percent,
            title="High memory usage",
            unit="%",
            type=AlertType.PERFORMANCE,
            source="host_collector",
            hostname=host,
        ),
    ]
    for disk in snapshot.disks:
        readings.append(Reading(
            key=alert_key(AlertMetric.DISK, host, disk.drive),
            metric=AlertMetric.DISK,
            instance=host,
            value=disk.utilization_percent,
            title=f"Disk {disk.drive} nearly full",
            unit="%",
            type=AlertType.INFRASTRUCTURE,
            source="host_collector",
            hostname=host,
            metadata={"drive": disk.drive},
        ))
    return readings


def cluster_readings(snapshot: ClusterSnapshot) -> list[Reading]:
    name = snapshot.cluster_name
    return [
        Reading(
            key=alert_key(AlertMetric.FAILED_PODS, name),
            metric=AlertMetric.FAILED_PODS,
            instance=name,
            value=float(snapshot.status.failed_pods),
            title="Failed pods detected",
            unit="pods",
            type=AlertType.KUBERNETES,
            source="cluster_collector",
        ),
        Reading(
            key=alert_key(AlertMetric.NOT_READY_NODES, name),
            metric=AlertMetric.NOT_READY_NODES,
            instance=name,
            value=float(snapshot.status.not_ready_nodes),
            title="Nodes not ready",
            unit="nodes",
            type=AlertType.KUBERNETES,
            source="cluster_collector",
        ),
    ]


def _describe(reading: Reading, threshold: float) -> str:
    return f"{reading.title} on {reading.instance}: {reading.value:g}{reading.unit} (threshold {threshold:g}{reading.unit})"


def _threshold_for(thresholds: AlertThresholds, metric: AlertMetric, severity: AlertSeverity) -> float:
    t = thresholds.for_metric(metric)
    return t.critical if severity == AlertSeverity.CRITICAL else t.warning


def _create(reading: Reading, severity: AlertSeverity, thresholds: AlertThresholds, now: datetime) -> AlertTransition:
    threshold = _threshold_for(thresholds, reading.metric, severity)
    alert = Alert(
        key=reading.key,
        metric=reading.metric,
        created_at=now,
        updated_at=now,
        severity=severity,
        type=reading.type,
        title=reading.title,
        description=_describe(reading, threshold),
        source=reading.source,
        hostname=reading.hostname,
        status=AlertStatus.ACTIVE,
        observed_value=reading.value,
        threshold_value=threshold,
        unit=reading.unit,
        metadata={"instance": reading.instance, **reading.metadata},
    )
    return AlertTransition(action=TransitionAction.CREATE, alert=alert)


def _update(
    existing: Alert,
    reading: Reading,
    severity: AlertSeverity,
    thresholds: AlertThresholds,
    now: datetime,
) -> AlertTransition:
    if severity.rank < existing.severity.rank and existing.status != AlertStatus.ACKNOWLEDGED:
        severity = existing.severity
    threshold = _threshold_for(thresholds, reading.metric, severity)
    alert = existing.model_copy(update={
        "updated_at": now,
        "severity": severity,
        "observed_value": reading.value,
        "threshold_value": threshold,
        "description": _describe(reading, threshold),
    })
    return AlertTransition(action=TransitionAction.UPDATE, alert=alert, previous_severity=existing.severity)


def _resolve(existing: Alert, now: datetime, notes: str) -> AlertTransition:
    alert = existing.model_copy(update={
        "status": AlertStatus.RESOLVED,
        "updated_at": now,
        "resolved_at": now,
        "resolved_by": SYSTEM_ACTOR,
        "resolution_notes": notes,
    })
    return AlertTransition(action=TransitionAction.RESOLVE, alert=alert, previous_severity=existing.severity)


def _evaluate_family(
    readings: list[Reading],
    metrics: tuple[AlertMetric, ...],
    instance: str,
    thresholds: AlertThresholds,
    open_alerts: dict[str, Alert],
    now: datetime,
) -> list[AlertTransition]:
    transitions = []
    seen = set()
    for reading in readings:
        seen.add(reading.key)
        severity = thresholds.for_metric(reading.metric).classify(reading.value)
        existing = open_alerts.get(reading.key)
        if existing is None:
            if severity is not None:
                transitions.append(_create(reading, severity, thresholds, now))
        elif severity is not None:
            transitions.append(_update(existing, reading, severity, thresholds, now))
        else:
            transitions.append(_resolve(existing, now, f"Recovered: {reading.value:g}{reading.unit}"))

    # Keys of this instance that are no longer reported (e.g. an unmounted disk)
    for key, existing in open_alerts.items():
        if key in seen or existing.metric not in metrics:
            continue
        if existing.metadata.get("instance") == instance:
            transitions.append(_resolve(existing, now, "No longer reported"))
    return transitions


def evaluate(
    host: Optional[HostSnapshot],
    cluster: Optional[ClusterSnapshot],
    thresholds: AlertThresholds,
    open_alerts: dict[str, Alert],
    now: Optional[datetime] = None,
) -> list[AlertTransition]:
    """Compare the latest snapshots against thresholds.

    ``open_alerts`` maps alert key to the Active or Acknowledged alert for
    that key. A ``None`` snapshot, or a cluster snapshot with Unknown health,
    leaves that family's alerts untouched: missing data is not a recovery.
    """
    now = now or datetime.now(timezone.utc)
    transitions: list[AlertTransition] = []
    if host is not None:
        transitions.extend(_evaluate_family(
            host_readings(host), HOST_METRICS, host.hostname, thresholds, open_alerts, now
        ))
    if cluster is not None and cluster.status.health != ClusterHealth.UNKNOWN:
        transitions.extend(_evaluate_family(
            cluster_readings(cluster), CLUSTER_METRICS, cluster.cluster_name, thresholds, open_alerts, now
        ))
    return transitions


class AlertEvaluator:
    """Binds a threshold set to ``evaluate``."""

    def __init__(self, thresholds: AlertThresholds):
        self.thresholds = thresholds

    def evaluate(
        self,
        host: Optional[HostSnapshot],
        cluster: Optional[ClusterSnapshot],
        open_alerts: dict[str, Alert],
        now: Optional[datetime] = None,
    ) -> list[AlertTransition]:
        return evaluate(host, cluster, self.thresholds, open_alerts, now)
