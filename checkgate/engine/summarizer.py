"""Summarizer — windowed aggregates, trend, health and uptime over persisted snapshots.

Read-only. Every summary is recomputed from storage on request.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Sequence

import numpy as np

from ..schemas import (
    AlertMetric,
    AlertThresholds,
    Baseline,
    ClusterHealth,
    ClusterSnapshot,
    HealthStatus,
    HostSnapshot,
    MetricBaseline,
    MetricSummary,
    Snapshot,
    SnapshotKind,
    Summary,
    TrendDirection,
)
from ..schemas.common import ensure_utc
from ..utils.logging import get_logger
from .alert_evaluator import CLUSTER_METRICS, HOST_METRICS

logger = get_logger("engine.summarizer")

Extractor = Callable[[Snapshot], Optional[float]]


def _fullest_disk(snapshot: HostSnapshot) -> Optional[float]:
    return max((d.utilization_percent for d in snapshot.disks), default=None)


HOST_METRIC_EXTRACTORS: dict[str, Extractor] = {
    "cpu_percent": lambda s: s.cpu.utilization_percent,
    "memory_percent": lambda s: s.memory.physical_utilization_percent,
    "disk_percent": _fullest_disk,
    "process_count": lambda s: float(s.processes.total_processes),
}

CLUSTER_METRIC_EXTRACTORS: dict[str, Extractor] = {
    "cpu_percent": lambda s: s.status.cpu_utilization_percent,
    "memory_percent": lambda s: s.status.memory_utilization_percent,
    "running_pods": lambda s: float(s.status.running_pods),
    "failed_pods": lambda s: float(s.status.failed_pods),
    "ready_nodes": lambda s: float(s.status.ready_nodes),
    "not_ready_nodes": lambda s: float(s.status.not_ready_nodes),
}

EXTRACTORS = {
    SnapshotKind.HOST: HOST_METRIC_EXTRACTORS,
    SnapshotKind.CLUSTER: CLUSTER_METRIC_EXTRACTORS,
}

# Summary metric -> (alert metric, is a percentage)
HEALTH_METRICS = {
    SnapshotKind.HOST: {
        "cpu_percent": (AlertMetric.CPU, True),
        "memory_percent": (AlertMetric.MEMORY, True),
        "disk_percent": (AlertMetric.DISK, True),
    },
    SnapshotKind.CLUSTER: {
        "failed_pods": (AlertMetric.FAILED_PODS, False),
        "not_ready_nodes": (AlertMetric.NOT_READY_NODES, False),
    },
}

ALERT_FAMILIES = {
    SnapshotKind.HOST: HOST_METRICS,
    SnapshotKind.CLUSTER: CLUSTER_METRICS,
}

_CLUSTER_HEALTH = {
    ClusterHealth.HEALTHY: HealthStatus.HEALTHY,
    ClusterHealth.WARNING: HealthStatus.WARNING,
    ClusterHealth.CRITICAL: HealthStatus.CRITICAL,
}


def compute_trend(values: Sequence[float], noise_threshold: float = 0.05) -> TrendDirection:
    """Compare the mean of the first third of ``values`` with the mean of the last third."""
    n = len(values)
    if n < 2:
        return TrendDirection.STABLE
    third = max(1, n // 3)
    first = sum(values[:third]) / third
    last = sum(values[-third:]) / third
    if first == 0:
        if last == 0:
            return TrendDirection.STABLE
        return TrendDirection.INCREASING if last > 0 else TrendDirection.DECREASING
    change = (last - first) / abs(first)
    if abs(change) < noise_threshold:
        return TrendDirection.STABLE
    return TrendDirection.INCREASING if change > 0 else TrendDirection.DECREASING


def reports_metrics(snapshot: Snapshot) -> bool:
    """False for the placeholder snapshot recorded while the cluster was unreachable."""
    if isinstance(snapshot, ClusterSnapshot):
        return snapshot.status.health != ClusterHealth.UNKNOWN
    return True


def series(snapshots: Sequence[Snapshot], extractor: Extractor) -> list[tuple[datetime, float]]:
    """(timestamp, value) pairs in snapshot order, skipping snapshots with no value."""
    points = []
    for snapshot in snapshots:
        if not reports_metrics(snapshot):
            continue
        value = extractor(snapshot)
        if value is not None:
            points.append((snapshot.timestamp, float(value)))
    return points


def aggregate(points: Sequence[tuple[datetime, float]], noise_threshold: float = 0.05) -> Optional[MetricSummary]:
    if not points:
        return None
    values = [v for _, v in points]
    current = max(points, key=lambda p: p[0])[1]
    return MetricSummary(
        average=sum(values) / len(values),
        minimum=min(values),
        maximum=max(values),
        current=current,
        trend=compute_trend(values, noise_threshold),
    )


def compute_uptime(
    timestamps: Sequence[datetime],
    start: datetime,
    end: datetime,
    interval_seconds: float,
    now: Optional[datetime] = None,
) -> float:
    """Percentage of expected collection ticks in the window that have a snapshot.

    The window is cut at ``now`` so a range reaching into the future is not
    counted as a gap.
    """
    if not timestamps or interval_seconds <= 0:
        return 0.0
    effective_end = min(end, now or datetime.now(timezone.utc))
    span = (effective_end - start).total_seconds()
    expected = max(1, math.ceil(span / interval_seconds))
    buckets = set()
    for ts in timestamps:
        if ts < start or ts > effective_end:
            continue
        index = int((ts - start).total_seconds() // interval_seconds)
        buckets.add(min(index, expected - 1))
    return min(100.0, len(buckets) / expected * 100.0)


def derive_health(
    kind: SnapshotKind,
    metrics: dict[str, Optional[MetricSummary]],
    thresholds: AlertThresholds,
    health_margin_percent: float,
    critical_alerts: int,
    latest: Optional[Snapshot] = None,
) -> HealthStatus:
    """Critical if a critical alert overlaps the window or a current value is past critical.

    Otherwise Warning when a current percentage sits within the margin of its
    warning threshold, or a count is past its warning threshold.
    """
    if critical_alerts > 0:
        return HealthStatus.CRITICAL

    health = HealthStatus.HEALTHY
    for name, (alert_metric, is_percent) in HEALTH_METRICS[kind].items():
        summary = metrics.get(name)
        if summary is None:
            continue
        threshold = thresholds.for_metric(alert_metric)
        if summary.current > threshold.critical:
            return HealthStatus.CRITICAL
        near = threshold.warning - health_margin_percent if is_percent else threshold.warning
        breached = summary.current >= near if is_percent else summary.current > near
        if breached:
            health = HealthStatus.WARNING

    if isinstance(latest, ClusterSnapshot):
        reported = _CLUSTER_HEALTH.get(latest.status.health)
        if reported is not None and reported.rank > health.rank:
            health = reported
    return health


def summarize_snapshots(
    kind: SnapshotKind,
    snapshots: Sequence[Snapshot],
    start: datetime,
    end: datetime,
    thresholds: AlertThresholds,
    interval_seconds: float,
    active_alerts: int = 0,
    critical_alerts: int = 0,
    noise_threshold: float = 0.05,
    health_margin_percent: float = 5.0,
    now: Optional[datetime] = None,
) -> Summary:
    now = now or datetime.now(timezone.utc)
    extractors = EXTRACTORS[kind]
    latest = max(snapshots, key=lambda s: s.timestamp) if snapshots else None
    snapshots = [s for s in snapshots if reports_metrics(s)]
    if not snapshots:
        return Summary(
            kind=kind,
            generated_at=now,
            period_start=start,
            period_end=end,
            period_seconds=(end - start).total_seconds(),
            sample_count=0,
            metrics={name: None for name in extractors},
            overall_health=HealthStatus.UNKNOWN,
            active_alerts=active_alerts,
            uptime_percentage=0.0,
        )

    metrics = {name: aggregate(series(snapshots, fn), noise_threshold) for name, fn in extractors.items()}
    if reports_metrics(latest):
        health = derive_health(kind, metrics, thresholds, health_margin_percent, critical_alerts, latest)
    else:
        health = HealthStatus.UNKNOWN
    return Summary(
        kind=kind,
        generated_at=now,
        period_start=start,
        period_end=end,
        period_seconds=(end - start).total_seconds(),
        sample_count=len(snapshots),
        metrics=metrics,
        overall_health=health,
        active_alerts=active_alerts,
        uptime_percentage=compute_uptime([s.timestamp for s in snapshots], start, end, interval_seconds, now),
    )


def baseline_metric(points: Sequence[tuple[datetime, float]], noise_threshold: float = 0.05) -> Optional[MetricBaseline]:
    if not points:
        return None
    values = np.array([v for _, v in points], dtype=float)
    origin = points[0][0]
    hours = np.array([(ts - origin).total_seconds() / 3600.0 for ts, _ in points])

    slope = 0.0
    if len(values) >= 2 and hours.max() > hours.min():
        slope = float(np.polyfit(hours, values, 1)[0])

    return MetricBaseline(
        average=float(values.mean()),
        minimum=float(values.min()),
        maximum=float(values.max()),
        percentile_95=float(np.percentile(values, 95)),
        percentile_99=float(np.percentile(values, 99)),
        standard_deviation=float(values.std()),
        trend=compute_trend(values.tolist(), noise_threshold),
        trend_slope_per_hour=slope,
    )


class Summarizer:
    """Builds summaries and baselines from the snapshot store and alert repository."""

    def __init__(
        self,
        snapshot_store,
        alert_repository,
        thresholds: AlertThresholds,
        interval_seconds: float,
        noise_threshold: float = 0.05,
        health_margin_percent: float = 5.0,
    ):
        self._store = snapshot_store
        self._alerts = alert_repository
        self._thresholds = thresholds
        self._interval = interval_seconds
        self._noise = noise_threshold
        self._margin = health_margin_percent

    async def summarize(
        self,
        kind: SnapshotKind,
        start: datetime,
        end: datetime,
        instance: Optional[str] = None,
    ) -> Summary:
        start, end = ensure_utc(start), ensure_utc(end)
        if end < start:
            raise ValueError("end must not be before start")
        snapshots = await self._store.load_window(kind, start, end, instance=instance)
        family = ALERT_FAMILIES[kind]
        active = await self._alerts.count_active(family, instance=instance)
        critical = await self._alerts.critical_overlapping(start, end, family) if snapshots else 0
        summary = summarize_snapshots(
            kind,
            snapshots,
            start,
            end,
            self._thresholds,
            self._interval,
            active_alerts=active,
            critical_alerts=critical,
            noise_threshold=self._noise,
            health_margin_percent=self._margin,
        )
        logger.debug(
            "summary_computed",
            kind=kind.value,
            samples=summary.sample_count,
            health=summary.overall_health.value,
        )
        return summary

    async def baseline(self, kind: SnapshotKind, days: int = 7, instance: Optional[str] = None) -> Baseline:
        """Per-metric statistical baseline over the last ``days`` days."""
        if days < 1:
            raise ValueError("days must be at least 1")
        end = datetime.now(timezone.utc)
        window = await self._store.load_window(kind, end - timedelta(days=days), end, instance=instance)
        snapshots = [s for s in window if reports_metrics(s)]
        return Baseline(
            kind=kind,
            calculated_at=end,
            period_days=days,
            sample_count=len(snapshots),
            metrics={
                name: baseline_metric(series(snapshots, fn), self._noise)
                for name, fn in EXTRACTORS[kind].items()
            },
        )
