"""Derived, non-persisted aggregates over a window of snapshots."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from .common import SnapshotKind, UtcDatetime


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"

    @property
    def rank(self) -> int:
        return _HEALTH_RANK[self]


_HEALTH_RANK = {
    HealthStatus.UNKNOWN: -1,
    HealthStatus.HEALTHY: 0,
    HealthStatus.WARNING: 1,
    HealthStatus.CRITICAL: 2,
}


class MetricSummary(BaseModel):
    average: float
    minimum: float
    maximum: float
    current: float
    trend: TrendDirection


class Summary(BaseModel):
    kind: SnapshotKind
    generated_at: UtcDatetime
    period_start: UtcDatetime
    period_end: UtcDatetime
    period_seconds: float
    sample_count: int
    # Every tracked metric is present as a key; None means no data, not zero
    metrics: dict[str, Optional[MetricSummary]]
    overall_health: HealthStatus
    active_alerts: int
    uptime_percentage: float


class MetricBaseline(BaseModel):
    average: float
    minimum: float
    maximum: float
    percentile_95: float
    percentile_99: float
    standard_deviation: float
    trend: TrendDirection
    trend_slope_per_hour: float


class Baseline(BaseModel):
    kind: SnapshotKind
    calculated_at: UtcDatetime
    period_days: int
    sample_count: int
    metrics: dict[str, Optional[MetricBaseline]]
