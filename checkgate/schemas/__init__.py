"""Pydantic schemas for snapshots, alerts and summaries."""

from typing import Union

from .alerts import (
    Alert,
    AlertMetric,
    AlertSeverity,
    AlertStatus,
    AlertThresholds,
    AlertTransition,
    AlertType,
    Threshold,
    TransitionAction,
)
from .cluster import (
    ClusterEvent,
    ClusterEventType,
    ClusterHealth,
    ClusterSnapshot,
    ClusterStatus,
    NamespacePhase,
    NamespaceSample,
    NodeReadiness,
    NodeSample,
    PodPhase,
    PodSample,
)
from .common import Page, SnapshotKind, clamp_percent
from .host import (
    CpuSample,
    DiskSample,
    HostSnapshot,
    MemorySample,
    NetworkInterfaceSample,
    ProcessInfo,
    ProcessSample,
)
from .summary import (
    Baseline,
    HealthStatus,
    MetricBaseline,
    MetricSummary,
    Summary,
    TrendDirection,
)

Snapshot = Union[HostSnapshot, ClusterSnapshot]

__all__ = [
    "Alert",
    "AlertMetric",
    "AlertSeverity",
    "AlertStatus",
    "AlertThresholds",
    "AlertTransition",
    "AlertType",
    "Baseline",
    "ClusterEvent",
    "ClusterEventType",
    "ClusterHealth",
    "ClusterSnapshot",
    "ClusterStatus",
    "CpuSample",
    "DiskSample",
    "HealthStatus",
    "HostSnapshot",
    "MemorySample",
    "MetricBaseline",
    "MetricSummary",
    "NamespacePhase",
    "NamespaceSample",
    "NetworkInterfaceSample",
    "NodeReadiness",
    "NodeSample",
    "Page",
    "PodPhase",
    "PodSample",
    "ProcessInfo",
    "ProcessSample",
    "Snapshot",
    "SnapshotKind",
    "Summary",
    "Threshold",
    "TrendDirection",
    "clamp_percent",
]
