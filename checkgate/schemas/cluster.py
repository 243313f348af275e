"""Cluster snapshot schema — status, nodes, pods, namespaces, events."""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .common import SnapshotKind, UtcDatetime, clamp_percent


class ClusterHealth(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


class NodeReadiness(str, Enum):
    READY = "ready"
    NOT_READY = "not_ready"
    UNKNOWN = "unknown"
    SCHEDULING_DISABLED = "scheduling_disabled"


class PodPhase(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    UNKNOWN = "unknown"


class NamespacePhase(str, Enum):
    ACTIVE = "active"
    TERMINATING = "terminating"
    UNKNOWN = "unknown"


class ClusterEventType(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    ERROR = "error"


def _clamp_optional(v: Optional[float]) -> Optional[float]:
    return None if v is None else clamp_percent(v)


class ClusterStatus(BaseModel):
    version: str = ""
    health: ClusterHealth
    total_nodes: int = Field(default=0, ge=0)
    ready_nodes: int = Field(default=0, ge=0)
    total_pods: int = Field(default=0, ge=0)
    running_pods: int = Field(default=0, ge=0)
    pending_pods: int = Field(default=0, ge=0)
    failed_pods: int = Field(default=0, ge=0)
    # None when the metrics API is not installed
    cpu_utilization_percent: Optional[float] = None
    memory_utilization_percent: Optional[float] = None

    @field_validator("cpu_utilization_percent", "memory_utilization_percent")
    @classmethod
    def _clamp_utilization(cls, v: Optional[float]) -> Optional[float]:
        return _clamp_optional(v)

    @property
    def not_ready_nodes(self) -> int:
        return max(0, self.total_nodes - self.ready_nodes)


class NodeSample(BaseModel):
    name: str
    readiness: NodeReadiness
    roles: list[str] = []
    kubelet_version: str = ""
    operating_system: str = ""
    cpu_capacity: str = ""
    memory_capacity: str = ""
    cpu_utilization_percent: Optional[float] = None
    memory_utilization_percent: Optional[float] = None
    pod_count: int = Field(default=0, ge=0)

    @field_validator("cpu_utilization_percent", "memory_utilization_percent")
    @classmethod
    def _clamp_utilization(cls, v: Optional[float]) -> Optional[float]:
        return _clamp_optional(v)


class PodSample(BaseModel):
    name: str
    namespace: str
    phase: PodPhase
    node_name: str = ""
    created_at: Optional[UtcDatetime] = None
    container_count: int = Field(default=0, ge=0)
    ready_container_count: int = Field(default=0, ge=0)
    restart_count: int = Field(default=0, ge=0)
    cpu_usage: str = ""
    memory_usage: str = ""
    labels: dict[str, str] = {}


class NamespaceSample(BaseModel):
    name: str
    phase: NamespacePhase
    created_at: Optional[UtcDatetime] = None
    pod_count: int = Field(default=0, ge=0)
    cpu_quota: Optional[str] = None
    memory_quota: Optional[str] = None
    cpu_usage: str = ""
    memory_usage: str = ""


class ClusterEvent(BaseModel):
    timestamp: UtcDatetime
    type: ClusterEventType
    reason: str = ""
    message: str = ""
    object_kind: Optional[str] = None
    object_name: Optional[str] = None
    namespace: Optional[str] = None
    count: int = Field(default=1, ge=0)


class ClusterSnapshot(BaseModel):
    kind: Literal[SnapshotKind.CLUSTER] = SnapshotKind.CLUSTER
    timestamp: UtcDatetime
    cluster_name: str
    status: ClusterStatus
    nodes: list[NodeSample] = []
    pods: list[PodSample] = []
    namespaces: list[NamespaceSample] = []
    events: list[ClusterEvent] = []

    @property
    def instance(self) -> str:
        return self.cluster_name
