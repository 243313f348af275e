"""Alert schema, thresholds and evaluator transitions."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, model_validator

from .common import UtcDatetime


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    AlertSeverity.INFO: 0,
    AlertSeverity.WARNING: 1,
    AlertSeverity.CRITICAL: 2,
}


class AlertType(str, Enum):
    PERFORMANCE = "performance"
    INFRASTRUCTURE = "infrastructure"
    KUBERNETES = "kubernetes"
    SECURITY = "security"
    APPLICATION = "application"


class AlertStatus(str, Enum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class AlertMetric(str, Enum):
    CPU = "cpu"
    MEMORY = "memory"
    DISK = "disk"
    FAILED_PODS = "failed_pods"
    NOT_READY_NODES = "not_ready_nodes"


class Threshold(BaseModel):
    """A metric breaches Warning when value > warning, Critical when value > critical."""

    model_config = ConfigDict(frozen=True)

    warning: float
    critical: float

    @model_validator(mode="after")
    def _ordered(self) -> "Threshold":
        if self.warning > self.critical:
            raise ValueError(f"warning threshold {self.warning} exceeds critical {self.critical}")
        return self

    def classify(self, value: float) -> Optional[AlertSeverity]:
        # Critical is checked first so a value crossing both is Critical
        if value > self.critical:
            return AlertSeverity.CRITICAL
        if value > self.warning:
            return AlertSeverity.WARNING
        return None


class AlertThresholds(BaseModel):
    model_config = ConfigDict(frozen=True)

    cpu: Threshold = Threshold(warning=80.0, critical=95.0)
    memory: Threshold = Threshold(warning=85.0, critical=95.0)
    disk: Threshold = Threshold(warning=90.0, critical=95.0)
    failed_pods: Threshold = Threshold(warning=0, critical=5)
    not_ready_nodes: Threshold = Threshold(warning=0, critical=0)

    def for_metric(self, metric: AlertMetric) -> Threshold:
        return getattr(self, metric.value)


class Alert(BaseModel):
    id: Optional[int] = None
    key: str
    metric: AlertMetric
    created_at: UtcDatetime
    updated_at: UtcDatetime
    severity: AlertSeverity
    type: AlertType
    title: str
    description: str = ""
    source: str
    hostname: Optional[str] = None
    status: AlertStatus = AlertStatus.ACTIVE
    observed_value: Optional[float] = None
    threshold_value: Optional[float] = None
    unit: Optional[str] = None
    metadata: dict[str, Any] = {}
    acknowledged_at: Optional[UtcDatetime] = None
    acknowledged_by: Optional[str] = None
    resolved_at: Optional[UtcDatetime] = None
    resolved_by: Optional[str] = None
    resolution_notes: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status != AlertStatus.RESOLVED


class TransitionAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    RESOLVE = "resolve"


class AlertTransition(BaseModel):
    """One state change produced by the evaluator.

    ``alert`` is the full post-transition state. For CREATE its ``id`` is
    None; for UPDATE and RESOLVE it is the id of the existing open alert.
    """

    action: TransitionAction
    alert: Alert
    previous_severity: Optional[AlertSeverity] = None

    @property
    def escalated(self) -> bool:
        return (
            self.action == TransitionAction.UPDATE
            and self.previous_severity is not None
            and self.alert.severity.rank > self.previous_severity.rank
        )
