"""Error taxonomy shared by collectors, storage and the alert lifecycle.

Collector failures are *values* (``CollectionError``) so the orchestrator can
branch on the cause without knowing psutil's or the Kubernetes client's
exception hierarchy. Storage and configuration failures are exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CollectionErrorKind(str, Enum):
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"
    INVALID_DATA = "invalid_data"


@dataclass(frozen=True)
class CollectionError:
    """A collector's explicit failure result. Never carries partial data."""

    kind: CollectionErrorKind
    source: str
    message: str

    def __str__(self) -> str:
        return f"{self.source}: {self.kind.value}: {self.message}"


class CheckGateError(Exception):
    """Base class for raised CheckGate errors."""


class StorageError(CheckGateError):
    """Persistence failed (constraint violation, or retries exhausted)."""

    def __init__(self, message: str, *, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class ConfigurationError(CheckGateError):
    """Missing or invalid configuration. Fatal at startup."""


class AlertNotFoundError(CheckGateError):
    def __init__(self, alert_id: int):
        super().__init__(f"Alert {alert_id} not found")
        self.alert_id = alert_id


class InvalidAlertTransitionError(CheckGateError):
    def __init__(self, alert_id: int, current: str, requested: str):
        super().__init__(f"Cannot transition alert {alert_id} from {current} to {requested}")
        self.alert_id = alert_id
        self.current = current
        self.requested = requested


class ClusterUnreachableError(CheckGateError):
    """No cluster endpoint could be reached. A soft condition for the collector."""
