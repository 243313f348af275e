"""SQLAlchemy models package."""

from .base import Base
from .alert import AlertRecord
from .cluster_snapshot import (
    ClusterEventRecord,
    ClusterNamespaceRecord,
    ClusterNodeRecord,
    ClusterPodRecord,
    ClusterSnapshotRecord,
)
from .host_snapshot import (
    HostDiskRecord,
    HostInterfaceRecord,
    HostProcessRecord,
    HostSnapshotRecord,
)

__all__ = [
    "Base",
    "AlertRecord",
    "ClusterEventRecord",
    "ClusterNamespaceRecord",
    "ClusterNodeRecord",
    "ClusterPodRecord",
    "ClusterSnapshotRecord",
    "HostDiskRecord",
    "HostInterfaceRecord",
    "HostProcessRecord",
    "HostSnapshotRecord",
]
