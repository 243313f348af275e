"""Cluster snapshot tables — status parent row plus node, pod, namespace and event children."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UTCDateTime


class ClusterSnapshotRecord(Base):
    __tablename__ = "cluster_snapshots"
    __table_args__ = (
        Index("ix_cluster_snapshots_cluster_timestamp", "cluster_name", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    cluster_name: Mapped[str] = mapped_column(String(255), nullable=False)
    version: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    health: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    total_nodes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ready_nodes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_pods: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    running_pods: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pending_pods: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_pods: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cpu_utilization_percent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    memory_utilization_percent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    nodes: Mapped[list["ClusterNodeRecord"]] = relationship(
        back_populates="snapshot",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ClusterNodeRecord.position",
    )
    pods: Mapped[list["ClusterPodRecord"]] = relationship(
        back_populates="snapshot",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ClusterPodRecord.position",
    )
    namespaces: Mapped[list["ClusterNamespaceRecord"]] = relationship(
        back_populates="snapshot",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ClusterNamespaceRecord.position",
    )
    events: Mapped[list["ClusterEventRecord"]] = relationship(
        back_populates="snapshot",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ClusterEventRecord.position",
    )


class ClusterNodeRecord(Base):
    __tablename__ = "cluster_nodes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_id: Mapped[int] = mapped_column(
        ForeignKey("cluster_snapshots.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    readiness: Mapped[str] = mapped_column(String(30), nullable=False)
    roles_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    kubelet_version: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    operating_system: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    cpu_capacity: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    memory_capacity: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    cpu_utilization_percent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    memory_utilization_percent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    pod_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    snapshot: Mapped[ClusterSnapshotRecord] = relationship(back_populates="nodes")


class ClusterPodRecord(Base):
    __tablename__ = "cluster_pods"
    __table_args__ = (
        Index("ix_cluster_pods_namespace_name", "namespace", "name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_id: Mapped[int] = mapped_column(
        ForeignKey("cluster_snapshots.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    namespace: Mapped[str] = mapped_column(String(255), nullable=False)
    phase: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    node_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    container_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ready_container_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    restart_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cpu_usage: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    memory_usage: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    labels_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")

    snapshot: Mapped[ClusterSnapshotRecord] = relationship(back_populates="pods")


class ClusterNamespaceRecord(Base):
    __tablename__ = "cluster_namespaces"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_id: Mapped[int] = mapped_column(
        ForeignKey("cluster_snapshots.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phase: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    pod_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cpu_quota: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    memory_quota: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    cpu_usage: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    memory_usage: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    snapshot: Mapped[ClusterSnapshotRecord] = relationship(back_populates="namespaces")


class ClusterEventRecord(Base):
    __tablename__ = "cluster_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_id: Mapped[int] = mapped_column(
        ForeignKey("cluster_snapshots.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    object_kind: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    object_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    namespace: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    snapshot: Mapped[ClusterSnapshotRecord] = relationship(back_populates="events")
