"""Host snapshot tables — one parent row plus disk, interface and process children."""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UTCDateTime


class HostSnapshotRecord(Base):
    __tablename__ = "host_snapshots"
    __table_args__ = (
        Index("ix_host_snapshots_hostname_timestamp", "hostname", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    hostname: Mapped[str] = mapped_column(String(255), nullable=False)

    cpu_utilization_percent: Mapped[float] = mapped_column(Float, nullable=False)
    cpu_per_core_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    cpu_logical_cores: Mapped[int] = mapped_column(Integer, nullable=False)
    cpu_temperature_celsius: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    cpu_frequency_mhz: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    memory_total_physical_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    memory_available_physical_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    memory_total_virtual_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    memory_available_virtual_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    memory_page_file_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)

    process_count: Mapped[int] = mapped_column(Integer, nullable=False)
    thread_count: Mapped[int] = mapped_column(Integer, nullable=False)

    disks: Mapped[list["HostDiskRecord"]] = relationship(
        back_populates="snapshot",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="HostDiskRecord.position",
    )
    interfaces: Mapped[list["HostInterfaceRecord"]] = relationship(
        back_populates="snapshot",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="HostInterfaceRecord.position",
    )
    processes: Mapped[list["HostProcessRecord"]] = relationship(
        back_populates="snapshot",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="HostProcessRecord.position",
    )


class HostDiskRecord(Base):
    __tablename__ = "host_disks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_id: Mapped[int] = mapped_column(
        ForeignKey("host_snapshots.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    drive: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    label: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    total_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    free_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    read_ops_per_sec: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    write_ops_per_sec: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    snapshot: Mapped[HostSnapshotRecord] = relationship(back_populates="disks")


class HostInterfaceRecord(Base):
    __tablename__ = "host_network_interfaces"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_id: Mapped[int] = mapped_column(
        ForeignKey("host_snapshots.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    bytes_recv_per_sec: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    bytes_sent_per_sec: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    errors_in: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    errors_out: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    snapshot: Mapped[HostSnapshotRecord] = relationship(back_populates="interfaces")


class HostProcessRecord(Base):
    __tablename__ = "host_top_processes"
    __table_args__ = (
        Index("ix_host_top_processes_snapshot_ranking", "snapshot_id", "ranking"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_id: Mapped[int] = mapped_column(
        ForeignKey("host_snapshots.id", ondelete="CASCADE"), nullable=False
    )
    ranking: Mapped[str] = mapped_column(String(10), nullable=False)  # cpu, memory
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    pid: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    cpu_percent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    memory_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    snapshot: Mapped[HostSnapshotRecord] = relationship(back_populates="processes")
