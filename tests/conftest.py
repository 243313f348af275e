"""Shared test fixtures — in-memory database, stores, snapshot factories."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from checkgate.database import install_sqlite_pragmas
from checkgate.models.base import Base
from checkgate.schemas import (
    ClusterEvent,
    ClusterEventType,
    ClusterHealth,
    ClusterSnapshot,
    ClusterStatus,
    CpuSample,
    DiskSample,
    HostSnapshot,
    MemorySample,
    NamespacePhase,
    NamespaceSample,
    NetworkInterfaceSample,
    NodeReadiness,
    NodeSample,
    PodPhase,
    PodSample,
    ProcessInfo,
    ProcessSample,
)
from checkgate.storage import AlertRepository, SnapshotStore

GIB = 1024 ** 3
BASE_TIME = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test, shared across sessions via StaticPool."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    install_sqlite_pragmas(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def snapshot_store(session_factory):
    return SnapshotStore(session_factory, retry_attempts=2, retry_backoff_seconds=0)


@pytest.fixture
def alert_repository(session_factory):
    return AlertRepository(session_factory, retry_attempts=2, retry_backoff_seconds=0)


def build_host_snapshot(
    timestamp: datetime = BASE_TIME,
    hostname: str = "web-01",
    cpu: float = 40.0,
    memory_used_percent: float = 50.0,
    disks: list[tuple[str, float]] | None = None,
    process_count: int = 120,
) -> HostSnapshot:
    """A fully populated host snapshot with 4 logical cores."""
    total = 16 * GIB
    available = int(total * (100 - memory_used_percent) / 100)
    disk_specs = disks if disks is not None else [("/", 50.0), ("/data", 20.0)]
    return HostSnapshot(
        timestamp=timestamp,
        hostname=hostname,
        cpu=CpuSample(
            utilization_percent=cpu,
            per_core_percent=[cpu, cpu, cpu, cpu],
            logical_cores=4,
            temperature_celsius=55.0,
            frequency_mhz=2400.0,
        ),
        memory=MemorySample(
            total_physical_bytes=total,
            available_physical_bytes=available,
            total_virtual_bytes=total + 4 * GIB,
            available_virtual_bytes=available + 2 * GIB,
            page_file_bytes=4 * GIB,
        ),
        disks=[
            DiskSample(
                drive=drive,
                label=f"/dev/{'sda' if drive == '/' else 'sdb'}1",
                total_bytes=500 * GIB,
                free_bytes=int(500 * GIB * (100 - used) / 100),
                read_ops_per_sec=12.5,
                write_ops_per_sec=3.0,
            )
            for drive, used in disk_specs
        ],
        network_interfaces=[
            NetworkInterfaceSample(
                name="eth0",
                bytes_recv_per_sec=2048.0,
                bytes_sent_per_sec=1024.0,
                errors_in=0,
                errors_out=1,
            )
        ],
        processes=ProcessSample(
            total_processes=process_count,
            total_threads=process_count * 4,
            top_cpu=[
                ProcessInfo(pid=101, name="python", cpu_percent=30.0, memory_bytes=200_000_000),
                ProcessInfo(pid=202, name="postgres", cpu_percent=10.0, memory_bytes=900_000_000),
            ],
            top_memory=[
                ProcessInfo(pid=202, name="postgres", cpu_percent=10.0, memory_bytes=900_000_000),
                ProcessInfo(pid=101, name="python", cpu_percent=30.0, memory_bytes=200_000_000),
            ],
        ),
    )


def build_cluster_snapshot(
    timestamp: datetime = BASE_TIME,
    cluster_name: str = "docker-desktop",
    failed_pods: int = 0,
    not_ready_nodes: int = 0,
    health: ClusterHealth | None = None,
) -> ClusterSnapshot:
    """A cluster snapshot with two nodes and a handful of pods across two namespaces."""
    nodes = [
        NodeSample(
            name=f"node-{i}",
            readiness=NodeReadiness.NOT_READY if i < not_ready_nodes else NodeReadiness.READY,
            roles=["control-plane"] if i == 0 else ["worker"],
            kubelet_version="v1.29.1",
            operating_system="Ubuntu 22.04",
            cpu_capacity="4",
            memory_capacity="8Gi",
            cpu_utilization_percent=25.0,
            memory_utilization_percent=40.0,
            pod_count=2,
        )
        for i in range(max(2, not_ready_nodes))
    ]
    pods = [
        PodSample(
            name="web-1",
            namespace="default",
            phase=PodPhase.RUNNING,
            node_name="node-0",
            created_at=timestamp - timedelta(hours=2),
            container_count=2,
            ready_container_count=2,
            cpu_usage="100m",
            memory_usage="128Mi",
            labels={"app": "web", "tier": "frontend"},
        ),
        PodSample(
            name="coredns-1",
            namespace="kube-system",
            phase=PodPhase.RUNNING,
            node_name="node-1",
            container_count=1,
            ready_container_count=1,
            labels={"k8s-app": "kube-dns"},
        ),
        PodSample(
            name="api-1",
            namespace="default",
            phase=PodPhase.PENDING,
            container_count=1,
        ),
    ]
    pods += [
        PodSample(name=f"job-{i}", namespace="batch", phase=PodPhase.FAILED, restart_count=3)
        for i in range(failed_pods)
    ]
    if health is None:
        if not_ready_nodes:
            health = ClusterHealth.CRITICAL
        elif failed_pods:
            health = ClusterHealth.WARNING
        else:
            health = ClusterHealth.HEALTHY
    return ClusterSnapshot(
        timestamp=timestamp,
        cluster_name=cluster_name,
        status=ClusterStatus(
            version="v1.29.1",
            health=health,
            total_nodes=len(nodes),
            ready_nodes=len(nodes) - not_ready_nodes,
            total_pods=len(pods),
            running_pods=2,
            pending_pods=1,
            failed_pods=failed_pods,
            cpu_utilization_percent=30.0,
            memory_utilization_percent=45.0,
        ),
        nodes=nodes,
        pods=pods,
        namespaces=[
            NamespaceSample(
                name="default",
                phase=NamespacePhase.ACTIVE,
                created_at=timestamp - timedelta(days=30),
                pod_count=2,
                cpu_quota="2",
                memory_quota="4Gi",
                cpu_usage="100m",
                memory_usage="128Mi",
            ),
            NamespaceSample(name="kube-system", phase=NamespacePhase.ACTIVE, pod_count=1),
        ],
        events=[
            ClusterEvent(
                timestamp=timestamp - timedelta(minutes=1),
                type=ClusterEventType.WARNING,
                reason="BackOff",
                message="Back-off restarting failed container",
                object_kind="Pod",
                object_name="job-0",
                namespace="batch",
                count=4,
            ),
            ClusterEvent(
                timestamp=timestamp - timedelta(minutes=10),
                type=ClusterEventType.NORMAL,
                reason="Scheduled",
                message="Successfully assigned default/web-1 to node-0",
            ),
        ],
    )


@pytest.fixture
def host_snapshot_factory():
    return build_host_snapshot


@pytest.fixture
def cluster_snapshot_factory():
    return build_cluster_snapshot
