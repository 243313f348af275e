"""Flatten snapshots into relational records and rebuild them.

Collections that are filtered or sorted on (disks, interfaces, ranked
processes, nodes, pods, namespaces, events) become child rows with a
``position`` column preserving collection order. Variable-shape data that is
only ever read back whole (per-core CPU list, node roles, pod labels) is
stored as a JSON blob on its owning row.
"""

import json

from ..models import (
    ClusterEventRecord,
    ClusterNamespaceRecord,
    ClusterNodeRecord,
    ClusterPodRecord,
    ClusterSnapshotRecord,
    HostDiskRecord,
    HostInterfaceRecord,
    HostProcessRecord,
    HostSnapshotRecord,
)
from ..schemas import (
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

RANKING_CPU = "cpu"
RANKING_MEMORY = "memory"


# --- Host ---

def host_to_record(snapshot: HostSnapshot) -> HostSnapshotRecord:
    record = HostSnapshotRecord(
        timestamp=snapshot.timestamp,
        hostname=snapshot.hostname,
        cpu_utilization_percent=snapshot.cpu.utilization_percent,
        cpu_per_core_json=json.dumps(snapshot.cpu.per_core_percent),
        cpu_logical_cores=snapshot.cpu.logical_cores,
        cpu_temperature_celsius=snapshot.cpu.temperature_celsius,
        cpu_frequency_mhz=snapshot.cpu.frequency_mhz,
        memory_total_physical_bytes=snapshot.memory.total_physical_bytes,
        memory_available_physical_bytes=snapshot.memory.available_physical_bytes,
        memory_total_virtual_bytes=snapshot.memory.total_virtual_bytes,
        memory_available_virtual_bytes=snapshot.memory.available_virtual_bytes,
        memory_page_file_bytes=snapshot.memory.page_file_bytes,
        process_count=snapshot.processes.total_processes,
        thread_count=snapshot.processes.total_threads,
    )
    record.disks = [
        HostDiskRecord(
            position=i,
            drive=d.drive,
            label=d.label,
            total_bytes=d.total_bytes,
            free_bytes=d.free_bytes,
            read_ops_per_sec=d.read_ops_per_sec,
            write_ops_per_sec=d.write_ops_per_sec,
        )
        for i, d in enumerate(snapshot.disks)
    ]
    record.interfaces = [
        HostInterfaceRecord(
            position=i,
            name=n.name,
            bytes_recv_per_sec=n.bytes_recv_per_sec,
            bytes_sent_per_sec=n.bytes_sent_per_sec,
            errors_in=n.errors_in,
            errors_out=n.errors_out,
        )
        for i, n in enumerate(snapshot.network_interfaces)
    ]
    record.processes = [
        _process_record(RANKING_CPU, i, p) for i, p in enumerate(snapshot.processes.top_cpu)
    ] + [
        _process_record(RANKING_MEMORY, i, p) for i, p in enumerate(snapshot.processes.top_memory)
    ]
    return record


def _process_record(ranking: str, position: int, proc: ProcessInfo) -> HostProcessRecord:
    return HostProcessRecord(
        ranking=ranking,
        position=position,
        pid=proc.pid,
        name=proc.name,
        cpu_percent=proc.cpu_percent,
        memory_bytes=proc.memory_bytes,
    )


def _process_info(row: HostProcessRecord) -> ProcessInfo:
    return ProcessInfo(
        pid=row.pid,
        name=row.name,
        cpu_percent=row.cpu_percent,
        memory_bytes=row.memory_bytes,
    )


def record_to_host(record: HostSnapshotRecord) -> HostSnapshot:
    ranked = sorted(record.processes, key=lambda p: p.position)
    return HostSnapshot(
        timestamp=record.timestamp,
        hostname=record.hostname,
        cpu=CpuSample(
            utilization_percent=record.cpu_utilization_percent,
            per_core_percent=json.loads(record.cpu_per_core_json or "[]"),
            logical_cores=record.cpu_logical_cores,
            temperature_celsius=record.cpu_temperature_celsius,
            frequency_mhz=record.cpu_frequency_mhz,
        ),
        memory=MemorySample(
            total_physical_bytes=record.memory_total_physical_bytes,
            available_physical_bytes=record.memory_available_physical_bytes,
            total_virtual_bytes=record.memory_total_virtual_bytes,
            available_virtual_bytes=record.memory_available_virtual_bytes,
            page_file_bytes=record.memory_page_file_bytes,
        ),
        disks=[
            DiskSample(
                drive=d.drive,
                label=d.label,
                total_bytes=d.total_bytes,
                free_bytes=d.free_bytes,
                read_ops_per_sec=d.read_ops_per_sec,
                write_ops_per_sec=d.write_ops_per_sec,
            )
            for d in sorted(record.disks, key=lambda d: d.position)
        ],
        network_interfaces=[
            NetworkInterfaceSample(
                name=n.name,
                bytes_recv_per_sec=n.bytes_recv_per_sec,
                bytes_sent_per_sec=n.bytes_sent_per_sec,
                errors_in=n.errors_in,
                errors_out=n.errors_out,
            )
            for n in sorted(record.interfaces, key=lambda n: n.position)
        ],
        processes=ProcessSample(
            total_processes=record.process_count,
            total_threads=record.thread_count,
            top_cpu=[_process_info(p) for p in ranked if p.ranking == RANKING_CPU],
            top_memory=[_process_info(p) for p in ranked if p.ranking == RANKING_MEMORY],
        ),
    )


# --- Cluster ---

def cluster_to_record(snapshot: ClusterSnapshot) -> ClusterSnapshotRecord:
    status = snapshot.status
    record = ClusterSnapshotRecord(
        timestamp=snapshot.timestamp,
        cluster_name=snapshot.cluster_name,
        version=status.version,
        health=status.health.value,
        total_nodes=status.total_nodes,
        ready_nodes=status.ready_nodes,
        total_pods=status.total_pods,
        running_pods=status.running_pods,
        pending_pods=status.pending_pods,
        failed_pods=status.failed_pods,
        cpu_utilization_percent=status.cpu_utilization_percent,
        memory_utilization_percent=status.memory_utilization_percent,
    )
    record.nodes = [
        ClusterNodeRecord(
            position=i,
            name=n.name,
            readiness=n.readiness.value,
            roles_json=json.dumps(n.roles),
            kubelet_version=n.kubelet_version,
            operating_system=n.operating_system,
            cpu_capacity=n.cpu_capacity,
            memory_capacity=n.memory_capacity,
            cpu_utilization_percent=n.cpu_utilization_percent,
            memory_utilization_percent=n.memory_utilization_percent,
            pod_count=n.pod_count,
        )
        for i, n in enumerate(snapshot.nodes)
    ]
    record.pods = [pod_to_record(i, p) for i, p in enumerate(snapshot.pods)]
    record.namespaces = [
        ClusterNamespaceRecord(
            position=i,
            name=ns.name,
            phase=ns.phase.value,
            created_at=ns.created_at,
            pod_count=ns.pod_count,
            cpu_quota=ns.cpu_quota,
            memory_quota=ns.memory_quota,
            cpu_usage=ns.cpu_usage,
            memory_usage=ns.memory_usage,
        )
        for i, ns in enumerate(snapshot.namespaces)
    ]
    record.events = [
        ClusterEventRecord(
            position=i,
            timestamp=e.timestamp,
            type=e.type.value,
            reason=e.reason,
            message=e.message,
            object_kind=e.object_kind,
            object_name=e.object_name,
            namespace=e.namespace,
            count=e.count,
        )
        for i, e in enumerate(snapshot.events)
    ]
    return record


def pod_to_record(position: int, pod: PodSample) -> ClusterPodRecord:
    return ClusterPodRecord(
        position=position,
        name=pod.name,
        namespace=pod.namespace,
        phase=pod.phase.value,
        node_name=pod.node_name,
        created_at=pod.created_at,
        container_count=pod.container_count,
        ready_container_count=pod.ready_container_count,
        restart_count=pod.restart_count,
        cpu_usage=pod.cpu_usage,
        memory_usage=pod.memory_usage,
        labels_json=json.dumps(pod.labels, sort_keys=True),
    )


def record_to_pod(row: ClusterPodRecord) -> PodSample:
    return PodSample(
        name=row.name,
        namespace=row.namespace,
        phase=PodPhase(row.phase),
        node_name=row.node_name,
        created_at=row.created_at,
        container_count=row.container_count,
        ready_container_count=row.ready_container_count,
        restart_count=row.restart_count,
        cpu_usage=row.cpu_usage,
        memory_usage=row.memory_usage,
        labels=json.loads(row.labels_json or "{}"),
    )


def record_to_cluster(record: ClusterSnapshotRecord) -> ClusterSnapshot:
    return ClusterSnapshot(
        timestamp=record.timestamp,
        cluster_name=record.cluster_name,
        status=ClusterStatus(
            version=record.version,
            health=ClusterHealth(record.health),
            total_nodes=record.total_nodes,
            ready_nodes=record.ready_nodes,
            total_pods=record.total_pods,
            running_pods=record.running_pods,
            pending_pods=record.pending_pods,
            failed_pods=record.failed_pods,
            cpu_utilization_percent=record.cpu_utilization_percent,
            memory_utilization_percent=record.memory_utilization_percent,
        ),
        nodes=[
            NodeSample(
                name=n.name,
                readiness=NodeReadiness(n.readiness),
                roles=json.loads(n.roles_json or "[]"),
                kubelet_version=n.kubelet_version,
                operating_system=n.operating_system,
                cpu_capacity=n.cpu_capacity,
                memory_capacity=n.memory_capacity,
                cpu_utilization_percent=n.cpu_utilization_percent,
                memory_utilization_percent=n.memory_utilization_percent,
                pod_count=n.pod_count,
            )
            for n in sorted(record.nodes, key=lambda n: n.position)
        ],
        pods=[record_to_pod(p) for p in sorted(record.pods, key=lambda p: p.position)],
        namespaces=[
            NamespaceSample(
                name=ns.name,
                phase=NamespacePhase(ns.phase),
                created_at=ns.created_at,
                pod_count=ns.pod_count,
                cpu_quota=ns.cpu_quota,
                memory_quota=ns.memory_quota,
                cpu_usage=ns.cpu_usage,
                memory_usage=ns.memory_usage,
            )
            for ns in sorted(record.namespaces, key=lambda ns: ns.position)
        ],
        events=[
            ClusterEvent(
                timestamp=e.timestamp,
                type=ClusterEventType(e.type),
                reason=e.reason,
                message=e.message,
                object_kind=e.object_kind,
                object_name=e.object_name,
                namespace=e.namespace,
                count=e.count,
            )
            for e in sorted(record.events, key=lambda e: e.position)
        ],
    )
