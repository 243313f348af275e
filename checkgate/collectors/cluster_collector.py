"""Cluster Collector — builds a ClusterSnapshot from a ClusterSource."""

from datetime import datetime, timedelta, timezone
from decimal import InvalidOperation
from typing import Optional

from kubernetes.client.rest import ApiException
from kubernetes.utils import parse_quantity

from ..errors import ClusterUnreachableError, CollectionErrorKind
from ..schemas import (
    ClusterEvent,
    ClusterHealth,
    ClusterSnapshot,
    ClusterStatus,
    NamespaceSample,
    NodeReadiness,
    NodeSample,
    PodPhase,
    PodSample,
)
from .base_collector import BaseCollector
from .cluster_sources import ClusterSource, Usage

READY_STATES = (NodeReadiness.READY, NodeReadiness.SCHEDULING_DISABLED)


def format_cpu(cores: float) -> str:
    return f"{int(round(cores * 1000))}m"


def format_memory(num_bytes: float) -> str:
    return f"{int(round(num_bytes / 1024 ** 2))}Mi"


def _capacity(quantity: str) -> Optional[float]:
    if not quantity:
        return None
    try:
        value = float(parse_quantity(quantity))
    except (ValueError, InvalidOperation):
        return None
    return value if value > 0 else None


def _percent(used: float, capacity: Optional[float]) -> Optional[float]:
    if not capacity:
        return None
    return used / capacity * 100


def derive_health(nodes: list[NodeSample], pods: list[PodSample]) -> ClusterHealth:
    if any(n.readiness not in READY_STATES for n in nodes):
        return ClusterHealth.CRITICAL
    if any(p.phase == PodPhase.FAILED for p in pods):
        return ClusterHealth.WARNING
    return ClusterHealth.HEALTHY


class ClusterCollector(BaseCollector):
    """Produces one ClusterSnapshot per call.

    With no source configured, or when the source cannot reach an endpoint,
    the result is a snapshot with Unknown health and empty collections rather
    than an error.
    """

    def __init__(
        self,
        source: Optional[ClusterSource],
        cluster_name: str,
        event_lookback_hours: int = 24,
        max_events: int = 200,
        timeout_seconds: float = 10.0,
    ):
        super().__init__(name="cluster", timeout_seconds=timeout_seconds)
        self.source = source
        self.cluster_name = cluster_name
        self._lookback = timedelta(hours=event_lookback_hours)
        self._max_events = max_events

    def classify_error(self, exc: Exception) -> CollectionErrorKind:
        if isinstance(exc, ApiException):
            return CollectionErrorKind.UNAVAILABLE
        return super().classify_error(exc)

    def collect(self) -> ClusterSnapshot:
        now = datetime.now(timezone.utc)
        if self.source is None:
            return self._unknown(now)

        try:
            version = self.source.version()
            nodes = self.source.list_nodes()
            pods = self.source.list_pods()
            namespaces = self.source.list_namespaces()
            events = self.source.list_events()
            quotas = self.source.list_quotas()
            node_usage = self.source.node_usage()
            pod_usage = self.source.pod_usage()
        except ClusterUnreachableError as e:
            self.logger.warning("cluster_unreachable", cluster=self.cluster_name, error=str(e))
            return self._unknown(now)

        pods = self._with_pod_usage(pods, pod_usage)
        nodes, cpu_percent, memory_percent = self._with_node_usage(nodes, pods, node_usage)
        namespaces = self._with_namespace_totals(namespaces, pods, quotas, pod_usage)

        ready = sum(1 for n in nodes if n.readiness in READY_STATES)
        status = ClusterStatus(
            version=version,
            health=derive_health(nodes, pods),
            total_nodes=len(nodes),
            ready_nodes=ready,
            total_pods=len(pods),
            running_pods=sum(1 for p in pods if p.phase == PodPhase.RUNNING),
            pending_pods=sum(1 for p in pods if p.phase == PodPhase.PENDING),
            failed_pods=sum(1 for p in pods if p.phase == PodPhase.FAILED),
            cpu_utilization_percent=cpu_percent,
            memory_utilization_percent=memory_percent,
        )
        return ClusterSnapshot(
            timestamp=now,
            cluster_name=self.cluster_name,
            status=status,
            nodes=nodes,
            pods=pods,
            namespaces=namespaces,
            events=self._recent_events(events, now),
        )

    def _unknown(self, now: datetime) -> ClusterSnapshot:
        return ClusterSnapshot(
            timestamp=now,
            cluster_name=self.cluster_name,
            status=ClusterStatus(health=ClusterHealth.UNKNOWN),
        )

    @staticmethod
    def _with_pod_usage(pods: list[PodSample], usage: Optional[dict[tuple[str, str], Usage]]) -> list[PodSample]:
        if usage is None:
            return pods
        result = []
        for pod in pods:
            sample = usage.get((pod.namespace, pod.name))
            if sample is None:
                result.append(pod)
                continue
            cpu, memory = sample
            result.append(pod.model_copy(update={"cpu_usage": format_cpu(cpu), "memory_usage": format_memory(memory)}))
        return result

    @staticmethod
    def _with_node_usage(
        nodes: list[NodeSample],
        pods: list[PodSample],
        usage: Optional[dict[str, Usage]],
    ) -> tuple[list[NodeSample], Optional[float], Optional[float]]:
        pod_counts: dict[str, int] = {}
        for pod in pods:
            if pod.node_name:
                pod_counts[pod.node_name] = pod_counts.get(pod.node_name, 0) + 1

        used_cpu = used_memory = total_cpu = total_memory = 0.0
        result = []
        for node in nodes:
            update = {"pod_count": pod_counts.get(node.name, 0)}
            sample = usage.get(node.name) if usage is not None else None
            if sample is not None:
                cpu_capacity = _capacity(node.cpu_capacity)
                memory_capacity = _capacity(node.memory_capacity)
                update["cpu_utilization_percent"] = _percent(sample[0], cpu_capacity)
                update["memory_utilization_percent"] = _percent(sample[1], memory_capacity)
                if cpu_capacity:
                    used_cpu += sample[0]
                    total_cpu += cpu_capacity
                if memory_capacity:
                    used_memory += sample[1]
                    total_memory += memory_capacity
            # model_copy skips validation, so clamp through a fresh model
            result.append(NodeSample.model_validate({**node.model_dump(), **update}))

        cpu_percent = _percent(used_cpu, total_cpu) if usage is not None else None
        memory_percent = _percent(used_memory, total_memory) if usage is not None else None
        return result, cpu_percent, memory_percent

    @staticmethod
    def _with_namespace_totals(
        namespaces: list[NamespaceSample],
        pods: list[PodSample],
        quotas: dict,
        usage: Optional[dict[tuple[str, str], Usage]],
    ) -> list[NamespaceSample]:
        result = []
        for ns in namespaces:
            members = [p for p in pods if p.namespace == ns.name]
            cpu_quota, memory_quota = quotas.get(ns.name, (None, None))
            update = {"pod_count": len(members), "cpu_quota": cpu_quota, "memory_quota": memory_quota}
            if usage is not None:
                samples = [usage[(ns.name, p.name)] for p in members if (ns.name, p.name) in usage]
                update["cpu_usage"] = format_cpu(sum(s[0] for s in samples))
                update["memory_usage"] = format_memory(sum(s[1] for s in samples))
            result.append(ns.model_copy(update=update))
        return result

    def _recent_events(self, events: list[ClusterEvent], now: datetime) -> list[ClusterEvent]:
        cutoff = now - self._lookback
        recent = [e for e in events if e.timestamp >= cutoff]
        recent.sort(key=lambda e: e.timestamp, reverse=True)
        return recent[: self._max_events]
