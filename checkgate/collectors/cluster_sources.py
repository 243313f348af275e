"""Cluster sources — where the Cluster Collector reads nodes, pods, namespaces and events.

One implementation per kind of endpoint, selected at startup by the
``cluster_source`` setting. Sources return schema objects without derived
fields (utilization, pod counts); the collector fills those in.

Usage maps are ``None`` when the metrics API is not installed. That is
"no data", not zero.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from kubernetes.utils import parse_quantity
from urllib3.exceptions import HTTPError as TransportError

from ..errors import ClusterUnreachableError
from ..schemas import (
    ClusterEvent,
    ClusterEventType,
    NamespacePhase,
    NamespaceSample,
    NodeReadiness,
    NodeSample,
    PodPhase,
    PodSample,
)
from ..utils.logging import get_logger

logger = get_logger("collectors.cluster_sources")

# (cpu cores, memory bytes)
Usage = tuple[float, float]
# namespace -> (cpu quota, memory quota)
Quotas = dict[str, tuple[Optional[str], Optional[str]]]


class ClusterSource(ABC):
    """Read-only view of one cluster. All calls are blocking.

    Raises ``ClusterUnreachableError`` when no endpoint answers; any other
    exception is a genuine collection failure.
    """

    @abstractmethod
    def version(self) -> str: ...

    @abstractmethod
    def list_nodes(self) -> list[NodeSample]: ...

    @abstractmethod
    def list_pods(self) -> list[PodSample]: ...

    @abstractmethod
    def list_namespaces(self) -> list[NamespaceSample]: ...

    @abstractmethod
    def list_events(self) -> list[ClusterEvent]: ...

    @abstractmethod
    def list_quotas(self) -> Quotas: ...

    @abstractmethod
    def node_usage(self) -> Optional[dict[str, Usage]]: ...

    @abstractmethod
    def pod_usage(self) -> Optional[dict[tuple[str, str], Usage]]: ...


# --- Kubernetes ---

_POD_PHASES = {
    "Pending": PodPhase.PENDING,
    "Running": PodPhase.RUNNING,
    "Succeeded": PodPhase.SUCCEEDED,
    "Failed": PodPhase.FAILED,
}

_EVENT_TYPES = {
    "Normal": ClusterEventType.NORMAL,
    "Warning": ClusterEventType.WARNING,
}

_ROLE_LABEL_PREFIX = "node-role.kubernetes.io/"


def _node_readiness(node) -> NodeReadiness:
    conditions = (node.status.conditions if node.status else None) or []
    ready = next((c for c in conditions if c.type == "Ready"), None)
    if ready is None or ready.status not in ("True", "False"):
        return NodeReadiness.UNKNOWN
    if ready.status == "False":
        return NodeReadiness.NOT_READY
    if node.spec is not None and node.spec.unschedulable:
        return NodeReadiness.SCHEDULING_DISABLED
    return NodeReadiness.READY


def _node_roles(node) -> list[str]:
    labels = node.metadata.labels or {}
    roles = sorted(k[len(_ROLE_LABEL_PREFIX):] for k in labels if k.startswith(_ROLE_LABEL_PREFIX))
    return [r for r in roles if r] or ["worker"]


def _quota_value(hard: dict, resource: str) -> Optional[str]:
    for key in (resource, f"limits.{resource}", f"requests.{resource}"):
        if key in hard:
            return str(hard[key])
    return None


def _usage(entry: dict) -> Usage:
    return float(parse_quantity(entry.get("cpu", "0"))), float(parse_quantity(entry.get("memory", "0")))


class KubernetesClusterSource(ClusterSource):
    """Reads a live cluster through the official Kubernetes client."""

    def __init__(self, context: Optional[str] = None, in_cluster: bool = False, request_timeout: float = 10.0):
        self._context = context
        self._in_cluster = in_cluster
        self._request_timeout = request_timeout
        self._core: Optional[client.CoreV1Api] = None
        self._version_api: Optional[client.VersionApi] = None
        self._custom: Optional[client.CustomObjectsApi] = None

    def _connect(self) -> None:
        if self._core is not None:
            return
        try:
            if self._in_cluster:
                config.load_incluster_config()
            else:
                config.load_kube_config(context=self._context)
        except (ConfigException, FileNotFoundError) as e:
            raise ClusterUnreachableError(f"no usable cluster configuration: {e}") from e
        self._core = client.CoreV1Api()
        self._version_api = client.VersionApi()
        self._custom = client.CustomObjectsApi()
        logger.info("kubernetes_client_ready", context=self._context, in_cluster=self._in_cluster)

    def _call(self, fn, *args, **kwargs):
        try:
            return fn(*args, _request_timeout=self._request_timeout, **kwargs)
        except TransportError as e:
            raise ClusterUnreachableError(f"cluster API unreachable: {e}") from e

    def version(self) -> str:
        self._connect()
        info = self._call(self._version_api.get_code)
        return info.git_version or ""

    def list_nodes(self) -> list[NodeSample]:
        self._connect()
        nodes = []
        for node in self._call(self._core.list_node).items:
            capacity = (node.status.capacity if node.status else None) or {}
            node_info = node.status.node_info if node.status else None
            nodes.append(NodeSample(
                name=node.metadata.name,
                readiness=_node_readiness(node),
                roles=_node_roles(node),
                kubelet_version=node_info.kubelet_version if node_info else "",
                operating_system=node_info.os_image if node_info else "",
                cpu_capacity=str(capacity.get("cpu", "")),
                memory_capacity=str(capacity.get("memory", "")),
            ))
        return nodes

    def list_pods(self) -> list[PodSample]:
        self._connect()
        pods = []
        for pod in self._call(self._core.list_pod_for_all_namespaces).items:
            statuses = (pod.status.container_statuses if pod.status else None) or []
            containers = (pod.spec.containers if pod.spec else None) or []
            pods.append(PodSample(
                name=pod.metadata.name,
                namespace=pod.metadata.namespace,
                phase=_POD_PHASES.get(pod.status.phase if pod.status else None, PodPhase.UNKNOWN),
                node_name=(pod.spec.node_name if pod.spec else None) or "",
                created_at=pod.metadata.creation_timestamp,
                container_count=len(containers),
                ready_container_count=sum(1 for s in statuses if s.ready),
                restart_count=sum(s.restart_count or 0 for s in statuses),
                labels=pod.metadata.labels or {},
            ))
        return pods

    def list_namespaces(self) -> list[NamespaceSample]:
        self._connect()
        namespaces = []
        for ns in self._call(self._core.list_namespace).items:
            phase = (ns.status.phase if ns.status else None) or ""
            try:
                ns_phase = NamespacePhase(phase.lower())
            except ValueError:
                ns_phase = NamespacePhase.UNKNOWN
            namespaces.append(NamespaceSample(
                name=ns.metadata.name,
                phase=ns_phase,
                created_at=ns.metadata.creation_timestamp,
            ))
        return namespaces

    def list_events(self) -> list[ClusterEvent]:
        self._connect()
        events = []
        for ev in self._call(self._core.list_event_for_all_namespaces).items:
            timestamp = ev.last_timestamp or ev.event_time or ev.first_timestamp or ev.metadata.creation_timestamp
            if timestamp is None:
                continue
            involved = ev.involved_object
            events.append(ClusterEvent(
                timestamp=timestamp,
                type=_EVENT_TYPES.get(ev.type, ClusterEventType.ERROR),
                reason=ev.reason or "",
                message=ev.message or "",
                object_kind=involved.kind if involved else None,
                object_name=involved.name if involved else None,
                namespace=ev.metadata.namespace,
                count=ev.count or 1,
            ))
        return events

    def list_quotas(self) -> Quotas:
        self._connect()
        quotas: Quotas = {}
        for quota in self._call(self._core.list_resource_quota_for_all_namespaces).items:
            hard = (quota.status.hard if quota.status else None) or (quota.spec.hard if quota.spec else None) or {}
            ns = quota.metadata.namespace
            cpu, memory = quotas.get(ns, (None, None))
            quotas[ns] = (cpu or _quota_value(hard, "cpu"), memory or _quota_value(hard, "memory"))
        return quotas

    def _metrics(self, plural: str) -> Optional[list[dict]]:
        self._connect()
        try:
            result = self._call(self._custom.list_cluster_custom_object, "metrics.k8s.io", "v1beta1", plural)
        except ApiException as e:
            if e.status in (404, 503):
                logger.debug("metrics_api_unavailable", plural=plural, status=e.status)
                return None
            raise
        return result.get("items", [])

    def node_usage(self) -> Optional[dict[str, Usage]]:
        items = self._metrics("nodes")
        if items is None:
            return None
        return {item["metadata"]["name"]: _usage(item.get("usage", {})) for item in items}

    def pod_usage(self) -> Optional[dict[tuple[str, str], Usage]]:
        items = self._metrics("pods")
        if items is None:
            return None
        usage = {}
        for item in items:
            cpu = memory = 0.0
            for container in item.get("containers", []):
                c, m = _usage(container.get("usage", {}))
                cpu += c
                memory += m
            usage[(item["metadata"]["namespace"], item["metadata"]["name"])] = (cpu, memory)
        return usage


# --- Static ---

class StaticClusterSource(ClusterSource):
    """Fixed single-node cluster for local runs and tests.

    Every list can be overridden at construction. Relative timestamps are
    computed on each call so the demo data never ages out of lookback windows.
    """

    def __init__(
        self,
        version: str = "v1.29.1",
        nodes: Optional[list[NodeSample]] = None,
        pods: Optional[list[PodSample]] = None,
        namespaces: Optional[list[NamespaceSample]] = None,
        events: Optional[list[ClusterEvent]] = None,
        quotas: Optional[Quotas] = None,
        node_usage: Optional[dict[str, Usage]] = None,
        pod_usage: Optional[dict[tuple[str, str], Usage]] = None,
        metrics_available: bool = True,
    ):
        self._version = version
        self._nodes = nodes
        self._pods = pods
        self._namespaces = namespaces
        self._events = events
        self._quotas = quotas
        self._node_usage = node_usage
        self._pod_usage = pod_usage
        self._metrics_available = metrics_available

    def version(self) -> str:
        return self._version

    def list_nodes(self) -> list[NodeSample]:
        if self._nodes is not None:
            return list(self._nodes)
        return [
            NodeSample(
                name="docker-desktop",
                readiness=NodeReadiness.READY,
                roles=["control-plane"],
                kubelet_version=self._version,
                operating_system="Docker Desktop",
                cpu_capacity="4",
                memory_capacity="8Gi",
            )
        ]

    def list_pods(self) -> list[PodSample]:
        if self._pods is not None:
            return list(self._pods)
        started = datetime.now(timezone.utc) - timedelta(hours=24)
        return [
            PodSample(
                name=name,
                namespace=ns,
                phase=PodPhase.RUNNING,
                node_name="docker-desktop",
                created_at=started,
                container_count=1,
                ready_container_count=1,
                labels=labels,
            )
            for ns, name, labels in (
                ("kube-system", "coredns-5d78c9869d-abcde", {"k8s-app": "kube-dns"}),
                ("kube-system", "etcd-docker-desktop", {"component": "etcd"}),
                ("default", "web-7c9f8d6b5-xk2lp", {"app": "web"}),
            )
        ]

    def list_namespaces(self) -> list[NamespaceSample]:
        if self._namespaces is not None:
            return list(self._namespaces)
        created = datetime.now(timezone.utc) - timedelta(days=7)
        return [
            NamespaceSample(name=name, phase=NamespacePhase.ACTIVE, created_at=created)
            for name in ("default", "kube-system")
        ]

    def list_events(self) -> list[ClusterEvent]:
        if self._events is not None:
            return list(self._events)
        now = datetime.now(timezone.utc)
        return [
            ClusterEvent(
                timestamp=now - timedelta(minutes=5),
                type=ClusterEventType.NORMAL,
                reason="Pulled",
                message="Container image already present on machine",
                object_kind="Pod",
                object_name="web-7c9f8d6b5-xk2lp",
                namespace="default",
            ),
        ]

    def list_quotas(self) -> Quotas:
        return dict(self._quotas or {})

    def node_usage(self) -> Optional[dict[str, Usage]]:
        if not self._metrics_available:
            return None
        if self._node_usage is not None:
            return dict(self._node_usage)
        return {"docker-desktop": (1.0, 2 * 1024 ** 3)}

    def pod_usage(self) -> Optional[dict[tuple[str, str], Usage]]:
        if not self._metrics_available:
            return None
        if self._pod_usage is not None:
            return dict(self._pod_usage)
        return {
            ("kube-system", "coredns-5d78c9869d-abcde"): (0.005, 20 * 1024 ** 2),
            ("kube-system", "etcd-docker-desktop"): (0.05, 60 * 1024 ** 2),
            ("default", "web-7c9f8d6b5-xk2lp"): (0.1, 128 * 1024 ** 2),
        }
