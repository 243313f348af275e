"""Tests for the Kubernetes cluster source with a mocked API client."""

from datetime import datetime, timezone
from types import SimpleNamespace as NS
from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import MaxRetryError

from checkgate.collectors import KubernetesClusterSource
from checkgate.errors import ClusterUnreachableError
from checkgate.schemas import ClusterEventType, NamespacePhase, NodeReadiness, PodPhase

CREATED = datetime(2026, 3, 1, tzinfo=timezone.utc)


def k8s_node(name, ready="True", unschedulable=None, labels=None):
    return NS(
        metadata=NS(name=name, labels=labels or {}),
        spec=NS(unschedulable=unschedulable),
        status=NS(
            conditions=[NS(type="MemoryPressure", status="False"), NS(type="Ready", status=ready)],
            capacity={"cpu": "4", "memory": "8Gi"},
            node_info=NS(kubelet_version="v1.29.1", os_image="Ubuntu 22.04"),
        ),
    )


def k8s_pod(name, namespace, phase, restarts=(0,)):
    return NS(
        metadata=NS(name=name, namespace=namespace, creation_timestamp=CREATED, labels={"app": name}),
        spec=NS(node_name="node-a", containers=[NS() for _ in restarts]),
        status=NS(
            phase=phase,
            container_statuses=[NS(ready=r == 0, restart_count=r) for r in restarts],
        ),
    )


def k8s_event(reason, type_, last=None, first=None):
    return NS(
        last_timestamp=last,
        event_time=None,
        first_timestamp=first,
        metadata=NS(namespace="default", creation_timestamp=None),
        involved_object=NS(kind="Pod", name="web"),
        type=type_,
        reason=reason,
        message=f"{reason} happened",
        count=None,
    )


@pytest.fixture
def apis():
    core = MagicMock()
    version = MagicMock()
    custom = MagicMock()
    with patch("checkgate.collectors.cluster_sources.config") as cfg, \
         patch("checkgate.collectors.cluster_sources.client") as cli:
        cli.CoreV1Api.return_value = core
        cli.VersionApi.return_value = version
        cli.CustomObjectsApi.return_value = custom
        yield NS(config=cfg, core=core, version=version, custom=custom)


@pytest.fixture
def source(apis):
    return KubernetesClusterSource(context="docker-desktop", request_timeout=5.0)


class TestConnection:
    def test_kube_config_loaded_once(self, apis, source):
        apis.version.get_code.return_value = NS(git_version="v1.29.1")
        assert source.version() == "v1.29.1"
        source.version()
        apis.config.load_kube_config.assert_called_once_with(context="docker-desktop")
        apis.version.get_code.assert_called_with(_request_timeout=5.0)

    def test_in_cluster(self, apis):
        apis.version.get_code.return_value = NS(git_version="v1.30.0")
        KubernetesClusterSource(in_cluster=True).version()
        apis.config.load_incluster_config.assert_called_once()
        apis.config.load_kube_config.assert_not_called()

    def test_missing_kubeconfig_is_unreachable(self, apis, source):
        apis.config.load_kube_config.side_effect = ConfigException("Invalid kube-config file")
        with pytest.raises(ClusterUnreachableError):
            source.list_nodes()

    def test_transport_failure_is_unreachable(self, apis, source):
        apis.core.list_node.side_effect = MaxRetryError(None, "/api/v1/nodes")
        with pytest.raises(ClusterUnreachableError):
            source.list_nodes()


class TestListing:
    def test_nodes(self, apis, source):
        apis.core.list_node.return_value = NS(items=[
            k8s_node("cp", labels={"node-role.kubernetes.io/control-plane": ""}),
            k8s_node("w1", unschedulable=True),
            k8s_node("w2", ready="False"),
            k8s_node("w3", ready="Unknown"),
        ])
        nodes = {n.name: n for n in source.list_nodes()}
        assert nodes["cp"].readiness == NodeReadiness.READY
        assert nodes["cp"].roles == ["control-plane"]
        assert nodes["w1"].readiness == NodeReadiness.SCHEDULING_DISABLED
        assert nodes["w1"].roles == ["worker"]
        assert nodes["w2"].readiness == NodeReadiness.NOT_READY
        assert nodes["w3"].readiness == NodeReadiness.UNKNOWN
        assert nodes["cp"].cpu_capacity == "4"
        assert nodes["cp"].kubelet_version == "v1.29.1"

    def test_pods(self, apis, source):
        apis.core.list_pod_for_all_namespaces.return_value = NS(items=[
            k8s_pod("web", "default", "Running", restarts=(0, 3)),
            k8s_pod("job", "batch", "Failed"),
            k8s_pod("odd", "batch", "Evicted"),
        ])
        pods = {p.name: p for p in source.list_pods()}
        assert pods["web"].phase == PodPhase.RUNNING
        assert pods["web"].container_count == 2
        assert pods["web"].ready_container_count == 1
        assert pods["web"].restart_count == 3
        assert pods["web"].created_at == CREATED
        assert pods["job"].phase == PodPhase.FAILED
        assert pods["odd"].phase == PodPhase.UNKNOWN

    def test_namespaces(self, apis, source):
        apis.core.list_namespace.return_value = NS(items=[
            NS(metadata=NS(name="default", creation_timestamp=CREATED), status=NS(phase="Active")),
            NS(metadata=NS(name="old", creation_timestamp=CREATED), status=NS(phase="Terminating")),
        ])
        phases = {ns.name: ns.phase for ns in source.list_namespaces()}
        assert phases == {"default": NamespacePhase.ACTIVE, "old": NamespacePhase.TERMINATING}

    def test_events(self, apis, source):
        apis.core.list_event_for_all_namespaces.return_value = NS(items=[
            k8s_event("Scheduled", "Normal", last=CREATED),
            k8s_event("BackOff", "Warning", first=CREATED),
            k8s_event("Weird", "Other", last=CREATED),
            k8s_event("NoTime", "Normal"),
        ])
        events = {e.reason: e for e in source.list_events()}
        assert set(events) == {"Scheduled", "BackOff", "Weird"}
        assert events["BackOff"].type == ClusterEventType.WARNING
        assert events["Weird"].type == ClusterEventType.ERROR
        assert events["Scheduled"].count == 1
        assert events["Scheduled"].object_name == "web"

    def test_quotas(self, apis, source):
        apis.core.list_resource_quota_for_all_namespaces.return_value = NS(items=[
            NS(
                metadata=NS(namespace="default"),
                status=NS(hard={"limits.cpu": "2", "requests.memory": "4Gi"}),
                spec=None,
            ),
        ])
        assert source.list_quotas() == {"default": ("2", "4Gi")}


class TestMetrics:
    def test_node_and_pod_usage(self, apis, source):
        def list_metrics(group, version, plural, _request_timeout=None):
            if plural == "nodes":
                return {"items": [{"metadata": {"name": "node-a"}, "usage": {"cpu": "500m", "memory": "1Gi"}}]}
            return {"items": [{
                "metadata": {"namespace": "default", "name": "web"},
                "containers": [
                    {"usage": {"cpu": "100m", "memory": "64Mi"}},
                    {"usage": {"cpu": "50m", "memory": "64Mi"}},
                ],
            }]}

        apis.custom.list_cluster_custom_object.side_effect = list_metrics
        assert source.node_usage() == {"node-a": (0.5, 1024 ** 3)}
        cpu, memory = source.pod_usage()[("default", "web")]
        assert cpu == pytest.approx(0.15)
        assert memory == 128 * 1024 ** 2

    def test_metrics_api_missing(self, apis, source):
        apis.custom.list_cluster_custom_object.side_effect = ApiException(status=404, reason="Not Found")
        assert source.node_usage() is None
        assert source.pod_usage() is None

    def test_metrics_api_forbidden_raises(self, apis, source):
        apis.custom.list_cluster_custom_object.side_effect = ApiException(status=403, reason="Forbidden")
        with pytest.raises(ApiException):
            source.node_usage()
