from .base_collector import BaseCollector
from .cluster_collector import ClusterCollector
from .cluster_sources import ClusterSource, KubernetesClusterSource, StaticClusterSource
from .host_collector import HostCollector

__all__ = [
    "BaseCollector",
    "ClusterCollector",
    "ClusterSource",
    "HostCollector",
    "KubernetesClusterSource",
    "StaticClusterSource",
]
