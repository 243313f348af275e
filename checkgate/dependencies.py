"""Dependency providers — module-level singletons built from configuration."""

from typing import Optional

from .config import CheckGateConfig, load_config
from .database import get_session_factory
from .utils.logging import get_logger

_dep_logger = get_logger("dependencies")

_config_instance: Optional[CheckGateConfig] = None
_snapshot_store = None
_alert_repository = None
_summarizer = None
_exporter = None
_monitoring_service = None
_orchestrator = None


def get_app_config() -> CheckGateConfig:
    """Get the application config singleton. Raises ConfigurationError when invalid."""
    global _config_instance
    if _config_instance is None:
        _config_instance = load_config()
    return _config_instance


def get_snapshot_store():
    """Get the Snapshot Store singleton."""
    global _snapshot_store
    if _snapshot_store is None:
        from .storage import SnapshotStore
        config = get_app_config()
        _snapshot_store = SnapshotStore(
            get_session_factory(config),
            retry_attempts=config.storage_retry_attempts,
            retry_backoff_seconds=config.storage_retry_backoff_seconds,
        )
    return _snapshot_store


def get_alert_repository():
    """Get the Alert Repository singleton."""
    global _alert_repository
    if _alert_repository is None:
        from .storage import AlertRepository
        config = get_app_config()
        _alert_repository = AlertRepository(
            get_session_factory(config),
            retry_attempts=config.storage_retry_attempts,
            retry_backoff_seconds=config.storage_retry_backoff_seconds,
        )
    return _alert_repository


def get_summarizer():
    """Get the Summarizer singleton."""
    global _summarizer
    if _summarizer is None:
        from .engine.summarizer import Summarizer
        config = get_app_config()
        _summarizer = Summarizer(
            get_snapshot_store(),
            get_alert_repository(),
            thresholds=config.thresholds,
            interval_seconds=config.collection_interval_seconds,
            noise_threshold=config.trend_noise_threshold,
            health_margin_percent=config.health_margin_percent,
        )
    return _summarizer


def get_exporter():
    """Get the Snapshot Exporter singleton."""
    global _exporter
    if _exporter is None:
        from .export.exporter import SnapshotExporter
        _exporter = SnapshotExporter(get_snapshot_store())
    return _exporter


def get_monitoring_service():
    """Get the Monitoring Service singleton."""
    global _monitoring_service
    if _monitoring_service is None:
        from .engine.monitoring_service import MonitoringService
        _monitoring_service = MonitoringService(
            get_snapshot_store(),
            get_alert_repository(),
            get_summarizer(),
            get_exporter(),
        )
    return _monitoring_service


def build_cluster_source(config: CheckGateConfig):
    """Select the cluster source named by ``cluster_source``. None means no cluster."""
    if config.cluster_source == "kubernetes":
        from .collectors.cluster_sources import KubernetesClusterSource
        return KubernetesClusterSource(
            context=config.kube_context,
            in_cluster=config.kube_in_cluster,
            request_timeout=config.collector_timeout_seconds,
        )
    if config.cluster_source == "static":
        from .collectors.cluster_sources import StaticClusterSource
        return StaticClusterSource()
    return None


def get_orchestrator():
    """Get the Collection Orchestrator singleton."""
    global _orchestrator
    if _orchestrator is None:
        from .alerting.notifier import AlertNotifier
        from .collectors import ClusterCollector, HostCollector
        from .engine.alert_evaluator import AlertEvaluator
        from .maintenance.retention import RetentionManager
        from .orchestrator import CollectionOrchestrator

        config = get_app_config()
        host = HostCollector(
            cpu_sample_seconds=config.cpu_sample_seconds,
            top_process_count=config.top_process_count,
            timeout_seconds=config.collector_timeout_seconds,
        )
        cluster = ClusterCollector(
            build_cluster_source(config),
            cluster_name=config.cluster_name,
            event_lookback_hours=config.cluster_event_lookback_hours,
            max_events=config.cluster_max_events,
            timeout_seconds=config.collector_timeout_seconds,
        )
        _orchestrator = CollectionOrchestrator(
            host,
            cluster,
            get_snapshot_store(),
            get_alert_repository(),
            AlertEvaluator(config.thresholds),
            interval_seconds=config.collection_interval_seconds,
            notifier=AlertNotifier(config.alert_webhook_url, config.alert_webhook_timeout_seconds),
            retention=RetentionManager(
                get_snapshot_store(),
                retention_days=config.retention_snapshots_days,
                check_interval_hours=config.retention_check_interval_hours,
            ),
        )
        _dep_logger.info("orchestrator_built", cluster_source=config.cluster_source)
    return _orchestrator
