"""Tests for configuration loading and validation."""

import pytest

from checkgate.config import CheckGateConfig, load_config
from checkgate.errors import ConfigurationError
from checkgate.schemas import AlertSeverity


class TestDefaults:
    def test_defaults(self):
        config = load_config(_env_file=None)
        assert config.collection_interval_seconds == 30.0
        assert config.retention_snapshots_days == 90
        assert config.cluster_source == "kubernetes"
        assert config.database_url.startswith("sqlite+aiosqlite")

    def test_default_thresholds(self):
        thresholds = load_config(_env_file=None).thresholds
        assert thresholds.cpu.warning == 80.0
        assert thresholds.cpu.critical == 95.0
        assert thresholds.memory.warning == 85.0
        assert thresholds.disk.critical == 95.0
        assert thresholds.failed_pods.warning == 0
        assert thresholds.not_ready_nodes.critical == 0


class TestEnvironment:
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("CPU_WARNING_PERCENT", "70")
        monkeypatch.setenv("CLUSTER_SOURCE", "Static")
        monkeypatch.setenv("COLLECTION_INTERVAL_SECONDS", "5")
        config = load_config(_env_file=None)
        assert config.cpu_warning_percent == 70.0
        assert config.cluster_source == "static"
        assert config.collection_interval_seconds == 5.0

    def test_invalid_env_value(self, monkeypatch):
        monkeypatch.setenv("RETENTION_SNAPSHOTS_DAYS", "soon")
        with pytest.raises(ConfigurationError):
            load_config(_env_file=None)


class TestValidation:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"cluster_source": "openshift"},
            {"cpu_warning_percent": 120.0},
            {"disk_critical_percent": -1.0},
            {"collection_interval_seconds": 0},
            {"collector_timeout_seconds": -5},
            {"retention_snapshots_days": -1},
            {"top_process_count": 0},
            {"memory_warning_percent": 96.0, "memory_critical_percent": 90.0},
            {"failed_pods_warning": 10, "failed_pods_critical": 5},
        ],
    )
    def test_rejected(self, overrides):
        with pytest.raises(ConfigurationError):
            load_config(_env_file=None, **overrides)

    def test_equal_warning_and_critical_allowed(self):
        config = load_config(_env_file=None, not_ready_nodes_warning=0, not_ready_nodes_critical=0)
        assert config.not_ready_nodes_warning == config.not_ready_nodes_critical

    def test_custom_thresholds_classify(self):
        config = CheckGateConfig(_env_file=None, disk_warning_percent=70.0, disk_critical_percent=80.0)
        assert config.thresholds.disk.classify(75.0) == AlertSeverity.WARNING
        assert config.thresholds.disk.classify(85.0) == AlertSeverity.CRITICAL
        assert config.thresholds.disk.classify(70.0) is None
