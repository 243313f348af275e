"""CheckGate configuration system using Pydantic Settings."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError
from .schemas.alerts import AlertThresholds, Threshold


class CheckGateConfig(BaseSettings):
    """Main configuration class. Loads from .env file and environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "CHECKGATE"
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 9300

    # Database
    database_url: str = "sqlite+aiosqlite:///./checkgate.db"
    storage_retry_attempts: int = 3
    storage_retry_backoff_seconds: float = 0.5

    # Logging
    log_dir: str = "logs"
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    # Collection
    collection_interval_seconds: float = 30.0
    collector_timeout_seconds: float = 10.0
    cpu_sample_seconds: float = 0.5
    top_process_count: int = 5

    # Cluster
    cluster_source: str = "kubernetes"  # kubernetes / static / none
    cluster_name: str = "docker-desktop"
    kube_context: Optional[str] = None
    kube_in_cluster: bool = False
    cluster_event_lookback_hours: int = 24
    cluster_max_events: int = 200

    # Thresholds (alert when the value is strictly above)
    cpu_warning_percent: float = 80.0
    cpu_critical_percent: float = 95.0
    memory_warning_percent: float = 85.0
    memory_critical_percent: float = 95.0
    disk_warning_percent: float = 90.0
    disk_critical_percent: float = 95.0
    failed_pods_warning: int = 0
    failed_pods_critical: int = 5
    not_ready_nodes_warning: int = 0
    not_ready_nodes_critical: int = 0

    # Summaries
    trend_noise_threshold: float = 0.05
    health_margin_percent: float = 5.0

    # Retention
    retention_snapshots_days: int = 90
    retention_check_interval_hours: float = 6.0

    # Alerting
    alert_webhook_url: Optional[str] = None
    alert_webhook_timeout_seconds: float = 10.0

    @field_validator("cluster_source")
    @classmethod
    def validate_cluster_source(cls, v: str) -> str:
        allowed = {"kubernetes", "static", "none"}
        v = v.lower()
        if v not in allowed:
            raise ValueError(f"cluster_source must be one of {allowed}")
        return v

    @field_validator(
        "cpu_warning_percent",
        "cpu_critical_percent",
        "memory_warning_percent",
        "memory_critical_percent",
        "disk_warning_percent",
        "disk_critical_percent",
        "health_margin_percent",
    )
    @classmethod
    def validate_percent(cls, v: float) -> float:
        if not 0.0 <= v <= 100.0:
            raise ValueError("percent thresholds must be within [0, 100]")
        return v

    @field_validator(
        "failed_pods_warning",
        "failed_pods_critical",
        "not_ready_nodes_warning",
        "not_ready_nodes_critical",
        "retention_snapshots_days",
        "storage_retry_attempts",
        "cluster_max_events",
    )
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator(
        "collection_interval_seconds",
        "collector_timeout_seconds",
        "retention_check_interval_hours",
        "alert_webhook_timeout_seconds",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("top_process_count")
    @classmethod
    def validate_top_process_count(cls, v: int) -> int:
        if v < 1:
            raise ValueError("top_process_count must be at least 1")
        return v

    @model_validator(mode="after")
    def validate_threshold_order(self) -> "CheckGateConfig":
        pairs = {
            "cpu": (self.cpu_warning_percent, self.cpu_critical_percent),
            "memory": (self.memory_warning_percent, self.memory_critical_percent),
            "disk": (self.disk_warning_percent, self.disk_critical_percent),
            "failed_pods": (self.failed_pods_warning, self.failed_pods_critical),
            "not_ready_nodes": (self.not_ready_nodes_warning, self.not_ready_nodes_critical),
        }
        for name, (warning, critical) in pairs.items():
            if warning > critical:
                raise ValueError(f"{name} warning threshold ({warning}) exceeds critical ({critical})")
        return self

    @property
    def thresholds(self) -> AlertThresholds:
        return AlertThresholds(
            cpu=Threshold(warning=self.cpu_warning_percent, critical=self.cpu_critical_percent),
            memory=Threshold(warning=self.memory_warning_percent, critical=self.memory_critical_percent),
            disk=Threshold(warning=self.disk_warning_percent, critical=self.disk_critical_percent),
            failed_pods=Threshold(warning=self.failed_pods_warning, critical=self.failed_pods_critical),
            not_ready_nodes=Threshold(
                warning=self.not_ready_nodes_warning, critical=self.not_ready_nodes_critical
            ),
        )

    @property
    def base_dir(self) -> Path:
        return Path(__file__).resolve().parent.parent


def get_config() -> CheckGateConfig:
    """Factory function to create config instance."""
    return CheckGateConfig()


def load_config(**overrides) -> CheckGateConfig:
    """Create a validated config, raising ConfigurationError on invalid settings."""
    try:
        return CheckGateConfig(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
