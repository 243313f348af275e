"""Persistence layer — snapshot normalizer and alert repository."""

from .alert_store import AlertRepository
from .snapshot_store import SnapshotStore

__all__ = ["AlertRepository", "SnapshotStore"]
