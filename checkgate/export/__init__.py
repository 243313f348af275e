from .exporter import SnapshotExporter

__all__ = ["SnapshotExporter"]
