"""Snapshot exporter — flattened per-snapshot metric rows as CSV or JSON."""

import csv
import io
import json
from datetime import datetime
from typing import Optional

from ..engine.summarizer import EXTRACTORS, reports_metrics
from ..schemas import Snapshot, SnapshotKind
from ..utils.logging import get_logger

logger = get_logger("export.exporter")

SUPPORTED_FORMATS = ("csv", "json")


def flatten(kind: SnapshotKind, snapshot: Snapshot) -> dict:
    row = {"timestamp": snapshot.timestamp.isoformat(), "instance": snapshot.instance}
    measured = reports_metrics(snapshot)
    for name, extractor in EXTRACTORS[kind].items():
        row[name] = extractor(snapshot) if measured else None
    return row


class SnapshotExporter:
    """Exports stored snapshots of one kind in timestamp order."""

    def __init__(self, snapshot_store) -> None:
        self._store = snapshot_store

    async def export(
        self,
        kind: SnapshotKind,
        start: datetime,
        end: datetime,
        fmt: str = "csv",
        instance: Optional[str] = None,
    ) -> bytes:
        fmt = fmt.lower()
        if fmt not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported export format: {fmt}")

        snapshots = await self._store.load_window(kind, start, end, instance=instance)
        rows = [flatten(kind, s) for s in snapshots]
        fieldnames = ["timestamp", "instance", *EXTRACTORS[kind].keys()]
        data = self._to_csv(fieldnames, rows) if fmt == "csv" else self._to_json(rows)

        logger.info("export_completed", kind=kind.value, format=fmt, rows=len(rows), size=len(data))
        return data

    @staticmethod
    def _to_csv(fieldnames: list[str], rows: list[dict]) -> bytes:
        buffer = io.StringIO(newline="")
        writer = csv.DictWriter(buffer, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows({k: ("" if v is None else v) for k, v in row.items()} for row in rows)
        return buffer.getvalue().encode("utf-8")

    @staticmethod
    def _to_json(rows: list[dict]) -> bytes:
        return json.dumps(rows, indent=2, default=str).encode("utf-8")
