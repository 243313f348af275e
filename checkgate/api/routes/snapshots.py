"""Snapshot routes — latest, history, summary, baseline and export per snapshot kind."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response

from ...dependencies import get_monitoring_service
from ...schemas import SnapshotKind
from ...schemas.common import ensure_utc

router = APIRouter(prefix="/snapshots", tags=["snapshots"])

_EXPORT_MEDIA_TYPES = {"csv": "text/csv", "json": "application/json"}


def _window(start: Optional[datetime], end: Optional[datetime], default: timedelta) -> tuple[datetime, datetime]:
    end = ensure_utc(end) if end else datetime.now(timezone.utc)
    start = ensure_utc(start) if start else end - default
    if end < start:
        raise HTTPException(status_code=400, detail="end must not be before start")
    return start, end


@router.get("/{kind}/latest")
async def get_latest(kind: SnapshotKind, instance: Optional[str] = None):
    """Most recent stored snapshot of a kind."""
    snapshot = await get_monitoring_service().get_latest(kind, instance=instance)
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"No {kind.value} snapshot stored")
    return snapshot


@router.get("/{kind}/history")
async def get_history(
    kind: SnapshotKind,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    instance: Optional[str] = None,
):
    """Paginated snapshots in a time range, oldest first. Defaults to the last 24 hours."""
    start, end = _window(start, end, timedelta(hours=24))
    return await get_monitoring_service().get_history(
        kind, start, end, page=page, page_size=page_size, instance=instance
    )


@router.get("/{kind}/summary")
async def get_summary(
    kind: SnapshotKind,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    instance: Optional[str] = None,
):
    """Aggregates over a time range. Defaults to the last hour."""
    start, end = _window(start, end, timedelta(hours=1))
    return await get_monitoring_service().get_summary(kind, start, end, instance=instance)


@router.get("/{kind}/baseline")
async def get_baseline(
    kind: SnapshotKind,
    days: int = Query(7, ge=1, le=365),
    instance: Optional[str] = None,
):
    return await get_monitoring_service().baseline(kind, days, instance=instance)


@router.get("/{kind}/export")
async def export_snapshots(
    kind: SnapshotKind,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    format: str = Query("csv", pattern="^(csv|json)$"),
    instance: Optional[str] = None,
):
    """Download flattened snapshot metrics as CSV or JSON."""
    start, end = _window(start, end, timedelta(hours=24))
    data = await get_monitoring_service().export(kind, start, end, format, instance=instance)
    filename = f"{kind.value}_{end.strftime('%Y%m%d_%H%M%S')}.{format}"
    return Response(
        content=data,
        media_type=_EXPORT_MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
