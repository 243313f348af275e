"""Alert routes — active alerts and manual lifecycle actions."""

from typing import Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from ...dependencies import get_monitoring_service
from ...schemas import AlertSeverity

router = APIRouter(prefix="/alerts", tags=["alerts"])


class AcknowledgeRequest(BaseModel):
    actor: str


class ResolveRequest(BaseModel):
    actor: str
    notes: Optional[str] = None


@router.get("/")
async def get_alerts(
    severity: Optional[AlertSeverity] = None,
    limit: int = Query(50, ge=1, le=500),
):
    """Unresolved alerts, newest first."""
    return await get_monitoring_service().get_active_alerts(severity=severity, limit=limit)


@router.get("/{alert_id}")
async def get_alert(alert_id: int):
    return await get_monitoring_service().get_alert(alert_id)


@router.post("/{alert_id}/acknowledge")
async def acknowledge_alert(alert_id: int, body: AcknowledgeRequest):
    return await get_monitoring_service().acknowledge(alert_id, body.actor)


@router.post("/{alert_id}/resolve")
async def resolve_alert(alert_id: int, body: ResolveRequest):
    return await get_monitoring_service().resolve(alert_id, body.actor, body.notes)
