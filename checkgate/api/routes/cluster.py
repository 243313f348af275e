"""Cluster routes — pods of the latest cluster snapshot."""

from typing import Optional

from fastapi import APIRouter, Query

from ...dependencies import get_monitoring_service
from ...schemas import PodPhase

router = APIRouter(prefix="/cluster", tags=["cluster"])


@router.get("/pods")
async def list_pods(
    namespace: Optional[str] = None,
    phase: Optional[PodPhase] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=500),
):
    """Pods from the most recent cluster snapshot, ordered by namespace and name."""
    return await get_monitoring_service().list_pods(
        namespace=namespace, phase=phase, page=page, page_size=page_size
    )
