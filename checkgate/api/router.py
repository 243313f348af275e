"""Master API router — includes all sub-routers."""

from fastapi import APIRouter

from .routes.alerts import router as alerts_router
from .routes.cluster import router as cluster_router
from .routes.snapshots import router as snapshots_router
from .routes.system import router as system_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(snapshots_router)
api_router.include_router(alerts_router)
api_router.include_router(cluster_router)
api_router.include_router(system_router)
