"""System routes — service and collection loop status."""

from fastapi import APIRouter

from ... import __version__
from ...dependencies import get_orchestrator

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/status")
async def get_status():
    orchestrator = get_orchestrator()
    return {"version": __version__, **orchestrator.get_status()}
