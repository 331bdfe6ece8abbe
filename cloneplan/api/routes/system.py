"""System observability routes (FastAPI)."""

from fastapi import APIRouter, Depends

from ..deps import get_orchestrator

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/stats")
async def get_stats(orchestrator=Depends(get_orchestrator)):
    """Admission, cache, provider and detection counters."""
    return orchestrator.get_stats()
