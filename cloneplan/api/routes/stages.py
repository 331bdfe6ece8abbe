"""Cloning-plan stage routes (FastAPI)."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from ..deps import get_current_user_id, get_orchestrator
from ..schemas.analysis import StageRequest, StageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/business-analyses", tags=["stages"])


@router.post("/{analysis_id}/stages/{stage_number}", response_model=StageResponse)
async def generate_stage(
    analysis_id: str,
    stage_number: int,
    data: Optional[StageRequest] = None,
    user_id: str = Depends(get_current_user_id),
    orchestrator=Depends(get_orchestrator),
):
    """Generate or regenerate stage 2-6 of the cloning plan."""
    regenerate = data.regenerate if data is not None else False
    payload = await orchestrator.generate_stage(user_id, analysis_id, stage_number, regenerate)
    return StageResponse(**payload)


@router.get("/{analysis_id}/stages")
async def get_stages(
    analysis_id: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator=Depends(get_orchestrator),
):
    """Stage map plus progress summary for an analysis."""
    return orchestrator.get_stages(user_id, analysis_id)
