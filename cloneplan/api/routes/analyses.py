"""Business analysis API routes (FastAPI).

Create, list, fetch and delete analyses for the calling user.
"""

import logging

from fastapi import APIRouter, Depends

from ...core.errors import NotFoundError
from ..deps import get_current_user_id, get_orchestrator, get_store
from ..schemas.analysis import AnalysisList, AnalyzeRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/business-analyses", tags=["business-analyses"])


@router.get("", response_model=AnalysisList)
async def list_analyses(
    user_id: str = Depends(get_current_user_id),
    store=Depends(get_store),
):
    """List the caller's analyses, newest first."""
    records = store.list_analyses(user_id)
    return AnalysisList(analyses=[r.to_dict() for r in records], count=len(records))


@router.post("/analyze")
async def analyze(
    data: AnalyzeRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator=Depends(get_orchestrator),
):
    """Analyze a business URL and persist the result."""
    logger.info(f"Analysis requested for {data.url} (user={user_id})")
    record = await orchestrator.analyze(user_id, data.url, data.goal)
    return record.to_dict()


@router.get("/{analysis_id}")
async def get_analysis(
    analysis_id: str,
    user_id: str = Depends(get_current_user_id),
    store=Depends(get_store),
):
    record = store.get_analysis(user_id, analysis_id)
    if record is None:
        raise NotFoundError(f"Analysis {analysis_id} not found")
    return record.to_dict()


@router.delete("/{analysis_id}")
async def delete_analysis(
    analysis_id: str,
    user_id: str = Depends(get_current_user_id),
    store=Depends(get_store),
):
    if not store.delete_analysis(user_id, analysis_id):
        raise NotFoundError(f"Analysis {analysis_id} not found")
    return {"success": True, "id": analysis_id}
