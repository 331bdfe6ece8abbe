"""Business analysis request/response schemas."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class AnalyzeRequest(BaseModel):
    """Create analysis request."""
    url: str = Field(..., description="Target business URL; https:// is assumed", min_length=1)
    goal: Optional[str] = Field(None, description="What the analyst wants to learn", max_length=2000)


class AnalysisList(BaseModel):
    """List of analyses response."""
    analyses: List[dict] = Field(default_factory=list, description="Analyses, newest first")
    count: int = Field(0, description="Total analysis count")


class StageRequest(BaseModel):
    """Stage generation request."""
    regenerate: bool = Field(False, description="Caller intends to replace a completed stage")


class StageResponse(BaseModel):
    """Generated stage payload."""
    stageNumber: int = Field(..., description="Stage 2-6")
    stageName: str = Field(..., description="Fixed stage name")
    content: Dict[str, Any] = Field(..., description="Validated stage content")
    generatedAt: Optional[str] = Field(None, description="First generation timestamp")
    nextStage: Optional[int] = Field(None, description="Next stage, or null after stage 6")
