"""In-memory analysis store keyed by (user_id, analysis_id).

Writes are last-write-wins; concurrent regenerations of the same stage
leave the later write in place.
"""

import logging
from typing import Dict, List, Optional
from uuid import uuid4

from .models import (
    AnalysisRecord,
    DetectionStatus,
    FirstPartyData,
    StageRecord,
    TechnologyInsights,
    utcnow,
)
from .workflow import WorkflowService

logger = logging.getLogger(__name__)


class InMemoryAnalysisStore:
    """Process-lifetime storage for analyses and their stage maps."""

    def __init__(self):
        self._analyses: Dict[str, Dict[str, AnalysisRecord]] = {}

    def list_analyses(self, user_id: str) -> List[AnalysisRecord]:
        """All analyses for a user, newest first."""
        records = self._analyses.get(user_id, {}).values()
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def get_analysis(self, user_id: str, analysis_id: str) -> Optional[AnalysisRecord]:
        return self._analyses.get(user_id, {}).get(analysis_id)

    def create_analysis(
        self,
        user_id: str,
        url: str,
        summary: str,
        model: Optional[str] = None,
        structured: Optional[dict] = None,
        first_party: Optional[FirstPartyData] = None,
        goal: Optional[str] = None,
        detection_status: DetectionStatus = DetectionStatus.DISABLED,
    ) -> AnalysisRecord:
        """Persist a new analysis; stage 1 is completed when structured data exists."""
        record = AnalysisRecord(
            id=str(uuid4()),
            user_id=user_id,
            url=url,
            summary=summary,
            model=model,
            goal=goal,
            structured=structured,
            first_party=first_party,
            detection_status=detection_status,
        )
        if structured is not None:
            record.stages[1] = WorkflowService.legacy_stage_one(record)
        self._analyses.setdefault(user_id, {})[record.id] = record
        logger.info(f"Created analysis {record.id} for {url} (user={user_id})")
        return record

    def update_stage_data(
        self, user_id: str, analysis_id: str, stage: StageRecord
    ) -> Optional[AnalysisRecord]:
        """Store a stage, keeping an existing generatedAt for that stage number."""
        record = self.get_analysis(user_id, analysis_id)
        if record is None:
            return None
        existing = record.stages.get(stage.stage_number)
        record.stages[stage.stage_number] = WorkflowService.merge_regeneration(existing, stage)
        record.updated_at = utcnow()
        return record

    def update_insights(
        self, user_id: str, analysis_id: str, insights: TechnologyInsights
    ) -> Optional[AnalysisRecord]:
        record = self.get_analysis(user_id, analysis_id)
        if record is None:
            return None
        record.technology_insights = insights
        record.updated_at = utcnow()
        return record

    def delete_analysis(self, user_id: str, analysis_id: str) -> bool:
        removed = self._analyses.get(user_id, {}).pop(analysis_id, None)
        if removed is not None:
            logger.info(f"Deleted analysis {analysis_id} (user={user_id})")
        return removed is not None
