"""Six-stage cloning-plan workflow.

Stage 1 (Discovery & Selection) is completed when the analysis is created.
Stage N (2-6) may be generated when stage N-1 is completed, and any
completed stage may be regenerated without affecting the others.
Regeneration replaces content and completedAt but keeps generatedAt.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .models import AnalysisRecord, StageRecord, StageStatus, utcnow

logger = logging.getLogger(__name__)

STAGE_NAMES: Dict[int, str] = {
    1: "Discovery & Selection",
    2: "Lazy-Entrepreneur Filter",
    3: "MVP Launch Planning",
    4: "Demand Testing Strategy",
    5: "Scaling & Growth",
    6: "AI Automation Mapping",
}
TOTAL_STAGES = len(STAGE_NAMES)
FIRST_GENERATED_STAGE = 2


@dataclass
class ProgressionCheck:
    valid: bool
    reason: Optional[str] = None
    regeneration: bool = False


def stage_name(stage_number: int) -> str:
    return STAGE_NAMES.get(stage_number, f"Stage {stage_number}")


class WorkflowService:
    """Stage progression rules and stage-data lifecycle.

    Public API:
        stages_for(record) -> stage map including synthesized stage 1
        validate_stage_progression(record, n) -> ProgressionCheck
        create_stage_data(n, content, status) -> StageRecord
        get_progress_summary(stages) -> dict
    """

    def stages_for(self, record: AnalysisRecord) -> Dict[int, StageRecord]:
        """Stage map for a record; legacy records get a synthesized stage 1."""
        if record.stages:
            return record.stages
        if record.structured is None:
            return {}
        return {1: self.legacy_stage_one(record)}

    @staticmethod
    def legacy_stage_one(record: AnalysisRecord) -> StageRecord:
        return StageRecord(
            stage_number=1,
            stage_name=STAGE_NAMES[1],
            status=StageStatus.COMPLETED,
            content={
                "analysis": record.structured,
                "summary": record.summary,
                "url": record.url,
            },
            generated_at=record.created_at,
            completed_at=record.created_at,
        )

    def validate_stage_progression(
        self, record: Optional[AnalysisRecord], stage_number: int
    ) -> ProgressionCheck:
        if stage_number not in STAGE_NAMES:
            return ProgressionCheck(
                False,
                f"Invalid stage number: {stage_number}. Must be between 1 and {TOTAL_STAGES}.",
            )
        if record is None:
            return ProgressionCheck(False, "Analysis not found")
        if stage_number == 1:
            return ProgressionCheck(True)

        stages = self.stages_for(record)
        if self._is_completed(stages, stage_number):
            return ProgressionCheck(True, regeneration=True)

        previous = stage_number - 1
        if not self._is_completed(stages, previous):
            return ProgressionCheck(
                False,
                f"Stage {previous} ({STAGE_NAMES[previous]}) must be completed "
                f"before accessing Stage {stage_number}",
            )
        return ProgressionCheck(True)

    # ── Stage data ────────────────────────────────────────────────────

    @staticmethod
    def validate_stage_data(content: Any) -> bool:
        """Stage content must be a non-empty mapping."""
        return isinstance(content, dict) and bool(content)

    def create_stage_data(
        self,
        stage_number: int,
        content: Dict[str, Any],
        status: StageStatus = StageStatus.COMPLETED,
    ) -> StageRecord:
        if not self.validate_stage_data(content):
            raise ValueError(f"Stage {stage_number} content must be a non-empty object")
        now = utcnow()
        return StageRecord(
            stage_number=stage_number,
            stage_name=stage_name(stage_number),
            status=status,
            content=content,
            generated_at=now,
            completed_at=now if status is StageStatus.COMPLETED else None,
        )

    @staticmethod
    def merge_regeneration(existing: Optional[StageRecord], fresh: StageRecord) -> StageRecord:
        """Apply a regenerated stage on top of an existing one.

        The original generatedAt survives; content, status and completedAt
        come from the fresh record.
        """
        if existing is None:
            return fresh
        return StageRecord(
            stage_number=fresh.stage_number,
            stage_name=fresh.stage_name,
            status=fresh.status,
            content=fresh.content,
            generated_at=existing.generated_at,
            completed_at=fresh.completed_at,
        )

    # ── Progress queries ──────────────────────────────────────────────

    @staticmethod
    def _is_completed(stages: Dict[int, StageRecord], stage_number: int) -> bool:
        stage = stages.get(stage_number)
        return stage is not None and stage.is_completed

    def get_completed_stages(self, stages: Dict[int, StageRecord]) -> List[int]:
        return sorted(n for n, s in stages.items() if s.is_completed)

    def get_current_stage(self, stages: Dict[int, StageRecord]) -> int:
        completed = self.get_completed_stages(stages)
        if not completed:
            return 1
        return min(max(completed) + 1, TOTAL_STAGES)

    def is_workflow_complete(self, stages: Dict[int, StageRecord]) -> bool:
        return len(self.get_completed_stages(stages)) == TOTAL_STAGES

    def get_next_stage(self, stages: Dict[int, StageRecord]) -> Optional[int]:
        if self.is_workflow_complete(stages):
            return None
        return self.get_current_stage(stages)

    def can_regenerate_stage(self, stages: Dict[int, StageRecord], stage_number: int) -> bool:
        return self._is_completed(stages, stage_number)

    def get_progress_summary(self, stages: Dict[int, StageRecord]) -> Dict[str, Any]:
        return {
            "currentStage": self.get_current_stage(stages),
            "completedStages": self.get_completed_stages(stages),
            "totalStages": TOTAL_STAGES,
            "isComplete": self.is_workflow_complete(stages),
            "nextStage": self.get_next_stage(stages),
        }
