"""Unit tests for WorkflowService and InMemoryAnalysisStore stage handling.

Tests cover:
- Progression legality (prerequisite, regeneration, bounds)
- Current/next stage and progress summary
- Regeneration preserving generatedAt
- Legacy records synthesizing stage 1
- Store ordering and per-user isolation
"""

from datetime import datetime, timedelta, timezone

import pytest

from cloneplan.core.models import AnalysisRecord, StageRecord, StageStatus
from cloneplan.core.storage import InMemoryAnalysisStore
from cloneplan.core.workflow import STAGE_NAMES, TOTAL_STAGES, WorkflowService


# ── Fixtures ──────────────────────────────────────────────────────────────


T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _stage(n: int, status=StageStatus.COMPLETED, generated_at=T0) -> StageRecord:
    return StageRecord(
        stage_number=n,
        stage_name=STAGE_NAMES[n],
        status=status,
        content={"n": n},
        generated_at=generated_at,
        completed_at=generated_at if status is StageStatus.COMPLETED else None,
    )


def _make_record(completed=(1,)) -> AnalysisRecord:
    return AnalysisRecord(
        id="a1",
        user_id="u1",
        url="https://acmenotes.io",
        summary="Note app",
        structured={"overview": {"businessName": "Acme Notes"}},
        stages={n: _stage(n) for n in completed},
        created_at=T0,
    )


@pytest.fixture
def workflow():
    return WorkflowService()


# ── Tests: Progression ───────────────────────────────────────────────────


class TestProgression:
    """Tests for validate_stage_progression."""

    @pytest.mark.parametrize("n", range(3, 7))
    def test_missing_prerequisite_names_previous_stage(self, workflow, n):
        completed = tuple(range(1, n - 1))
        check = workflow.validate_stage_progression(_make_record(completed), n)

        assert check.valid is False
        assert f"Stage {n - 1} ({STAGE_NAMES[n - 1]}) must be completed" in check.reason
        assert f"before accessing Stage {n}" in check.reason

    def test_stage_two_needs_stage_one(self, workflow):
        record = _make_record(completed=())
        record.structured = None

        check = workflow.validate_stage_progression(record, 2)

        assert check.reason == (
            "Stage 1 (Discovery & Selection) must be completed before accessing Stage 2"
        )

    def test_next_stage_is_allowed(self, workflow):
        check = workflow.validate_stage_progression(_make_record((1, 2)), 3)

        assert check.valid is True
        assert check.regeneration is False

    def test_completed_stage_can_always_regenerate(self, workflow):
        # Stage 4 completed while stage 3 is somehow missing
        check = workflow.validate_stage_progression(_make_record((1, 2, 4)), 4)

        assert check.valid is True
        assert check.regeneration is True

    def test_out_of_range_and_missing_record(self, workflow):
        assert workflow.validate_stage_progression(_make_record(), 7).reason == (
            "Invalid stage number: 7. Must be between 1 and 6."
        )
        assert workflow.validate_stage_progression(None, 2).reason == "Analysis not found"

    def test_pending_stage_does_not_count(self, workflow):
        record = _make_record((1,))
        record.stages[2] = _stage(2, status=StageStatus.PENDING)

        assert workflow.validate_stage_progression(record, 3).valid is False


# ── Tests: Progress Queries ──────────────────────────────────────────────


class TestProgress:
    """Tests for current/next stage and summaries."""

    def test_current_stage_follows_highest_completed(self, workflow):
        stages = _make_record((1, 2, 3)).stages

        assert workflow.get_current_stage(stages) == 4
        assert workflow.get_next_stage(stages) == 4
        assert workflow.get_completed_stages(stages) == [1, 2, 3]

    def test_complete_workflow_has_no_next_stage(self, workflow):
        stages = _make_record(tuple(range(1, 7))).stages

        assert workflow.is_workflow_complete(stages) is True
        assert workflow.get_current_stage(stages) == TOTAL_STAGES
        assert workflow.get_next_stage(stages) is None

    def test_empty_map_starts_at_one(self, workflow):
        assert workflow.get_current_stage({}) == 1

    def test_progress_summary(self, workflow):
        summary = workflow.get_progress_summary(_make_record((1, 2)).stages)

        assert summary == {
            "currentStage": 3,
            "completedStages": [1, 2],
            "totalStages": 6,
            "isComplete": False,
            "nextStage": 3,
        }

    def test_can_regenerate_only_completed(self, workflow):
        stages = _make_record((1, 2)).stages

        assert workflow.can_regenerate_stage(stages, 2) is True
        assert workflow.can_regenerate_stage(stages, 3) is False


# ── Tests: Stage Data ────────────────────────────────────────────────────


class TestStageData:
    """Tests for stage creation and regeneration."""

    def test_create_completed_stage(self, workflow):
        stage = workflow.create_stage_data(3, {"coreFeatures": ["a"]})

        assert stage.stage_name == "MVP Launch Planning"
        assert stage.completed_at == stage.generated_at

    def test_pending_stage_has_no_completed_at(self, workflow):
        stage = workflow.create_stage_data(3, {"x": 1}, status=StageStatus.PENDING)

        assert stage.completed_at is None
        assert "completedAt" not in stage.to_dict()

    def test_empty_content_is_rejected(self, workflow):
        with pytest.raises(ValueError):
            workflow.create_stage_data(2, {})

    def test_regeneration_preserves_generated_at(self, workflow):
        original = _stage(2, generated_at=T0)
        later = T0 + timedelta(hours=3)
        fresh = StageRecord(2, STAGE_NAMES[2], StageStatus.COMPLETED, {"v": 2}, later, later)

        merged = workflow.merge_regeneration(original, fresh)

        assert merged.generated_at == T0
        assert merged.completed_at == later
        assert merged.content == {"v": 2}


# ── Tests: Legacy Records ────────────────────────────────────────────────


class TestLegacyRecords:
    """Tests for records created before the stage map existed."""

    def test_structured_record_without_stages_has_stage_one(self, workflow):
        record = _make_record(completed=())

        stages = workflow.stages_for(record)

        assert list(stages) == [1]
        assert stages[1].generated_at == T0
        assert stages[1].content["url"] == "https://acmenotes.io"
        assert workflow.validate_stage_progression(record, 2).valid is True

    def test_record_without_structured_data_has_no_stages(self, workflow):
        record = _make_record(completed=())
        record.structured = None

        assert workflow.stages_for(record) == {}


# ── Tests: Store ─────────────────────────────────────────────────────────


class TestStore:
    """Tests for InMemoryAnalysisStore stage persistence."""

    def test_create_adds_completed_stage_one(self):
        store = InMemoryAnalysisStore()

        record = store.create_analysis("u1", "https://acmenotes.io", "Note app", structured={"a": 1})

        assert record.stages[1].is_completed
        assert store.get_analysis("u1", record.id) is record
        assert store.get_analysis("u2", record.id) is None

    def test_update_stage_keeps_first_generated_at(self):
        store = InMemoryAnalysisStore()
        record = store.create_analysis("u1", "https://acmenotes.io", "Note app", structured={"a": 1})
        store.update_stage_data("u1", record.id, _stage(2, generated_at=T0))

        later = T0 + timedelta(days=1)
        store.update_stage_data(
            "u1", record.id,
            StageRecord(2, STAGE_NAMES[2], StageStatus.COMPLETED, {"v": 2}, later, later),
        )

        stage = store.get_analysis("u1", record.id).stages[2]
        assert stage.generated_at == T0
        assert stage.completed_at == later
        assert stage.content == {"v": 2}

    def test_update_unknown_analysis_returns_none(self):
        assert InMemoryAnalysisStore().update_stage_data("u1", "missing", _stage(2)) is None

    def test_list_is_newest_first_and_delete(self):
        store = InMemoryAnalysisStore()
        first = store.create_analysis("u1", "https://a.io", "A")
        second = store.create_analysis("u1", "https://b.io", "B")
        first.created_at = T0

        assert [r.id for r in store.list_analyses("u1")] == [second.id, first.id]
        assert store.delete_analysis("u1", first.id) is True
        assert store.delete_analysis("u1", first.id) is False
        assert store.list_analyses("u2") == []
