"""Per-stage content schemas for AI-generated stage payloads.

One pydantic model per stage number (2-6). parse_stage_content() returns a
SchemaResult holding either the normalized content or the list of schema
errors; it never raises for bad content.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel


class _StageModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


# ── Stage 2: Lazy-Entrepreneur Filter ─────────────────────────────────


class AutomationPotential(_StageModel):
    score: float = Field(..., ge=0, le=1)
    opportunities: List[str]


class ResourceRequirements(_StageModel):
    time: str
    money: str
    skills: List[str]


class Stage2Content(_StageModel):
    effort_score: int = Field(..., ge=1, le=10)
    reward_score: int = Field(..., ge=1, le=10)
    recommendation: Literal["go", "no-go", "maybe"]
    reasoning: str
    automation_potential: AutomationPotential
    resource_requirements: ResourceRequirements
    next_steps: List[str]


# ── Stage 3: MVP Launch Planning ──────────────────────────────────────


class TechStack(_StageModel):
    frontend: List[str] = Field(..., min_length=1)
    backend: List[str] = Field(..., min_length=1)
    infrastructure: List[str] = Field(..., min_length=1)


class TimelinePhase(_StageModel):
    phase: str
    duration: str
    deliverables: List[str] = Field(..., min_length=3)


class Stage3Content(_StageModel):
    core_features: List[str] = Field(..., min_length=3, max_length=5)
    nice_to_haves: List[str] = Field(..., min_length=3, max_length=5)
    tech_stack: TechStack
    timeline: List[TimelinePhase] = Field(..., min_length=3, max_length=4)
    estimated_cost: str


# ── Stage 4: Demand Testing Strategy ──────────────────────────────────


class DemandTestMethod(_StageModel):
    method: str
    description: str
    cost: str
    timeline: str


class SuccessMetric(_StageModel):
    metric: str
    target: str
    measurement: str


class BudgetItem(_StageModel):
    item: str
    cost: str


class Budget(_StageModel):
    total: str
    breakdown: List[BudgetItem]


class Stage4Content(_StageModel):
    testing_methods: List[DemandTestMethod]
    success_metrics: List[SuccessMetric]
    budget: Budget
    timeline: str


# ── Stage 5: Scaling & Growth ─────────────────────────────────────────


class GrowthChannel(_StageModel):
    channel: str
    strategy: str
    priority: Literal["high", "medium", "low"]


class Milestone(_StageModel):
    milestone: str
    timeline: str
    metrics: List[str]


class ResourceScalingPhase(_StageModel):
    phase: str
    team: List[str]
    infrastructure: str


class Stage5Content(_StageModel):
    growth_channels: List[GrowthChannel]
    milestones: List[Milestone]
    resource_scaling: List[ResourceScalingPhase]


# ── Stage 6: AI Automation Mapping ────────────────────────────────────


class AutomationOpportunity(_StageModel):
    process: str
    tool: str
    roi: str
    priority: int = Field(..., ge=1, le=10)


class ImplementationPhase(_StageModel):
    phase: str
    automations: List[str]
    timeline: str


class Stage6Content(_StageModel):
    automation_opportunities: List[AutomationOpportunity] = Field(..., min_length=4, max_length=6)
    implementation_plan: List[ImplementationPhase] = Field(..., min_length=3, max_length=3)
    estimated_savings: str


STAGE_MODELS: Dict[int, Type[_StageModel]] = {
    2: Stage2Content,
    3: Stage3Content,
    4: Stage4Content,
    5: Stage5Content,
    6: Stage6Content,
}


@dataclass
class SchemaResult:
    """Either validated content or the schema errors that rejected it."""
    content: Optional[Dict[str, Any]] = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.content is not None and not self.errors


def _format_error(err: dict) -> str:
    location = ".".join(str(part) for part in err.get("loc", ())) or "<root>"
    return f"{location}: {err.get('msg', 'invalid value')}"


def parse_stage_content(stage_number: int, raw: Any) -> SchemaResult:
    """Validate raw stage output against the stage's schema."""
    model = STAGE_MODELS.get(stage_number)
    if model is None:
        return SchemaResult(errors=[f"No schema for stage {stage_number}"])
    if not isinstance(raw, dict):
        return SchemaResult(errors=[f"Stage {stage_number} content must be an object"])
    try:
        parsed = model.model_validate(raw)
    except PydanticValidationError as e:
        return SchemaResult(errors=[_format_error(err) for err in e.errors()])
    return SchemaResult(content=parsed.model_dump(by_alias=True))


def stage_json_schema(stage_number: int) -> Dict[str, Any]:
    """JSON schema for prompting the model with the expected shape."""
    return STAGE_MODELS[stage_number].model_json_schema(by_alias=True)
