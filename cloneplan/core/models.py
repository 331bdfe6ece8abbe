"""Data contracts shared across the cloneplan core.

Kept as dataclasses (not ORM models) for transport between layers.
Serialized forms use the camelCase keys clients already consume.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class StageStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class DetectionStatus(Enum):
    """Outcome of the technology detection branch for one analysis."""
    SUCCESS = "success"
    FAILED = "failed"
    DISABLED = "disabled"


@dataclass
class StageRecord:
    """One stage of the six-stage cloning plan.

    completed_at is set if and only if status is COMPLETED.
    """
    stage_number: int
    stage_name: str
    status: StageStatus
    content: Dict[str, Any]
    generated_at: datetime
    completed_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.status is StageStatus.COMPLETED

    def to_dict(self) -> dict:
        data = {
            "stageNumber": self.stage_number,
            "stageName": self.stage_name,
            "status": self.status.value,
            "content": self.content,
            "generatedAt": isoformat(self.generated_at),
        }
        if self.completed_at is not None:
            data["completedAt"] = isoformat(self.completed_at)
        return data


@dataclass
class DetectedTechnology:
    """A technology fingerprinted on the target site."""
    name: str
    categories: List[str] = field(default_factory=list)
    confidence: int = 100
    version: Optional[str] = None
    website: Optional[str] = None
    icon: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "categories": list(self.categories),
            "confidence": self.confidence,
            "version": self.version,
            "website": self.website,
            "icon": self.icon,
        }


@dataclass
class TechDetectionResult:
    technologies: List[DetectedTechnology]
    content_type: Optional[str] = None
    detected_at: datetime = field(default_factory=utcnow)
    success: bool = True


@dataclass
class FirstPartyData:
    """Facts scraped directly from the target page."""
    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    h1: Optional[str] = None
    text_snippet: str = ""

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "h1": self.h1,
            "textSnippet": self.text_snippet,
        }


@dataclass
class AIAnalysisResult:
    """Output of the primary AI analysis call."""
    content: str
    model: str
    provider: str
    structured: Optional[Dict[str, Any]] = None


@dataclass
class CategoryScore:
    score: int
    max_score: int
    detected: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"score": self.score, "max": self.max_score, "technologies": list(self.detected)}


@dataclass
class ComplexityFactors:
    custom_code: bool
    framework_complexity: str
    infrastructure_complexity: str
    technology_count: int
    licensing_complexity: bool

    def to_dict(self) -> dict:
        return {
            "customCode": self.custom_code,
            "frameworkComplexity": self.framework_complexity,
            "infrastructureComplexity": self.infrastructure_complexity,
            "technologyCount": self.technology_count,
            "licensingComplexity": self.licensing_complexity,
        }


@dataclass
class ComplexityResult:
    """Deterministic complexity assessment of a technology list."""
    score: int
    breakdown: Dict[str, CategoryScore]
    factors: ComplexityFactors
    explanation: str

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "breakdown": {name: cat.to_dict() for name, cat in self.breakdown.items()},
            "factors": self.factors.to_dict(),
            "explanation": self.explanation,
        }


class ClonabilityRating(Enum):
    VERY_EASY = "very-easy"
    EASY = "easy"
    MODERATE = "moderate"
    DIFFICULT = "difficult"
    VERY_DIFFICULT = "very-difficult"


@dataclass
class ScoreComponent:
    score: int
    weight: float

    def to_dict(self) -> dict:
        return {"score": self.score, "weight": self.weight}


@dataclass
class ClonabilityScore:
    score: int
    rating: ClonabilityRating
    components: Dict[str, ScoreComponent]
    recommendation: str
    confidence: float

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "rating": self.rating.value,
            "components": {k: v.to_dict() for k, v in self.components.items()},
            "recommendation": self.recommendation,
            "confidence": self.confidence,
        }


@dataclass
class ProjectEstimates:
    time_minimum: str
    time_maximum: str
    time_realistic: str
    cost_development: str
    cost_infrastructure: str
    cost_maintenance: str
    cost_total: str
    team_minimum: int
    team_recommended: int

    def to_dict(self) -> dict:
        return {
            "timeEstimate": {
                "minimum": self.time_minimum,
                "maximum": self.time_maximum,
                "realistic": self.time_realistic,
            },
            "costEstimate": {
                "development": self.cost_development,
                "infrastructure": self.cost_infrastructure,
                "maintenance": self.cost_maintenance,
                "total": self.cost_total,
            },
            "teamSize": {
                "minimum": self.team_minimum,
                "recommended": self.team_recommended,
            },
        }


@dataclass
class SkillRequirement:
    skill: str
    proficiency: str  # beginner | intermediate | advanced | expert
    category: str
    estimated_learning_time: Optional[str] = None
    learning_resources: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "skill": self.skill,
            "proficiency": self.proficiency,
            "category": self.category,
            "estimatedLearningTime": self.estimated_learning_time,
            "learningResources": [dict(r) for r in self.learning_resources],
        }


@dataclass
class BuildVsBuyRecommendation:
    technology: str
    recommendation: str  # build | buy | hybrid
    reasoning: str
    alternatives: List[str] = field(default_factory=list)
    estimated_cost_build: Optional[str] = None
    estimated_cost_buy: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "technology": self.technology,
            "recommendation": self.recommendation,
            "reasoning": self.reasoning,
            "alternatives": list(self.alternatives),
            "estimatedCost": {"build": self.estimated_cost_build, "buy": self.estimated_cost_buy},
        }


@dataclass
class TechnologyInsights:
    complexity: ComplexityResult
    estimates: ProjectEstimates
    clonability: ClonabilityScore
    recommendations: List[Dict[str, str]]
    summary: str
    alternatives: Dict[str, List[str]] = field(default_factory=dict)
    build_vs_buy: List[BuildVsBuyRecommendation] = field(default_factory=list)
    skills: List[SkillRequirement] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "complexity": self.complexity.to_dict(),
            "estimates": self.estimates.to_dict(),
            "clonability": self.clonability.to_dict(),
            "alternatives": {name: list(alts) for name, alts in self.alternatives.items()},
            "buildVsBuy": [b.to_dict() for b in self.build_vs_buy],
            "skills": [s.to_dict() for s in self.skills],
            "recommendations": [dict(r) for r in self.recommendations],
            "summary": self.summary,
        }


@dataclass
class AnalysisRecord:
    """A persisted business analysis and its stage map."""
    id: str
    user_id: str
    url: str
    summary: str
    model: Optional[str] = None
    goal: Optional[str] = None
    structured: Optional[Dict[str, Any]] = None
    first_party: Optional[FirstPartyData] = None
    stages: Dict[int, StageRecord] = field(default_factory=dict)
    detection_status: DetectionStatus = DetectionStatus.DISABLED
    technology_insights: Optional[TechnologyInsights] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @property
    def business_name(self) -> Optional[str]:
        if self.first_party and self.first_party.title:
            return self.first_party.title
        overview = (self.structured or {}).get("overview") or {}
        return overview.get("businessName") or overview.get("name")

    def to_dict(self) -> dict:
        insights = self.technology_insights
        return {
            "id": self.id,
            "userId": self.user_id,
            "url": self.url,
            "summary": self.summary,
            "model": self.model,
            "goal": self.goal,
            "structured": self.structured,
            "firstPartyData": self.first_party.to_dict() if self.first_party else None,
            "stages": {str(n): s.to_dict() for n, s in sorted(self.stages.items())},
            "detectionStatus": self.detection_status.value,
            "technologyInsights": insights.to_dict() if insights else None,
            "clonabilityScore": insights.clonability.to_dict() if insights else None,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }
