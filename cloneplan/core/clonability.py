"""Composite clonability scoring.

Combines four 1-10 component scores with fixed weights:

    technicalComplexity   0.4   11 - complexity score
    marketOpportunity     0.3   SWOT and competitor signal counts
    resourceRequirements  0.2   development/infrastructure cost and team size
    timeToMarket          0.1   realistic duration bands

Malformed cost or duration strings never raise; they fall back to fixed
defaults ($50,000 development, $200/month infrastructure, 24 weeks).
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Dict, Optional

from .models import ClonabilityRating, ClonabilityScore, ProjectEstimates, ScoreComponent

logger = logging.getLogger(__name__)

WEIGHTS: Dict[str, float] = {
    "technicalComplexity": 0.4,
    "marketOpportunity": 0.3,
    "resourceRequirements": 0.2,
    "timeToMarket": 0.1,
}

DEFAULT_DEVELOPMENT_COST = 50_000
DEFAULT_INFRASTRUCTURE_COST = 200
DEFAULT_DURATION_WEEKS = 24
NEUTRAL_SCORE = 5

_DOLLAR_RE = re.compile(r"\$\s*([0-9][0-9,]*)")
_FIRST_NUMBER_RE = re.compile(r"(\d+)")


@dataclass
class MarketData:
    """Signal counts pulled from a structured analysis."""
    strengths: int = 0
    weaknesses: int = 0
    opportunities: int = 0
    threats: int = 0
    competitors: int = 0

    @property
    def swot_total(self) -> int:
        return self.strengths + self.weaknesses + self.opportunities + self.threats

    @classmethod
    def from_structured(cls, structured: Optional[dict]) -> Optional["MarketData"]:
        """Build from structured["market"], or None if it carries no market section."""
        market = (structured or {}).get("market")
        if not isinstance(market, dict):
            return None
        swot = market.get("swot") or {}
        competitors = market.get("competitors") or []

        def _count(key):
            items = swot.get(key) or []
            return len(items) if isinstance(items, list) else 0

        return cls(
            strengths=_count("strengths"),
            weaknesses=_count("weaknesses"),
            opportunities=_count("opportunities"),
            threats=_count("threats"),
            competitors=len(competitors) if isinstance(competitors, list) else 0,
        )


@dataclass
class ClonabilityInput:
    complexity_score: int
    market: Optional[MarketData] = None
    estimates: Optional[ProjectEstimates] = None


def _clamp(value: float, low: int = 1, high: int = 10) -> int:
    # half up, so 6.5 scores 7
    return int(max(low, min(high, math.floor(value + 0.5))))


def parse_dollar_amount(text: Optional[str], default: int) -> int:
    """First $-prefixed amount in text, or default when absent."""
    match = _DOLLAR_RE.search(text or "")
    if not match:
        return default
    digits = match.group(1).replace(",", "")
    return int(digits) if digits else default


def parse_duration_weeks(text: Optional[str], default: int = DEFAULT_DURATION_WEEKS) -> int:
    """Convert '3 months' / '10 weeks' / '1 year' to weeks.

    The first integer is the amount and the unit is found anywhere in the
    text, so '3-6 months' reads as 12 weeks.
    """
    lower = (text or "").lower()
    match = _FIRST_NUMBER_RE.search(lower)
    if not match:
        return default
    amount = int(match.group(1))
    if "week" in lower:
        return amount
    if "month" in lower:
        return amount * 4
    if "year" in lower:
        return amount * 52
    return default


class ClonabilityScorer:
    """Weighted clonability composite.

    Public API:
        score(ClonabilityInput) -> ClonabilityScore
    """

    def score(self, data: ClonabilityInput) -> ClonabilityScore:
        technical = self.technical_score(data.complexity_score)
        market = self.market_score(data.market)
        resources = self.resource_score(data.estimates)
        time_to_market = self.time_score(data.estimates)

        components = {
            "technicalComplexity": ScoreComponent(technical, WEIGHTS["technicalComplexity"]),
            "marketOpportunity": ScoreComponent(market, WEIGHTS["marketOpportunity"]),
            "resourceRequirements": ScoreComponent(resources, WEIGHTS["resourceRequirements"]),
            "timeToMarket": ScoreComponent(time_to_market, WEIGHTS["timeToMarket"]),
        }
        weighted = sum(c.score * c.weight for c in components.values())
        final = _clamp(weighted)

        return ClonabilityScore(
            score=final,
            rating=self.rating_for(final),
            components=components,
            recommendation=self.recommendation_for(final, technical, market),
            confidence=self.confidence(data),
        )

    # ── Components ────────────────────────────────────────────────────

    @staticmethod
    def technical_score(complexity_score: int) -> int:
        return _clamp(11 - complexity_score)

    @staticmethod
    def market_score(market: Optional[MarketData]) -> int:
        if market is None:
            return NEUTRAL_SCORE
        score = float(NEUTRAL_SCORE)
        score += min(market.opportunities * 0.5, 2)
        score -= min(market.strengths * 0.3, 1.5)
        score += min(market.weaknesses * 0.3, 1.5)
        score -= min(market.threats * 0.4, 2)

        if market.competitors == 0:
            score += 2
        elif market.competitors <= 3:
            score += 1
        elif market.competitors > 5:
            score -= 1
        return _clamp(score)

    @staticmethod
    def resource_score(estimates: Optional[ProjectEstimates]) -> int:
        development = DEFAULT_DEVELOPMENT_COST
        infrastructure = DEFAULT_INFRASTRUCTURE_COST
        team_minimum = None
        if estimates is not None:
            development = parse_dollar_amount(estimates.cost_development, DEFAULT_DEVELOPMENT_COST)
            infrastructure = parse_dollar_amount(estimates.cost_infrastructure, DEFAULT_INFRASTRUCTURE_COST)
            team_minimum = estimates.team_minimum

        score = NEUTRAL_SCORE
        if development < 20_000:
            score += 3
        elif development < 50_000:
            score += 2
        elif development < 100_000:
            pass
        elif development < 200_000:
            score -= 2
        else:
            score -= 3

        if infrastructure < 100:
            score += 1
        elif infrastructure < 500:
            pass
        elif infrastructure < 2000:
            score -= 1
        else:
            score -= 2

        if team_minimum == 1:
            score += 1
        elif team_minimum is not None and team_minimum >= 3:
            score -= 1
        return _clamp(score)

    @staticmethod
    def time_score(estimates: Optional[ProjectEstimates]) -> int:
        weeks = parse_duration_weeks(estimates.time_realistic if estimates else None)
        if weeks <= 4:
            return 10
        if weeks <= 12:
            return 8
        if weeks <= 24:
            return 6
        if weeks <= 48:
            return 4
        return 2

    # ── Derived values ────────────────────────────────────────────────

    @staticmethod
    def rating_for(score: int) -> ClonabilityRating:
        if score >= 9:
            return ClonabilityRating.VERY_EASY
        if score >= 7:
            return ClonabilityRating.EASY
        if score >= 5:
            return ClonabilityRating.MODERATE
        if score >= 3:
            return ClonabilityRating.DIFFICULT
        return ClonabilityRating.VERY_DIFFICULT

    @staticmethod
    def confidence(data: ClonabilityInput) -> float:
        confidence = 0.5
        if data.market is not None:
            confidence += 0.2
            if data.market.swot_total >= 12:
                confidence += 0.1
            if data.market.competitors > 0:
                confidence += 0.1
        if data.estimates is not None:
            confidence += 0.1
        return round(min(confidence, 1.0), 2)

    @staticmethod
    def recommendation_for(score: int, technical: int, market: int) -> str:
        if score >= 9:
            return "Excellent cloning opportunity. Low technical barriers and favorable conditions make this ideal for a quick launch."
        if score >= 7:
            return "Good cloning opportunity. Manageable complexity with solid market potential; focus on differentiation."
        if score >= 5:
            return "Moderate cloning opportunity. Expect real development effort; validate demand before committing resources."
        if score >= 3:
            if technical <= 4:
                return "Challenging clone due to technical complexity. Consider simplifying the stack or partnering with experienced developers."
            if market <= 4:
                return "Challenging clone due to market conditions. Research competitors carefully and find an underserved niche."
            return "Challenging cloning opportunity. Significant investment needed; consider a narrower MVP scope."
        return "Very difficult to clone. High barriers across technology, market and resources; consider alternative opportunities."
