"""Unit tests for ClonabilityScorer and TechnologyInsightsService.

Tests cover:
- Fixed weights and the inverted technical component
- Market, resource and time components
- Rating bands and confidence increments
- Fallback defaults for malformed cost/time strings
- Insights computation, estimates and cache reuse
"""

import math

import pytest

from cloneplan.core.clonability import (
    WEIGHTS,
    ClonabilityInput,
    ClonabilityScorer,
    MarketData,
    parse_dollar_amount,
    parse_duration_weeks,
)
from cloneplan.core.complexity import calculate_complexity
from cloneplan.core.insights import TechnologyInsightsService, estimate_project, format_weeks
from cloneplan.core.insights_cache import InsightsCache
from cloneplan.core.models import ClonabilityRating, ProjectEstimates


# ── Fixtures ──────────────────────────────────────────────────────────────


def _make_estimates(**overrides) -> ProjectEstimates:
    values = dict(
        time_minimum="2 months",
        time_maximum="5 months",
        time_realistic="3 months",
        cost_development="$15,000-$50,000",
        cost_infrastructure="$100-$500/month",
        cost_maintenance="$500-$2,000/month",
        cost_total="$15,000-$50,000 plus ongoing costs",
        team_minimum=1,
        team_recommended=2,
    )
    values.update(overrides)
    return ProjectEstimates(**values)


@pytest.fixture
def scorer():
    return ClonabilityScorer()


# ── Tests: Weights and Components ────────────────────────────────────────


class TestComponents:
    """Tests for the four weighted components."""

    def test_weights_sum_to_one(self):
        assert math.fsum(WEIGHTS.values()) == 1.0
        assert WEIGHTS == {
            "technicalComplexity": 0.4,
            "marketOpportunity": 0.3,
            "resourceRequirements": 0.2,
            "timeToMarket": 0.1,
        }

    @pytest.mark.parametrize("complexity", range(1, 11))
    def test_technical_is_eleven_minus_complexity(self, scorer, complexity):
        result = scorer.score(ClonabilityInput(complexity_score=complexity))

        assert result.components["technicalComplexity"].score == 11 - complexity

    def test_market_competitor_adjustments(self, scorer):
        assert scorer.market_score(MarketData(competitors=0)) == 7
        assert scorer.market_score(MarketData(competitors=2)) == 6
        assert scorer.market_score(MarketData(competitors=4)) == 5
        assert scorer.market_score(MarketData(competitors=8)) == 4

    def test_market_half_point_rounds_up(self, scorer):
        # 5 + 3 * 0.5 = 6.5, no competitor adjustment at 4
        assert scorer.market_score(MarketData(opportunities=3, competitors=4)) == 7

    def test_market_without_data_is_neutral(self, scorer):
        assert scorer.market_score(None) == 5

    def test_market_is_clamped(self, scorer):
        crowded = MarketData(strengths=10, threats=10, competitors=20)

        assert 1 <= scorer.market_score(crowded) <= 10

    def test_resource_score_cheap_small_team(self, scorer):
        # $15,000 -> +3, $100/month -> 0, team of 1 -> +1
        assert scorer.resource_score(_make_estimates()) == 9

    def test_resource_score_expensive_large_team(self, scorer):
        estimates = _make_estimates(
            cost_development="$250,000",
            cost_infrastructure="$3,000/month",
            team_minimum=4,
        )

        assert scorer.resource_score(estimates) == 1

    @pytest.mark.parametrize("realistic, expected", [
        ("3 weeks", 10),
        ("2 months", 8),
        ("3-6 months", 8),
        ("6 months", 6),
        ("10 months", 4),
        ("2 years", 2),
    ])
    def test_time_bands(self, scorer, realistic, expected):
        assert scorer.time_score(_make_estimates(time_realistic=realistic)) == expected


# ── Tests: Malformed Input ───────────────────────────────────────────────


class TestMalformedInput:
    """Tests for default fallbacks instead of errors."""

    def test_unparseable_strings_use_defaults(self, scorer):
        estimates = _make_estimates(
            cost_development="depends on scope",
            cost_infrastructure="varies",
            time_realistic="soon",
            team_minimum=2,
        )

        # $50,000 default -> +0, $200 default -> 0, 24 weeks -> 6
        assert scorer.resource_score(estimates) == 5
        assert scorer.time_score(estimates) == 6

    def test_parse_helpers(self):
        assert parse_dollar_amount("$1,250-$3,000", default=7) == 1250
        assert parse_dollar_amount("about ten grand", default=7) == 7
        assert parse_duration_weeks("3 months") == 12
        assert parse_duration_weeks("1 year") == 52
        assert parse_duration_weeks(None) == 24

    @pytest.mark.parametrize("text, weeks", [
        ("3-6 months", 12),
        ("8-12 weeks", 8),
        ("1-2 years", 52),
        ("about 10", 24),
    ])
    def test_duration_uses_first_number_and_any_unit(self, text, weeks):
        assert parse_duration_weeks(text) == weeks


# ── Tests: Composite ─────────────────────────────────────────────────────


class TestComposite:
    """Tests for final score, rating and confidence."""

    @pytest.mark.parametrize("score, rating", [
        (10, ClonabilityRating.VERY_EASY),
        (9, ClonabilityRating.VERY_EASY),
        (8, ClonabilityRating.EASY),
        (7, ClonabilityRating.EASY),
        (5, ClonabilityRating.MODERATE),
        (3, ClonabilityRating.DIFFICULT),
        (2, ClonabilityRating.VERY_DIFFICULT),
    ])
    def test_rating_bands(self, scorer, score, rating):
        assert scorer.rating_for(score) is rating

    def test_weighted_sum_is_rounded(self, scorer):
        data = ClonabilityInput(
            complexity_score=2,
            market=MarketData(competitors=2),
            estimates=_make_estimates(),
        )

        result = scorer.score(data)

        # 9*0.4 + 6*0.3 + 9*0.2 + 8*0.1 = 8.0
        assert result.score == 8
        assert result.rating is ClonabilityRating.EASY

    def test_confidence_increments(self, scorer):
        bare = ClonabilityInput(complexity_score=5)
        rich = ClonabilityInput(
            complexity_score=5,
            market=MarketData(strengths=3, weaknesses=3, opportunities=3, threats=3, competitors=2),
            estimates=_make_estimates(),
        )

        assert scorer.confidence(bare) == 0.5
        assert scorer.confidence(rich) == 1.0

    def test_market_data_from_structured(self):
        structured = {
            "market": {
                "competitors": [{"name": "A"}, {"name": "B"}],
                "swot": {"strengths": ["s"], "threats": ["t1", "t2"]},
            }
        }

        market = MarketData.from_structured(structured)

        assert market.competitors == 2
        assert market.strengths == 1
        assert market.threats == 2
        assert MarketData.from_structured({"overview": {}}) is None


# ── Tests: Insights ──────────────────────────────────────────────────────


class TestTechnologyInsights:
    """Tests for estimates and cached insight generation."""

    def test_estimates_for_simple_stack(self):
        estimates = estimate_project(calculate_complexity(["React"]))

        assert estimates.time_realistic == "1 month"
        assert estimates.cost_development == "$15,000-$50,000"
        assert estimates.cost_infrastructure == "$100-$500/month"
        assert (estimates.team_minimum, estimates.team_recommended) == (1, 2)

    def test_estimates_for_complex_stack(self):
        estimates = estimate_project(calculate_complexity(["Angular", "Node.js", "Kubernetes", "AWS"]))

        assert estimates.cost_development == "$50,000-$150,000"
        assert (estimates.team_minimum, estimates.team_recommended) == (2, 4)

    def test_format_weeks(self):
        assert format_weeks(1) == "1 week"
        assert format_weeks(3) == "3 weeks"
        assert format_weeks(12) == "3 months"
        assert format_weeks(96) == "2 years"

    def test_insights_are_cached_by_technology_set(self):
        cache = InsightsCache()
        service = TechnologyInsightsService(cache)

        first = service.generate_insights(["React", "Supabase"], analysis_id="a1")
        second = service.generate_insights(["supabase", "react"], analysis_id="a2")

        assert second is first
        assert cache.get_stats()["hits"] == 1
        assert first.clonability.components["technicalComplexity"].score == 11 - first.complexity.score
        assert first.recommendations

    def test_no_code_stack_recommends_builder(self):
        insights = TechnologyInsightsService(InsightsCache()).compute(["Webflow"])

        assert insights.recommendations[0]["category"] == "frontend"
        assert "no-code" in insights.recommendations[0]["title"]
