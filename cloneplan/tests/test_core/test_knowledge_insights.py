"""Unit tests for the technology knowledge base and stack-level insights.

Tests cover:
- Profile lookup (exact, case-insensitive, substring, unknown)
- Alternatives and learning resources with inferred types
- Build-vs-buy decisions and SaaS cost hints per category
- Skill requirements: own skill, category-implied skills, dedup and order
- Insights bundle wiring (alternatives, buildVsBuy, skills, recommendations)
"""

import pytest

from cloneplan.core.insights import (
    TechnologyInsightsService,
    decide_build_vs_buy,
    display_category,
    estimate_saas_cost,
)
from cloneplan.core.insights_cache import InsightsCache
from cloneplan.core.knowledge_base import TechnologyKnowledgeBase, infer_resource_type


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest.fixture(scope="module")
def kb():
    return TechnologyKnowledgeBase()


@pytest.fixture
def service(kb):
    return TechnologyInsightsService(InsightsCache(), knowledge_base=kb)


def _skill_names(skills):
    return [s.skill for s in skills]


# ── Tests: Knowledge base ────────────────────────────────────────────────


class TestKnowledgeBase:
    """Tests for TechnologyKnowledgeBase lookups."""

    def test_lookup_is_case_insensitive(self, kb):
        assert kb.get_technology("next.js").name == "Next.js"

    def test_substring_fallback(self, kb):
        assert kb.get_technology("React.js").name == "React"

    @pytest.mark.parametrize("name", ["Carrier Pigeon", "", "   "])
    def test_unknown_returns_none(self, kb, name):
        assert kb.get_technology(name) is None

    def test_alternatives(self, kb):
        assert kb.get_alternatives("Next.js") == ["Nuxt.js", "Remix", "Gatsby"]
        assert kb.get_alternatives("Carrier Pigeon") == []

    def test_learning_resources_have_types(self, kb):
        assert kb.get_learning_resources("React") == [
            {"url": "https://react.dev/learn", "type": "documentation"},
            {"url": "https://egghead.io/q/react", "type": "course"},
        ]

    def test_category_index(self, kb):
        assert [p.name for p in kb.get_by_category("database")] == ["PostgreSQL", "MySQL", "MongoDB"]

    @pytest.mark.parametrize("url, kind", [
        ("https://docs.example.com/start", "documentation"),
        ("https://example.com/tutorial/intro", "tutorial"),
        ("https://university.example.com/", "course"),
        ("https://example.com/guide", "guide"),
        ("https://example.com/blog", "resource"),
    ])
    def test_infer_resource_type(self, url, kind):
        assert infer_resource_type(url) == kind

    def test_custom_profile_file(self, tmp_path):
        path = tmp_path / "profiles.yaml"
        path.write_text(
            "technologies:\n"
            "  - name: Acme DB\n"
            "    category: database\n"
            "    difficulty: hard\n"
            "    alternatives: [PostgreSQL]\n"
        )
        custom = TechnologyKnowledgeBase(path)

        assert custom.is_loaded is False
        assert len(custom) == 1
        assert custom.get_alternatives("acme db") == ["PostgreSQL"]


# ── Tests: Build vs buy ──────────────────────────────────────────────────


class TestBuildVsBuy:
    """Tests for decide_build_vs_buy and analyze_build_vs_buy."""

    @pytest.mark.parametrize("name, decision", [
        ("Auth0", "buy"),
        ("Vercel", "buy"),
        ("Shopify", "buy"),
        ("Stripe", "buy"),
        ("SendGrid", "buy"),
        ("PostgreSQL", "hybrid"),
        ("Firebase", "hybrid"),
        ("Vue.js", "build"),
        ("React", "build"),
        ("Angular", "hybrid"),
        ("Google Analytics", "build"),
    ])
    def test_decisions(self, kb, name, decision):
        assert decide_build_vs_buy(kb.get_technology(name))[0] == decision

    @pytest.mark.parametrize("name, cost", [
        ("Auth0", "free-to-medium ($0-$100/month for small apps)"),
        ("Vercel", "$0-$20/month"),
        ("PostgreSQL", "low-to-medium ($10-$200/month depending on scale)"),
        ("SendGrid", "low ($10-$50/month for moderate volume)"),
        ("Stripe", "variable (depends on usage and provider)"),
    ])
    def test_saas_cost_hint(self, kb, name, cost):
        assert estimate_saas_cost(kb.get_technology(name)) == cost

    def test_analyze_skips_unknown(self, service):
        results = service.analyze_build_vs_buy(["Stripe", "Carrier Pigeon", "React"])

        assert [r.technology for r in results] == ["Stripe", "React"]
        stripe = results[0].to_dict()
        assert stripe["recommendation"] == "buy"
        assert stripe["alternatives"] == ["Paddle", "Lemon Squeezy", "PayPal"]
        assert stripe["estimatedCost"]["build"] == "$1,000-$5,000"
        assert "PCI" in stripe["reasoning"]


# ── Tests: Skills ────────────────────────────────────────────────────────


class TestSkillRequirements:
    """Tests for extract_skill_requirements."""

    def test_backend_framework_implies_runtime_and_api_design(self, service):
        skills = service.extract_skill_requirements(["Express"])

        assert _skill_names(skills) == ["REST API Design", "Node.js", "Express"]
        express = skills[-1]
        assert express.proficiency == "beginner"
        assert express.category == "Backend Framework"
        assert express.estimated_learning_time == "2-4 weeks"

    def test_hard_hosting_is_sorted_hardest_first(self, service):
        skills = service.extract_skill_requirements(["AWS"])

        assert [(s.skill, s.proficiency) for s in skills] == [
            ("AWS", "expert"),
            ("Cloud Architecture", "advanced"),
            ("DevOps Basics", "beginner"),
        ]
        assert skills[0].learning_resources[0]["type"] == "resource"

    def test_shared_skills_are_deduplicated(self, service):
        skills = service.extract_skill_requirements(["React", "Vue.js"])

        assert _skill_names(skills).count("HTML/CSS") == 1
        assert _skill_names(skills).count("JavaScript/TypeScript") == 1

    def test_nosql_database(self, service):
        assert "NoSQL Concepts" in _skill_names(service.extract_skill_requirements(["MongoDB"]))

    def test_display_category(self):
        assert display_category("frontend-framework") == "Frontend Framework"


# ── Tests: Insights bundle ───────────────────────────────────────────────


class TestInsightsBundle:
    """Tests for the alternatives, buildVsBuy and skills sections."""

    def test_compute_fills_new_sections(self, service):
        insights = service.compute(["React", "Stripe", "AWS", "Carrier Pigeon"])

        assert set(insights.alternatives) == {"React", "Stripe", "AWS"}
        assert [b.technology for b in insights.build_vs_buy] == ["React", "Stripe", "AWS"]

        titles = {r["title"]: r for r in insights.recommendations}
        assert "Stripe, AWS" in titles["Leverage SaaS solutions"]["description"]
        assert "AWS" in titles["Address skill gaps"]["description"]

        body = insights.to_dict()
        assert body["buildVsBuy"][1]["recommendation"] == "buy"
        assert body["skills"][0]["skill"] == "AWS"
        assert body["alternatives"]["React"] == ["Vue.js", "Svelte", "Angular"]
