"""Technology insights: complexity, estimates, clonability, build-vs-buy,
skills and tips.

Results are cached per normalized technology set in an InsightsCache owned
by the caller (normally the orchestrator).
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .clonability import ClonabilityInput, ClonabilityScorer, MarketData
from .complexity import ComplexityCalculator, TechnologyInput, technology_names
from .insights_cache import InsightsCache
from .knowledge_base import TechnologyKnowledgeBase, TechnologyProfile
from .models import (
    BuildVsBuyRecommendation,
    ComplexityResult,
    ProjectEstimates,
    SkillRequirement,
    TechnologyInsights,
)

logger = logging.getLogger(__name__)


def format_weeks(weeks: float) -> str:
    """Render a week count as weeks, months or years."""
    weeks = max(1, round(weeks))
    if weeks < 4:
        return f"{weeks} week" if weeks == 1 else f"{weeks} weeks"
    months = round(weeks / 4)
    if months < 12:
        return f"{months} month" if months == 1 else f"{months} months"
    years = round(months / 12, 1)
    if years == int(years):
        years = int(years)
    return f"{years} year" if years == 1 else f"{years} years"


def estimate_project(complexity: ComplexityResult) -> ProjectEstimates:
    """Rough time, cost and team estimates from a complexity result."""
    score = complexity.score
    if score <= 3:
        base_weeks = 4
    elif score <= 6:
        base_weeks = 12
    else:
        base_weeks = 24

    tech_factor = min(complexity.factors.technology_count / 10, 2)
    realistic = base_weeks * (1 + tech_factor * 0.3)

    simple = score <= 5
    development = "$15,000-$50,000" if simple else "$50,000-$150,000"
    maintenance = "$500-$2,000/month" if simple else "$2,000-$5,000/month"
    return ProjectEstimates(
        time_minimum=format_weeks(realistic * 0.7),
        time_maximum=format_weeks(realistic * 1.5),
        time_realistic=format_weeks(realistic),
        cost_development=development,
        cost_infrastructure="$100-$500/month",
        cost_maintenance=maintenance,
        cost_total=f"{development} plus ongoing costs",
        team_minimum=1 if simple else 2,
        team_recommended=2 if simple else 4,
    )


def build_recommendations(
    complexity: ComplexityResult,
    build_vs_buy: Sequence[BuildVsBuyRecommendation] = (),
    skills: Sequence[SkillRequirement] = (),
) -> List[Dict[str, str]]:
    """Category-keyed tips for rebuilding the detected stack."""
    recs: List[Dict[str, str]] = []
    breakdown = complexity.breakdown
    factors = complexity.factors

    if not factors.custom_code:
        recs.append({
            "title": "Start with a no-code builder",
            "description": "The site can be rebuilt on a no-code platform; launch there before writing custom code.",
            "priority": "high",
            "category": "frontend",
        })
    elif breakdown["frontend"].score >= 2:
        recs.append({
            "title": "Use a modern frontend starter",
            "description": "Begin from a maintained React or Vue starter kit to match the original's interface quickly.",
            "priority": "medium",
            "category": "frontend",
        })

    if breakdown["backend"].score >= 3:
        recs.append({
            "title": "Replace custom backend with managed services",
            "description": "Use a backend-as-a-service such as Supabase or Firebase for the MVP instead of a full framework.",
            "priority": "high",
            "category": "backend",
        })

    if factors.infrastructure_complexity == "high":
        recs.append({
            "title": "Defer orchestration",
            "description": "Deploy to a managed platform like Vercel or Render first; adopt containers only when traffic demands it.",
            "priority": "high",
            "category": "infrastructure",
        })
    elif factors.infrastructure_complexity == "medium":
        recs.append({
            "title": "Start with managed hosting",
            "description": "A managed host removes most cloud setup work while you validate demand.",
            "priority": "medium",
            "category": "infrastructure",
        })

    if factors.licensing_complexity:
        recs.append({
            "title": "Swap commercial licenses for open source",
            "description": "Replace licensed components with open-source equivalents such as PostgreSQL to cut costs.",
            "priority": "high",
            "category": "licensing",
        })

    bought = [b.technology for b in build_vs_buy if b.recommendation == "buy"]
    if bought:
        recs.append({
            "title": "Leverage SaaS solutions",
            "description": f"Use managed services for {', '.join(bought)} to cut development time and maintenance.",
            "priority": "high",
            "category": "architecture",
        })

    advanced = [s.skill for s in skills if s.proficiency in ("advanced", "expert")]
    if advanced:
        recs.append({
            "title": "Address skill gaps",
            "description": f"Hire or train for: {', '.join(advanced[:3])}.",
            "priority": "high",
            "category": "team",
        })

    if not recs:
        recs.append({
            "title": "Validate before building",
            "description": "Test demand with a landing page before investing in development.",
            "priority": "medium",
            "category": "general",
        })
    return recs


# ── Build vs buy ──────────────────────────────────────────────────────

_BUY_RULES = (
    (("authentication", "auth"),
     "Authentication is security-critical and better handled by specialized services. "
     "Building custom auth increases security risks and maintenance burden."),
    (("hosting", "platform"),
     "Infrastructure and hosting are best left to specialized providers. "
     "Building your own hosting infrastructure is not cost-effective for most projects."),
    (("payment", "commerce"),
     "Payment processing requires PCI compliance and is highly regulated. "
     "Use established payment providers to ensure security and compliance."),
    (("email", "messaging"),
     "Email deliverability is complex. Using established email services ensures "
     "better inbox placement and reduces spam issues."),
)


def decide_build_vs_buy(profile: TechnologyProfile) -> Tuple[str, str]:
    """Return (build | buy | hybrid, reasoning) for one profile."""
    category = profile.category.lower()
    difficulty = profile.difficulty.lower()

    for keywords, reasoning in _BUY_RULES:
        if any(k in category for k in keywords):
            return "buy", reasoning

    if "database" in category:
        if difficulty in ("hard", "very-hard"):
            return "buy", (
                "Complex database setups benefit from managed services. They provide "
                "automatic backups, scaling, and maintenance."
            )
        return "hybrid", (
            "Consider managed database services for production reliability, but "
            "self-hosting is viable for simpler setups or development."
        )

    if any(k in category for k in ("framework", "frontend", "backend")):
        if difficulty in ("very-easy", "easy"):
            return "build", (
                "This framework is beginner-friendly and well-documented. Building with it "
                "gives you full control and customization."
            )
        if difficulty in ("hard", "very-hard"):
            return "hybrid", (
                "Consider templates, boilerplates, or experienced developers to accelerate "
                "development with this complex framework."
            )
        return "build", (
            "Building with this framework provides flexibility and control. The learning "
            "curve is manageable with available resources."
        )

    return "build", (
        "This technology is best implemented as part of your custom solution to "
        "maintain flexibility and control."
    )


def estimate_saas_cost(profile: TechnologyProfile) -> str:
    category = profile.category.lower()
    if "authentication" in category:
        return "free-to-medium ($0-$100/month for small apps)"
    if "hosting" in category:
        return profile.cost_estimate.get("hosting", "variable (depends on usage and provider)")
    if "database" in category:
        return "low-to-medium ($10-$200/month depending on scale)"
    if "email" in category:
        return "low ($10-$50/month for moderate volume)"
    return "variable (depends on usage and provider)"


# ── Skills ────────────────────────────────────────────────────────────

_PROFICIENCY = {
    "very-easy": "beginner",
    "easy": "beginner",
    "medium": "intermediate",
    "hard": "advanced",
    "very-hard": "expert",
}
_LEARNING_TIME = {
    "very-easy": "1-2 weeks",
    "easy": "2-4 weeks",
    "medium": "1-2 months",
    "hard": "2-4 months",
    "very-hard": "4-6 months",
}
_PROFICIENCY_ORDER = {"expert": 0, "advanced": 1, "intermediate": 2, "beginner": 3}

# (name substrings, skill, category) for backend languages
_BACKEND_LANGUAGES = (
    (("express", "node"), "Node.js", "Backend Runtime"),
    (("django", "flask"), "Python", "Programming Language"),
    (("rails",), "Ruby", "Programming Language"),
    (("laravel",), "PHP", "Programming Language"),
)


def display_category(category: str) -> str:
    """'frontend-framework' -> 'Frontend Framework'."""
    return " ".join(word[:1].upper() + word[1:] for word in category.split("-"))


def related_skills(profile: TechnologyProfile) -> List[SkillRequirement]:
    """Supporting skills implied by a profile's category."""
    skills: List[SkillRequirement] = []
    category = profile.category.lower()
    name = profile.name.lower()

    if "frontend" in category:
        skills.append(SkillRequirement("JavaScript/TypeScript", "intermediate", "Programming Language", "1-2 months"))
        skills.append(SkillRequirement("HTML/CSS", "intermediate", "Web Fundamentals", "2-4 weeks"))

    if "backend" in category:
        for keywords, skill, skill_category in _BACKEND_LANGUAGES:
            if any(k in name for k in keywords):
                skills.append(SkillRequirement(skill, "intermediate", skill_category, "1-2 months"))
        skills.append(SkillRequirement("REST API Design", "intermediate", "Architecture", "2-4 weeks"))

    if "database" in category:
        if "mongo" in name or "couch" in name:
            skills.append(SkillRequirement("NoSQL Concepts", "beginner", "Database", "1-2 weeks"))
        else:
            skills.append(SkillRequirement("SQL", "intermediate", "Database", "2-4 weeks"))

    if "hosting" in category or "platform" in category:
        skills.append(SkillRequirement("DevOps Basics", "beginner", "Infrastructure", "2-4 weeks"))
        if profile.difficulty in ("hard", "very-hard"):
            skills.append(SkillRequirement("Cloud Architecture", "advanced", "Infrastructure", "2-4 months"))

    return skills


class TechnologyInsightsService:
    """Compute and cache insights for a technology list."""

    def __init__(
        self,
        cache: InsightsCache,
        calculator: Optional[ComplexityCalculator] = None,
        scorer: Optional[ClonabilityScorer] = None,
        knowledge_base: Optional[TechnologyKnowledgeBase] = None,
    ):
        self._cache = cache
        self._calculator = calculator or ComplexityCalculator()
        self._scorer = scorer or ClonabilityScorer()
        self._kb = knowledge_base if knowledge_base is not None else TechnologyKnowledgeBase()

    def generate_insights(
        self,
        technologies: Sequence[TechnologyInput],
        analysis_id: Optional[str] = None,
        structured: Optional[dict] = None,
    ) -> TechnologyInsights:
        """Return cached insights for the stack, computing them on a miss."""
        names = technology_names(technologies)
        cached = self._cache.get(names)
        if cached is not None:
            logger.info(f"Using cached insights for {len(names)} technologies")
            return cached

        insights = self.compute(names, structured)
        self._cache.set(names, insights, analysis_id)
        return insights

    def compute(self, names: Sequence[str], structured: Optional[dict] = None) -> TechnologyInsights:
        complexity = self._calculator.calculate(names)
        estimates = estimate_project(complexity)
        clonability = self._scorer.score(ClonabilityInput(
            complexity_score=complexity.score,
            market=MarketData.from_structured(structured),
            estimates=estimates,
        ))
        alternatives = {}
        for name in names:
            alts = self.get_alternatives(name)
            if alts:
                alternatives[name] = alts
        build_vs_buy = self.analyze_build_vs_buy(names)
        skills = self.extract_skill_requirements(names)

        summary = (
            f"Complexity {complexity.score}/10 with {complexity.factors.technology_count} "
            f"technologies; clonability {clonability.score}/10 ({clonability.rating.value}), "
            f"realistic build time {estimates.time_realistic}."
        )
        return TechnologyInsights(
            complexity=complexity,
            estimates=estimates,
            clonability=clonability,
            recommendations=build_recommendations(complexity, build_vs_buy, skills),
            summary=summary,
            alternatives=alternatives,
            build_vs_buy=build_vs_buy,
            skills=skills,
        )

    def get_alternatives(self, technology: str) -> List[str]:
        return self._kb.get_alternatives(technology)

    def analyze_build_vs_buy(self, names: Sequence[str]) -> List[BuildVsBuyRecommendation]:
        """One recommendation per technology with a known profile."""
        results = []
        for name in names:
            profile = self._kb.get_technology(name)
            if profile is None:
                continue
            decision, reasoning = decide_build_vs_buy(profile)
            results.append(BuildVsBuyRecommendation(
                technology=name,
                recommendation=decision,
                reasoning=reasoning,
                alternatives=list(profile.alternatives),
                estimated_cost_build=profile.cost_estimate.get("development"),
                estimated_cost_buy=estimate_saas_cost(profile),
            ))
        return results

    def extract_skill_requirements(self, names: Sequence[str]) -> List[SkillRequirement]:
        """Skills for each known technology plus the skills its category implies.

        Deduplicated on (skill, category) and sorted hardest first, then by
        category name.
        """
        skills: Dict[Tuple[str, str], SkillRequirement] = {}
        for name in names:
            profile = self._kb.get_technology(name)
            if profile is None:
                continue
            difficulty = profile.difficulty.lower()
            own = SkillRequirement(
                skill=profile.name,
                proficiency=_PROFICIENCY.get(difficulty, "intermediate"),
                category=display_category(profile.category),
                estimated_learning_time=_LEARNING_TIME.get(difficulty, "1-2 months"),
                learning_resources=self._kb.get_learning_resources(profile.name),
            )
            for skill in [own] + related_skills(profile):
                skills.setdefault((skill.skill, skill.category), skill)

        return sorted(
            skills.values(),
            key=lambda s: (_PROFICIENCY_ORDER[s.proficiency], s.category),
        )

    def warm(self) -> int:
        """Precompute insights for common stacks."""
        return self._cache.warm_cache(lambda names: self.compute(names))
