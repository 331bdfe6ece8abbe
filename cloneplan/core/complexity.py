"""Technology-stack complexity scoring.

Maps a list of detected technology names to a 1-10 complexity score with a
frontend/backend/infrastructure breakdown. Each category score is the
highest bucket hit in that category, capped at the category max. The
total is the sum of the three, plus volume and licensing penalties,
clamped to [1, 10].

Pure and deterministic: identical input always yields an identical result.
"""

import logging
import re
from typing import Dict, Iterable, List, Sequence, Tuple, Union

from .models import CategoryScore, ComplexityFactors, ComplexityResult, DetectedTechnology

logger = logging.getLogger(__name__)

MIN_SCORE = 1
MAX_SCORE = 10

FRONTEND_MAX = 3
BACKEND_MAX = 4
INFRASTRUCTURE_MAX = 3

VOLUME_THRESHOLDS = ((20, 2), (10, 1))  # (more than N technologies, penalty)
LICENSING_PENALTY = 1

# ── Bucket tables: (bucket name, points, patterns) ────────────────────

FRONTEND_BUCKETS: Tuple[Tuple[str, int, Tuple[str, ...]], ...] = (
    ("no-code", 0, ("webflow", "wix", "squarespace", "shopify", "wordpress.com", "bubble", "carrd")),
    ("static", 1, ("jquery", "bootstrap", "tailwind css", "alpine.js")),
    ("modern", 2, ("react", "vue", "vue.js", "next.js", "nuxt.js", "svelte", "gatsby", "preact")),
    ("complex", 3, ("angular", "ember", "ember.js", "backbone.js")),
)

BACKEND_BUCKETS: Tuple[Tuple[str, int, Tuple[str, ...]], ...] = (
    ("serverless", 1, ("firebase", "supabase", "aws lambda", "netlify functions", "cloudflare workers")),
    ("simple", 2, ("express", "flask", "php", "wordpress", "sinatra")),
    ("complex", 3, ("node.js", "node", "django", "ruby on rails", "rails", "laravel", "spring", "asp.net", "java")),
    ("microservices", 4, ("kubernetes", "docker", "consul", "istio", "envoy")),
)

INFRASTRUCTURE_BUCKETS: Tuple[Tuple[str, int, Tuple[str, ...]], ...] = (
    ("managed", 0, ("vercel", "netlify", "heroku", "github pages")),
    ("simple-hosting", 1, ("nginx", "apache", "digitalocean", "linode", "litespeed")),
    ("cloud", 2, ("aws", "amazon web services", "google cloud", "gcp", "azure", "cloudflare")),
    ("orchestration", 3, ("kubernetes", "terraform", "ansible", "openshift")),
)

COMMERCIAL_LICENSES: Tuple[str, ...] = (
    "oracle",
    "microsoft sql server",
    "sql server",
    "sap",
    "sitecore",
    "adobe experience manager",
    "weblogic",
    "websphere",
    "coldfusion",
    "salesforce commerce cloud",
    "magento commerce",
)

TechnologyInput = Union[str, DetectedTechnology]


def _compile(patterns: Iterable[str]) -> "re.Pattern":
    alternatives = "|".join(re.escape(p) for p in sorted(patterns, key=len, reverse=True))
    return re.compile(rf"(?<![\w.])(?:{alternatives})(?![\w])", re.IGNORECASE)


def _compile_buckets(buckets) -> List[Tuple[str, int, "re.Pattern"]]:
    return [(name, points, _compile(patterns)) for name, points, patterns in buckets]


_FRONTEND = _compile_buckets(FRONTEND_BUCKETS)
_BACKEND = _compile_buckets(BACKEND_BUCKETS)
_INFRASTRUCTURE = _compile_buckets(INFRASTRUCTURE_BUCKETS)
_LICENSING = _compile(COMMERCIAL_LICENSES)


def technology_names(technologies: Sequence[TechnologyInput]) -> List[str]:
    names = []
    for tech in technologies:
        name = tech.name if isinstance(tech, DetectedTechnology) else str(tech)
        name = name.strip()
        if name:
            names.append(name)
    return names


class ComplexityCalculator:
    """Score technology stacks by category buckets.

    Public API:
        calculate(technologies) -> ComplexityResult
    """

    def calculate(self, technologies: Sequence[TechnologyInput]) -> ComplexityResult:
        names = technology_names(technologies)

        frontend, frontend_hits = self._score_category(names, _FRONTEND, FRONTEND_MAX)
        backend, backend_hits = self._score_category(names, _BACKEND, BACKEND_MAX)
        infrastructure, infra_hits = self._score_category(names, _INFRASTRUCTURE, INFRASTRUCTURE_MAX)

        licensed = [n for n in names if _LICENSING.search(n)]
        count = len(names)

        total = frontend.score + backend.score + infrastructure.score
        for threshold, penalty in VOLUME_THRESHOLDS:
            if count > threshold:
                total += penalty
                break
        if licensed:
            total += LICENSING_PENALTY
        score = max(MIN_SCORE, min(MAX_SCORE, total))

        factors = ComplexityFactors(
            custom_code=self._has_custom_code(frontend_hits, backend.score),
            framework_complexity=self._framework_complexity(frontend_hits, backend_hits),
            infrastructure_complexity=self._infrastructure_complexity(infra_hits, backend_hits),
            technology_count=count,
            licensing_complexity=bool(licensed),
        )

        result = ComplexityResult(
            score=score,
            breakdown={
                "frontend": frontend,
                "backend": backend,
                "infrastructure": infrastructure,
            },
            factors=factors,
            explanation=self._explain(
                score, frontend, backend, infrastructure,
                frontend_hits, count, licensed,
            ),
        )
        logger.debug(
            f"Complexity {score}/10 for {count} technologies "
            f"(fe={frontend.score} be={backend.score} infra={infrastructure.score})"
        )
        return result

    # ── Category scoring ──────────────────────────────────────────────

    @staticmethod
    def _score_category(names, buckets, cap) -> Tuple[CategoryScore, set]:
        score = 0
        hits = set()
        detected = []
        for name in names:
            matched = False
            for bucket, points, pattern in buckets:
                if pattern.search(name):
                    hits.add(bucket)
                    score = max(score, points)
                    matched = True
            if matched:
                detected.append(name)
        return CategoryScore(score=min(score, cap), max_score=cap, detected=detected), hits

    @staticmethod
    def _has_custom_code(frontend_hits: set, backend_score: int) -> bool:
        if frontend_hits == {"no-code"} and backend_score == 0:
            return False
        return bool(frontend_hits & {"modern", "complex"}) or backend_score >= 2

    @staticmethod
    def _framework_complexity(frontend_hits: set, backend_hits: set) -> str:
        if backend_hits & {"complex", "microservices"} or "complex" in frontend_hits:
            return "high"
        if "modern" in frontend_hits or "simple" in backend_hits:
            return "medium"
        return "low"

    @staticmethod
    def _infrastructure_complexity(infra_hits: set, backend_hits: set) -> str:
        if "orchestration" in infra_hits or "microservices" in backend_hits:
            return "high"
        if "cloud" in infra_hits:
            return "medium"
        return "low"

    # ── Explanation ───────────────────────────────────────────────────

    @staticmethod
    def _explain(score, frontend, backend, infrastructure, frontend_hits, count, licensed) -> str:
        if score <= 3:
            level = "Low"
        elif score <= 6:
            level = "Moderate"
        else:
            level = "High"
        parts = [f"{level} technical complexity ({score}/10) across {count} detected technologies."]

        if "no-code" in frontend_hits and frontend.score == 0:
            parts.append("The frontend runs on a no-code platform, so it can be replicated without custom development.")
        elif frontend.score == 1:
            parts.append("The frontend uses static pages with light scripting.")
        elif frontend.score == 2:
            parts.append("The frontend uses a modern component framework.")
        elif frontend.score >= 3:
            parts.append("The frontend uses a complex enterprise framework.")

        if backend.score == 1:
            parts.append("The backend relies on serverless or backend-as-a-service tooling.")
        elif backend.score == 2:
            parts.append("The backend is a simple server-side application.")
        elif backend.score == 3:
            parts.append("The backend is a full application framework requiring custom code.")
        elif backend.score >= 4:
            parts.append("The backend appears to run as containerized microservices.")

        if infrastructure.score == 0 and infrastructure.detected:
            parts.append("Hosting is fully managed.")
        elif infrastructure.score == 1:
            parts.append("Hosting uses a simple web server setup.")
        elif infrastructure.score == 2:
            parts.append("Infrastructure runs on a major cloud provider.")
        elif infrastructure.score >= 3:
            parts.append("Infrastructure uses orchestration tooling that adds operational complexity.")

        if count > 20:
            parts.append("A very large number of technologies increases integration complexity.")
        elif count > 10:
            parts.append("A large number of technologies adds integration complexity.")
        if licensed:
            parts.append(f"Commercial licensing required for: {', '.join(licensed)}.")
        return " ".join(parts)


_DEFAULT_CALCULATOR = ComplexityCalculator()


def calculate_complexity(technologies: Sequence[TechnologyInput]) -> ComplexityResult:
    """Score a technology list with the default calculator."""
    return _DEFAULT_CALCULATOR.calculate(technologies)
