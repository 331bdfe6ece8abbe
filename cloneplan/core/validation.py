"""Quality gates for AI-generated stage content.

Six independent checks contribute to an overall score (arithmetic mean):

    structure       1/0   required and nested fields present, non-null
    fields          1/0   required arrays and strings non-empty
    specificity     1/0   mentions the business; no generic filler phrases
    actionable      ratio of recommendation items that start work (pass >= 0.7)
    placeholders    1.0 clean / 0.5 when template markers are found
    estimates       ratio of numeric/dollar checks that pass (pass >= 0.8)

Content is accepted when structure and fields both pass and the mean is at
least the overall threshold (0.7). Thresholds are policy, not contract, and
come from ValidationSettings.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..setting import ValidationSettings
from .url_utils import extract_domain

logger = logging.getLogger(__name__)

# ── Per-stage field tables ────────────────────────────────────────────

REQUIRED_FIELDS: Dict[int, List[str]] = {
    2: ["effortScore", "rewardScore", "recommendation", "reasoning",
        "automationPotential", "resourceRequirements", "nextSteps"],
    3: ["coreFeatures", "niceToHaves", "techStack", "timeline", "estimatedCost"],
    4: ["testingMethods", "successMetrics", "budget", "timeline"],
    5: ["growthChannels", "milestones", "resourceScaling"],
    6: ["automationOpportunities", "implementationPlan", "estimatedSavings"],
}

NESTED_FIELDS: Dict[int, Dict[str, List[str]]] = {
    2: {
        "automationPotential": ["score", "opportunities"],
        "resourceRequirements": ["time", "money", "skills"],
    },
    3: {"techStack": ["frontend", "backend", "infrastructure"]},
    4: {"budget": ["total", "breakdown"]},
}

GENERIC_PHRASES = ("your business", "your company", "insert here", "to be determined")
SOFT_PLACEHOLDER_WORDS = ("example", "sample", "tbd", "todo", "placeholder")

RECOMMENDATION_FIELDS = ("nextSteps", "recommendations", "actionItems", "deliverables", "tasks", "automations")
ACTION_VERBS = (
    "create", "build", "implement", "develop", "design", "test", "launch",
    "deploy", "set up", "configure", "integrate", "analyze", "measure",
    "track", "optimize",
)
_ACTION_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(v) for v in ACTION_VERBS) + r")\w*",
    re.IGNORECASE,
)

PLACEHOLDER_PATTERNS = (
    re.compile(r"\[[^\]]*\]"),
    re.compile(r"\{[^}]*\}"),
    re.compile(r"x{3,}", re.IGNORECASE),
    re.compile(r"\btbd\b", re.IGNORECASE),
    re.compile(r"\btodo\b", re.IGNORECASE),
    re.compile(r"\bplaceholder\b", re.IGNORECASE),
    re.compile(r"example\.com", re.IGNORECASE),
    re.compile(r"lorem ipsum", re.IGNORECASE),
    re.compile(r"insert\s+here", re.IGNORECASE),
    re.compile(r"your\s+(?:business|company|product|service)", re.IGNORECASE),
)

_DOLLAR_RE = re.compile(r"\$\s*\d")
_TIME_UNIT_RE = re.compile(r"\b\d+.*\b(?:day|week|month)s?\b", re.IGNORECASE)
_DURATION_RE = re.compile(r"\d+\s*(?:-\s*\d+\s*)?(?:week|month)", re.IGNORECASE)


@dataclass
class BusinessContext:
    url: str
    business_name: Optional[str] = None


@dataclass
class CheckResult:
    """Outcome of one validator check."""
    name: str
    score: float
    passed: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "score": round(self.score, 3),
            "passed": self.passed,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass
class ValidationReport:
    stage_number: int
    checks: Dict[str, CheckResult]
    overall_score: float
    valid: bool

    def errors(self, limit: Optional[int] = 3) -> List[str]:
        """First concrete errors from structure, fields and specificity."""
        collected: List[str] = []
        for name in ("structure", "fields", "specificity"):
            collected.extend(self.checks[name].errors)
        return collected if limit is None else collected[:limit]

    def issues(self) -> Dict[str, List[str]]:
        """Non-fatal findings per check, for logging."""
        return {
            name: check.errors + check.warnings
            for name, check in self.checks.items()
            if check.errors or check.warnings
        }

    def to_dict(self) -> dict:
        return {
            "stageNumber": self.stage_number,
            "overallScore": round(self.overall_score, 3),
            "valid": self.valid,
            "checks": {name: check.to_dict() for name, check in self.checks.items()},
        }


def iter_strings(value: Any) -> Iterator[str]:
    """Yield every string value in a nested structure."""
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_strings(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_strings(item)


def _iter_recommendations(value: Any) -> Iterator[Tuple[str, Any]]:
    """Yield (field, item) for each item in a recommendation-like list at any depth."""
    if isinstance(value, dict):
        for key, item in value.items():
            if key in RECOMMENDATION_FIELDS and isinstance(item, list):
                for entry in item:
                    yield key, entry
            else:
                yield from _iter_recommendations(item)
    elif isinstance(value, list):
        for item in value:
            yield from _iter_recommendations(item)


class ContentValidator:
    """Score generated stage content before it is accepted.

    Public API:
        validate_stage_content(stage_number, content, context) -> ValidationReport
    """

    def __init__(self, settings: Optional[ValidationSettings] = None):
        self._settings = settings or ValidationSettings()

    def validate_stage_content(
        self,
        stage_number: int,
        content: Any,
        context: BusinessContext,
    ) -> ValidationReport:
        checks = {
            "structure": self.check_structure(stage_number, content),
            "fields": self.check_required_fields(stage_number, content),
            "specificity": self.check_business_specificity(content, context),
            "actionable": self.check_actionable(content),
            "placeholders": self.check_placeholders(content),
            "estimates": self.check_estimates(stage_number, content),
        }
        overall = sum(c.score for c in checks.values()) / len(checks)
        valid = (
            checks["structure"].passed
            and checks["fields"].passed
            and overall >= self._settings.overall_threshold
        )
        report = ValidationReport(
            stage_number=stage_number,
            checks=checks,
            overall_score=overall,
            valid=valid,
        )
        logger.info(f"Stage {stage_number} validation score: {overall * 100:.1f}% (valid={valid})")
        return report

    # ── Structure ─────────────────────────────────────────────────────

    def check_structure(self, stage_number: int, content: Any) -> CheckResult:
        errors: List[str] = []
        warnings: List[str] = []
        if not isinstance(content, dict):
            return CheckResult("structure", 0.0, False, errors=["Content must be a valid object"])

        required = REQUIRED_FIELDS.get(stage_number)
        if required is None:
            warnings.append(f"No validation schema defined for stage {stage_number}")
            required = []

        for name in required:
            if name not in content:
                errors.append(f"Missing required field: {name}")
            elif content[name] is None:
                errors.append(f"Field {name} cannot be null")

        for parent, children in NESTED_FIELDS.get(stage_number, {}).items():
            nested = content.get(parent)
            if not isinstance(nested, dict):
                continue
            for child in children:
                if child not in nested or nested[child] is None:
                    errors.append(f"Missing required nested field: {parent}.{child}")

        passed = not errors
        return CheckResult("structure", 1.0 if passed else 0.0, passed, errors, warnings)

    # ── Required fields ───────────────────────────────────────────────

    def check_required_fields(self, stage_number: int, content: Any) -> CheckResult:
        errors: List[str] = []
        if not isinstance(content, dict):
            return CheckResult("fields", 0.0, False, errors=["Content must be a valid object"])

        for name in REQUIRED_FIELDS.get(stage_number, []):
            value = content.get(name)
            if isinstance(value, list) and not value:
                errors.append(f"Array field {name} cannot be empty")
            elif isinstance(value, str) and not value.strip():
                errors.append(f"String field {name} cannot be empty")

        passed = not errors
        return CheckResult("fields", 1.0 if passed else 0.0, passed, errors)

    # ── Business specificity ──────────────────────────────────────────

    def check_business_specificity(self, content: Any, context: BusinessContext) -> CheckResult:
        errors: List[str] = []
        warnings: List[str] = []
        text = " ".join(iter_strings(content)).lower()

        for phrase in GENERIC_PHRASES:
            if phrase in text:
                errors.append(f'Content contains generic placeholder: "{phrase}"')
        for word in SOFT_PLACEHOLDER_WORDS:
            if re.search(rf"\b{re.escape(word)}\b", text):
                warnings.append(f'Content contains placeholder-like word: "{word}"')

        if not self._mentions_business(text, context):
            errors.append("Content does not mention the business name or domain")

        passed = not errors
        return CheckResult("specificity", 1.0 if passed else 0.0, passed, errors, warnings)

    @staticmethod
    def _mentions_business(text: str, context: BusinessContext) -> bool:
        if context.business_name and context.business_name.strip().lower() in text:
            return True
        domain = extract_domain(context.url)
        if not domain:
            return False
        if domain in text:
            return True
        label = domain.split(".")[0]
        return len(label) >= 3 and label in text

    # ── Actionability ─────────────────────────────────────────────────

    def check_actionable(self, content: Any) -> CheckResult:
        total = 0
        actionable = 0
        warnings: List[str] = []
        for name, item in _iter_recommendations(content):
            total += 1
            text = " ".join(iter_strings(item))
            if _ACTION_RE.search(text):
                actionable += 1
            else:
                warnings.append(f'Recommendation may not be actionable ({name}): "{text[:50]}"')

        score = actionable / total if total else 1.0
        threshold = self._settings.actionable_threshold
        passed = score >= threshold
        errors = [] if passed else [
            f"Only {score * 100:.0f}% of recommendations are actionable (target: {threshold * 100:.0f}%)"
        ]
        return CheckResult("actionable", score, passed, errors, warnings)

    # ── Placeholders ──────────────────────────────────────────────────

    def check_placeholders(self, content: Any) -> CheckResult:
        matches: List[str] = []
        for text in iter_strings(content):
            for pattern in PLACEHOLDER_PATTERNS:
                found = pattern.search(text)
                if found:
                    matches.append(found.group(0))
        if not matches:
            return CheckResult("placeholders", 1.0, True)
        return CheckResult(
            "placeholders",
            0.5,
            False,
            errors=[f"Found {len(matches)} placeholder pattern(s): {', '.join(matches[:3])}"],
        )

    # ── Estimate realism ──────────────────────────────────────────────

    def check_estimates(self, stage_number: int, content: Any) -> CheckResult:
        results: List[Tuple[bool, str]] = []
        if isinstance(content, dict):
            if stage_number == 2:
                results.extend(self._stage2_estimates(content))
            elif stage_number == 3:
                results.extend(self._stage3_estimates(content))
            elif stage_number == 4:
                results.extend(self._stage4_estimates(content))

        performed = len(results)
        passed_count = sum(1 for ok, _ in results if ok)
        score = passed_count / performed if performed else 1.0
        passed = score >= self._settings.estimates_threshold
        errors = [message for ok, message in results if not ok]
        return CheckResult("estimates", score, passed, errors)

    @staticmethod
    def _in_range(value: Any, low: float, high: float) -> bool:
        return isinstance(value, (int, float)) and not isinstance(value, bool) and low <= value <= high

    def _stage2_estimates(self, content: dict) -> List[Tuple[bool, str]]:
        results = []
        if "effortScore" in content:
            value = content["effortScore"]
            results.append((self._in_range(value, 1, 10), f"Effort score {value} is out of valid range (1-10)"))
        if "rewardScore" in content:
            value = content["rewardScore"]
            results.append((self._in_range(value, 1, 10), f"Reward score {value} is out of valid range (1-10)"))

        automation = content.get("automationPotential")
        if isinstance(automation, dict) and "score" in automation:
            value = automation["score"]
            results.append((
                self._in_range(value, 0, 1),
                f"Automation potential score {value} is out of valid range (0-1)",
            ))

        resources = content.get("resourceRequirements")
        if isinstance(resources, dict):
            time_text = str(resources.get("time") or "")
            money_text = str(resources.get("money") or "")
            results.append((
                bool(_TIME_UNIT_RE.search(time_text)),
                "Time estimate is too vague or missing numbers",
            ))
            results.append((
                bool(_DOLLAR_RE.search(money_text)) or "unknown" in money_text.lower(),
                "Money estimate is too vague or missing dollar amounts",
            ))
        return results

    def _stage3_estimates(self, content: dict) -> List[Tuple[bool, str]]:
        results = []
        if "estimatedCost" in content:
            results.append((
                bool(_DOLLAR_RE.search(str(content["estimatedCost"] or ""))),
                "Estimated cost should include specific dollar amounts",
            ))
        timeline = content.get("timeline")
        if isinstance(timeline, list):
            # the whole timeline is one check; phases without a duration are skipped
            vague = [
                f'Phase "{phase.get("phase", "?")}" has vague duration: {phase["duration"]}'
                for phase in timeline
                if isinstance(phase, dict) and phase.get("duration")
                and not _DURATION_RE.search(str(phase["duration"]))
            ]
            results.append((not vague, "; ".join(vague)))
        return results

    def _stage4_estimates(self, content: dict) -> List[Tuple[bool, str]]:
        results = []
        budget = content.get("budget")
        if not isinstance(budget, dict):
            return results
        if "total" in budget:
            results.append((
                bool(_DOLLAR_RE.search(str(budget["total"] or ""))),
                "Budget total should include specific dollar amounts",
            ))
        breakdown = budget.get("breakdown")
        if isinstance(breakdown, list) and breakdown:
            all_priced = all(
                isinstance(item, dict) and _DOLLAR_RE.search(str(item.get("cost") or ""))
                for item in breakdown
            )
            results.append((
                bool(all_priced),
                "Budget breakdown items should have specific cost estimates",
            ))
        return results
