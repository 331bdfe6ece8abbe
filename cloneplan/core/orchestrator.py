"""Analysis orchestrator - the single owner of per-process state.

Owns the admission controller, insights cache, partial-result store,
retrier, validator and workflow rules. Two entry points:

    analyze(user_id, url, goal)          -> AnalysisRecord
    generate_stage(user_id, id, n, ...)  -> stage payload dict

Analysis flow:
    normalize URL -> first-party extract (raced against its timeout)
    -> admit under "{url}-with-fp" / "{url}-no-fp"
    -> AI chain and tech detection, settled together
    -> merge detection into structured.technical -> persist -> insights
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..setting import PlanSettings
from .admission import AdmissionController, first_or_none, settle_all, with_timeout
from .complexity import ComplexityCalculator
from .errors import (
    AIValidationError,
    AppError,
    ErrorCategory,
    GatewayTimeoutError,
    InternalError,
    NotFoundError,
    ProviderDownError,
    QualityFailureError,
    RateLimitError,
    ValidationError,
    generate_error_guidance,
)
from .first_party import FirstPartyExtractor
from .insights import TechnologyInsightsService
from .insights_cache import InsightsCache
from .models import (
    AIAnalysisResult,
    AnalysisRecord,
    DetectionStatus,
    TechDetectionResult,
    isoformat,
)
from .prompts import SYSTEM_PROMPT, build_stage_prompt
from .providers import ProviderChain
from .retry import BackoffRetrier, PartialResultStore, RetryPolicy
from .stage_schemas import parse_stage_content
from .storage import InMemoryAnalysisStore
from .tech_detection import TechDetectionService
from .url_utils import normalize_url
from .validation import BusinessContext, ContentValidator
from .workflow import FIRST_GENERATED_STAGE, TOTAL_STAGES, WorkflowService, stage_name

logger = logging.getLogger(__name__)


@dataclass
class AnalysisOutcome:
    """Shared result of one admitted analysis run."""
    ai: AIAnalysisResult
    detection: Optional[TechDetectionResult]
    detection_status: DetectionStatus
    elapsed_ms: float


def merge_analysis_results(
    structured: Optional[Dict[str, Any]],
    detection: Optional[TechDetectionResult],
    status: DetectionStatus,
    calculator: Optional[ComplexityCalculator] = None,
) -> Dict[str, Any]:
    """Fold detection output into a copy of the structured analysis.

    On success technical gains actualDetected, complexityScore,
    complexityFactors and detectedTechStack (AI stack first, then detected
    names, deduplicated). A failed detection is flagged instead.
    """
    merged = dict(structured or {})
    technical = dict(merged.get("technical") or {})
    ai_stack = list(technical.get("techStack") or [])

    if detection is not None and detection.success:
        complexity = (calculator or ComplexityCalculator()).calculate(detection.technologies)
        detected_names = [t.name for t in detection.technologies]
        technical.update({
            "techStack": ai_stack,
            "actualDetected": {
                "technologies": [t.to_dict() for t in detection.technologies],
                "contentType": detection.content_type,
                "detectedAt": isoformat(detection.detected_at),
            },
            "complexityScore": complexity.score,
            "complexityFactors": complexity.factors.to_dict(),
            "detectedTechStack": list(dict.fromkeys(ai_stack + detected_names)),
        })
        logger.info(
            f"Merged detection: ai={len(ai_stack)} detected={len(detected_names)} "
            f"complexity={complexity.score}"
        )
    elif status is DetectionStatus.FAILED:
        technical.update({"detectionAttempted": True, "detectionFailed": True})

    merged["technical"] = technical
    return merged


class AnalysisOrchestrator:
    """Coordinates analysis creation and stage generation.

    Args:
        settings: Resolved PlanSettings
        providers: Primary/secondary AI chain
        store: Analysis persistence
        detector: Technology detection collaborator (None disables it)
        first_party: First-party page extractor (None skips extraction)
    """

    def __init__(
        self,
        settings: PlanSettings,
        providers: ProviderChain,
        store: InMemoryAnalysisStore,
        detector: Optional[TechDetectionService] = None,
        first_party: Optional[FirstPartyExtractor] = None,
    ):
        self.settings = settings
        self.providers = providers
        self.store = store
        self.detector = detector
        self.first_party = first_party

        self.admission = AdmissionController(settings.max_concurrent_analyses)
        self.cache = InsightsCache(
            ttl=settings.cache_ttl_seconds,
            sweep_interval=settings.cache_sweep_interval_seconds,
        )
        self.partials = PartialResultStore()
        self.retrier = BackoffRetrier(
            RetryPolicy(
                max_attempts=settings.retry.max_attempts,
                delay_ms=settings.retry.delay_ms,
                backoff_multiplier=settings.retry.backoff_multiplier,
                max_delay_ms=settings.retry.max_delay_ms,
            ),
            partials=self.partials,
        )
        self.validator = ContentValidator(settings.validation)
        self.workflow = WorkflowService()
        self.calculator = ComplexityCalculator()
        self.insights = TechnologyInsightsService(self.cache, calculator=self.calculator)

        self._degraded = 0
        self._detection_counts = {status.value: 0 for status in DetectionStatus}

    # ── Lifecycle ─────────────────────────────────────────────────────

    def start(self) -> None:
        """Start background work; requires a running event loop."""
        self.cache.start_sweeper()
        if self.settings.warm_insights_cache:
            self.insights.warm()
        logger.info("Orchestrator started (cache sweeper running)")

    async def stop(self) -> None:
        await self.cache.stop_sweeper()
        logger.info("Orchestrator stopped")

    @property
    def detection_enabled(self) -> bool:
        return self.detector is not None and self.settings.enable_tech_detection

    # ── Analysis ──────────────────────────────────────────────────────

    async def analyze(self, user_id: str, url: str, goal: Optional[str] = None) -> AnalysisRecord:
        """Run a full business analysis and persist it for user_id."""
        target = normalize_url(url)
        first_party = None
        if self.first_party is not None:
            first_party = await first_or_none(
                self.first_party.extract(target),
                self.settings.first_party_timeout_seconds,
                "First-party extraction",
            )

        key = f"{target}-{'with-fp' if first_party else 'no-fp'}"
        outcome: AnalysisOutcome = await self.admission.run(
            key, lambda: self._run_analysis(target, first_party, goal)
        )

        structured = merge_analysis_results(
            outcome.ai.structured, outcome.detection, outcome.detection_status, self.calculator
        )
        record = self.store.create_analysis(
            user_id=user_id,
            url=target,
            summary=outcome.ai.content,
            model=f"{outcome.ai.provider}:{outcome.ai.model}",
            structured=structured,
            first_party=first_party,
            goal=goal,
            detection_status=outcome.detection_status,
        )

        if outcome.detection is not None and outcome.detection.success:
            insights = self.insights.generate_insights(
                outcome.detection.technologies, record.id, structured
            )
            self.store.update_insights(user_id, record.id, insights)
            logger.info(
                f"Analysis {record.id}: clonability {insights.clonability.score}/10 "
                f"({insights.clonability.rating.value})"
            )
        return record

    async def _run_analysis(self, url: str, first_party, goal: Optional[str]) -> AnalysisOutcome:
        started = time.monotonic()
        # the chain times each provider; this outer bound covers both
        branches = [
            with_timeout(
                self.providers.analyze(url, first_party, goal),
                self.settings.ai_timeout_seconds * 2,
                "AI analysis",
            )
        ]
        if self.detection_enabled:
            branches.append(with_timeout(
                self.detector.detect_technologies(url),
                self.settings.tech_detection_timeout_seconds,
                "Tech detection",
            ))

        results = await settle_all(*branches)
        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info(f"Parallel analysis for {url} settled in {elapsed_ms:.0f}ms")

        ai_result = results[0]
        if isinstance(ai_result, BaseException):
            logger.error(f"AI analysis failed for {url}: {ai_result}")
            raise ai_result

        detection, status = self._detection_outcome(results[1] if len(results) > 1 else None)
        self._detection_counts[status.value] += 1
        return AnalysisOutcome(
            ai=ai_result,
            detection=detection,
            detection_status=status,
            elapsed_ms=elapsed_ms,
        )

    def _detection_outcome(
        self, result: Union[TechDetectionResult, BaseException, None]
    ):
        if not self.detection_enabled:
            return None, DetectionStatus.DISABLED
        if isinstance(result, BaseException) or result is None:
            self._degraded += 1
            reason = result if result is not None else "no result"
            logger.warning(f"Tech detection unavailable, continuing AI-only: {reason}")
            return None, DetectionStatus.FAILED
        return result, DetectionStatus.SUCCESS

    # ── Stage generation ──────────────────────────────────────────────

    async def generate_stage(
        self,
        user_id: str,
        analysis_id: str,
        stage_number: int,
        regenerate: bool = False,
    ) -> Dict[str, Any]:
        """Generate (or regenerate) stage 2-6 for an analysis.

        Raises:
            ValidationError: bad stage number, no structured data, or an
                illegal progression
            NotFoundError: unknown analysis for this user
            GatewayTimeoutError / RateLimitError / ProviderDownError:
                generation failed after retries
            AIValidationError: output did not match the stage schema
            QualityFailureError: output failed the content validator
        """
        if not FIRST_GENERATED_STAGE <= stage_number <= TOTAL_STAGES:
            raise ValidationError(
                "Invalid stage number. Must be between 2 and 6.",
                user_message="Invalid stage number. Must be between 2 and 6.",
            )

        record = self.store.get_analysis(user_id, analysis_id)
        if record is None:
            raise NotFoundError(f"Analysis {analysis_id} not found")
        if record.structured is None:
            raise ValidationError(
                f"Analysis {analysis_id} has no structured data",
                user_message="This analysis has no structured data. Please run a new analysis.",
            )

        check = self.workflow.validate_stage_progression(record, stage_number)
        if not check.valid:
            raise ValidationError(check.reason, user_message=check.reason)

        name = stage_name(stage_number)
        logger.info(
            f"Generating Stage {stage_number} ({name}) for {analysis_id} "
            f"regeneration={check.regeneration} requested={regenerate}"
        )

        stages = self.workflow.stages_for(record)
        previous = stages.get(stage_number - 1)
        prompt = build_stage_prompt(stage_number, record, previous.content if previous else None)
        gateway = self.providers.primary

        def _attempt():
            return with_timeout(
                gateway.generate_json(prompt, SYSTEM_PROMPT, purpose=f"stage_{stage_number}"),
                self.settings.ai_timeout_seconds,
                f"Stage {stage_number} generation",
            )

        def _on_retry(outcome, wait):
            logger.info(f"Retry attempt {outcome.attempt} for Stage {stage_number} in {wait:.1f}s")

        result = await self.retrier.run(
            _attempt,
            checkpoint_key=f"stage-{analysis_id}-{stage_number}",
            validate=lambda raw: self._parse_stage(stage_number, raw),
            on_retry=_on_retry,
        )
        if not result.success:
            raise self._generation_failure(analysis_id, stage_number, result)
        content = result.data

        report = self.validator.validate_stage_content(
            stage_number,
            content,
            BusinessContext(url=record.url, business_name=record.business_name),
        )
        for check_name, issues in report.issues().items():
            logger.warning(f"Stage {stage_number} {check_name} issues: {issues}")
        if not report.valid:
            errors = report.errors(limit=3)
            raise QualityFailureError(
                f"Generated Stage {stage_number} content failed quality checks",
                details={
                    "stageNumber": stage_number,
                    "analysisId": analysis_id,
                    "validationScore": round(report.overall_score, 3),
                    "errors": errors,
                },
            )

        updated = self.store.update_stage_data(
            user_id, analysis_id, self.workflow.create_stage_data(stage_number, content)
        )
        if updated is None:
            raise InternalError(
                "Failed to save stage data",
                user_message="Could not save the generated stage data. Please try again.",
            )

        saved = updated.stages[stage_number]
        return {
            "stageNumber": stage_number,
            "stageName": saved.stage_name,
            "content": saved.content,
            "generatedAt": isoformat(saved.generated_at),
            "nextStage": stage_number + 1 if stage_number < TOTAL_STAGES else None,
        }

    @staticmethod
    def _parse_stage(stage_number: int, raw: Any) -> Dict[str, Any]:
        parsed = parse_stage_content(stage_number, raw)
        if not parsed.ok:
            raise AIValidationError(
                f"Generated Stage {stage_number} content is invalid",
                details={"stageNumber": stage_number, "schemaErrors": parsed.errors[:5]},
            )
        return parsed.content

    def _generation_failure(self, analysis_id: str, stage_number: int, result) -> AppError:
        error = result.error
        if isinstance(error, AIValidationError):
            return AIValidationError(
                error.message,
                details={**error.details, "analysisId": analysis_id, "attempts": result.attempts},
            )

        guidance = generate_error_guidance(error, f"generating {stage_name(stage_number)}")
        category = error.category if isinstance(error, AppError) else None
        if category is ErrorCategory.TIMEOUT:
            error_cls = GatewayTimeoutError
        elif category is ErrorCategory.RATE_LIMIT:
            error_cls = RateLimitError
        else:
            error_cls = ProviderDownError

        return error_cls(
            f"Failed to generate Stage {stage_number} content after {result.attempts} attempts",
            user_message=guidance.user_message,
            details={
                "stageNumber": stage_number,
                "analysisId": analysis_id,
                "attempts": result.attempts,
                "totalTimeMs": round(result.total_time_ms, 1),
                "nextSteps": guidance.next_steps,
                "retryable": guidance.retryable,
                "estimatedWaitTime": guidance.estimated_wait_time,
                "error": str(error),
            },
            retryable=guidance.retryable,
        )

    # ── Queries ───────────────────────────────────────────────────────

    def get_stages(self, user_id: str, analysis_id: str) -> Dict[str, Any]:
        record = self.store.get_analysis(user_id, analysis_id)
        if record is None:
            raise NotFoundError(f"Analysis {analysis_id} not found")
        stages = self.workflow.stages_for(record)
        return {
            "analysisId": analysis_id,
            "stages": {str(n): s.to_dict() for n, s in sorted(stages.items())},
            **self.workflow.get_progress_summary(stages),
        }

    def get_stats(self) -> Dict[str, Any]:
        return {
            "admission": self.admission.get_stats(),
            "cache": self.cache.get_stats(),
            "providers": self.providers.get_metrics(),
            "detection": {
                **self._detection_counts,
                "enabled": self.detection_enabled,
                "degradedAnalyses": self._degraded,
                **(self.detector.get_stats() if self.detector is not None else {}),
            },
            "partialResults": len(self.partials),
        }


def build_orchestrator(
    settings: PlanSettings,
    providers: ProviderChain,
    store: Optional[InMemoryAnalysisStore] = None,
) -> AnalysisOrchestrator:
    """Wire an orchestrator with the default httpx-backed collaborators."""
    return AnalysisOrchestrator(
        settings=settings,
        providers=providers,
        store=store or InMemoryAnalysisStore(),
        detector=TechDetectionService(timeout=settings.tech_detection_timeout_seconds),
        first_party=FirstPartyExtractor(timeout=settings.first_party_timeout_seconds),
    )
