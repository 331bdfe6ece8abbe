"""Provider gateway - observability and typed errors around one LLM.

Wraps any LlamaIndex LLM. Every call goes through generate_json(), which:
- logs purpose, latency and model
- records per-provider metrics (calls, errors, latency, purposes)
- converts SDK exceptions into typed AppErrors (classify_provider_error)
- parses the JSON payload, stripping markdown fences

Retry is not done here; callers decide (see retry.BackoffRetrier).
"""

import json
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .errors import AIValidationError, classify_provider_error

logger = logging.getLogger(__name__)


# ── Metrics ────────────────────────────────────────────────────────────

@dataclass
class ProviderMetrics:
    """In-memory usage metrics for one provider."""

    total_calls: int = 0
    errors: int = 0
    total_latency_ms: float = 0.0
    errors_by_code: dict = field(default_factory=lambda: defaultdict(int))
    calls_by_purpose: dict = field(default_factory=lambda: defaultdict(int))

    def to_dict(self) -> dict:
        return {
            "total_calls": self.total_calls,
            "errors": self.errors,
            "avg_latency_ms": round(self.total_latency_ms / max(self.total_calls, 1), 1),
            "errors_by_code": dict(self.errors_by_code),
            "calls_by_purpose": dict(self.calls_by_purpose),
        }


def parse_json_output(raw: str) -> Dict[str, Any]:
    """Parse a JSON object from LLM output, stripping markdown fences.

    Raises:
        AIValidationError: no JSON object could be recovered
    """
    cleaned = raw or ""
    if "```json" in cleaned:
        cleaned = cleaned.split("```json", 1)[1]
    elif cleaned.lstrip().startswith("```"):
        cleaned = cleaned.lstrip()[3:]
    if "```" in cleaned:
        cleaned = cleaned.split("```", 1)[0]
    cleaned = cleaned.strip()

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning(f"JSON parse failed: {e}. Attempting repair.")
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start < 0 or end <= start:
            raise AIValidationError(
                f"AI output is not JSON: {e}",
                details={"raw_output": (raw or "")[:2000]},
            )
        try:
            parsed = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as repair_error:
            raise AIValidationError(
                f"AI output is not JSON: {repair_error}",
                details={"raw_output": (raw or "")[:2000]},
            )

    if not isinstance(parsed, dict):
        raise AIValidationError(
            f"AI output is JSON {type(parsed).__name__}, expected an object",
            details={"raw_output": (raw or "")[:2000]},
        )
    return parsed


# ── Gateway ────────────────────────────────────────────────────────────

class ProviderGateway:
    """One named AI provider with metrics and typed failures.

    Usage:
        gateway = ProviderGateway("openai", OpenAI(model="gpt-4o-mini"))
        payload = await gateway.generate_json(prompt, system_prompt, purpose="stage_3")
    """

    def __init__(self, name: str, llm: Any):
        self.name = name
        self._llm = llm
        self._metrics = ProviderMetrics()
        logger.info(
            f"ProviderGateway {name} initialized - wrapping {type(llm).__name__}"
            f" (model={self.model})"
        )

    @property
    def model(self) -> str:
        return getattr(self._llm, "model", "unknown")

    async def generate_json(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        purpose: str = "general",
    ) -> Dict[str, Any]:
        """Run a completion and return its parsed JSON object.

        Raises:
            AppError subclass: classified provider failure or unparseable output
        """
        full_prompt = f"{system_prompt}\n\n{prompt}" if system_prompt else prompt
        t0 = time.time()
        try:
            response = await self._llm.acomplete(full_prompt)
        except Exception as e:
            error = classify_provider_error(e, self.name)
            self._record_error(purpose, error.code)
            raise error from e

        latency_ms = (time.time() - t0) * 1000
        self._record_success(purpose, latency_ms)
        logger.debug(
            f"LLM call: provider={self.name} purpose={purpose} "
            f"latency={latency_ms:.0f}ms model={self.model}"
        )

        try:
            return parse_json_output(response.text)
        except AIValidationError as e:
            self._record_error(purpose, e.code)
            raise

    # ── Metrics recording ─────────────────────────────────────────────

    def _record_success(self, purpose: str, latency_ms: float) -> None:
        m = self._metrics
        m.total_calls += 1
        m.total_latency_ms += latency_ms
        m.calls_by_purpose[purpose] += 1

    def _record_error(self, purpose: str, code: str) -> None:
        m = self._metrics
        m.errors += 1
        m.errors_by_code[code] += 1
        m.calls_by_purpose[f"{purpose}_error"] += 1
        logger.error(f"LLM call failed: provider={self.name} purpose={purpose} code={code}")

    def get_metrics(self) -> dict:
        result = self._metrics.to_dict()
        result["provider"] = self.name
        result["model"] = self.model
        return result

    def reset_metrics(self) -> None:
        self._metrics = ProviderMetrics()
        logger.info(f"ProviderGateway {self.name} metrics reset")
