"""AI provider construction and primary/secondary fallback."""

import logging
import os
from typing import Optional

from ..setting import PlanSettings, ProviderSettings
from .admission import with_timeout
from .errors import (
    AppError,
    ConfigurationError,
    ErrorCategory,
    GatewayTimeoutError,
    ProviderDownError,
)
from .gateway import ProviderGateway
from .models import AIAnalysisResult, FirstPartyData
from .prompts import SYSTEM_PROMPT, build_analysis_prompt

logger = logging.getLogger(__name__)

API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GOOGLE_API_KEY",
    "groq": "GROQ_API_KEY",
}


def build_llm(provider: str, model: str, timeout: float = 120.0, temperature: float = 0.2):
    """Create a LlamaIndex LLM for a provider name.

    Raises:
        ConfigurationError: unknown provider or missing API key
    """
    provider = provider.lower()
    env_name = API_KEY_ENV.get(provider)
    api_key = os.getenv(env_name) if env_name else None
    if env_name and not api_key:
        raise ConfigurationError(
            f"{env_name} is not set for provider {provider}",
            details={"missingKeys": [env_name]},
        )

    if provider == "openai":
        from llama_index.llms.openai import OpenAI
        return OpenAI(model=model, temperature=temperature, api_key=api_key, timeout=timeout)
    if provider == "anthropic":
        from llama_index.llms.anthropic import Anthropic
        return Anthropic(model=model, temperature=temperature, api_key=api_key, timeout=timeout)
    if provider == "gemini":
        from llama_index.llms.gemini import Gemini
        return Gemini(model=model, temperature=temperature, api_key=api_key)
    if provider == "groq":
        from llama_index.llms.groq import Groq
        return Groq(model=model, temperature=temperature, api_key=api_key)
    if provider == "ollama":
        from llama_index.llms.ollama import Ollama
        return Ollama(model=model, temperature=temperature, request_timeout=timeout)
    raise ConfigurationError(f"Unknown AI provider: {provider}")


def build_gateway(slot: ProviderSettings, timeout: float) -> ProviderGateway:
    return ProviderGateway(slot.provider, build_llm(slot.provider, slot.model, timeout=timeout))


class ProviderChain:
    """Primary provider with a single fallback using the identical prompt.

    Each provider gets its own `timeout` budget, so a hung primary still
    leaves the secondary a full attempt.

    Public API:
        analyze(url, first_party, goal) -> AIAnalysisResult
        primary -> ProviderGateway used for stage generation
    """

    def __init__(
        self,
        primary: ProviderGateway,
        secondary: Optional[ProviderGateway] = None,
        timeout: Optional[float] = None,
    ):
        self.primary = primary
        self.secondary = secondary
        self.timeout = timeout

    async def analyze(
        self,
        url: str,
        first_party: Optional[FirstPartyData] = None,
        goal: Optional[str] = None,
    ) -> AIAnalysisResult:
        prompt = build_analysis_prompt(url, first_party, goal)
        try:
            logger.info(f"Attempting analysis with {self.primary.name}...")
            return await self._analyze_with(self.primary, prompt)
        except AppError as primary_error:
            if self.secondary is None:
                raise
            logger.warning(
                f"{self.primary.name} analysis failed, falling back to "
                f"{self.secondary.name}: {primary_error.message}"
            )
            try:
                return await self._analyze_with(self.secondary, prompt)
            except AppError as secondary_error:
                raise self._combined_failure(primary_error, secondary_error) from secondary_error

    async def _analyze_with(self, gateway: ProviderGateway, prompt: str) -> AIAnalysisResult:
        call = gateway.generate_json(prompt, SYSTEM_PROMPT, purpose="analysis")
        if self.timeout is not None:
            structured = await with_timeout(call, self.timeout, f"{gateway.name} analysis")
        else:
            structured = await call
        summary = structured.get("summary") or (
            (structured.get("overview") or {}).get("valueProposition") or ""
        )
        return AIAnalysisResult(
            content=str(summary),
            model=gateway.model,
            provider=gateway.name,
            structured=structured,
        )

    def _combined_failure(self, primary: AppError, secondary: AppError) -> AppError:
        details = {
            "providers": {
                self.primary.name: {"code": primary.code, "message": primary.message},
                self.secondary.name: {"code": secondary.code, "message": secondary.message},
            }
        }
        logger.error(f"Both AI providers failed: {details['providers']}")
        if secondary.category is ErrorCategory.TIMEOUT:
            return GatewayTimeoutError(
                f"AI provider request timeout. {self.primary.name}: {primary.message}. "
                f"{self.secondary.name}: {secondary.message}",
                details=details,
            )
        return ProviderDownError(
            f"Both AI providers failed. {self.primary.name}: {primary.message}. "
            f"{self.secondary.name}: {secondary.message}",
            details=details,
        )

    def get_metrics(self) -> dict:
        metrics = {self.primary.name: self.primary.get_metrics()}
        if self.secondary is not None:
            metrics[self.secondary.name] = self.secondary.get_metrics()
        return metrics


def build_provider_chain(settings: PlanSettings) -> ProviderChain:
    """Wire the configured primary and secondary providers.

    A secondary whose key is missing is skipped with a warning; a missing
    primary key raises ConfigurationError.
    """
    primary = build_gateway(settings.primary, settings.ai_timeout_seconds)
    secondary = None
    try:
        secondary = build_gateway(settings.secondary, settings.ai_timeout_seconds)
    except ConfigurationError as e:
        logger.warning(f"Secondary AI provider unavailable: {e.message}")
    return ProviderChain(primary, secondary, timeout=settings.ai_timeout_seconds)
