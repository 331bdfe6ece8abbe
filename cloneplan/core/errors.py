"""Typed error hierarchy for cloneplan.

Every error that reaches the HTTP boundary is an AppError carrying:
- an HTTP status and machine code
- an ErrorCategory used for retry decisions (never message matching)
- an internal diagnostic message (logged, shown only in debug mode)
- a user-safe message
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Failure classes that drive retry and status mapping."""
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    TRANSPORT = "transport"
    PROVIDER_DOWN = "provider_down"
    QUALITY_FAILURE = "quality_failure"
    INTERNAL = "internal"


# Detail keys safe to show users outside debug mode
PUBLIC_DETAIL_KEYS = ("stageNumber", "nextSteps", "estimatedWaitTime", "validationScore")


class AppError(Exception):
    """Base error with separate internal and user-facing messages."""

    status_code: int = 500
    code: str = "INTERNAL"
    category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False
    default_user_message: str = "Something went wrong. Please try again."

    def __init__(
        self,
        message: str,
        user_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        retryable: Optional[bool] = None,
    ):
        super().__init__(message)
        self.message = message
        self.user_message = user_message or self.default_user_message
        self.details = details or {}
        self.retryable = self.default_retryable if retryable is None else retryable

    def to_dict(self, request_id: Optional[str] = None, include_internal: bool = False) -> dict:
        body: Dict[str, Any] = {
            "error": self.user_message,
            "code": self.code,
            "requestId": request_id,
            "retryable": self.retryable,
        }
        for key in PUBLIC_DETAIL_KEYS:
            if key in self.details:
                body[key] = self.details[key]
        if include_internal:
            body["message"] = self.message
            if self.details:
                body["details"] = self.details
        return body

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(AppError):
    status_code = 400
    code = "BAD_REQUEST"
    category = ErrorCategory.VALIDATION
    default_user_message = "The request was not valid."


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    category = ErrorCategory.VALIDATION
    default_user_message = (
        "The requested analysis could not be found. It may have been deleted "
        "or you may not have permission to access it."
    )


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMITED"
    category = ErrorCategory.RATE_LIMIT
    default_retryable = True
    default_user_message = "Too many requests right now. Please wait a moment and try again."


class GatewayTimeoutError(AppError):
    status_code = 504
    code = "GATEWAY_TIMEOUT"
    category = ErrorCategory.TIMEOUT
    default_retryable = True
    default_user_message = (
        "The analysis is taking longer than expected. Please try again."
    )


class TransientProviderError(AppError):
    """A single provider call hit a connection reset or 5xx gateway status."""
    status_code = 502
    code = "AI_PROVIDER_DOWN"
    category = ErrorCategory.TRANSPORT
    default_retryable = True
    default_user_message = "The AI service is temporarily unavailable. Please try again."


class ProviderDownError(AppError):
    """Upstream AI failure after fallback was exhausted."""
    status_code = 502
    code = "AI_PROVIDER_DOWN"
    category = ErrorCategory.PROVIDER_DOWN
    default_user_message = "The AI service is currently unavailable. Please try again later."


class AIValidationError(AppError):
    """AI output did not match the expected shape."""
    status_code = 502
    code = "AI_VALIDATION_ERROR"
    category = ErrorCategory.QUALITY_FAILURE
    default_user_message = "The AI generated invalid data. Please try again."


class QualityFailureError(AppError):
    """AI output parsed but failed the content quality checks."""
    status_code = 502
    code = "AI_QUALITY_ERROR"
    category = ErrorCategory.QUALITY_FAILURE
    default_user_message = (
        "The AI generated content that did not meet quality standards. Please try again."
    )


class ConfigurationError(AppError):
    status_code = 500
    code = "CONFIG_MISSING"
    category = ErrorCategory.INTERNAL
    default_user_message = "AI service is not configured. Please contact support."


class InternalError(AppError):
    status_code = 500
    code = "INTERNAL"
    category = ErrorCategory.INTERNAL


# ── Provider exception classification ─────────────────────────────────

RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})
_AUTH_STATUS_CODES = frozenset({401, 403})


def _sdk_error_types(attr: str) -> tuple:
    """Collect an exception class by name from the provider SDKs."""
    import anthropic
    import openai

    return tuple(
        getattr(module, attr) for module in (openai, anthropic) if hasattr(module, attr)
    )


def classify_provider_error(exc: BaseException, provider: str = "provider") -> AppError:
    """Map an exception raised by a provider SDK to a typed AppError.

    Classification uses exception types and HTTP status codes only.
    """
    if isinstance(exc, AppError):
        return exc

    detail = f"{provider}: {type(exc).__name__}: {exc}"
    status = getattr(exc, "status_code", None)

    if isinstance(exc, _sdk_error_types("RateLimitError")) or status == 429:
        return RateLimitError(detail, details={"provider": provider})
    if isinstance(exc, _sdk_error_types("APITimeoutError") + (httpx.TimeoutException, TimeoutError)):
        return GatewayTimeoutError(detail, details={"provider": provider})
    if isinstance(exc, _sdk_error_types("APIConnectionError") + (httpx.TransportError, ConnectionError)):
        return TransientProviderError(detail, details={"provider": provider})
    if status in RETRYABLE_STATUS_CODES:
        return TransientProviderError(detail, details={"provider": provider, "status": status})
    if isinstance(exc, _sdk_error_types("AuthenticationError")) or status in _AUTH_STATUS_CODES:
        return ProviderDownError(
            detail,
            details={"provider": provider, "authentication": True},
        )
    return ProviderDownError(detail, details={"provider": provider})


# ── User guidance ─────────────────────────────────────────────────────


@dataclass
class ErrorGuidance:
    """User-facing explanation and suggested next steps for a failure."""
    user_message: str
    next_steps: List[str] = field(default_factory=list)
    retryable: bool = False
    estimated_wait_time: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "userMessage": self.user_message,
            "nextSteps": list(self.next_steps),
            "retryable": self.retryable,
            "estimatedWaitTime": self.estimated_wait_time,
        }


def generate_error_guidance(error: BaseException, context: str) -> ErrorGuidance:
    """Build user guidance for a failure that happened while doing `context`."""
    app_error = classify_provider_error(error) if not isinstance(error, AppError) else error
    category = app_error.category

    if category is ErrorCategory.TIMEOUT:
        return ErrorGuidance(
            user_message=f"The request timed out while {context}.",
            next_steps=[
                "Wait a moment and try again",
                "The AI service may be under heavy load",
            ],
            retryable=True,
            estimated_wait_time="1-2 minutes",
        )
    if category is ErrorCategory.RATE_LIMIT:
        return ErrorGuidance(
            user_message=f"The AI service rate limit was reached while {context}.",
            next_steps=[
                "Wait a few minutes before trying again",
                "Avoid generating several stages at once",
            ],
            retryable=True,
            estimated_wait_time="5-10 minutes",
        )
    if category is ErrorCategory.TRANSPORT:
        return ErrorGuidance(
            user_message=f"A network error occurred while {context}.",
            next_steps=["Check your connection", "Try again shortly"],
            retryable=True,
            estimated_wait_time="30 seconds",
        )
    if category is ErrorCategory.PROVIDER_DOWN and app_error.details.get("authentication"):
        return ErrorGuidance(
            user_message=f"The AI service rejected our credentials while {context}.",
            next_steps=["Contact support to verify the AI provider configuration"],
            retryable=False,
        )
    if category in (ErrorCategory.QUALITY_FAILURE, ErrorCategory.VALIDATION):
        return ErrorGuidance(
            user_message=f"The generated content was not usable while {context}.",
            next_steps=[
                "Regenerate the content",
                "If the problem persists, re-run the analysis",
            ],
            retryable=True,
        )
    return ErrorGuidance(
        user_message=f"An unexpected error occurred while {context}.",
        next_steps=["Try again", "Contact support if the problem persists"],
        retryable=app_error.retryable,
    )
