"""Pydantic schemas for API request/response models."""

from .analysis import (
    AnalysisList,
    AnalyzeRequest,
    StageRequest,
    StageResponse,
)

__all__ = [
    'AnalyzeRequest',
    'AnalysisList',
    'StageRequest',
    'StageResponse',
]
