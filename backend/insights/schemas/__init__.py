"""
Pydantic schemas for request/response validation.

Import all schemas here for easy access.
"""

from insights.schemas.insights import (
    ApprovalPrediction,
    ApprovalPredictionRequest,
    ApprovalPredictionStatus,
    ClientSummaryResponse,
    ContentFeatureResponse,
    ReanalyzeResponse,
    SummaryDataStatus,
    SummaryPayload,
    ThemeInsights,
)

__all__ = [
    # Theme tags
    "ThemeInsights",
    # Summary
    "SummaryDataStatus",
    "SummaryPayload",
    "ClientSummaryResponse",
    # Prediction
    "ApprovalPrediction",
    "ApprovalPredictionRequest",
    "ApprovalPredictionStatus",
    # Features
    "ContentFeatureResponse",
    "ReanalyzeResponse",
]
