"""
Database Models

Import models from this module to ensure they're registered with SQLAlchemy:

    from insights.models import Submission, ContentFeature

This ensures that:
1. Alembic can detect all models for migrations
2. Relationships resolve correctly
"""

from insights.models.insights import (
    ClientSummary,
    ContentFeature,
    ContentFeatureStatus,
)
from insights.models.submission import (
    Client,
    MediaFile,
    MediaFileType,
    Review,
    ReviewStatus,
    Submission,
    SubmissionStatus,
)

__all__ = [
    # Submission models
    "Client",
    "Submission",
    "MediaFile",
    "Review",
    # Analysis models
    "ContentFeature",
    "ClientSummary",
    # Enums
    "ContentFeatureStatus",
    "MediaFileType",
    "ReviewStatus",
    "SubmissionStatus",
]
