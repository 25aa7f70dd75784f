"""
Repositories: narrow async query classes over one aggregate each.

Repositories flush, callers commit.
"""

from insights.repositories.content_feature import ContentFeatureRepository
from insights.repositories.review import (
    ClientSummaryRepository,
    ReviewCounts,
    ReviewRepository,
)
from insights.repositories.submission import ClientRepository, SubmissionRepository

__all__ = [
    "ClientRepository",
    "ClientSummaryRepository",
    "ContentFeatureRepository",
    "ReviewCounts",
    "ReviewRepository",
    "SubmissionRepository",
]
