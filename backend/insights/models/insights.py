"""
Analysis Models

Persistent outputs of the content-intelligence pipeline.

Models Included:
----------------
1. ContentFeatureStatus (Enum) - analysis state machine values
2. ContentFeature - per-submission OCR text + theme tags + status
3. ClientSummary - per-client cached review summary keyed by review counts

Status Flow:
------------
    (no row) --first attempt--> PENDING
    PENDING --> COMPLETED   (text or visual signals extracted)
            --> NO_SIGNALS  (provider worked, image had nothing to extract)
            --> NO_IMAGES   (submission has only non-image media)
            --> FAILED      (every provider call failed; backfill retries)

Any terminal state can go back to PENDING on re-analysis. The row is always
upserted, never duplicated.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from insights.db.base import BaseModel, String500


class ContentFeatureStatus(str, enum.Enum):
    """
    Analysis status of a submission.

    Readiness for downstream consumers:
    - COMPLETED, NO_SIGNALS: usable ("Ready" / "Ready, limited signals")
    - PENDING, FAILED: not ready yet
    - NO_IMAGES: nothing will ever be analyzed
    """

    PENDING = "pending"
    COMPLETED = "completed"
    NO_SIGNALS = "no_signals"
    NO_IMAGES = "no_images"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value

    @property
    def is_usable(self) -> bool:
        return self in (ContentFeatureStatus.COMPLETED, ContentFeatureStatus.NO_SIGNALS)


class ContentFeature(BaseModel):
    """
    Aggregated analysis output for one submission.

    Table: content_features
    -----------------------
    - ocr_text: newline-joined OCR output of all images (None if no text)
    - theme_tags_json: serialized ThemeInsights, or a flat JSON tag array
      for older rows / keyword-only providers
    - last_analyzed_at: most recent attempt, success or failure
    - extracted_at: only set when signals were produced (COMPLETED / NO_SIGNALS)
    """

    __tablename__ = "content_features"

    submission_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        comment="One feature row per submission"
    )

    ocr_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    theme_tags_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    analysis_status: Mapped[ContentFeatureStatus] = mapped_column(
        Enum(
            ContentFeatureStatus,
            native_enum=False,
            length=20,
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=ContentFeatureStatus.PENDING,
        index=True,
    )

    failure_reason: Mapped[Optional[str]] = mapped_column(String500, nullable=True)

    last_analyzed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    extracted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"ContentFeature(submission_id={self.submission_id}, "
            f"status={self.analysis_status.value})"
        )


class ClientSummary(BaseModel):
    """
    Cached review summary for one client.

    The (approved_count, rejected_count) pair is the cache key: the cached
    payload is reused only while the client's live review counts match it
    exactly. ``payload`` holds a serialized
    ``insights.schemas.insights.SummaryPayload``.
    """

    __tablename__ = "client_summaries"

    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    payload: Mapped[str] = mapped_column(Text, nullable=False)

    approved_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    rejected_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def matches_counts(self, approved: int, rejected: int) -> bool:
        return self.approved_count == approved and self.rejected_count == rejected
