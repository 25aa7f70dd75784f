"""
Submission Models

Tables owned by the CRUD side of the product (clients, submissions, media
files, reviews). The analysis pipeline only reads them, so only the columns
the pipeline actually consumes are modelled here.

Relationships:
--------------
- Client (1) <-> (Many) Submission
- Submission (1) <-> (Many) MediaFile
- Submission (1) <-> (0..1) Review
- Submission (1) <-> (0..1) ContentFeature (see insights.models.insights)

Deletes cascade in the database (ON DELETE CASCADE), so removing a
submission also removes its media rows, review and content feature.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Enum, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from insights.db.base import BaseModel, String255, utcnow


# ================================
# Enums
# ================================

class MediaFileType(str, enum.Enum):
    """
    Kind of uploaded media.

    Only IMAGE files are analyzed. Video is stored and reviewed like any
    other media but never sent to the inference providers.
    """

    IMAGE = "image"
    VIDEO = "video"

    def __str__(self) -> str:
        return self.value


class SubmissionStatus(str, enum.Enum):
    """Review lifecycle of a submission."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"

    def __str__(self) -> str:
        return self.value


class ReviewStatus(str, enum.Enum):
    """Outcome recorded by the client reviewer."""

    APPROVED = "approved"
    REJECTED = "rejected"

    def __str__(self) -> str:
        return self.value


def _enum_type(enum_cls: type[enum.Enum]) -> Enum:
    # Store enum values ("image") rather than member names ("IMAGE")
    return Enum(
        enum_cls,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
    )


# ================================
# Client Model
# ================================

class Client(BaseModel):
    """
    A client of a professional account; the person who approves or rejects
    submissions.

    Table: clients
    """

    __tablename__ = "clients"

    owner_id: Mapped[str] = mapped_column(
        String255,
        nullable=False,
        index=True,
        comment="Id of the professional user who owns this client"
    )

    name: Mapped[Optional[str]] = mapped_column(String255, nullable=True)

    email: Mapped[str] = mapped_column(String255, nullable=False)

    submissions: Mapped[list["Submission"]] = relationship(
        back_populates="client",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def display_name(self) -> str:
        return self.name or self.email


# ================================
# Submission Model
# ================================

class Submission(BaseModel):
    """
    A batch of media sent to a client for approval.

    Table: submissions
    ------------------
    ``message`` and ``captions`` are free text written by the professional;
    the approval scorer tokenizes them alongside OCR text.
    """

    __tablename__ = "submissions"

    created_by_id: Mapped[str] = mapped_column(
        String255,
        nullable=False,
        index=True,
        comment="Id of the professional user who created the submission"
    )

    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    captions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[SubmissionStatus] = mapped_column(
        _enum_type(SubmissionStatus),
        nullable=False,
        default=SubmissionStatus.PENDING,
    )

    client: Mapped["Client"] = relationship(
        back_populates="submissions",
        lazy="joined",
    )

    media_files: Mapped[list["MediaFile"]] = relationship(
        back_populates="submission",
        lazy="selectin",
        order_by="MediaFile.order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    review: Mapped[Optional["Review"]] = relationship(
        back_populates="submission",
        lazy="selectin",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def image_files(self) -> list["MediaFile"]:
        """Media files eligible for analysis."""
        return [m for m in self.media_files if m.file_type == MediaFileType.IMAGE]


# ================================
# MediaFile Model
# ================================

class MediaFile(BaseModel):
    """
    One stored upload belonging to a submission.

    ``file_path`` is the storage-relative path; the file storage service
    turns it into a physical path for the inference adapters.
    """

    __tablename__ = "media_files"

    submission_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    file_name: Mapped[str] = mapped_column(String255, nullable=False)

    file_path: Mapped[str] = mapped_column(String255, nullable=False)

    file_type: Mapped[MediaFileType] = mapped_column(
        _enum_type(MediaFileType),
        nullable=False,
    )

    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    submission: Mapped["Submission"] = relationship(back_populates="media_files")


# ================================
# Review Model
# ================================

class Review(BaseModel):
    """
    The client's decision on a submission (at most one per submission).

    Approved/rejected counts per client drive both the approval base rate
    and the client summary cache key.
    """

    __tablename__ = "reviews"

    submission_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    status: Mapped[ReviewStatus] = mapped_column(
        _enum_type(ReviewStatus),
        nullable=False,
        index=True,
    )

    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    reviewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    submission: Mapped["Submission"] = relationship(back_populates="review")
