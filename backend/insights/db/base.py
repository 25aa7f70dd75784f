"""
Declarative base for the insights tables.

Every table gets a client-generated UUID key plus created/updated
timestamps through ``BaseModel``. Submission and client ids come from the
CRUD layer that owns those rows; the pipeline passes them through the queue
and cache keys without a database round-trip.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, MetaData, String, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Stable constraint names so Alembic autogenerate produces clean diffs,
# e.g. fk_media_files_submission_id_submissions
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

String255 = String(255)  # names, emails, stored file paths
String500 = String(500)  # failure reasons


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class CommonTableAttributes:
    """
    Columns shared by every table.

    Timestamps are stored as UTC. ``updated_at`` moves on every ORM update;
    the summary cache reports it as the summary's generation time.
    """

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4, comment="UUID primary key")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Timestamp when record was created (UTC)",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="Timestamp when record was last updated (UTC)",
    )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id})"


class BaseModel(Base, CommonTableAttributes):
    __abstract__ = True
