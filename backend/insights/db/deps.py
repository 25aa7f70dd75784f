"""
Database Dependencies for FastAPI Routes

Routes declare ``db: DBSession`` and FastAPI provides a request-scoped
``AsyncSession`` that is rolled back on error and always closed.

Usage in Routes:
----------------
    @router.get("/submissions/{submission_id}/features")
    async def get_features(submission_id: UUID, db: DBSession):
        feature = await ContentFeatureRepository(db).get_by_submission_id(submission_id)
        ...

Tests override ``get_db`` through ``app.dependency_overrides``.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from insights.db.session import get_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session.

    You must commit explicitly (``await db.commit()``); rollback happens
    automatically when the route raises.

    Yields:
        AsyncSession: Database session for the current request
    """
    async for session in get_session():
        yield session


# Reusable type annotation for database dependencies
DBSession = Annotated[AsyncSession, Depends(get_db)]
