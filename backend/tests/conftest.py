"""
Pytest configuration and fixtures.

This file is automatically discovered by pytest and provides
shared fixtures for all test modules.

Tests run against an in-memory SQLite database (aiosqlite) created fresh for
every test, and against fake inference providers; nothing here talks to a
real model.
"""

import os

# Settings are read at import time; configure before importing insights
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "staging")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("BACKFILL_STARTUP_DELAY_SECONDS", "0")

import uuid
from pathlib import Path
from typing import AsyncGenerator, Callable, Optional, Union

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from insights.db.base import Base
from insights.models import (
    Client,
    ContentFeature,
    ContentFeatureStatus,
    MediaFile,
    MediaFileType,
    Review,
    ReviewStatus,
    Submission,
)
from insights.schemas.insights import ThemeInsights
from insights.services.file_storage import LocalFileStorage
from insights.services.media_analyzer import MediaAnalyzer
from insights.services.providers.base import Providers

OWNER_ID = "pro-user-1"


# ================================
# Fake Providers
# ================================

class FakeOcrProvider:
    """
    OCR stand-in keyed by file name.

    Values may be a string, None (failed call) or an exception instance
    (raised).
    """

    def __init__(self, results: Optional[dict] = None, default: Optional[str] = ""):
        self.results = results or {}
        self.default = default
        self.calls: list[Path] = []

    async def extract_text(self, physical_path: Path) -> Optional[str]:
        self.calls.append(Path(physical_path))
        value = self.results.get(Path(physical_path).name, self.default)
        if isinstance(value, BaseException):
            raise value
        return value


class FakeThemeProvider:
    """Theme stand-in keyed by file name; values are ThemeInsights or exceptions."""

    def __init__(self, results: Optional[dict] = None, default: Optional[ThemeInsights] = None):
        self.results = results or {}
        self.default = default or ThemeInsights()
        self.calls: list[Path] = []

    async def extract_themes(self, physical_path: Path) -> ThemeInsights:
        self.calls.append(Path(physical_path))
        value = self.results.get(Path(physical_path).name, self.default)
        if isinstance(value, BaseException):
            raise value
        return value


class FakeTextGenerator:
    """
    Text generation stand-in.

    ``reply`` is either a fixed string or a callable(system, user) -> str.
    An exception instance is raised on every call.
    """

    def __init__(
        self,
        reply: Union[str, Callable[[str, str], str], BaseException] = "",
        configured: bool = True
    ):
        self.reply = reply
        self.configured = configured
        self.calls: list[tuple[str, str]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if isinstance(self.reply, BaseException):
            raise self.reply
        if callable(self.reply):
            return self.reply(system_prompt, user_prompt)
        return self.reply


# ================================
# Database Fixtures
# ================================

@pytest_asyncio.fixture
async def test_engine():
    """
    Fresh in-memory database per test.

    StaticPool keeps the single in-memory connection alive so every session
    in the test sees the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ================================
# Data Factory
# ================================

class DataFactory:
    """Creates committed rows for tests."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def client(self, owner_id: str = OWNER_ID, name: Optional[str] = "Acme Coffee") -> Client:
        client = Client(owner_id=owner_id, name=name, email=f"{uuid.uuid4().hex[:8]}@client.test")
        self.db.add(client)
        await self.db.commit()
        return client

    async def submission(
        self,
        client: Client,
        images: tuple[str, ...] = ("image1.png",),
        videos: tuple[str, ...] = (),
        message: Optional[str] = None,
        captions: Optional[str] = None,
        owner_id: str = OWNER_ID
    ) -> Submission:
        submission = Submission(
            created_by_id=owner_id,
            client_id=client.id,
            message=message,
            captions=captions,
        )
        self.db.add(submission)
        await self.db.flush()

        order = 0
        for name, file_type in [(n, MediaFileType.IMAGE) for n in images] + [(n, MediaFileType.VIDEO) for n in videos]:
            self.db.add(MediaFile(
                submission_id=submission.id,
                file_name=name,
                file_path=f"submissions/{submission.id}/{name}",
                file_type=file_type,
                file_size=1024,
                order=order,
            ))
            order += 1

        await self.db.commit()
        await self.db.refresh(submission, attribute_names=["media_files", "review"])
        return submission

    async def review(
        self,
        submission: Submission,
        status: ReviewStatus,
        comment: Optional[str] = None
    ) -> Review:
        review = Review(submission_id=submission.id, status=status, comment=comment)
        self.db.add(review)
        await self.db.commit()
        return review

    async def feature(
        self,
        submission: Submission,
        status: ContentFeatureStatus = ContentFeatureStatus.COMPLETED,
        tags: tuple[str, ...] = (),
        ocr_text: Optional[str] = None,
        failure_reason: Optional[str] = None,
        last_analyzed_at=None
    ) -> ContentFeature:
        feature = ContentFeature(
            submission_id=submission.id,
            analysis_status=status,
            ocr_text=ocr_text,
            theme_tags_json=ThemeInsights.from_keywords(tags).to_json() if tags else None,
            failure_reason=failure_reason,
            last_analyzed_at=last_analyzed_at,
        )
        self.db.add(feature)
        await self.db.commit()
        return feature


@pytest.fixture
def factory(db_session: AsyncSession) -> DataFactory:
    return DataFactory(db_session)


# ================================
# Provider Fixtures
# ================================

@pytest.fixture
def storage(tmp_path) -> LocalFileStorage:
    return LocalFileStorage(tmp_path)


@pytest.fixture
def fake_ocr() -> FakeOcrProvider:
    return FakeOcrProvider()


@pytest.fixture
def fake_themes() -> FakeThemeProvider:
    return FakeThemeProvider()


@pytest.fixture
def fake_text() -> FakeTextGenerator:
    return FakeTextGenerator()


@pytest.fixture
def analyzer(fake_ocr, fake_themes, storage) -> MediaAnalyzer:
    return MediaAnalyzer(ocr=fake_ocr, themes=fake_themes, storage=storage)


@pytest.fixture
def providers(fake_ocr, fake_themes, fake_text) -> Providers:
    return Providers(ocr=fake_ocr, themes=fake_themes, text=fake_text)


# ================================
# FastAPI Client Fixtures
# ================================

@pytest_asyncio.fixture
async def runtime(session_factory, providers, storage):
    """
    Analysis runtime wired to the test database and fake providers.

    Not started: tests that need the worker start it themselves. Backfill is
    off so only one session touches the shared in-memory connection at a time.
    """
    from insights.core.config import settings
    from insights.workers.runtime import AnalysisRuntime

    rt = AnalysisRuntime(
        session_factory=session_factory,
        providers=providers,
        config=settings.model_copy(update={"BACKFILL_ENABLED": False}),
        storage=storage,
    )
    yield rt
    await rt.stop()


@pytest_asyncio.fixture
async def client(session_factory, runtime) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client for the FastAPI app.

    Overrides the database dependency and installs the test runtime on
    ``app.state`` (the lifespan is not run).

    Usage:
        async def test_something(client: AsyncClient):
            response = await client.get("/api/v1/...", headers={"X-User-Id": OWNER_ID})
    """
    from insights.db.deps import get_db
    from insights.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.runtime = runtime

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.runtime = None


@pytest.fixture
def owner_id() -> str:
    return OWNER_ID


@pytest.fixture
def auth_headers(owner_id) -> dict[str, str]:
    return {"X-User-Id": owner_id}


# ================================
# Pytest Hooks
# ================================

def pytest_addoption(parser):
    """Add custom pytest options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests that call real inference providers"
    )


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires real provider credentials)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is given."""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="needs --run-integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)
