"""
Tests for the feature aggregator state machine

This module tests:
- Status rules (COMPLETED / NO_SIGNALS / NO_IMAGES / FAILED)
- Failure reasons built from error tags
- Idempotent upsert of the feature row
"""

import json

import pytest
from sqlalchemy import func, select

from insights.models import ContentFeature, ContentFeatureStatus
from insights.schemas.insights import ThemeInsights, theme_tags_from_json
from insights.services.feature_aggregator import (
    FAILED_GENERIC_REASON,
    FAILED_PREFIX,
    NO_IMAGES_REASON,
    NO_SIGNALS_REASON,
    FeatureAggregator,
    resolve_outcome,
)
from insights.services.media_analyzer import MediaAnalysisResult, MediaAnalyzer


# ========================================
# resolve_outcome
# ========================================

def test_outcome_without_images():
    """Test the NO_IMAGES rule."""
    outcome = resolve_outcome([], has_images=False)

    assert outcome.status == ContentFeatureStatus.NO_IMAGES
    assert outcome.failure_reason == NO_IMAGES_REASON
    assert not outcome.signals_extracted


def test_outcome_completed_from_ocr_only():
    """Test that OCR text alone is enough for COMPLETED."""
    results = [MediaAnalysisResult(ocr_text="Hello", ocr_succeeded=True, errors=["themes:TimeoutError"])]
    outcome = resolve_outcome(results, has_images=True)

    assert outcome.status == ContentFeatureStatus.COMPLETED
    assert outcome.ocr_text == "Hello"
    assert outcome.theme_tags_json is None
    assert outcome.failure_reason is None


def test_outcome_completed_from_themes_only():
    """Test that theme data alone is enough for COMPLETED."""
    results = [MediaAnalysisResult(themes=ThemeInsights(colors=["red"]), theme_succeeded=True)]
    outcome = resolve_outcome(results, has_images=True)

    assert outcome.status == ContentFeatureStatus.COMPLETED
    assert outcome.ocr_text is None
    assert theme_tags_from_json(outcome.theme_tags_json) == ["red"]


def test_outcome_keyword_answers_are_stored_as_theme_object():
    """Test that keyword-only answers persist as a ThemeInsights object, never a bare array."""
    results = [
        MediaAnalysisResult(themes=ThemeInsights.from_keywords(["Sale", "bold"]), theme_succeeded=True),
        MediaAnalysisResult(themes=ThemeInsights(), theme_succeeded=True),
    ]
    outcome = resolve_outcome(results, has_images=True)

    stored = json.loads(outcome.theme_tags_json)
    assert isinstance(stored, dict)
    assert stored["keywords"] == ["sale", "bold"]


def test_outcome_without_theme_data_stores_no_tags():
    """Test that empty themes leave theme_tags_json unset."""
    results = [MediaAnalysisResult(ocr_text="", ocr_succeeded=True, theme_succeeded=True)]
    outcome = resolve_outcome(results, has_images=True)

    assert outcome.status == ContentFeatureStatus.NO_SIGNALS
    assert outcome.theme_tags_json is None


def test_outcome_joins_ocr_text_with_newlines():
    """Test OCR aggregation across images."""
    results = [
        MediaAnalysisResult(ocr_text="First", ocr_succeeded=True),
        MediaAnalysisResult(ocr_text=None, ocr_succeeded=True),
        MediaAnalysisResult(ocr_text="Second", ocr_succeeded=True),
    ]

    assert resolve_outcome(results, has_images=True).ocr_text == "First\nSecond"


def test_outcome_no_signals_when_calls_worked():
    """Test NO_SIGNALS: providers answered but found nothing."""
    results = [MediaAnalysisResult(ocr_succeeded=True, theme_succeeded=True)]
    outcome = resolve_outcome(results, has_images=True)

    assert outcome.status == ContentFeatureStatus.NO_SIGNALS
    assert outcome.failure_reason == NO_SIGNALS_REASON
    assert outcome.signals_extracted


def test_outcome_failed_lists_distinct_errors():
    """Test FAILED: every call failed; reason lists distinct error tags."""
    results = [
        MediaAnalysisResult(errors=["ocr:TimeoutError", "themes:TimeoutError"]),
        MediaAnalysisResult(errors=["ocr:TimeoutError", "themes:HTTPStatusError"]),
        MediaAnalysisResult(errors=["ocr:NoResult", "themes:ValueError"]),
    ]
    outcome = resolve_outcome(results, has_images=True)

    assert outcome.status == ContentFeatureStatus.FAILED
    assert outcome.failure_reason == (
        FAILED_PREFIX + "ocr:TimeoutError, themes:TimeoutError, themes:HTTPStatusError, ocr:NoResult"
    )
    assert not outcome.signals_extracted


def test_outcome_failed_generic_reason():
    """Test FAILED without any recorded error tags."""
    outcome = resolve_outcome([MediaAnalysisResult()], has_images=True)

    assert outcome.status == ContentFeatureStatus.FAILED
    assert outcome.failure_reason == FAILED_GENERIC_REASON


# ========================================
# FeatureAggregator.analyze
# ========================================

@pytest.mark.asyncio
async def test_sale_banner_completes_with_sorted_tags(db_session, factory, analyzer, fake_ocr, fake_themes):
    """Test one image with text and themes."""
    client = await factory.client()
    submission = await factory.submission(client, images=("image1.png",))
    fake_ocr.results["image1.png"] = "SALE 50%"
    fake_themes.results["image1.png"] = ThemeInsights(subjects=["banner"], colors=["red"], keywords=["sale"])

    feature = await FeatureAggregator(db_session, analyzer).analyze(submission)

    assert feature.analysis_status == ContentFeatureStatus.COMPLETED
    assert feature.ocr_text == "SALE 50%"
    assert theme_tags_from_json(feature.theme_tags_json) == ["banner", "red", "sale"]
    assert feature.failure_reason is None
    assert feature.extracted_at is not None
    assert feature.last_analyzed_at is not None


@pytest.mark.asyncio
async def test_double_timeout_fails_without_extracted_at(db_session, factory, analyzer, fake_ocr, fake_themes):
    """Test one image where both provider calls time out."""
    client = await factory.client()
    submission = await factory.submission(client, images=("image1.png",))
    fake_ocr.results["image1.png"] = TimeoutError()
    fake_themes.results["image1.png"] = TimeoutError()

    feature = await FeatureAggregator(db_session, analyzer).analyze(submission)

    assert feature.analysis_status == ContentFeatureStatus.FAILED
    assert "ocr:TimeoutError" in feature.failure_reason
    assert "themes:TimeoutError" in feature.failure_reason
    assert feature.extracted_at is None
    assert feature.last_analyzed_at is not None


@pytest.mark.asyncio
async def test_video_only_submission_is_no_images(db_session, factory, analyzer, fake_ocr):
    """Test that a submission without images is never sent to providers."""
    client = await factory.client()
    submission = await factory.submission(client, images=(), videos=("clip.mp4",))

    feature = await FeatureAggregator(db_session, analyzer).analyze(submission)

    assert feature.analysis_status == ContentFeatureStatus.NO_IMAGES
    assert feature.failure_reason == NO_IMAGES_REASON
    assert feature.extracted_at is None
    assert fake_ocr.calls == []


@pytest.mark.asyncio
async def test_blank_image_is_no_signals(db_session, factory, analyzer):
    """Test an image with nothing to extract."""
    client = await factory.client()
    submission = await factory.submission(client, images=("blank.png",))

    feature = await FeatureAggregator(db_session, analyzer).analyze(submission)

    assert feature.analysis_status == ContentFeatureStatus.NO_SIGNALS
    assert feature.extracted_at is not None
    assert feature.theme_tags_json is None


@pytest.mark.asyncio
async def test_partial_failure_across_images_still_completes(db_session, factory, analyzer, fake_ocr, fake_themes):
    """Test that one good image is enough."""
    client = await factory.client()
    submission = await factory.submission(client, images=("good.png", "bad.png"))
    fake_ocr.results = {"good.png": "Open today", "bad.png": ConnectionError()}
    fake_themes.results = {"bad.png": ConnectionError()}

    feature = await FeatureAggregator(db_session, analyzer).analyze(submission)

    assert feature.analysis_status == ContentFeatureStatus.COMPLETED
    assert feature.ocr_text == "Open today"


@pytest.mark.asyncio
async def test_reanalysis_updates_the_same_row(db_session, factory, analyzer, fake_ocr, fake_themes):
    """Test that repeated analysis upserts instead of inserting."""
    client = await factory.client()
    submission = await factory.submission(client, images=("image1.png",))
    fake_ocr.results["image1.png"] = TimeoutError()
    fake_themes.results["image1.png"] = TimeoutError()

    aggregator = FeatureAggregator(db_session, analyzer)
    first = await aggregator.analyze(submission)
    assert first.analysis_status == ContentFeatureStatus.FAILED

    fake_ocr.results["image1.png"] = "Back in stock"
    fake_themes.results["image1.png"] = ThemeInsights(keywords=["restock"])
    second = await aggregator.analyze(submission)

    assert second.id == first.id
    assert second.analysis_status == ContentFeatureStatus.COMPLETED
    assert second.failure_reason is None

    count = await db_session.scalar(
        select(func.count(ContentFeature.id)).where(ContentFeature.submission_id == submission.id)
    )
    assert count == 1


@pytest.mark.asyncio
async def test_keyword_only_results_persist_structured_json(db_session, factory, analyzer, fake_themes):
    """Test that stored theme JSON is the structured shape."""
    client = await factory.client()
    submission = await factory.submission(client, images=("image1.png",))
    fake_themes.results["image1.png"] = ThemeInsights.from_keywords(["Summer", "sale"])

    feature = await FeatureAggregator(db_session, analyzer).analyze(submission)
    stored = json.loads(feature.theme_tags_json)

    assert stored["keywords"] == ["summer", "sale"]


class TransactionCheckingOcr:
    """Records whether the session had an open transaction during the call."""

    def __init__(self, db):
        self.db = db
        self.in_transaction: list[bool] = []

    async def extract_text(self, physical_path):
        self.in_transaction.append(self.db.in_transaction())
        return "Open today"


@pytest.mark.asyncio
async def test_pending_mark_is_committed_before_provider_calls(db_session, factory, fake_themes, storage):
    """Test that no transaction is held while the providers run."""
    client = await factory.client()
    submission = await factory.submission(client, images=("image1.png",))
    ocr = TransactionCheckingOcr(db_session)
    analyzer = MediaAnalyzer(ocr=ocr, themes=fake_themes, storage=storage)

    feature = await FeatureAggregator(db_session, analyzer).analyze(submission)

    assert ocr.in_transaction == [False]
    assert feature.analysis_status == ContentFeatureStatus.COMPLETED
