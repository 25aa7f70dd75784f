"""
Client Summary Cache

Builds and caches, per client, what their review history says about their
taste:
- style preferences
- recurring positives
- common rejection reasons

The cache key is the client's (approved, rejected) review count pair. A
cached summary is reused for as long as both counts are unchanged; any new
review invalidates it. There is no time-based expiry.

Generation needs analyzed history: when nothing has been reviewed, or none
of the reviewed submissions has finished analysis, the summary is stored
with its coverage status and empty lists, and the model is not called.
"""

import asyncio
import logging
import uuid
from collections import Counter
from typing import List, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from insights.core.config import settings
from insights.core.exceptions import ProviderConfigurationError
from insights.models.insights import ClientSummary, ContentFeature, ContentFeatureStatus
from insights.models.submission import Client, Review, ReviewStatus
from insights.repositories.content_feature import ContentFeatureRepository
from insights.repositories.review import ClientSummaryRepository, ReviewRepository
from insights.repositories.submission import ClientRepository
from insights.schemas.insights import (
    ClientSummaryResponse,
    SummaryDataStatus,
    SummaryPayload,
    parse_string_list,
    theme_tags_from_json,
)
from insights.services.providers.base import TextGenerator

logger = logging.getLogger(__name__)

MAX_ITEMS_PER_LIST = 5
MAX_COMMENTS_IN_PROMPT = 10

SUMMARY_SYSTEM_PROMPT = (
    "You analyze a client's creative review history for a social media agency. "
    "Respond with a JSON array of 3-5 short strings (max 8 words each). "
    "No commentary, no markdown."
)

SUMMARY_TASKS = {
    "style_preferences": "List the visual and stylistic preferences this client consistently approves.",
    "recurring_positives": "List the recurring qualities reviewers praise in approved work.",
    "rejection_reasons": "List the most common reasons this client rejects work.",
}


class SummaryCache:
    """
    Count-keyed client summary cache.

    Usage:
    ------
    cache = SummaryCache(db, text_generator)
    summary = await cache.get_or_refresh(client_id, user_id="pro-123")
    if summary is None:
        ...  # client not found / not owned by user
    """

    def __init__(
        self,
        db: AsyncSession,
        text_generator: TextGenerator,
        always_refresh: Optional[bool] = None
    ):
        self.db = db
        self.text = text_generator
        self.always_refresh = settings.SUMMARY_ALWAYS_REFRESH if always_refresh is None else always_refresh
        self.clients = ClientRepository(db)
        self.reviews = ReviewRepository(db)
        self.features = ContentFeatureRepository(db)
        self.summaries = ClientSummaryRepository(db)

    async def get_or_refresh(
        self,
        client_id: uuid.UUID,
        user_id: Optional[str] = None
    ) -> Optional[ClientSummaryResponse]:
        """
        Return the client's summary, recomputing it if review counts changed.

        Returns:
            ClientSummaryResponse, or None if the client does not exist (or
            is not owned by ``user_id`` when given)

        Raises:
            ProviderConfigurationError: generation was needed but the text
                provider is not configured
        """
        client = await self.clients.get_by_id(client_id, user_id)
        if client is None:
            logger.warning(f"Client {client_id} not found for summary")
            return None

        counts = await self.reviews.get_client_counts(client_id)
        existing = await self.summaries.get_by_client_id(client_id)

        if existing is not None and not self.always_refresh and existing.matches_counts(counts.approved, counts.rejected):
            cached = self._load_payload(existing)
            if cached is not None:
                logger.debug(f"Summary cache hit for client {client_id} ({counts.approved}:{counts.rejected})")
                return self._to_response(existing, cached)

        logger.info(f"Refreshing summary for client {client_id} ({counts.approved}:{counts.rejected})")
        payload = await self._build_payload(client)

        row = await self.summaries.upsert(
            client_id,
            payload.model_dump_json(),
            approved_count=counts.approved,
            rejected_count=counts.rejected,
        )
        await self.db.commit()
        return self._to_response(row, payload)

    async def get_cached(self, client_id: uuid.UUID) -> Optional[SummaryPayload]:
        """Last stored payload regardless of counts, without generating anything."""
        existing = await self.summaries.get_by_client_id(client_id)
        if existing is None:
            return None
        return self._load_payload(existing)

    # ========================================
    # Building
    # ========================================

    async def _build_payload(self, client: Client) -> SummaryPayload:
        reviews = await self.reviews.list_for_client(client.id)
        approved_ids = [r.submission_id for r in reviews if r.status == ReviewStatus.APPROVED]

        features = await self.features.get_by_submission_ids(r.submission_id for r in reviews)
        by_submission = {f.submission_id: f for f in features}

        usable = 0
        not_ready = 0
        for review in reviews:
            feature = by_submission.get(review.submission_id)
            if feature is None or feature.analysis_status in (ContentFeatureStatus.PENDING, ContentFeatureStatus.FAILED):
                not_ready += 1
            elif feature.analysis_status.is_usable:
                usable += 1

        data_status = assess_coverage(len(reviews), usable, not_ready)
        top_tags = self._top_tags([by_submission[i] for i in approved_ids if i in by_submission])
        approved_comments = _comments(reviews, ReviewStatus.APPROVED)
        rejected_comments = _comments(reviews, ReviewStatus.REJECTED)

        payload = SummaryPayload(
            data_status=data_status,
            missing_signals=_missing_signals(reviews, not_ready, top_tags, approved_comments, rejected_comments),
            pending_analysis_count=not_ready,
            feature_coverage_count=usable,
            top_tags=top_tags,
        )

        if data_status in (SummaryDataStatus.INSUFFICIENT_HISTORY, SummaryDataStatus.PENDING_ANALYSIS):
            logger.info(f"Skipping summary generation for client {client.id}: {data_status.value}")
            return payload

        user_prompt = self._build_context(client, reviews, top_tags, approved_comments, rejected_comments)
        # All three run to completion; a configuration error is re-raised afterwards
        results = await asyncio.gather(
            self._generate_list("style_preferences", user_prompt, client.id),
            self._generate_list("recurring_positives", user_prompt, client.id),
            self._generate_list("rejection_reasons", user_prompt, client.id),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        style, positives, rejections = results

        payload.style_preferences = style
        payload.recurring_positives = positives
        payload.rejection_reasons = rejections
        return payload

    async def _generate_list(self, kind: str, context: str, client_id: uuid.UUID) -> List[str]:
        prompt = f"{context}\nTask: {SUMMARY_TASKS[kind]}"
        try:
            raw = await self.text.generate(SUMMARY_SYSTEM_PROMPT, prompt)
        except ProviderConfigurationError:
            raise
        except Exception as e:
            logger.warning(f"Summary generation '{kind}' failed for client {client_id}: {type(e).__name__}: {e}")
            return []

        items = parse_string_list(raw)
        if not items and raw:
            logger.warning(f"Summary generation '{kind}' for client {client_id} returned no usable list")
        return items[:MAX_ITEMS_PER_LIST]

    def _top_tags(self, approved_features: Sequence[ContentFeature]) -> List[str]:
        counter: Counter[str] = Counter()
        for feature in approved_features:
            counter.update(theme_tags_from_json(feature.theme_tags_json))
        return [tag for tag, _ in counter.most_common(settings.SUMMARY_TOP_TAGS)]

    @staticmethod
    def _build_context(
        client: Client,
        reviews: Sequence[Review],
        top_tags: List[str],
        approved_comments: List[str],
        rejected_comments: List[str]
    ) -> str:
        approved = sum(1 for r in reviews if r.status == ReviewStatus.APPROVED)
        rejected = len(reviews) - approved
        return (
            f"Client Name: {client.display_name}\n"
            f"Approved Count: {approved}\n"
            f"Rejected Count: {rejected}\n"
            f"Top Approved Themes: {', '.join(top_tags) or 'none recorded'}\n"
            f"Approved Comments: {' || '.join(approved_comments[:MAX_COMMENTS_IN_PROMPT]) or 'none'}\n"
            f"Rejected Comments: {' || '.join(rejected_comments[:MAX_COMMENTS_IN_PROMPT]) or 'none'}"
        )

    # ========================================
    # Helpers
    # ========================================

    @staticmethod
    def _load_payload(row: ClientSummary) -> Optional[SummaryPayload]:
        try:
            return SummaryPayload.model_validate_json(row.payload)
        except ValidationError as e:
            logger.warning(f"Cached summary for client {row.client_id} is unreadable, rebuilding: {e}")
            return None

    @staticmethod
    def _to_response(row: ClientSummary, payload: SummaryPayload) -> ClientSummaryResponse:
        return ClientSummaryResponse(
            client_id=row.client_id,
            approved_count=row.approved_count,
            rejected_count=row.rejected_count,
            generated_at=row.updated_at,
            summary=payload,
        )


def assess_coverage(review_count: int, usable: int, not_ready: int) -> SummaryDataStatus:
    """
    Coverage of a client's reviewed submissions by usable analysis.

    ``not_ready`` counts reviewed submissions with no feature row or a
    PENDING / FAILED one.
    """
    if review_count == 0:
        return SummaryDataStatus.INSUFFICIENT_HISTORY
    if usable == 0 and not_ready > 0:
        return SummaryDataStatus.PENDING_ANALYSIS
    if usable > 0 and not_ready > 0:
        return SummaryDataStatus.PARTIAL
    return SummaryDataStatus.READY


def _comments(reviews: Sequence[Review], status: ReviewStatus) -> List[str]:
    return [r.comment.strip() for r in reviews if r.status == status and r.comment and r.comment.strip()]


def _missing_signals(
    reviews: Sequence[Review],
    not_ready: int,
    top_tags: List[str],
    approved_comments: List[str],
    rejected_comments: List[str]
) -> List[str]:
    missing = []
    if not reviews:
        missing.append("No reviewed submissions yet.")
        return missing

    if not any(r.status == ReviewStatus.APPROVED for r in reviews):
        missing.append("No approved submissions yet.")
    elif not top_tags:
        missing.append("No visual themes extracted from approved submissions.")
    if not any(r.status == ReviewStatus.REJECTED for r in reviews):
        missing.append("No rejected submissions yet.")
    if not approved_comments and not rejected_comments:
        missing.append("No reviewer comments recorded.")
    if not_ready:
        missing.append(f"{not_ready} reviewed submission(s) still awaiting image analysis.")
    return missing
