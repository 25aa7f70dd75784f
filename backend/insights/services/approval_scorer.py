"""
Approval Scorer

Estimates how likely a client is to approve a submission.

Scoring:
--------
    score = (client_rate - (1 - global_rate))
          + tag_overlap * TAG_WEIGHT
          + aligned_phrases * ALIGNMENT_WEIGHT
          - risk_phrases * PENALTY_WEIGHT

    probability = sigmoid(clamp(score, -2, 2))

- client_rate / global_rate: approved / reviewed, 0.5 without history
- tag_overlap: this submission's theme tags that also appear on the
  client's previously approved submissions
- aligned / risk phrases: summary phrases (style preferences + recurring
  positives, rejection reasons) sharing a token with the submission's
  tags, message, captions or OCR text

No probability is produced until the submission's analysis is usable
(COMPLETED or NO_SIGNALS).
"""

import logging
import math
import uuid
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from insights.core.config import settings
from insights.core.exceptions import ProviderConfigurationError
from insights.models.insights import ContentFeature, ContentFeatureStatus
from insights.models.submission import Client, Submission
from insights.repositories.content_feature import ContentFeatureRepository
from insights.repositories.review import ReviewRepository
from insights.repositories.submission import SubmissionRepository
from insights.schemas.insights import (
    ApprovalPrediction,
    ApprovalPredictionStatus,
    SummaryPayload,
    theme_tags_from_json,
)
from insights.services.providers.base import TextGenerator
from insights.services.summary_cache import SummaryCache
from insights.services.text_signals import phrase_matches, tokenize_all

logger = logging.getLogger(__name__)

SCORE_BOUND = 2.0
MAX_SIGNALS = 3
NOTES_MAX_LENGTH = 320

NOT_FOUND_MESSAGE = "Client or submission not found."
READY_MESSAGE = "Scored using latest client and submission signals."
LIMITED_SIGNALS_MESSAGE = "Scored with limited signals."

RATIONALE_SYSTEM_PROMPT = (
    "You are an experienced art director for a social media company. You advise "
    "account managers on how likely a client is to approve new creative. "
    "Respond with 2-3 short bullet points (max 20 words each). Keep the tone plain, "
    "avoid jargon like tags or metadata, and reference the client's documented "
    "preferences when it helps."
)


@dataclass
class Readiness:
    is_ready: bool
    status: ApprovalPredictionStatus
    message: str
    limited_signals: bool = False


@dataclass
class SummaryInfluence:
    boost: float = 0.0
    penalty: float = 0.0
    positive_signals: List[str] = field(default_factory=list)
    risk_signals: List[str] = field(default_factory=list)


@dataclass
class ScoreSignals:
    """Everything the rationale is written from."""

    client_name: str
    client_rate: float
    probability: float
    overlap: int
    themes: List[str]
    notes: str
    summary: Optional[SummaryPayload]
    influence: SummaryInfluence


def evaluate_readiness(feature: Optional[ContentFeature]) -> Readiness:
    """Map a submission's analysis state to a prediction status."""
    if feature is None:
        return Readiness(False, ApprovalPredictionStatus.PENDING_SIGNALS, "Waiting for image analysis to complete.")

    status = feature.analysis_status
    if status == ContentFeatureStatus.COMPLETED:
        return Readiness(True, ApprovalPredictionStatus.READY, READY_MESSAGE)
    if status == ContentFeatureStatus.NO_SIGNALS:
        return Readiness(True, ApprovalPredictionStatus.READY, LIMITED_SIGNALS_MESSAGE, limited_signals=True)
    if status == ContentFeatureStatus.PENDING:
        return Readiness(False, ApprovalPredictionStatus.PENDING_SIGNALS, "Image analysis still running for this submission.")
    if status == ContentFeatureStatus.FAILED:
        return Readiness(False, ApprovalPredictionStatus.PENDING_SIGNALS, feature.failure_reason or "Image analysis failed.")
    if status == ContentFeatureStatus.NO_IMAGES:
        return Readiness(False, ApprovalPredictionStatus.MISSING_HISTORY, "Submission has no image files to analyze.")
    return Readiness(False, ApprovalPredictionStatus.PENDING_SIGNALS, "Waiting for analyzable signals.")


def compute_probability(
    client_rate: float,
    global_rate: float,
    overlap: int,
    boost: float = 0.0,
    penalty: float = 0.0,
    tag_weight: Optional[float] = None
) -> float:
    weight = settings.PREDICTOR_TAG_WEIGHT if tag_weight is None else tag_weight
    score = (client_rate - (1 - global_rate)) + overlap * weight + boost - penalty
    score = max(-SCORE_BOUND, min(SCORE_BOUND, score))
    return 1.0 / (1.0 + math.exp(-score))


def summary_influence(summary: Optional[SummaryPayload], terms: Set[str]) -> SummaryInfluence:
    if summary is None or not terms:
        return SummaryInfluence()

    positives = _capture_matches(summary.style_preferences + summary.recurring_positives, terms)
    risks = _capture_matches(summary.rejection_reasons, terms)

    return SummaryInfluence(
        boost=len(positives) * settings.PREDICTOR_SUMMARY_ALIGNMENT_WEIGHT,
        penalty=len(risks) * settings.PREDICTOR_SUMMARY_PENALTY_WEIGHT,
        positive_signals=positives[:MAX_SIGNALS],
        risk_signals=risks[:MAX_SIGNALS],
    )


def _capture_matches(phrases: Iterable[str], terms: Set[str]) -> List[str]:
    return [p.strip() for p in phrases if p and p.strip() and phrase_matches(p, terms)]


def friendly_theme(tag: str) -> str:
    return " ".join(word.capitalize() for word in tag.replace("-", " ").replace("_", " ").split())


def submission_notes(submission: Submission) -> str:
    parts = [text.strip() for text in (submission.message, submission.captions) if text and text.strip()]
    notes = " ".join(parts) or "No additional notes provided."
    if len(notes) > NOTES_MAX_LENGTH:
        return notes[:NOTES_MAX_LENGTH] + "..."
    return notes


def _collapse(items: Optional[Iterable[str]], fallback: str) -> str:
    cleaned = [i.strip() for i in items or [] if i and i.strip()]
    return " | ".join(cleaned) if cleaned else fallback


def build_rationale_prompt(signals: ScoreSignals) -> str:
    summary = signals.summary or SummaryPayload()
    return (
        f"Client Name: {signals.client_name}\n"
        f"Historical Approval Rate: {signals.client_rate:.0%}\n"
        f"Submission Themes: {_collapse(signals.themes, 'No extracted themes')}\n"
        f"Submission Notes: {signals.notes}\n"
        f"Documented Style Preferences: {_collapse(summary.style_preferences, 'No documented style preferences')}\n"
        f"Recurring Positives: {_collapse(summary.recurring_positives, 'No recurring positives yet')}\n"
        f"Rejection Reasons: {_collapse(summary.rejection_reasons, 'No rejection reasons recorded')}\n"
        f"Matched Client Themes Count: {signals.overlap}\n"
        f"Aligned Summary Signals: {_collapse(signals.influence.positive_signals, 'None detected for this submission')}\n"
        f"Potential Risks: {_collapse(signals.influence.risk_signals, 'No specific risks detected')}\n"
        f"Predicted Probability: {signals.probability:.0%}\n"
        "\n"
        'Write the bullets now, starting each line with "- " and never mentioning metadata or scoring formulas.'
    )


def build_fallback_rationale(signals: ScoreSignals) -> str:
    """Deterministic 2-4 bullet rationale from the same signals the prompt uses."""
    summary = signals.summary
    influence = signals.influence

    bullets = [
        f"Approval likelihood is {signals.probability:.0%}, in line with their {signals.client_rate:.0%} history."
    ]

    if signals.overlap > 0:
        bullets.append(f"It mirrors {signals.overlap} themes they have approved recently.")
    elif signals.themes:
        bullets.append(f"Themes in play: {', '.join(signals.themes[:3])}.")

    if influence.positive_signals:
        bullets.append(f"Helps: {'; '.join(influence.positive_signals[:2])}.")
    elif summary is not None and summary.style_preferences:
        bullets.append(f"They respond well to {'; '.join(summary.style_preferences[:2])}.")

    if influence.risk_signals:
        bullets.append(f"Watch-outs: {'; '.join(influence.risk_signals[:2])}.")
    elif summary is not None and summary.rejection_reasons:
        bullets.append(f"Avoid {summary.rejection_reasons[0]}.")

    return "\n".join(f"- {bullet}" for bullet in bullets)


class ApprovalScorer:
    """
    Approval likelihood for a submission.

    Usage:
    ------
    scorer = ApprovalScorer(db, text_generator)
    prediction = await scorer.predict(client_id, submission_id, user_id="pro-123")
    if prediction.status == ApprovalPredictionStatus.READY:
        print(prediction.probability, prediction.rationale)
    """

    def __init__(
        self,
        db: AsyncSession,
        text_generator: TextGenerator,
        summary_cache: Optional[SummaryCache] = None
    ):
        self.db = db
        self.text = text_generator
        self.summary_cache = summary_cache or SummaryCache(db, text_generator)
        self.submissions = SubmissionRepository(db)
        self.features = ContentFeatureRepository(db)
        self.reviews = ReviewRepository(db)

    async def predict(
        self,
        client_id: uuid.UUID,
        submission_id: uuid.UUID,
        user_id: str
    ) -> ApprovalPrediction:
        """
        Predict approval for ``submission_id``.

        Non-ready states are reported through ``status``; the only
        exception raised is ProviderConfigurationError from summary
        generation or rationale generation.
        """
        submission = await self.submissions.get_by_id(submission_id, user_id)
        if submission is None or submission.client_id != client_id:
            logger.warning(f"Prediction requested for unknown submission {submission_id} / client {client_id}")
            return ApprovalPrediction(
                client_id=client_id,
                submission_id=submission_id,
                rationale=f"- {NOT_FOUND_MESSAGE}",
                status=ApprovalPredictionStatus.ERROR,
                status_message=NOT_FOUND_MESSAGE,
            )

        feature = await self.features.get_by_submission_id(submission_id)
        readiness = evaluate_readiness(feature)
        if not readiness.is_ready:
            return ApprovalPrediction(
                client_id=client_id,
                submission_id=submission_id,
                rationale=f"- {readiness.message}",
                status=readiness.status,
                status_message=readiness.message,
            )

        client_counts = await self.reviews.get_client_counts(client_id)
        global_counts = await self.reviews.get_global_counts()
        client_rate = client_counts.approval_rate()
        global_rate = global_counts.approval_rate()

        tags = theme_tags_from_json(feature.theme_tags_json)
        overlap = await self._tag_overlap(client_id, submission_id, tags)

        terms = tokenize_all([*tags, submission.message, submission.captions, feature.ocr_text])
        summary = await self._load_summary(client_id, user_id)
        influence = summary_influence(summary, terms)

        probability = compute_probability(
            client_rate,
            global_rate,
            overlap,
            boost=influence.boost,
            penalty=influence.penalty,
        )

        signals = ScoreSignals(
            client_name=self._client_name(submission.client),
            client_rate=client_rate,
            probability=probability,
            overlap=overlap,
            themes=list(dict.fromkeys(friendly_theme(t) for t in tags if t.strip())),
            notes=submission_notes(submission),
            summary=summary,
            influence=influence,
        )
        rationale = await self._rationale(signals, submission_id)

        logger.info(
            f"Predicted approval {probability:.3f} for submission {submission_id} "
            f"(client_rate={client_rate:.2f}, global_rate={global_rate:.2f}, overlap={overlap})"
        )

        return ApprovalPrediction(
            client_id=client_id,
            submission_id=submission_id,
            probability=probability,
            rationale=rationale,
            status=ApprovalPredictionStatus.READY,
            status_message=readiness.message,
        )

    async def _tag_overlap(self, client_id: uuid.UUID, submission_id: uuid.UUID, tags: List[str]) -> int:
        if not tags:
            return 0
        approved_ids = await self.reviews.approved_submission_ids(client_id, exclude=submission_id)
        approved_features = await self.features.get_by_submission_ids(approved_ids)
        approved_tags = {tag for f in approved_features for tag in theme_tags_from_json(f.theme_tags_json)}
        return sum(1 for tag in tags if tag in approved_tags)

    async def _load_summary(self, client_id: uuid.UUID, user_id: str) -> Optional[SummaryPayload]:
        # Without a text provider a refresh would raise; fall back to whatever is stored
        if not self.text.is_configured:
            return await self.summary_cache.get_cached(client_id)

        response = await self.summary_cache.get_or_refresh(client_id, user_id)
        return response.summary if response is not None else None

    async def _rationale(self, signals: ScoreSignals, submission_id: uuid.UUID) -> str:
        if not self.text.is_configured:
            return build_fallback_rationale(signals)

        try:
            text = await self.text.generate(RATIONALE_SYSTEM_PROMPT, build_rationale_prompt(signals))
        except ProviderConfigurationError:
            raise
        except Exception as e:
            logger.warning(f"Failed to generate rationale for submission {submission_id}: {type(e).__name__}: {e}")
            return build_fallback_rationale(signals)

        if not text or not text.strip():
            return build_fallback_rationale(signals)
        return text.strip()

    @staticmethod
    def _client_name(client: Optional[Client]) -> str:
        if client is None or not client.name:
            return "(unknown)"
        return client.name
