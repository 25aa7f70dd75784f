"""
Pydantic schemas for the content-intelligence pipeline

This module defines:
- ThemeInsights: categorized image tags persisted inside ContentFeature
- SummaryPayload: cached per-client review summary
- Request/response models for the insights endpoints

Model output is parsed with strict fallbacks into these shapes; nothing is
ever deserialized into an open-ended dict.
"""

import enum
import json
import logging
import re
import uuid
from datetime import datetime
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

MAX_TAG_LENGTH = 50

_LOOSE_SPLIT_RE = re.compile(r"[,\n\r;]")


# ========================================
# Parsing helpers
# ========================================

def strip_code_fences(raw: str) -> str:
    """
    Remove a surrounding markdown code fence (```json ... ```), if any.

    Models regularly wrap JSON answers in fences even when told not to. A
    truncated answer may have lost its closing fence; the opening line is
    dropped regardless.
    """
    text = (raw or "").strip()
    if not text.startswith("```"):
        return text

    _, newline, body = text.partition("\n")
    if not newline:
        # Single line such as ```["red"]```
        body = text[3:]
    body = body.rstrip()
    if body.endswith("```"):
        body = body[:-3]
    return body.strip()


def normalize_tags(values: Optional[Iterable[Any]]) -> List[str]:
    """Trim + lowercase, drop blanks and non-strings, dedupe keeping first occurrence."""
    result: List[str] = []
    seen: set[str] = set()
    for value in values or []:
        if not isinstance(value, str):
            continue
        tag = value.strip().lower()
        if not tag or tag in seen:
            continue
        seen.add(tag)
        result.append(tag)
    return result


def parse_string_list(raw: Optional[str]) -> List[str]:
    """
    Parse a model answer expected to be a JSON array of short strings.

    Tolerates code fences. Returns [] (with a warning) on anything that is
    not a JSON array; non-string items are skipped.
    """
    if not raw or not raw.strip():
        return []

    text = strip_code_fences(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        logger.warning(f"Could not parse generated list as JSON: '{text[:80]}'")
        return []

    if not isinstance(data, list):
        logger.warning(f"Generated list is not a JSON array (got {type(data).__name__})")
        return []

    return [item.strip() for item in data if isinstance(item, str) and item.strip()]


def _coerce_tag_list(v: Any) -> List[str]:
    if v is None:
        return []
    if isinstance(v, str):
        v = [v]
    if not isinstance(v, (list, tuple, set)):
        raise ValueError("expected a list of strings")
    return normalize_tags(v)


# ========================================
# ThemeInsights
# ========================================

class ThemeInsights(BaseModel):
    """
    Categorized semantic tags describing one image (or a whole submission
    after combining).

    Every category is normalized to trimmed lowercase strings with
    case-insensitive dedup. Serialized with camelCase keys:

        {"subjects": [...], "vibes": [...], "notableElements": [...],
         "colors": [...], "keywords": [...]}
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    subjects: List[str] = Field(default_factory=list)
    vibes: List[str] = Field(default_factory=list)
    notable_elements: List[str] = Field(default_factory=list, alias="notableElements")
    colors: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)

    @field_validator("subjects", "vibes", "notable_elements", "colors", "keywords", mode="before")
    @classmethod
    def _normalize(cls, v: Any) -> List[str]:
        return _coerce_tag_list(v)

    def _categories(self) -> List[List[str]]:
        return [self.subjects, self.vibes, self.notable_elements, self.colors, self.keywords]

    @property
    def has_any_data(self) -> bool:
        return any(self._categories())

    @classmethod
    def empty(cls) -> "ThemeInsights":
        return cls()

    @classmethod
    def from_keywords(cls, tags: Iterable[str]) -> "ThemeInsights":
        """Wrap a flat tag list (older providers, legacy rows) as keywords."""
        return cls(keywords=list(tags))

    @classmethod
    def combine(cls, items: Iterable["ThemeInsights"]) -> "ThemeInsights":
        """Union every category across items (case-insensitive dedup)."""
        merged: dict[str, List[str]] = {
            "subjects": [],
            "vibes": [],
            "notable_elements": [],
            "colors": [],
            "keywords": [],
        }
        for item in items:
            if item is None:
                continue
            for name in merged:
                merged[name].extend(getattr(item, name))
        return cls(**merged)

    def flatten_tags(self) -> List[str]:
        """
        All categories as one sorted, deduplicated, lowercase tag list.

        Tags longer than MAX_TAG_LENGTH are truncated. The result does not
        depend on category order or on the order items were combined in.
        """
        tags = {
            tag[:MAX_TAG_LENGTH]
            for category in self._categories()
            for tag in category
        }
        return sorted(tag for tag in tags if tag)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, text: Optional[str]) -> "ThemeInsights":
        """
        Parse a persisted or generated theme payload.

        Accepted shapes, in order:
        1. JSON object with the known category keys
        2. legacy JSON array of strings -> keywords
        3. JSON object with a "tags" array -> keywords
        4. comma / newline / semicolon separated plain text -> keywords

        Never raises; unusable input yields an empty ThemeInsights.
        """
        if not text or not text.strip():
            return cls()

        cleaned = strip_code_fences(text)
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError:
            return cls.from_keywords(_LOOSE_SPLIT_RE.split(cleaned))

        if isinstance(data, list):
            return cls.from_keywords(item for item in data if isinstance(item, str))

        if isinstance(data, dict):
            known = {"subjects", "vibes", "notableElements", "notable_elements", "colors", "keywords"}
            if known & data.keys():
                return cls._from_categories(data)
            tags = data.get("tags")
            if isinstance(tags, list):
                return cls.from_keywords(item for item in tags if isinstance(item, str))
            return cls()

        # Bare JSON scalar such as "red" or 42
        if isinstance(data, str):
            return cls.from_keywords(_LOOSE_SPLIT_RE.split(data))
        return cls()

    @classmethod
    def _from_categories(cls, data: dict) -> "ThemeInsights":
        # Each category stands alone: one malformed value drops only itself
        values: dict[str, List[str]] = {}
        for name, field in cls.model_fields.items():
            raw = data.get(field.alias) if field.alias in data else data.get(name)
            try:
                values[name] = _coerce_tag_list(raw)
            except ValueError:
                logger.warning(f"Dropping unusable theme category '{name}' ({type(raw).__name__})")
        return cls(**values)

    @classmethod
    def from_model_response(cls, raw: Optional[str]) -> "ThemeInsights":
        return cls.from_json(raw)


def theme_tags_from_json(text: Optional[str]) -> List[str]:
    """Flattened tags of a stored ``theme_tags_json`` value."""
    return ThemeInsights.from_json(text).flatten_tags()


# ========================================
# Summary Schemas
# ========================================

class SummaryDataStatus(str, enum.Enum):
    """How much analyzed history backs a client summary."""

    PENDING_ANALYSIS = "pending_analysis"
    INSUFFICIENT_HISTORY = "insufficient_history"
    READY = "ready"
    PARTIAL = "partial"


class SummaryPayload(BaseModel):
    """Cached content of a ClientSummary row."""

    style_preferences: List[str] = Field(default_factory=list)
    recurring_positives: List[str] = Field(default_factory=list)
    rejection_reasons: List[str] = Field(default_factory=list)
    data_status: SummaryDataStatus = SummaryDataStatus.PENDING_ANALYSIS
    missing_signals: List[str] = Field(default_factory=list)
    pending_analysis_count: int = 0
    feature_coverage_count: int = 0
    top_tags: List[str] = Field(default_factory=list)


class ClientSummaryResponse(BaseModel):
    """Response schema for a client summary."""

    client_id: uuid.UUID = Field(description="Client ID")
    approved_count: int = Field(description="Approved reviews backing this summary")
    rejected_count: int = Field(description="Rejected reviews backing this summary")
    generated_at: datetime = Field(description="When the cached summary was last computed")
    summary: SummaryPayload


# ========================================
# Approval Prediction Schemas
# ========================================

class ApprovalPredictionStatus(str, enum.Enum):
    PENDING_SIGNALS = "pending_signals"
    READY = "ready"
    MISSING_HISTORY = "missing_history"
    ERROR = "error"


class ApprovalPredictionRequest(BaseModel):
    """Request schema for an approval prediction."""

    client_id: uuid.UUID
    submission_id: uuid.UUID


class ApprovalPrediction(BaseModel):
    """
    Approval likelihood for one submission.

    ``probability`` is None unless ``status`` is READY.
    """

    client_id: uuid.UUID
    submission_id: uuid.UUID
    probability: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    rationale: str = ""
    status: ApprovalPredictionStatus = ApprovalPredictionStatus.PENDING_SIGNALS
    status_message: str = ""


# ========================================
# Content Feature Schemas
# ========================================

class ContentFeatureResponse(BaseModel):
    """Response schema for a submission's analysis state."""

    model_config = ConfigDict(from_attributes=True)

    submission_id: uuid.UUID
    analysis_status: str
    readiness: str = Field(description="Human readable readiness label")
    ocr_text: Optional[str] = None
    themes: ThemeInsights = Field(default_factory=ThemeInsights)
    tags: List[str] = Field(default_factory=list)
    failure_reason: Optional[str] = None
    last_analyzed_at: Optional[datetime] = None
    extracted_at: Optional[datetime] = None


class ReanalyzeResponse(BaseModel):
    submission_id: uuid.UUID
    queued: bool
    message: str
