"""
Anthropic Claude adapters

This module implements all three provider contracts on the Claude Messages
API:
- AnthropicOcrProvider: reading-order text of an image
- AnthropicThemeProvider: structured theme tags (with a keyword fallback)
- AnthropicTextGenerator: short text generation for summaries/rationales

Images are sent inline as base64 content blocks. Vision calls raise on any
failure so the media analyzer can tag it; the text generator degrades to an
empty string instead.
"""

import asyncio
import base64
import logging
import mimetypes
import re
from pathlib import Path
from typing import List, Optional

from anthropic import APIError, AsyncAnthropic

from insights.core.config import settings
from insights.core.exceptions import ProviderConfigurationError, ProviderResponseError
from insights.schemas.insights import MAX_TAG_LENGTH, ThemeInsights

logger = logging.getLogger(__name__)

PROVIDER_NAME = "anthropic"

OCR_PROMPT = (
    "You are an OCR engine. Return ONLY all visible text from the image in "
    "reading order. No commentary."
)

STRUCTURED_THEME_PROMPT = (
    "You are a creative director describing marketing visuals. Return STRICT "
    "JSON with keys subjects, vibes, notableElements, colors, and keywords "
    "(each an array of <=5 short lowercase phrases). No commentary."
)

FALLBACK_THEME_PROMPT = (
    "List 5-10 concise lowercase style/theme keywords for this image. "
    "Return a comma-separated list only."
)

_FALLBACK_SPLIT_RE = re.compile(r"[,\n\r;|/]")

_SUPPORTED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}


def parse_fallback_tags(text: Optional[str]) -> List[str]:
    """Split a comma-ish keyword answer into tags of 2..50 characters."""
    if not text or not text.strip():
        return []
    tags = []
    for part in _FALLBACK_SPLIT_RE.split(text):
        tag = part.strip().lower()
        if 1 < len(tag) <= MAX_TAG_LENGTH and tag not in tags:
            tags.append(tag)
    return tags


def _create_client(api_key: Optional[str]) -> Optional[AsyncAnthropic]:
    if not api_key:
        return None
    return AsyncAnthropic(
        api_key=api_key,
        timeout=settings.AI_REQUEST_TIMEOUT_SECONDS,
        max_retries=settings.AI_MAX_RETRIES,
    )


class AnthropicVisionClient:
    """
    Shared image-in / text-out call used by the OCR and theme adapters.

    Usage:
    ------
    vision = AnthropicVisionClient(api_key=settings.ANTHROPIC_API_KEY)
    text = await vision.ask(Path("/uploads/a.png"), OCR_PROMPT)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        client: Optional[AsyncAnthropic] = None
    ):
        self.api_key = api_key or settings.ANTHROPIC_API_KEY
        self.model = model or settings.ANTHROPIC_VISION_MODEL
        self.max_tokens = max_tokens or settings.ANTHROPIC_MAX_TOKENS
        self.client = client or _create_client(self.api_key)

        logger.info(f"AnthropicVisionClient initialized with model={self.model}, configured={self.client is not None}")

    async def ask(self, physical_path: Path, prompt: str) -> str:
        """
        Send one image plus an instruction and return the text answer.

        Raises:
            ProviderConfigurationError: no API key
            ProviderResponseError: empty or non-text answer
            FileNotFoundError / anthropic.APIError: passed through
        """
        if self.client is None:
            raise ProviderConfigurationError(PROVIDER_NAME, "ANTHROPIC_API_KEY is not set")

        media_type = self._media_type(physical_path)
        image_bytes = await asyncio.to_thread(Path(physical_path).read_bytes)
        encoded = base64.standard_b64encode(image_bytes).decode("ascii")

        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{
                "role": "user",
                "content": [
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": media_type,
                            "data": encoded,
                        },
                    },
                    {"type": "text", "text": prompt},
                ],
            }],
        )

        text_blocks = [block.text for block in response.content if getattr(block, "type", None) == "text"]
        if not text_blocks:
            raise ProviderResponseError(PROVIDER_NAME, "Vision response contained no text block")
        return "".join(text_blocks)

    @staticmethod
    def _media_type(physical_path: Path) -> str:
        media_type, _ = mimetypes.guess_type(str(physical_path))
        if media_type not in _SUPPORTED_IMAGE_TYPES:
            raise ProviderResponseError(
                PROVIDER_NAME,
                f"Unsupported image type for {Path(physical_path).name}: {media_type}"
            )
        return media_type


class AnthropicOcrProvider:
    """OCR over Claude vision."""

    def __init__(self, vision: AnthropicVisionClient):
        self.vision = vision

    async def extract_text(self, physical_path: Path) -> Optional[str]:
        text = await self.vision.ask(physical_path, OCR_PROMPT)
        return text.strip()


class AnthropicThemeProvider:
    """
    Theme extraction over Claude vision.

    Asks for structured JSON first. If that parses to nothing, asks again for
    a plain keyword list and wraps it as keywords.
    """

    def __init__(self, vision: AnthropicVisionClient):
        self.vision = vision

    async def extract_themes(self, physical_path: Path) -> ThemeInsights:
        structured = await self.vision.ask(physical_path, STRUCTURED_THEME_PROMPT)
        insights = ThemeInsights.from_model_response(structured)
        if insights.has_any_data:
            return insights

        logger.warning(f"Structured theme extraction returned empty for {physical_path}; retrying with fallback prompt")
        fallback = await self.vision.ask(physical_path, FALLBACK_THEME_PROMPT)
        tags = parse_fallback_tags(fallback)
        if not tags:
            logger.warning(f"Fallback theme extraction also returned empty for {physical_path}: '{fallback[:200]}'")
        return ThemeInsights.from_keywords(tags)


class AnthropicTextGenerator:
    """
    Short text generation using Claude.

    Usage:
    ------
    generator = AnthropicTextGenerator()
    if generator.is_configured:
        text = await generator.generate(system_prompt, user_prompt)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: float = 0.3,
        client: Optional[AsyncAnthropic] = None
    ):
        self.api_key = api_key or settings.ANTHROPIC_API_KEY
        self.model = model or settings.ANTHROPIC_TEXT_MODEL
        self.max_tokens = max_tokens or settings.ANTHROPIC_MAX_TOKENS
        self.temperature = temperature
        self.client = client or _create_client(self.api_key)

        logger.info(f"AnthropicTextGenerator initialized with model={self.model}, configured={self.is_configured}")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        """
        Generate a short completion.

        Returns:
            Stripped answer text, or "" when the provider call fails

        Raises:
            ProviderConfigurationError: no API key configured
        """
        if self.client is None:
            raise ProviderConfigurationError(PROVIDER_NAME, "ANTHROPIC_API_KEY is not set")

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}]
            )
        except APIError as e:
            logger.error(f"Text generation failed: {type(e).__name__}: {e}")
            return ""

        if not response.content:
            logger.warning("Text generation returned no content blocks")
            return ""

        text = getattr(response.content[0], "text", "") or ""
        return text.strip()
