"""
Local vision model adapter (Ollama-compatible ``/api/generate``).

Lets OCR and theme extraction run against a self-hosted model such as llava
instead of a paid API. Text generation always goes through Anthropic.
"""

import asyncio
import base64
import logging
from pathlib import Path
from typing import Optional

import httpx

from insights.core.config import settings
from insights.core.exceptions import ProviderConfigurationError, ProviderResponseError
from insights.schemas.insights import ThemeInsights
from insights.services.providers.anthropic_provider import (
    FALLBACK_THEME_PROMPT,
    OCR_PROMPT,
    STRUCTURED_THEME_PROMPT,
    parse_fallback_tags,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "local_vision"


class LocalVisionClient:
    """
    Minimal client for a local multimodal model server.

    Request body: {"model", "prompt", "images": [<base64>], "stream": false}
    Response body: {"response": "<text>", ...}
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url or settings.LOCAL_VISION_URL
        self.model = model or settings.LOCAL_VISION_MODEL
        self.timeout = timeout or settings.AI_REQUEST_TIMEOUT_SECONDS
        self.transport = transport

        logger.info(f"LocalVisionClient initialized with url={self.base_url}, model={self.model}")

    async def ask(self, physical_path: Path, prompt: str) -> str:
        if not self.base_url:
            raise ProviderConfigurationError(PROVIDER_NAME, "LOCAL_VISION_URL is not set")

        image_bytes = await asyncio.to_thread(Path(physical_path).read_bytes)
        payload = {
            "model": self.model,
            "prompt": prompt,
            "images": [base64.b64encode(image_bytes).decode("ascii")],
            "stream": False,
        }

        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport
        ) as client:
            response = await client.post("/api/generate", json=payload)

        if response.status_code != 200:
            raise ProviderResponseError(
                PROVIDER_NAME,
                f"HTTP {response.status_code} from local vision model",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ProviderResponseError(PROVIDER_NAME, f"Invalid JSON body: {e}") from e

        text = body.get("response") if isinstance(body, dict) else None
        if not isinstance(text, str):
            raise ProviderResponseError(PROVIDER_NAME, "Response body has no 'response' text")
        return text


class LocalOcrProvider:
    def __init__(self, client: LocalVisionClient):
        self.client = client

    async def extract_text(self, physical_path: Path) -> Optional[str]:
        text = await self.client.ask(physical_path, OCR_PROMPT)
        return text.strip()


class LocalThemeProvider:
    def __init__(self, client: LocalVisionClient):
        self.client = client

    async def extract_themes(self, physical_path: Path) -> ThemeInsights:
        insights = ThemeInsights.from_model_response(
            await self.client.ask(physical_path, STRUCTURED_THEME_PROMPT)
        )
        if insights.has_any_data:
            return insights

        # Small local models often ignore the JSON instruction
        fallback = await self.client.ask(physical_path, FALLBACK_THEME_PROMPT)
        return ThemeInsights.from_keywords(parse_fallback_tags(fallback))
