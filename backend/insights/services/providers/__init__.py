"""
Inference providers.

``build_providers()`` picks the concrete adapters from settings:

    VISION_PROVIDER=anthropic  -> Claude vision for OCR + themes
    VISION_PROVIDER=local      -> local model server for OCR + themes

Text generation is always Anthropic.
"""

import logging
from typing import Optional

from insights.core.config import Settings, settings as default_settings
from insights.services.providers.anthropic_provider import (
    AnthropicOcrProvider,
    AnthropicTextGenerator,
    AnthropicThemeProvider,
    AnthropicVisionClient,
)
from insights.services.providers.base import (
    OcrProvider,
    Providers,
    TextGenerator,
    ThemeProvider,
)
from insights.services.providers.local_vision import (
    LocalOcrProvider,
    LocalThemeProvider,
    LocalVisionClient,
)

logger = logging.getLogger(__name__)


def build_providers(config: Optional[Settings] = None) -> Providers:
    config = config or default_settings

    text = AnthropicTextGenerator(
        api_key=config.ANTHROPIC_API_KEY,
        model=config.ANTHROPIC_TEXT_MODEL,
        max_tokens=config.ANTHROPIC_MAX_TOKENS,
    )

    if config.VISION_PROVIDER == "local":
        client = LocalVisionClient(
            base_url=config.LOCAL_VISION_URL,
            model=config.LOCAL_VISION_MODEL,
            timeout=config.AI_REQUEST_TIMEOUT_SECONDS,
        )
        logger.info(f"Using local vision provider at {config.LOCAL_VISION_URL}")
        return Providers(ocr=LocalOcrProvider(client), themes=LocalThemeProvider(client), text=text)

    vision = AnthropicVisionClient(
        api_key=config.ANTHROPIC_API_KEY,
        model=config.ANTHROPIC_VISION_MODEL,
        max_tokens=config.ANTHROPIC_MAX_TOKENS,
    )
    return Providers(
        ocr=AnthropicOcrProvider(vision),
        themes=AnthropicThemeProvider(vision),
        text=text,
    )


__all__ = [
    "OcrProvider",
    "ThemeProvider",
    "TextGenerator",
    "Providers",
    "build_providers",
    "AnthropicOcrProvider",
    "AnthropicThemeProvider",
    "AnthropicTextGenerator",
    "AnthropicVisionClient",
    "LocalOcrProvider",
    "LocalThemeProvider",
    "LocalVisionClient",
]
