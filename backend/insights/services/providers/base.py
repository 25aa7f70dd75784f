"""
Inference provider contracts.

Three narrow async interfaces sit between the pipeline and whatever model
answers it:

- OcrProvider.extract_text(path) -> str | None
    All visible text in reading order. None or an exception means the call
    failed; "" means the image has no text.
- ThemeProvider.extract_themes(path) -> ThemeInsights
    Any returned value (even empty) is a successful call; failures raise.
- TextGenerator.generate(system_prompt, user_prompt) -> str
    "" on provider failure. Raises ProviderConfigurationError when the
    provider is not configured; callers must not swallow that.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from insights.schemas.insights import ThemeInsights


@runtime_checkable
class OcrProvider(Protocol):
    async def extract_text(self, physical_path: Path) -> Optional[str]:
        ...


@runtime_checkable
class ThemeProvider(Protocol):
    async def extract_themes(self, physical_path: Path) -> ThemeInsights:
        ...


@runtime_checkable
class TextGenerator(Protocol):
    @property
    def is_configured(self) -> bool:
        ...

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        ...


@dataclass
class Providers:
    """The provider set one process runs with."""

    ocr: OcrProvider
    themes: ThemeProvider
    text: TextGenerator
