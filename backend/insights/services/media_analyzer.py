"""
Per-file image analysis

Runs OCR and theme extraction for one stored media file and turns every
provider failure into a short error tag instead of an exception:

    "ocr:TimeoutError", "themes:ProviderResponseError", "ocr:NoResult"

Cancellation is the only thing that escapes; it is never a content failure.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from insights.models.submission import MediaFile, MediaFileType
from insights.schemas.insights import ThemeInsights
from insights.services.file_storage import LocalFileStorage
from insights.services.providers.base import OcrProvider, ThemeProvider

logger = logging.getLogger(__name__)


@dataclass
class MediaAnalysisResult:
    """Outcome of analyzing one image."""

    ocr_text: Optional[str] = None
    themes: ThemeInsights = field(default_factory=ThemeInsights)
    ocr_succeeded: bool = False
    theme_succeeded: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def tags(self) -> List[str]:
        return self.themes.flatten_tags()

    @property
    def any_succeeded(self) -> bool:
        return self.ocr_succeeded or self.theme_succeeded


def error_tag(stage: str, exc: BaseException) -> str:
    return f"{stage}:{type(exc).__name__}"


class MediaAnalyzer:
    """
    OCR + theme extraction for media files.

    Usage:
    ------
    analyzer = MediaAnalyzer(ocr=providers.ocr, themes=providers.themes)
    results = await analyzer.analyze_files(submission.media_files)
    """

    def __init__(
        self,
        ocr: OcrProvider,
        themes: ThemeProvider,
        storage: Optional[LocalFileStorage] = None
    ):
        self.ocr = ocr
        self.themes = themes
        self.storage = storage or LocalFileStorage()

    async def analyze(self, media_file: MediaFile) -> Optional[MediaAnalysisResult]:
        """
        Analyze one media file.

        Returns:
            None for non-image files, otherwise a result (never raises
            except for cancellation)
        """
        if media_file.file_type != MediaFileType.IMAGE:
            return None

        result = MediaAnalysisResult()

        try:
            physical_path = self.storage.resolve_physical_path(media_file.file_path)
        except ValueError as e:
            result.errors.extend([error_tag("ocr", e), error_tag("themes", e)])
            logger.warning(f"Could not resolve media file {media_file.id}: {e}")
            return result

        # return_exceptions=True keeps one failing call from cancelling the other
        ocr_outcome, theme_outcome = await asyncio.gather(
            self.ocr.extract_text(physical_path),
            self.themes.extract_themes(physical_path),
            return_exceptions=True,
        )

        for outcome in (ocr_outcome, theme_outcome):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome

        if isinstance(ocr_outcome, BaseException):
            result.errors.append(error_tag("ocr", ocr_outcome))
            logger.warning(f"OCR failed for media file {media_file.id}: {type(ocr_outcome).__name__}: {ocr_outcome}")
        elif ocr_outcome is None:
            result.errors.append("ocr:NoResult")
            logger.warning(f"OCR returned no result for media file {media_file.id}")
        else:
            result.ocr_succeeded = True
            result.ocr_text = ocr_outcome.strip() or None

        if isinstance(theme_outcome, BaseException):
            result.errors.append(error_tag("themes", theme_outcome))
            logger.warning(f"Theme extraction failed for media file {media_file.id}: {type(theme_outcome).__name__}: {theme_outcome}")
        else:
            result.theme_succeeded = True
            result.themes = theme_outcome or ThemeInsights()

        return result

    async def analyze_files(self, media_files: Sequence[MediaFile]) -> List[MediaAnalysisResult]:
        """Analyze all image files concurrently; non-image files are skipped."""
        images = [m for m in media_files if m.file_type == MediaFileType.IMAGE]
        if not images:
            return []

        outcomes = await asyncio.gather(*(self.analyze(m) for m in images))
        return [outcome for outcome in outcomes if outcome is not None]
