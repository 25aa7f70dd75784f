"""
Local file storage lookups.

Uploads are written by the CRUD layer under ``UPLOAD_ROOT``; the analysis
pipeline only needs to turn a stored relative path back into a physical path
it can hand to the inference adapters.
"""

import logging
from pathlib import Path
from typing import Optional

from insights.core.config import settings

logger = logging.getLogger(__name__)


class LocalFileStorage:
    """
    Resolves stored media paths against the upload root.

    Usage:
    ------
    storage = LocalFileStorage()
    path = storage.resolve_physical_path("submissions/abc/hero.png")
    """

    def __init__(self, root: Optional[str | Path] = None):
        self.root = Path(root or settings.UPLOAD_ROOT).resolve()

    def resolve_physical_path(self, stored_path: str) -> Path:
        """
        Map a stored path to an absolute path under the upload root.

        Raises:
            ValueError: if the path is empty or escapes the upload root
        """
        if not stored_path or not stored_path.strip():
            raise ValueError("Stored path is empty")

        relative = stored_path.strip().lstrip("/\\")
        candidate = (self.root / relative).resolve()

        if candidate != self.root and self.root not in candidate.parents:
            logger.warning(f"Rejected stored path outside upload root: '{stored_path}'")
            raise ValueError(f"Stored path escapes the upload root: {stored_path}")

        return candidate
