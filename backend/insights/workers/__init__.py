"""
Background workers running on the API's event loop.
"""

from insights.workers.analysis_worker import AnalysisWorker
from insights.workers.backfill import BackfillScanner
from insights.workers.runtime import AnalysisRuntime

__all__ = [
    "AnalysisRuntime",
    "AnalysisWorker",
    "BackfillScanner",
]
