"""Content-intelligence services."""

from insights.services.analysis_queue import AnalysisQueue
from insights.services.approval_scorer import ApprovalScorer
from insights.services.feature_aggregator import FeatureAggregator
from insights.services.file_storage import LocalFileStorage
from insights.services.media_analyzer import MediaAnalysisResult, MediaAnalyzer
from insights.services.summary_cache import SummaryCache

__all__ = [
    "AnalysisQueue",
    "ApprovalScorer",
    "FeatureAggregator",
    "LocalFileStorage",
    "MediaAnalysisResult",
    "MediaAnalyzer",
    "SummaryCache",
]
