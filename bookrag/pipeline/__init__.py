"""Pipeline orchestration components for bookrag."""

from bookrag.pipeline.orchestrator import KnowledgeBasePipeline
from bookrag.pipeline.progress_tracker import ProgressTracker

__all__ = [
    "KnowledgeBasePipeline",
    "ProgressTracker",
]
