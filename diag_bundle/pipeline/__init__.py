"""Collection orchestration and the end-to-end pipeline."""

from .orchestrator import CollectionOrchestrator, SKIPPED_DETAIL
from .runner import CollectionPipeline, PipelineResult

__all__ = [
    "CollectionOrchestrator",
    "SKIPPED_DETAIL",
    "CollectionPipeline",
    "PipelineResult",
]
