"""Import pipeline: orchestration, progress and failure tracking."""

from granola_vault.pipeline.failures import FailureRecord, FailureRegistry
from granola_vault.pipeline.orchestrator import ImportOrchestrator
from granola_vault.pipeline.progress import DocumentProgress, DocumentState, ImportRun, ProgressAggregator

__all__ = [
    "DocumentProgress",
    "DocumentState",
    "FailureRecord",
    "FailureRegistry",
    "ImportOrchestrator",
    "ImportRun",
    "ProgressAggregator",
]
