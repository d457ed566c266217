"""Run-level jobs: the extraction scheduler and the sync orchestrator."""

from .scheduler import ExtractionScheduler
from .sync_run import SyncOrchestrator, build_orchestrator

__all__ = ["ExtractionScheduler", "SyncOrchestrator", "build_orchestrator"]
