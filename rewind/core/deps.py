"""Collaborators shared by the orchestrator and both stage workers"""
import logging
from dataclasses import dataclass, field, replace
from typing import Any

from rewind.utils.config import PAGE_SIZE, REWIND_TTL_SECONDS, TIMELINE_DELAY_SECONDS
from rewind.utils.rewind_logging import get_fallback_logger

LIST_JOB_NAME = "scan:list"
FETCH_JOB_NAME = "scan:fetch"


@dataclass
class ScanDeps:
    """
    Everything a stage needs, injected so the same code runs under Temporal
    activities and in tests.

    store:       ProgressStore (rewind.data.progress_store)
    list_queue:  JobQueue for ListPageJobs
    fetch_queue: JobQueue for FetchMatchJobs
    riot:        RiotClient-like upstream client
    storage:     MatchStorage for raw payloads
    """
    store: Any
    list_queue: Any
    fetch_queue: Any
    riot: Any = None
    storage: Any = None
    logger: logging.Logger = field(default_factory=get_fallback_logger)
    ttl_seconds: int = REWIND_TTL_SECONDS
    page_size: int = PAGE_SIZE
    timeline_delay: float = TIMELINE_DELAY_SECONDS

    def with_logger(self, logger: logging.Logger) -> "ScanDeps":
        return replace(self, logger=logger)
