"""
Rewind Data Models
==================

Dataclasses for job payloads (Temporal serializes them as workflow and
activity arguments) and TypedDicts for the documents kept in the progress
store.

LIFECYCLE
─────────
    ScanRequest ──start_scan──► ListPageJob (1 per queue type, start=0)
                                   │
                                   ├──► FetchMatchJob (1 per match id)
                                   └──► ListPageJob (start+100, while pages are full)

Every descendant job carries the root_id of the scan that spawned it.
A FetchMatchJob is keyed by its match id, so a match is only ever fetched
by one live job no matter how many scans discover it.

PROGRESS RECORD
───────────────
    state             listing → ready  (processing is reserved, never set)
    pagesDone_{queue} list pages finished per queue type
    idsFound          match ids returned by all list pages
    matchesFetched    match payloads persisted (or credited as already indexed)
    timelinesFetched  timelines persisted with at least one frame
    startedAt         epoch millis
    updatedAt         epoch millis
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, TypedDict

from rewind.utils.config import ALLOWED_QUEUE_IDS


# =============================================================================
# ENUMS
# =============================================================================

class ScanState(str, Enum):
    """ProgressRecord.state"""
    LISTING = "listing"
    PROCESSING = "processing"
    READY = "ready"


class JobState(str, Enum):
    """Job states as reported by the job queue."""
    WAITING = "waiting"
    DELAYED = "delayed"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


# Jobs that exist but have not started running yet
PENDING_JOB_STATES = (JobState.WAITING, JobState.DELAYED)


# =============================================================================
# JOB PAYLOADS
# =============================================================================

@dataclass
class ScanRequest:
    """Input for RewindWorkflow / start_scan."""
    scope: str
    region: str  # routing region: europe, americas, asia, sea
    puuid: str
    season: int  # e.g. 2025 scans from 2025-01-01T00:00Z
    queues: List[int] = field(default_factory=lambda: list(ALLOWED_QUEUE_IDS))


@dataclass
class ListPageJob:
    """One page of match ids for one queue type."""
    region: str
    puuid: str
    start: int
    season: int
    queue: int
    root_id: str


@dataclass
class FetchMatchJob:
    """Fetch and persist one match plus its timeline."""
    region: str
    puuid: str
    match_id: str
    root_id: str


@dataclass
class QueuedJob:
    """A job as seen through JobQueue.get_jobs()."""
    id: str
    name: str
    state: JobState
    root_id: Optional[str] = None
    payload: Any = None


# =============================================================================
# STORED DOCUMENTS
# =============================================================================

class JobMapping(TypedDict):
    """rc:rewind:job:{rootId} → original request identity."""
    scope: str
    region: str
    puuid: str
    originalId: str


@dataclass
class ScanStatus:
    """Snapshot of a scan for status polling."""
    root_id: str
    state: str
    pages_done: Dict[int, int]
    ids_found: int
    matches_fetched: int
    timelines_fetched: int
    started_at: Optional[int]
    updated_at: Optional[int]
    open_pages: int
    open_fetch: int
    mapping: Optional[JobMapping] = None

    @property
    def is_ready(self) -> bool:
        return self.state == ScanState.READY.value
