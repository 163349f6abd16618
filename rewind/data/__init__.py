"""Data layer exports"""
from rewind.data.models import (
    FetchMatchJob,
    JobMapping,
    JobState,
    ListPageJob,
    QueuedJob,
    ScanRequest,
    ScanState,
    ScanStatus,
)

__all__ = [
    "FetchMatchJob",
    "JobMapping",
    "JobState",
    "ListPageJob",
    "QueuedJob",
    "ScanRequest",
    "ScanState",
    "ScanStatus",
]
