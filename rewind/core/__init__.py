"""
Crawl logic, independent of how jobs are scheduled.

Every function takes a ScanDeps bundle; Temporal activities build one from
the worker's services, tests build one from in-memory fakes.
"""
from rewind.core.completion import check_completion
from rewind.core.deps import FETCH_JOB_NAME, LIST_JOB_NAME, ScanDeps
from rewind.core.fetch_stage import process_fetch_match, release_fetch_match
from rewind.core.list_stage import enqueue_fetch, process_list_page, release_list_page
from rewind.core.orchestrator import start_scan
from rewind.core.progress import find_job_by_puuid, get_job_mapping, get_scan_status

__all__ = [
    "FETCH_JOB_NAME",
    "LIST_JOB_NAME",
    "ScanDeps",
    "check_completion",
    "enqueue_fetch",
    "find_job_by_puuid",
    "get_job_mapping",
    "get_scan_status",
    "process_fetch_match",
    "process_list_page",
    "release_fetch_match",
    "release_list_page",
    "start_scan",
]
