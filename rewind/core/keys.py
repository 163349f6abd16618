"""Job identities and progress store keys"""
import uuid
from datetime import datetime, timezone

# UUID v5 namespace for rewind jobs
REWIND_NAMESPACE = uuid.UUID("6ba7b810-9dad-11d1-80b4-00c04fd430c8")

JOB_MAPPING_PREFIX = "rc:rewind:job:"


def prog_key(root_id: str) -> str:
    return f"rc:rewind:prog:{root_id}"


def open_pages_key(root_id: str) -> str:
    return f"rc:rewind:openPages:{root_id}"


def open_fetch_key(root_id: str) -> str:
    return f"rc:rewind:openFetch:{root_id}"


def job_mapping_key(root_id: str) -> str:
    return f"{JOB_MAPPING_PREFIX}{root_id}"


def make_rewind_job_id(scope: str, region: str, puuid: str) -> str:
    """Human-readable identity of a scan: scope:region:puuid"""
    return f"{scope}:{region}:{puuid}"


def generate_job_uuid(scope: str, region: str, puuid: str) -> str:
    """Deterministic rootId; the same player always maps to the same scan."""
    return str(uuid.uuid5(REWIND_NAMESPACE, make_rewind_job_id(scope, region, puuid)))


def first_page_job_id(region: str, puuid: str, queue: int) -> str:
    """Dedup key for the offset-0 list page of one queue type."""
    return f"list-{region}-{puuid}-q{queue}-start0"


def next_page_job_id(region: str, puuid: str, queue: int, start: int, run_id: str) -> str:
    """
    Id of the page a list run enqueues after itself. Scoped to that run, so
    retries of the run collapse onto one job while a resubmitted page starts
    its own chain.
    """
    return f"list-{region}-{puuid}-q{queue}-start{start}-{run_id}"


def page_token(queue: int, start: int) -> str:
    """Counts a listed page once per scan."""
    return f"page:{queue}:{start}"


def match_token(match_id: str) -> str:
    """Counts a fetched match once per scan."""
    return f"match:{match_id}"


def season_start_seconds(season: int) -> int:
    """Epoch seconds of Jan 1 00:00 UTC of the season year."""
    return int(datetime(season, 1, 1, tzinfo=timezone.utc).timestamp())


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)
