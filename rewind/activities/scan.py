"""
Scan activities - list pages and match fetches.

The list and fetch activities each run on their own task queue so the worker
can cap their concurrency and rate independently. A Riot 429 is turned into
a retryable ApplicationError whose next_retry_delay follows Retry-After.

release_* run on the rewind task queue after a job has used up its retries.
Counter steps are keyed by the workflow run id, which every attempt of one
execution shares, so a retried attempt cannot move a counter twice.
"""
from datetime import timedelta
from typing import Any, Dict

from temporalio import activity
from temporalio.exceptions import ApplicationError

from rewind.api.riot_client import RateLimitedError
from rewind.core import fetch_stage, list_stage
from rewind.data.models import FetchMatchJob, ListPageJob
from rewind.services import get_services

RATE_LIMITED = "RateLimited"


def report_retry_after(seconds: float) -> None:
    """Record the advised wait on the activity so it shows up in the UI."""
    activity.heartbeat({"retryAfter": seconds})


def rate_limited_error(e: RateLimitedError) -> ApplicationError:
    return ApplicationError(
        f"Rate limited - retry after {e.retry_after}s",
        {"retryAfter": e.retry_after},
        type=RATE_LIMITED,
        next_retry_delay=timedelta(seconds=e.retry_after),
    )


@activity.defn
async def process_list_page(job: ListPageJob) -> Dict[str, int]:
    deps = get_services().with_logger(activity.logger)
    try:
        return await list_stage.process_list_page(
            deps, job, activity.info().workflow_run_id, on_rate_limited=report_retry_after,
        )
    except RateLimitedError as e:
        raise rate_limited_error(e) from e


@activity.defn
async def process_fetch_match(job: FetchMatchJob) -> Dict[str, Any]:
    deps = get_services().with_logger(activity.logger)
    try:
        return await fetch_stage.process_fetch_match(
            deps, job, activity.info().workflow_run_id, on_rate_limited=report_retry_after,
        )
    except RateLimitedError as e:
        raise rate_limited_error(e) from e


@activity.defn
async def release_list_page(root_id: str, run_id: str) -> bool:
    """Free the OpenPages slot of an abandoned list page."""
    deps = get_services().with_logger(activity.logger)
    return await list_stage.release_list_page(deps, root_id, run_id)


@activity.defn
async def release_fetch_match(root_id: str, run_id: str) -> bool:
    """Free the OpenFetch slot of an abandoned fetch job."""
    deps = get_services().with_logger(activity.logger)
    return await fetch_stage.release_fetch_match(deps, root_id, run_id)
