"""
List stage - one page of match ids per job, fanned out into fetch jobs

A page job may be retried after any of its steps has already happened, so
each step that moves shared state is safe to repeat:

- the page counts once per scan (page token on the progress record)
- a fetch job is only enqueued for a match with no live job, and its
  OpenFetch slot is taken under this run's token
- the next page gets an id scoped to this run, so a retry cannot start a
  second chain
- the page's own OpenPages slot is released under this run's token, which
  the release after the last retry shares
"""
from dataclasses import replace
from typing import Callable, Dict, Optional

from rewind.api.riot_client import RateLimitedError
from rewind.core.completion import check_completion
from rewind.core.deps import FETCH_JOB_NAME, LIST_JOB_NAME, ScanDeps
from rewind.core.keys import next_page_job_id, open_fetch_key, open_pages_key, season_start_seconds
from rewind.core.progress import credit_indexed_match, record_page
from rewind.data.models import FetchMatchJob, JobState, ListPageJob
from rewind.utils.rewind_logging import log

# enqueue_fetch outcomes
ENQUEUED = "enqueued"
RESUBMITTED = "resubmitted"
CREDITED = "credited"
SKIPPED = "skipped"


async def enqueue_fetch(deps: ScanDeps, job: ListPageJob, match_id: str, run_id: str) -> str:
    """
    Make sure exactly one fetch job exists for match_id.

    - completed: already indexed, credit this scan's counters, no new job
    - failed:    remove it and enqueue a fresh one
    - waiting/active/delayed: someone is on it, skip
    - absent:    enqueue
    """
    root_id = job.root_id
    replace_existing = False
    slot = f"{run_id}:{match_id}"

    state = await deps.fetch_queue.get_state(match_id)
    if state == JobState.COMPLETED:
        log.info(deps.logger, "list", "already_indexed",
                 f"✅ Match {match_id} already processed and indexed",
                 root_id=root_id, match_id=match_id)
        await credit_indexed_match(deps, root_id, match_id)
        return CREDITED
    if state == JobState.FAILED:
        log.info(deps.logger, "list", "fetch_cleanup",
                 f"🧹 Cleaning up failed fetch job for match {match_id}",
                 root_id=root_id, match_id=match_id)
        await deps.fetch_queue.remove(match_id)
        replace_existing = True
    elif state is not None:
        log.warning(deps.logger, "list", "fetch_exists",
                    f"⚠️ Fetch job for match {match_id} already exists in state: {state.value}",
                    root_id=root_id, match_id=match_id, state=state.value)
        return SKIPPED

    await deps.store.incr(open_fetch_key(root_id), token=slot)
    added = await deps.fetch_queue.add(
        FETCH_JOB_NAME,
        FetchMatchJob(region=job.region, puuid=job.puuid, match_id=match_id, root_id=root_id),
        job_id=match_id,
        replace=replace_existing,
    )
    if not added:
        # Lost the race to another list worker
        await deps.store.decr(open_fetch_key(root_id), token=slot)
        return SKIPPED
    return RESUBMITTED if replace_existing else ENQUEUED


async def enqueue_next_page(deps: ScanDeps, job: ListPageJob, run_id: str) -> bool:
    """Open the next offset step. False when an earlier attempt of this run already did."""
    next_start = job.start + deps.page_size
    await deps.store.incr(open_pages_key(job.root_id), token=f"{run_id}:next")
    added = await deps.list_queue.add(
        LIST_JOB_NAME,
        replace(job, start=next_start),
        job_id=next_page_job_id(job.region, job.puuid, job.queue, next_start, run_id),
    )
    if added:
        log.info(deps.logger, "list", "next_page",
                 f"📋 Enqueued next page - Queue: {job.queue}, Start: {next_start}",
                 root_id=job.root_id, queue=job.queue, start=next_start)
    else:
        log.info(deps.logger, "list", "next_page_exists",
                 f"Next page already enqueued - Queue: {job.queue}, Start: {next_start}",
                 root_id=job.root_id, queue=job.queue, start=next_start)
    return added


async def process_list_page(
    deps: ScanDeps,
    job: ListPageJob,
    run_id: str,
    on_rate_limited: Optional[Callable[[float], None]] = None,
) -> Dict[str, int]:
    """
    List one page of match ids and fan out fetch jobs.

    run_id identifies this execution of the page job; every attempt of the
    same execution passes the same one. A full page means there may be more,
    so the next page is enqueued before this page's OpenPages slot is
    released. Rate limiting is reported through on_rate_limited and
    re-raised; counters are only touched once the page has actually been
    listed.
    """
    root_id = job.root_id
    start_time = season_start_seconds(job.season)

    log.info(deps.logger, "list", "listing",
             f"📋 Listing matches - Queue: {job.queue}, Start: {job.start}, Season: {job.season}",
             root_id=root_id, queue=job.queue, start=job.start, start_time=start_time)

    try:
        ids = await deps.riot.list_match_ids(
            job.region,
            job.puuid,
            start=job.start,
            count=deps.page_size,
            queue=job.queue,
            start_time=start_time,
        )
    except RateLimitedError as e:
        log.warning(deps.logger, "list", "rate_limited",
                    f"⚠️ Rate limited - retry after: {e.retry_after}s",
                    root_id=root_id, queue=job.queue, start=job.start, retry_after=e.retry_after)
        if on_rate_limited is not None:
            on_rate_limited(e.retry_after)
        raise
    except Exception as e:
        log.error(deps.logger, "list", "list_failed", "❌ Error fetching match IDs",
                  error=str(e), error_type=type(e).__name__, root_id=root_id, queue=job.queue)
        raise

    log.info(deps.logger, "list", "listed", f"✅ Found {len(ids)} match IDs",
             root_id=root_id, queue=job.queue, count=len(ids))

    await record_page(deps, root_id, job.queue, job.start, len(ids))

    outcomes = {ENQUEUED: 0, RESUBMITTED: 0, CREDITED: 0, SKIPPED: 0}
    for match_id in ids:
        outcomes[await enqueue_fetch(deps, job, match_id, run_id)] += 1

    log.info(deps.logger, "list", "fanned_out",
             f"🚀 Enqueued {outcomes[ENQUEUED] + outcomes[RESUBMITTED]} fetch jobs",
             root_id=root_id, **outcomes)

    has_next = len(ids) == deps.page_size
    if has_next:
        await enqueue_next_page(deps, job, run_id)
    else:
        log.info(deps.logger, "list", "last_page",
                 f"🏁 Last page for queue {job.queue} - found {job.start + len(ids)} matches",
                 root_id=root_id, queue=job.queue, total=job.start + len(ids))

    pages_left = await deps.store.decr(open_pages_key(root_id), token=run_id)
    ready = await check_completion(deps, root_id)

    return {
        "ids": len(ids),
        "has_next": int(has_next),
        "pages_left": pages_left,
        "ready": int(ready),
        **outcomes,
    }


async def release_list_page(deps: ScanDeps, root_id: str, run_id: str) -> bool:
    """
    Give back the OpenPages slot of a page whose retries are exhausted, so a
    single dead page cannot hold the scan out of ready forever. A slot the
    page already gave back itself is not given back twice.
    """
    pages_left = await deps.store.decr(open_pages_key(root_id), token=run_id)
    log.warning(deps.logger, "list", "released",
                f"List page abandoned - pages left: {pages_left}",
                root_id=root_id, pages_left=pages_left)
    return await check_completion(deps, root_id)
