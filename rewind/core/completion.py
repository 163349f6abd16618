"""Completion detector - decides when a scan has drained"""
from typing import Tuple

from rewind.core.deps import ScanDeps
from rewind.core.keys import now_ms, open_fetch_key, open_pages_key, prog_key
from rewind.data.models import PENDING_JOB_STATES, ScanState
from rewind.utils.rewind_logging import log


async def read_open_counters(deps: ScanDeps, root_id: str) -> Tuple[int, int]:
    open_pages = int(await deps.store.get(open_pages_key(root_id)) or 0)
    open_fetch = int(await deps.store.get(open_fetch_key(root_id)) or 0)
    return open_pages, open_fetch


async def check_completion(deps: ScanDeps, root_id: str) -> bool:
    """
    Flip the scan to ready once nothing is left in flight.

    Ready requires all three:
    - OpenPages <= 0
    - OpenFetch == 0
    - no fetch job for this root still waiting/delayed in the queue

    The queue scan catches jobs whose counter increment has not been observed
    yet. The state change itself is a conditional update, so when several
    workers pass the check at once only one of them performs the transition.

    Returns True only for the call that marked the scan ready.
    """
    open_pages, open_fetch = await read_open_counters(deps, root_id)
    if open_pages > 0 or open_fetch != 0:
        log.info(deps.logger, "completion", "pending",
                 f"📈 Pages left: {open_pages}, fetches pending: {open_fetch}",
                 root_id=root_id, open_pages=open_pages, open_fetch=open_fetch)
        return False

    queued = await deps.fetch_queue.get_jobs(PENDING_JOB_STATES, root_id=root_id)
    if queued:
        log.info(deps.logger, "completion", "queued",
                 f"📈 Found {len(queued)} queued fetch jobs, continuing",
                 root_id=root_id, queued=len(queued))
        return False

    changed = await deps.store.hset_if_not(
        prog_key(root_id), "state", ScanState.READY.value, extra={"updatedAt": now_ms()}
    )
    if changed:
        log.info(deps.logger, "completion", "ready",
                 "🎯 All fetching complete - marked as ready", root_id=root_id)
    return changed
