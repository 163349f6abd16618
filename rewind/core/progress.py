"""Progress record, open counters and the rootId → request mapping"""
import asyncio
import json
from typing import Iterable, Optional

from rewind.core.deps import ScanDeps
from rewind.core.keys import (
    JOB_MAPPING_PREFIX,
    job_mapping_key,
    make_rewind_job_id,
    match_token,
    now_ms,
    open_fetch_key,
    open_pages_key,
    page_token,
    prog_key,
)
from rewind.data.models import JobMapping, ScanRequest, ScanState, ScanStatus
from rewind.utils.rewind_logging import log

COUNTER_FIELDS = ("idsFound", "matchesFetched", "timelinesFetched")


def pages_done_field(queue: int) -> str:
    return f"pagesDone_{queue}"


async def init_progress(deps: ScanDeps, root_id: str, queues: Iterable[int]) -> bool:
    """
    Initialize the progress record and open counters for a scan.

    Only one caller may (re)initialize: the record is claimed either by
    creating it or by moving a finished (ready) record back to listing.
    A record that is still listing belongs to a scan in flight and is left
    alone. Returns True when this call initialized the record.
    """
    key = prog_key(root_id)
    claimed = await deps.store.hsetnx(key, "state", ScanState.LISTING.value)
    if not claimed:
        claimed = await deps.store.hset_if_not(key, "state", ScanState.LISTING.value)
    if not claimed and not await deps.store.hgetall(key):
        # Expired but not yet reaped
        await deps.store.delete(key)
        claimed = await deps.store.hsetnx(key, "state", ScanState.LISTING.value)
    if not claimed:
        log.info(deps.logger, "rewind", "in_flight",
                 "Scan already in flight - keeping its progress", root_id=root_id)
        return False

    ts = now_ms()
    fields = {f: 0 for f in COUNTER_FIELDS}
    fields.update({pages_done_field(q): 0 for q in queues})
    fields.update({"state": ScanState.LISTING.value, "startedAt": ts, "updatedAt": ts})

    # Counting tokens of the previous scan on this rootId
    await deps.store.forget(key)
    await deps.store.hset(key, fields)
    await deps.store.expire(key, deps.ttl_seconds)
    await deps.store.set(open_pages_key(root_id), 0, ttl=deps.ttl_seconds)
    await deps.store.set(open_fetch_key(root_id), 0, ttl=deps.ttl_seconds)
    return True


async def touch_progress(deps: ScanDeps, root_id: str) -> None:
    """Refresh updatedAt and push the retention window forward."""
    key = prog_key(root_id)
    await asyncio.gather(
        deps.store.hset(key, {"updatedAt": now_ms()}),
        deps.store.expire(key, deps.ttl_seconds),
        deps.store.expire(open_pages_key(root_id), deps.ttl_seconds),
        deps.store.expire(open_fetch_key(root_id), deps.ttl_seconds),
    )


async def record_page(deps: ScanDeps, root_id: str, queue: int, start: int, ids_found: int) -> None:
    """Count a listed page. A page is counted once per scan, however often it is retried."""
    key = prog_key(root_id)
    token = page_token(queue, start)
    await asyncio.gather(
        deps.store.hincrby(key, pages_done_field(queue), 1, token=token),
        deps.store.hincrby(key, "idsFound", ids_found, token=token),
    )
    await touch_progress(deps, root_id)


async def record_fetch(deps: ScanDeps, root_id: str, match_id: str, timeline: bool) -> None:
    key = prog_key(root_id)
    token = match_token(match_id)
    await deps.store.hincrby(key, "matchesFetched", 1, token=token)
    if timeline:
        await deps.store.hincrby(key, "timelinesFetched", 1, token=token)
    await touch_progress(deps, root_id)


async def credit_indexed_match(deps: ScanDeps, root_id: str, match_id: str) -> None:
    """A match fetched by an earlier job counts as fetched for this scan too."""
    await record_fetch(deps, root_id, match_id, timeline=True)


# =============================================================================
# Job mapping
# =============================================================================

async def store_job_mapping(deps: ScanDeps, root_id: str, request: ScanRequest) -> None:
    mapping = {
        "scope": request.scope,
        "region": request.region,
        "puuid": request.puuid,
        "originalId": make_rewind_job_id(request.scope, request.region, request.puuid),
    }
    await deps.store.set(job_mapping_key(root_id), json.dumps(mapping), ttl=deps.ttl_seconds)


async def get_job_mapping(deps: ScanDeps, root_id: str) -> Optional[JobMapping]:
    data = await deps.store.get(job_mapping_key(root_id))
    return json.loads(data) if data else None


async def find_job_by_puuid(deps: ScanDeps, puuid: str) -> Optional[str]:
    """rootId of a live scan for this player, if any."""
    # TODO: keep a puuid → rootId index instead of scanning every mapping
    for key in await deps.store.keys(JOB_MAPPING_PREFIX):
        data = await deps.store.get(key)
        if data and json.loads(data).get("puuid") == puuid:
            return key[len(JOB_MAPPING_PREFIX):]
    return None


# =============================================================================
# Status
# =============================================================================

async def get_scan_status(deps: ScanDeps, root_id: str) -> Optional[ScanStatus]:
    """What a status poller sees. None once the scan has expired."""
    fields = await deps.store.hgetall(prog_key(root_id))
    if not fields:
        return None

    pages_done = {
        int(name.split("_", 1)[1]): int(value)
        for name, value in fields.items()
        if name.startswith("pagesDone_")
    }
    open_pages = int(await deps.store.get(open_pages_key(root_id)) or 0)
    open_fetch = int(await deps.store.get(open_fetch_key(root_id)) or 0)

    return ScanStatus(
        root_id=root_id,
        state=str(fields.get("state", ScanState.LISTING.value)),
        pages_done=pages_done,
        ids_found=int(fields.get("idsFound", 0)),
        matches_fetched=int(fields.get("matchesFetched", 0)),
        timelines_fetched=int(fields.get("timelinesFetched", 0)),
        started_at=fields.get("startedAt"),
        updated_at=fields.get("updatedAt"),
        open_pages=open_pages,
        open_fetch=open_fetch,
        mapping=await get_job_mapping(deps, root_id),
    )
