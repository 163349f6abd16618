"""Fetch stage - one match (and its timeline) per job, written to S3"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from rewind.api.riot_client import RateLimitedError
from rewind.core.completion import check_completion
from rewind.core.deps import ScanDeps
from rewind.core.keys import open_fetch_key
from rewind.core.progress import record_fetch
from rewind.data.models import FetchMatchJob
from rewind.data.s3_store import (
    build_match_record,
    build_timeline_record,
    match_key,
    timeline_key,
)
from rewind.utils.patches import patch_bucket
from rewind.utils.rewind_logging import log


def season_of(info: Dict[str, Any]) -> int:
    """UTC calendar year of gameCreation (epoch millis)."""
    created = info.get("gameCreation") or 0
    return datetime.fromtimestamp(created / 1000, tz=timezone.utc).year


def timeline_frames(timeline: Optional[Dict[str, Any]]) -> list:
    if not timeline:
        return []
    frames = (timeline.get("info") or {}).get("frames")
    return frames if isinstance(frames, list) else []


async def process_fetch_match(deps: ScanDeps, job: FetchMatchJob, run_id: str,
                              on_rate_limited=None) -> Dict[str, Any]:
    """
    Fetch one match and its timeline and write both to S3.

    Counters only move after the writes succeed. The match counts once per
    scan and the OpenFetch slot is given back under run_id, so an attempt
    that is retried after the decrement (or released after its last retry)
    does not move them again.
    """
    root_id = job.root_id
    match_id = job.match_id

    log.info(deps.logger, "fetch", "fetching", f"🎮 Fetching match {match_id}",
             root_id=root_id, match_id=match_id)

    try:
        match = await deps.riot.get_match(match_id, region=job.region)
        await asyncio.sleep(deps.timeline_delay)
        timeline = await deps.riot.get_timeline(match_id, region=job.region)
    except RateLimitedError as e:
        log.warning(deps.logger, "fetch", "rate_limited",
                    f"⚠️ Rate limited - retry after: {e.retry_after}s",
                    root_id=root_id, match_id=match_id, retry_after=e.retry_after)
        if on_rate_limited is not None:
            on_rate_limited(e.retry_after)
        raise
    except Exception as e:
        log.error(deps.logger, "fetch", "fetch_failed", f"❌ Error fetching match {match_id}",
                  error=str(e), error_type=type(e).__name__, root_id=root_id, match_id=match_id)
        raise

    info = match.get("info") or {}
    season = season_of(info)
    patch = patch_bucket(info.get("gameVersion") or "")
    queue = int(info.get("queueId") or 0)

    await deps.storage.put(
        match_key(season, patch, queue, match_id),
        build_match_record(match_id, info, season, patch, queue),
    )

    frames = timeline_frames(timeline)
    if timeline is not None:
        await deps.storage.put(
            timeline_key(season, patch, queue, match_id),
            build_timeline_record(match_id, frames),
        )
    else:
        log.warning(deps.logger, "fetch", "no_timeline",
                    f"⚠️ No timeline for match {match_id}",
                    root_id=root_id, match_id=match_id)

    await record_fetch(deps, root_id, match_id, timeline=bool(frames))
    open_fetch = await deps.store.decr(open_fetch_key(root_id), token=run_id)
    log.info(deps.logger, "fetch", "stored",
             f"💾 Stored match {match_id} - season {season}, patch {patch}, queue {queue}",
             root_id=root_id, match_id=match_id, open_fetch=open_fetch)

    await check_completion(deps, root_id)
    return {"queueId": queue, "patch": patch, "timeline": bool(frames)}


async def release_fetch_match(deps: ScanDeps, root_id: str, run_id: str) -> bool:
    """Give back the OpenFetch slot of a fetch job whose retries are exhausted, unless it already did."""
    open_fetch = await deps.store.decr(open_fetch_key(root_id), token=run_id)
    log.warning(deps.logger, "fetch", "released",
                f"Fetch job abandoned - fetches pending: {open_fetch}",
                root_id=root_id, open_fetch=open_fetch)
    return await check_completion(deps, root_id)
