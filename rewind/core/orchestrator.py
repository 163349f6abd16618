"""Root orchestrator - turns a scan request into first-page list jobs"""
from rewind.core.deps import LIST_JOB_NAME, ScanDeps
from rewind.core.keys import first_page_job_id, generate_job_uuid, open_pages_key
from rewind.core.progress import init_progress, store_job_mapping
from rewind.data.models import JobState, ListPageJob, ScanRequest
from rewind.utils.patches import queue_name
from rewind.utils.rewind_logging import log


async def enqueue_first_page(deps: ScanDeps, request: ScanRequest, root_id: str, queue: int,
                             fresh: bool = True) -> bool:
    """
    Enqueue the start=0 list page for one queue type, deduplicated by job id.

    A finished (completed/failed) first page is removed so the queue type can
    be rescanned; a waiting or running one is left to do its work. When the
    scan is already in flight (fresh=False) a completed first page belongs to
    the current crawl and is kept; only a failed one is resubmitted.
    """
    job_id = first_page_job_id(request.region, request.puuid, queue)
    replace = False

    state = await deps.list_queue.get_state(job_id)
    if state is not None:
        if not state.is_terminal:
            log.warning(deps.logger, "rewind", "list_exists",
                        f"⚠️ List job for queue {queue} already exists in state: {state.value}",
                        root_id=root_id, queue=queue, state=state.value)
            return False
        if not fresh and state == JobState.COMPLETED:
            log.info(deps.logger, "rewind", "list_done",
                     f"List job for queue {queue} already completed for this scan",
                     root_id=root_id, queue=queue)
            return False
        log.info(deps.logger, "rewind", "list_cleanup",
                 f"🧹 Cleaning up {state.value} list job for queue {queue}",
                 root_id=root_id, queue=queue)
        await deps.list_queue.remove(job_id)
        replace = True

    await deps.store.incr(open_pages_key(root_id))
    added = await deps.list_queue.add(
        LIST_JOB_NAME,
        ListPageJob(
            region=request.region,
            puuid=request.puuid,
            start=0,
            season=request.season,
            queue=queue,
            root_id=root_id,
        ),
        job_id=job_id,
        replace=replace,
    )
    if not added:
        # Another request enqueued it between our lookup and add
        await deps.store.decr(open_pages_key(root_id))
        log.warning(deps.logger, "rewind", "list_duplicate",
                    f"⚠️ List job for queue {queue} was enqueued concurrently",
                    root_id=root_id, queue=queue)
        return False

    log.info(deps.logger, "rewind", "list_enqueued",
             f"📋 Enqueued list job for {queue_name(queue)}", root_id=root_id, queue=queue)
    return True


async def start_scan(deps: ScanDeps, request: ScanRequest) -> str:
    """
    Start (or join) the crawl for one player and season.

    The rootId is derived from (scope, region, puuid), so repeated requests
    for the same player land on the same scan. Returns without waiting for
    the crawl; callers poll the progress record.
    """
    root_id = generate_job_uuid(request.scope, request.region, request.puuid)
    await store_job_mapping(deps, root_id, request)

    log.info(deps.logger, "rewind", "started", "🎯 Starting rewind orchestration",
             root_id=root_id, scope=request.scope, region=request.region, puuid=request.puuid,
             season=request.season, queues=list(request.queues))

    fresh = await init_progress(deps, root_id, request.queues)
    if fresh:
        log.info(deps.logger, "rewind", "progress_init", "✅ Progress tracking initialized",
                 root_id=root_id)

    enqueued = 0
    for queue in request.queues:
        if await enqueue_first_page(deps, request, root_id, queue, fresh=fresh):
            enqueued += 1

    log.info(deps.logger, "rewind", "orchestrated",
             f"🚀 Orchestration complete - {enqueued} list jobs enqueued",
             root_id=root_id, enqueued=enqueued)
    return root_id
