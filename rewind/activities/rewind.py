"""Rewind activities - scan entry point"""
from temporalio import activity

from rewind.core import orchestrator
from rewind.data.models import ScanRequest
from rewind.services import get_services
from rewind.utils.rewind_logging import log

MODULE = "rewind"


@activity.defn
async def start_scan(request: ScanRequest) -> str:
    """
    Initialize progress for the player and enqueue one first-page list job per
    queue type. Returns the rootId; the crawl itself continues on the list and
    fetch task queues.
    """
    deps = get_services().with_logger(activity.logger)
    try:
        return await orchestrator.start_scan(deps, request)
    except Exception as e:
        log.error(activity.logger, MODULE, "start_failed", "❌ Failed to start scan",
                  error=str(e), error_type=type(e).__name__,
                  region=request.region, puuid=request.puuid)
        raise
