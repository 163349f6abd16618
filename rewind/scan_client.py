"""
Client-side helpers for callers that want a rewind: start one, then poll it.

    client = await Client.connect(TEMPORAL_HOST)
    root_id = await submit_scan(client, ScanRequest("player", "europe", puuid, 2025))
    status = await get_scan_status(store, root_id)
"""
from typing import Optional

from temporalio.client import Client
from temporalio.common import WorkflowIDReusePolicy
from temporalio.exceptions import WorkflowAlreadyStartedError

from rewind.core import progress
from rewind.core.deps import ScanDeps
from rewind.core.keys import generate_job_uuid
from rewind.data.models import JobMapping, ScanRequest, ScanStatus
from rewind.utils.config import REWIND_TASK_QUEUE
from rewind.utils.rewind_logging import get_fallback_logger, log

MODULE = "client"


def rewind_workflow_id(root_id: str) -> str:
    return f"rewind-{root_id}"


async def submit_scan(client: Client, request: ScanRequest) -> str:
    """
    Start RewindWorkflow for the request and return its rootId.

    A request for a player whose RewindWorkflow is still running joins it
    instead of starting a second one.
    """
    logger = get_fallback_logger()
    root_id = generate_job_uuid(request.scope, request.region, request.puuid)

    try:
        await client.start_workflow(
            "RewindWorkflow",
            request,
            id=rewind_workflow_id(root_id),
            task_queue=REWIND_TASK_QUEUE,
            id_reuse_policy=WorkflowIDReusePolicy.ALLOW_DUPLICATE,
        )
        log.info(logger, MODULE, "submitted", "🎯 Rewind submitted",
                 root_id=root_id, puuid=request.puuid, region=request.region)
    except WorkflowAlreadyStartedError:
        log.info(logger, MODULE, "joined", "Rewind already starting - joining it",
                 root_id=root_id, puuid=request.puuid)
    return root_id


def _status_deps(store) -> ScanDeps:
    # Status reads only touch the progress store
    return ScanDeps(store=store, list_queue=None, fetch_queue=None)


async def get_scan_status(store, root_id: str) -> Optional[ScanStatus]:
    return await progress.get_scan_status(_status_deps(store), root_id)


async def get_job_mapping(store, root_id: str) -> Optional[JobMapping]:
    return await progress.get_job_mapping(_status_deps(store), root_id)


async def find_job_by_puuid(store, puuid: str) -> Optional[str]:
    return await progress.find_job_by_puuid(_status_deps(store), puuid)
