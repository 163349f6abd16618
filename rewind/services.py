"""
Process-wide services shared by all activities in a worker.

The worker builds them once at startup (init_services); activities pick them
up with get_services() and wrap them in a ScanDeps with their own logger.
"""
from typing import Optional

from temporalio.client import Client

from rewind.api.riot_client import RiotClient
from rewind.core.deps import ScanDeps
from rewind.data.job_queue import TemporalJobQueue
from rewind.data.progress_store import MongoProgressStore
from rewind.data.s3_store import MatchS3Store
from rewind.utils.config import FETCH_TASK_QUEUE, LIST_TASK_QUEUE
from rewind.utils.rewind_logging import get_fallback_logger, log

MODULE = "services"

# Workflow type names; job queues start workflows by name so this module
# does not import the workflow classes
LIST_WORKFLOW = "ListPageWorkflow"
FETCH_WORKFLOW = "FetchMatchWorkflow"

_services: Optional[ScanDeps] = None


async def build_services(client: Client, with_riot: bool = True, with_storage: bool = True) -> ScanDeps:
    """Connect the progress store, job queues, Riot client and S3."""
    logger = get_fallback_logger()

    store = MongoProgressStore()
    await store.ensure_indexes()

    riot = RiotClient() if with_riot else None

    storage = None
    if with_storage:
        storage = MatchS3Store()
        storage.ensure_bucket_exists()

    log.info(logger, MODULE, "built", "Services ready",
             riot=with_riot, storage=with_storage)

    return ScanDeps(
        store=store,
        list_queue=TemporalJobQueue(client, LIST_TASK_QUEUE, LIST_WORKFLOW),
        fetch_queue=TemporalJobQueue(client, FETCH_TASK_QUEUE, FETCH_WORKFLOW),
        riot=riot,
        storage=storage,
        logger=logger,
    )


async def init_services(client: Client) -> ScanDeps:
    global _services
    _services = await build_services(client)
    return _services


def set_services(deps: Optional[ScanDeps]) -> None:
    global _services
    _services = deps


def get_services() -> ScanDeps:
    if _services is None:
        raise RuntimeError("Services not initialized - call init_services() in the worker first")
    return _services


async def close_services() -> None:
    global _services
    if _services is None:
        return
    if _services.riot is not None:
        await _services.riot.aclose()
    await _services.store.close()
    _services = None
