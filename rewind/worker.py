"""
Temporal Worker - runs the three rewind task queues in one process

    rewind       RewindWorkflow + start_scan, release_*
    scan-list    ListPageWorkflow + process_list_page    (1 at a time, 1/s)
    scan-fetch   FetchMatchWorkflow + process_fetch_match (2 at a time, 5/s)

The per-queue activity limits are what keep the crawl inside the Riot
API rate limit.
"""
import asyncio
import os
import sys

# Force unbuffered output
sys.stdout = os.fdopen(sys.stdout.fileno(), 'w', buffering=1)
sys.stderr = os.fdopen(sys.stderr.fileno(), 'w', buffering=1)

from rewind.utils.rewind_logging import configure_logging, get_fallback_logger, log

# Configure logging BEFORE importing temporalio
configure_logging()

from temporalio.client import Client
from temporalio.worker import Worker

from rewind.activities import rewind, scan
from rewind.services import close_services, init_services
from rewind.utils.config import (
    FETCH_MAX_CONCURRENT,
    FETCH_MAX_PER_SECOND,
    FETCH_TASK_QUEUE,
    LIST_MAX_CONCURRENT,
    LIST_MAX_PER_SECOND,
    LIST_TASK_QUEUE,
    REWIND_MAX_PER_SECOND,
    REWIND_TASK_QUEUE,
    TEMPORAL_HOST,
    TEMPORAL_NAMESPACE,
)
from rewind.workflows import FetchMatchWorkflow, ListPageWorkflow, RewindWorkflow

MODULE = "worker"


def build_workers(client: Client) -> list:
    rewind_worker = Worker(
        client,
        task_queue=REWIND_TASK_QUEUE,
        workflows=[RewindWorkflow],
        activities=[
            rewind.start_scan,
            # Run after a job exhausts its retries
            scan.release_list_page,
            scan.release_fetch_match,
        ],
        max_task_queue_activities_per_second=REWIND_MAX_PER_SECOND,
    )

    list_worker = Worker(
        client,
        task_queue=LIST_TASK_QUEUE,
        workflows=[ListPageWorkflow],
        activities=[
            scan.process_list_page,
        ],
        max_concurrent_activities=LIST_MAX_CONCURRENT,
        max_task_queue_activities_per_second=LIST_MAX_PER_SECOND,
    )

    fetch_worker = Worker(
        client,
        task_queue=FETCH_TASK_QUEUE,
        workflows=[FetchMatchWorkflow],
        activities=[
            scan.process_fetch_match,
        ],
        max_concurrent_activities=FETCH_MAX_CONCURRENT,
        max_task_queue_activities_per_second=FETCH_MAX_PER_SECOND,
    )

    return [rewind_worker, list_worker, fetch_worker]


async def main():
    logger = get_fallback_logger()
    log.info(logger, MODULE, "connecting", f"🔌 Connecting to Temporal at {TEMPORAL_HOST}...",
             namespace=TEMPORAL_NAMESPACE)

    try:
        client = await Client.connect(TEMPORAL_HOST, namespace=TEMPORAL_NAMESPACE)
        log.info(logger, MODULE, "connected", "✅ Connected to Temporal server")

        await init_services(client)
        workers = build_workers(client)

        log.info(logger, MODULE, "started", "🚀 Worker started",
                 task_queues=[REWIND_TASK_QUEUE, LIST_TASK_QUEUE, FETCH_TASK_QUEUE])
        await asyncio.gather(*(w.run() for w in workers))
    except Exception as e:
        log.error(logger, MODULE, "failed", "❌ Worker failed",
                  error=str(e), error_type=type(e).__name__)
        sys.exit(1)
    finally:
        await close_services()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n👋 Worker stopped")
