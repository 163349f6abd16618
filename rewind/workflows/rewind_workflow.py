"""
Rewind Workflow - entry point of a scan

Runs on the rewind task queue. Its only activity initializes progress and
enqueues the first list page per queue type, then the workflow completes:
the crawl keeps going through ListPageWorkflow and FetchMatchWorkflow
executions, and callers follow it through the progress record.

Workflow id is rewind-{rootId}, so concurrent requests for the same player
collapse onto one execution.
"""
from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from rewind.activities import rewind as rewind_activities
    from rewind.data.models import ScanRequest


@workflow.defn
class RewindWorkflow:
    """Start (or join) the crawl for one player and season."""

    @workflow.run
    async def run(self, request: ScanRequest) -> str:
        workflow.logger.info(f"🎯 Rewind requested for {request.puuid} in {request.region}")

        root_id = await workflow.execute_activity(
            rewind_activities.start_scan,
            request,
            start_to_close_timeout=timedelta(seconds=60),
            retry_policy=RetryPolicy(
                maximum_attempts=3,
                initial_interval=timedelta(seconds=2),
                backoff_coefficient=2.0,
            ),
        )

        workflow.logger.info(f"🚀 Scan {root_id} started")
        return root_id
