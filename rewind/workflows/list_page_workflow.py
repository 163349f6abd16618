"""
List Page Workflow - one job on the scan-list task queue

The execution is the job: its workflow id is the job id, and its single
activity does the work under the job retry policy (3 attempts, exponential
backoff from 2s, Retry-After on 429).

If every attempt fails, the page's OpenPages slot is released on the rewind
task queue and the workflow still fails, so the job reads as failed and a
later scan can resubmit it.
"""
from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError

with workflow.unsafe.imports_passed_through():
    from rewind.activities import scan as scan_activities
    from rewind.data.models import ListPageJob
    from rewind.utils.config import (
        JOB_BACKOFF_COEFFICIENT,
        JOB_INITIAL_BACKOFF_SECONDS,
        JOB_MAX_ATTEMPTS,
        REWIND_TASK_QUEUE,
    )


@workflow.defn
class ListPageWorkflow:
    """List one page of match ids for one queue type."""

    @workflow.run
    async def run(self, job: ListPageJob) -> dict:
        try:
            return await workflow.execute_activity(
                scan_activities.process_list_page,
                job,
                start_to_close_timeout=timedelta(seconds=60),
                retry_policy=RetryPolicy(
                    maximum_attempts=JOB_MAX_ATTEMPTS,
                    initial_interval=timedelta(seconds=JOB_INITIAL_BACKOFF_SECONDS),
                    backoff_coefficient=JOB_BACKOFF_COEFFICIENT,
                ),
            )
        except ActivityError as e:
            workflow.logger.warning(
                f"⚠️ List page q{job.queue} start={job.start} failed after "
                f"{JOB_MAX_ATTEMPTS} attempts: {str(e.cause or e)[:200]}"
            )
            await workflow.execute_activity(
                scan_activities.release_list_page,
                args=[job.root_id, workflow.info().run_id],
                task_queue=REWIND_TASK_QUEUE,
                start_to_close_timeout=timedelta(seconds=30),
                retry_policy=RetryPolicy(maximum_attempts=5),
            )
            raise
