"""
Fetch Match Workflow - one job on the scan-fetch task queue

Workflow id is the match id, which is what keeps a match to a single live
fetch job across every scan that discovers it.
"""
from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError

with workflow.unsafe.imports_passed_through():
    from rewind.activities import scan as scan_activities
    from rewind.data.models import FetchMatchJob
    from rewind.utils.config import (
        JOB_BACKOFF_COEFFICIENT,
        JOB_INITIAL_BACKOFF_SECONDS,
        JOB_MAX_ATTEMPTS,
        REWIND_TASK_QUEUE,
    )


@workflow.defn
class FetchMatchWorkflow:
    """Fetch one match and its timeline into S3."""

    @workflow.run
    async def run(self, job: FetchMatchJob) -> dict:
        try:
            return await workflow.execute_activity(
                scan_activities.process_fetch_match,
                job,
                start_to_close_timeout=timedelta(seconds=120),
                retry_policy=RetryPolicy(
                    maximum_attempts=JOB_MAX_ATTEMPTS,
                    initial_interval=timedelta(seconds=JOB_INITIAL_BACKOFF_SECONDS),
                    backoff_coefficient=JOB_BACKOFF_COEFFICIENT,
                ),
            )
        except ActivityError as e:
            workflow.logger.warning(
                f"⚠️ Match {job.match_id} failed after {JOB_MAX_ATTEMPTS} attempts: "
                f"{str(e.cause or e)[:200]}"
            )
            # Terminal failure still has to give back the OpenFetch slot
            await workflow.execute_activity(
                scan_activities.release_fetch_match,
                args=[job.root_id, workflow.info().run_id],
                task_queue=REWIND_TASK_QUEUE,
                start_to_close_timeout=timedelta(seconds=30),
                retry_policy=RetryPolicy(maximum_attempts=5),
            )
            raise
