"""
Job queue on top of Temporal.

Each job is one workflow execution on the queue's task queue, with the job id
as workflow id. That gives the crawl what it needs from a job queue:

- identity: starting a workflow whose id is already running or completed is
  rejected (ALLOW_DUPLICATE_FAILED_ONLY), so the same match id can never
  have two live fetch jobs; failed ones may be resubmitted
- state lookup: describe() plus the pending activity list
- bulk listing: the visibility API, filtered by task queue
- retry/backoff: the job workflow's activity RetryPolicy

The rootId that links a job back to its scan is stored in the memo.
"""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, List, Optional, Protocol

from temporalio.api.common.v1 import WorkflowExecution as WorkflowExecutionRef
from temporalio.api.enums.v1 import PendingActivityState
from temporalio.api.workflowservice.v1 import DeleteWorkflowExecutionRequest
from temporalio.client import Client, WorkflowExecutionDescription, WorkflowExecutionStatus
from temporalio.common import WorkflowIDReusePolicy
from temporalio.exceptions import WorkflowAlreadyStartedError
from temporalio.service import RPCError, RPCStatusCode

from rewind.data.models import JobState, QueuedJob

# Started + WorkflowTaskScheduled + WorkflowTaskStarted: the workflow has not
# scheduled its job activity yet
_FRESH_HISTORY_LENGTH = 3


class JobQueue(Protocol):
    name: str

    async def add(self, name: str, payload: Any, job_id: Optional[str] = None,
                  delay: Optional[timedelta] = None, replace: bool = False) -> bool: ...
    async def get_state(self, job_id: str) -> Optional[JobState]: ...
    async def get_jobs(self, states: Iterable[JobState], root_id: Optional[str] = None) -> List[QueuedJob]: ...
    async def remove(self, job_id: str) -> None: ...


def job_state_from_description(desc: WorkflowExecutionDescription) -> JobState:
    """Map a Temporal execution onto waiting/delayed/active/completed/failed."""
    if desc.status == WorkflowExecutionStatus.COMPLETED:
        return JobState.COMPLETED
    if desc.status != WorkflowExecutionStatus.RUNNING:
        # FAILED, TERMINATED, CANCELED, TIMED_OUT
        return JobState.FAILED

    pending = list(desc.raw_description.pending_activities)
    if any(p.state == PendingActivityState.PENDING_ACTIVITY_STATE_STARTED for p in pending):
        return JobState.ACTIVE
    if any(p.attempt > 1 for p in pending):
        # Between retries, backing off
        return JobState.DELAYED
    if pending:
        return JobState.WAITING

    if desc.raw_description.workflow_execution_info.history_length > _FRESH_HISTORY_LENGTH:
        # Job activity already ran; the workflow is wrapping up
        return JobState.ACTIVE
    if desc.execution_time and desc.execution_time > datetime.now(timezone.utc):
        # Started with start_delay
        return JobState.DELAYED
    return JobState.WAITING


class TemporalJobQueue:
    """A named job queue = a Temporal task queue + the workflow that runs its jobs."""

    def __init__(self, client: Client, task_queue: str, workflow_type: str):
        self.client = client
        self.name = task_queue
        self.workflow_type = workflow_type

    async def add(self, name: str, payload: Any, job_id: Optional[str] = None,
                  delay: Optional[timedelta] = None, replace: bool = False) -> bool:
        """
        Enqueue a job. False if a job with this id is already live or completed.

        replace=True lets a closed execution with the same id (one just passed
        to remove()) be superseded even before its deletion has been applied.
        """
        memo = {"jobName": name}
        root_id = getattr(payload, "root_id", None)
        if root_id:
            memo["rootId"] = root_id

        try:
            await self.client.start_workflow(
                self.workflow_type,
                payload,
                id=job_id or f"{name}-{uuid.uuid4().hex}",
                task_queue=self.name,
                id_reuse_policy=(
                    WorkflowIDReusePolicy.ALLOW_DUPLICATE if replace
                    else WorkflowIDReusePolicy.ALLOW_DUPLICATE_FAILED_ONLY
                ),
                memo=memo,
                start_delay=delay,
            )
        except WorkflowAlreadyStartedError:
            return False
        return True

    async def get_state(self, job_id: str) -> Optional[JobState]:
        try:
            desc = await self.client.get_workflow_handle(job_id).describe()
        except RPCError as e:
            if e.status == RPCStatusCode.NOT_FOUND:
                return None
            raise
        return job_state_from_description(desc)

    async def get_jobs(self, states: Iterable[JobState], root_id: Optional[str] = None) -> List[QueuedJob]:
        wanted = set(states)
        query = f"TaskQueue = '{self.name}'"
        if not any(s.is_terminal for s in wanted):
            query += " AND ExecutionStatus = 'Running'"

        jobs = []
        async for execution in self.client.list_workflows(query):
            memo = await execution.memo()
            job_root = memo.get("rootId")
            if root_id is not None and job_root != root_id:
                continue
            state = await self.get_state(execution.id)
            if state in wanted:
                jobs.append(QueuedJob(
                    id=execution.id,
                    name=memo.get("jobName", execution.workflow_type),
                    state=state,
                    root_id=job_root,
                ))
        return jobs

    async def remove(self, job_id: str) -> None:
        """Delete a job's execution so its id can be reused."""
        try:
            await self.client.workflow_service.delete_workflow_execution(
                DeleteWorkflowExecutionRequest(
                    namespace=self.client.namespace,
                    workflow_execution=WorkflowExecutionRef(workflow_id=job_id),
                )
            )
        except RPCError as e:
            if e.status != RPCStatusCode.NOT_FOUND:
                raise
