"""Test configuration - in-memory stand-ins for the store, queues, Riot and S3"""
import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import pytest

from rewind.api.riot_client import RiotAPIError
from rewind.core.deps import ScanDeps
from rewind.core.fetch_stage import process_fetch_match
from rewind.core.list_stage import process_list_page
from rewind.data.models import JobState, ListPageJob, QueuedJob

SEASON = 2025
GAME_CREATION_MS = int(datetime(2025, 3, 1, tzinfo=timezone.utc).timestamp() * 1000)


class FakeProgressStore:
    """
    Dict-backed ProgressStore with the same edge semantics as the Mongo one.

    fail_once(method, key) makes the next call of that method on that key
    raise, the way a dropped connection would in the middle of a job.
    """

    def __init__(self):
        self.hashes: Dict[str, Dict[str, Any]] = {}
        self.values: Dict[str, Any] = {}
        self.ttls: Dict[str, int] = {}
        self.applied: Dict[str, set] = {}
        self.failures: Dict[tuple, List[Exception]] = {}

    def fail_once(self, method: str, key: str, error: Optional[Exception] = None) -> None:
        self.failures.setdefault((method, key), []).append(error or ConnectionError("store unavailable"))

    def _maybe_fail(self, method: str, key: str) -> None:
        pending = self.failures.get((method, key))
        if pending:
            raise pending.pop(0)

    def _first_time(self, key: str, mark: Optional[str]) -> bool:
        if mark is None:
            return True
        seen = self.applied.setdefault(key, set())
        if mark in seen:
            return False
        seen.add(mark)
        return True

    async def hset(self, key, mapping):
        self.hashes.setdefault(key, {}).update(mapping)

    async def hsetnx(self, key, field, value):
        h = self.hashes.setdefault(key, {})
        if field in h:
            return False
        h[field] = value
        return True

    async def hset_if_not(self, key, field, value, extra=None):
        h = self.hashes.get(key)
        if not h or h.get(field) == value:
            return False
        h[field] = value
        h.update(extra or {})
        return True

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def hincrby(self, key, field, amount=1, token=None):
        self._maybe_fail("hincrby", key)
        h = self.hashes.setdefault(key, {})
        if self._first_time(key, None if token is None else f"hincrby:{field}:{token}"):
            h[field] = int(h.get(field, 0)) + amount
        return int(h.get(field, 0))

    async def incr(self, key, token=None):
        self._maybe_fail("incr", key)
        if self._first_time(key, None if token is None else f"incr:{token}"):
            self.values[key] = int(self.values.get(key, 0)) + 1
        return int(self.values.get(key, 0))

    async def decr(self, key, token=None):
        self._maybe_fail("decr", key)
        current = int(self.values.get(key, 0))
        if self._first_time(key, None if token is None else f"decr:{token}") and current > 0:
            self.values[key] = current - 1
        return int(self.values.get(key, 0))

    async def get(self, key):
        self._maybe_fail("get", key)
        return self.values.get(key)

    async def set(self, key, value, ttl=None):
        self.values[key] = value
        self.applied.pop(key, None)
        if ttl is not None:
            self.ttls[key] = ttl

    async def expire(self, key, ttl):
        if key in self.hashes or key in self.values:
            self.ttls[key] = ttl
            return True
        return False

    async def delete(self, key):
        self.hashes.pop(key, None)
        self.values.pop(key, None)
        self.ttls.pop(key, None)
        self.applied.pop(key, None)

    async def forget(self, key):
        self.applied.pop(key, None)

    async def keys(self, prefix):
        return [k for k in list(self.hashes) + list(self.values) if k.startswith(prefix)]

    async def close(self):
        pass


class FakeJobQueue:
    """
    In-memory JobQueue. Same id rules as the Temporal one: an id that is live
    or completed rejects add(); replace=True only supersedes closed jobs.
    """

    def __init__(self, name: str):
        self.name = name
        self.jobs: Dict[str, QueuedJob] = {}
        self.order: List[str] = []
        self.removed: List[str] = []
        # job id -> run id of its latest execution
        self.run_ids: Dict[str, str] = {}
        self._seq = 0

    async def add(self, name, payload, job_id=None, delay=None, replace=False):
        if job_id is None:
            self._seq += 1
            job_id = f"{name}-{self._seq}"
        existing = self.jobs.get(job_id)
        if existing is not None:
            if not existing.state.is_terminal:
                return False
            if existing.state == JobState.COMPLETED and not replace:
                return False
        self.jobs[job_id] = QueuedJob(
            id=job_id,
            name=name,
            state=JobState.DELAYED if delay else JobState.WAITING,
            root_id=getattr(payload, "root_id", None),
            payload=payload,
        )
        self.order.append(job_id)
        self.run_ids[job_id] = uuid.uuid4().hex
        return True

    async def get_state(self, job_id):
        job = self.jobs.get(job_id)
        return job.state if job else None

    async def get_jobs(self, states: Iterable[JobState], root_id=None):
        wanted = set(states)
        return [
            j for j in self.jobs.values()
            if j.state in wanted and (root_id is None or j.root_id == root_id)
        ]

    async def remove(self, job_id):
        if self.jobs.pop(job_id, None) is not None:
            self.removed.append(job_id)

    def set_state(self, job_id: str, state: JobState) -> None:
        self.jobs[job_id].state = state

    def next_waiting(self) -> Optional[QueuedJob]:
        for job_id in self.order:
            job = self.jobs.get(job_id)
            if job is not None and job.state == JobState.WAITING:
                return job
        return None

    def payloads(self) -> list:
        return [self.jobs[i].payload for i in self.order if i in self.jobs]


class FakeRiot:
    """
    Serves match ids per (puuid, queue) and canned match/timeline payloads.

    errors: match_id or "list:{queue}" -> list of exceptions raised one per call
    """

    def __init__(self):
        self.ids: Dict[tuple, List[str]] = {}
        self.queue_of: Dict[str, int] = {}
        self.no_timeline: set = set()
        self.errors: Dict[str, list] = {}
        self.list_calls: List[dict] = []
        self.match_calls: List[str] = []

    def add_matches(self, puuid: str, queue: int, match_ids: List[str]) -> None:
        self.ids.setdefault((puuid, queue), []).extend(match_ids)
        for m in match_ids:
            self.queue_of[m] = queue

    def _maybe_raise(self, key: str) -> None:
        pending = self.errors.get(key)
        if pending:
            raise pending.pop(0)

    async def list_match_ids(self, region, puuid, start=0, count=100, queue=None, start_time=None):
        self.list_calls.append({"start": start, "count": count, "queue": queue, "start_time": start_time})
        self._maybe_raise(f"list:{queue}")
        return list(self.ids.get((puuid, queue), [])[start:start + count])

    async def get_match(self, match_id, region=None):
        self.match_calls.append(match_id)
        self._maybe_raise(match_id)
        if match_id not in self.queue_of:
            raise RiotAPIError(404, "Data not found")
        return {
            "metadata": {"matchId": match_id},
            "info": {
                "gameCreation": GAME_CREATION_MS,
                "gameVersion": "15.18.512.3456",
                "queueId": self.queue_of[match_id],
            },
        }

    async def get_timeline(self, match_id, region=None):
        if match_id in self.no_timeline:
            return None
        return {"info": {"frames": [{"timestamp": 0}, {"timestamp": 60000}]}}


class FakeStorage:
    def __init__(self):
        self.objects: Dict[str, dict] = {}

    async def put(self, key, payload):
        self.objects[key] = payload
        return key


@pytest.fixture
def store():
    return FakeProgressStore()


@pytest.fixture
def riot():
    return FakeRiot()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def deps(store, riot, storage):
    return ScanDeps(
        store=store,
        list_queue=FakeJobQueue("scan-list"),
        fetch_queue=FakeJobQueue("scan-fetch"),
        riot=riot,
        storage=storage,
        page_size=100,
        timeline_delay=0,
    )


def run(coro):
    return asyncio.run(coro)


async def drain(deps: ScanDeps, max_jobs: int = 10_000) -> int:
    """
    Work both queues until nothing is waiting, the way the workers would:
    each job goes active, runs, then completed (or failed if it raises).
    """
    done = 0
    while done < max_jobs:
        queue = deps.list_queue
        job = queue.next_waiting()
        if job is None:
            queue = deps.fetch_queue
            job = queue.next_waiting()
        if job is None:
            return done

        queue.set_state(job.id, JobState.ACTIVE)
        try:
            if isinstance(job.payload, ListPageJob):
                await process_list_page(deps, job.payload, queue.run_ids[job.id])
            else:
                await process_fetch_match(deps, job.payload, queue.run_ids[job.id])
        except Exception:
            queue.set_state(job.id, JobState.FAILED)
            raise
        queue.set_state(job.id, JobState.COMPLETED)
        done += 1
    return done
