"""Tests for the Temporal activity wrappers"""
from datetime import timedelta

import pytest
from temporalio.exceptions import ApplicationError
from temporalio.testing import ActivityEnvironment

from rewind.activities import rewind as rewind_activities
from rewind.activities import scan as scan_activities
from rewind.api.riot_client import RateLimitedError, RiotAPIError
from rewind.core.keys import open_fetch_key, prog_key
from rewind.data.models import FetchMatchJob, ListPageJob, ScanRequest
from rewind.services import get_services, set_services

from conftest import SEASON, run

PUUID = "puuid-abc"


@pytest.fixture
def services(deps):
    set_services(deps)
    yield deps
    set_services(None)


@pytest.fixture
def env():
    env = ActivityEnvironment()
    env.heartbeats = []
    env.on_heartbeat = lambda *details: env.heartbeats.append(details)
    return env


def scan_request():
    return ScanRequest(scope="player", region="europe", puuid=PUUID, season=SEASON, queues=[420])


class TestScanActivities:

    def test_services_must_be_initialized(self):
        set_services(None)

        with pytest.raises(RuntimeError):
            get_services()

    def test_start_scan_returns_root_id(self, services, env):
        root_id = run(env.run(rewind_activities.start_scan, scan_request()))

        assert services.store.hashes[prog_key(root_id)]["state"] == "listing"
        assert len(services.list_queue.jobs) == 1

    def test_list_rate_limit_becomes_retryable_application_error(self, services, env):
        root_id = run(env.run(rewind_activities.start_scan, scan_request()))
        services.riot.errors["list:420"] = [RateLimitedError(7.0)]
        job = ListPageJob(region="europe", puuid=PUUID, start=0, season=SEASON, queue=420, root_id=root_id)

        with pytest.raises(ApplicationError) as exc:
            run(env.run(scan_activities.process_list_page, job))

        assert exc.value.type == "RateLimited"
        assert exc.value.non_retryable is False
        assert exc.value.next_retry_delay == timedelta(seconds=7)
        assert env.heartbeats == [({"retryAfter": 7.0},)]

    def test_fetch_rate_limit_becomes_retryable_application_error(self, services, env):
        services.riot.add_matches(PUUID, 420, ["EUW1_1"])
        services.riot.errors["EUW1_1"] = [RateLimitedError(2.0)]
        job = FetchMatchJob(region="europe", puuid=PUUID, match_id="EUW1_1", root_id="root")

        with pytest.raises(ApplicationError) as exc:
            run(env.run(scan_activities.process_fetch_match, job))

        assert exc.value.next_retry_delay == timedelta(seconds=2)

    def test_other_errors_pass_through(self, services, env):
        job = FetchMatchJob(region="europe", puuid=PUUID, match_id="EUW1_404", root_id="root")

        with pytest.raises(RiotAPIError) as exc:
            run(env.run(scan_activities.process_fetch_match, job))

        assert exc.value.status == 404

    def test_release_fetch_match(self, services, env):
        root_id = run(env.run(rewind_activities.start_scan, scan_request()))
        services.store.values[open_fetch_key(root_id)] = 1

        ready = run(env.run(scan_activities.release_fetch_match, root_id, "run-1"))

        # The first list page is still open
        assert ready is False
        assert services.store.values[open_fetch_key(root_id)] == 0

    def test_attempts_of_one_run_count_once(self, services, env):
        root_id = run(env.run(rewind_activities.start_scan, scan_request()))
        services.riot.add_matches(PUUID, 420, ["EUW1_1"])
        services.store.values[open_fetch_key(root_id)] = 2
        job = FetchMatchJob(region="europe", puuid=PUUID, match_id="EUW1_1", root_id=root_id)

        # Both attempts carry the environment's workflow run id
        run(env.run(scan_activities.process_fetch_match, job))
        run(env.run(scan_activities.process_fetch_match, job))
        run(env.run(scan_activities.release_fetch_match, root_id, env.info.workflow_run_id))

        assert services.store.values[open_fetch_key(root_id)] == 1
        assert services.store.hashes[prog_key(root_id)]["matchesFetched"] == 1
