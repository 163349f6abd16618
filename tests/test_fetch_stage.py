"""Tests for the fetch stage - S3 layout, partial timelines and counter safety"""
import pytest

from rewind.api.riot_client import RateLimitedError, RiotAPIError
from rewind.core.fetch_stage import process_fetch_match, release_fetch_match, season_of, timeline_frames
from rewind.core.keys import open_fetch_key, open_pages_key, prog_key
from rewind.core.orchestrator import start_scan
from rewind.data.models import FetchMatchJob, JobState, ScanRequest

from conftest import SEASON, drain, run

PUUID = "puuid-abc"
MATCH_KEY = "raw/matches/season=2025/patch=15.18/queue=420/matchId=EUW1_1.jsonl.gz"
TIMELINE_KEY = "raw/timelines/season=2025/patch=15.18/queue=420/matchId=EUW1_1.jsonl.gz"


def one_match_scan(deps, riot):
    riot.add_matches(PUUID, 420, ["EUW1_1"])

    async def scenario():
        root_id = await start_scan(
            deps, ScanRequest(scope="player", region="europe", puuid=PUUID, season=SEASON, queues=[420])
        )
        await drain(deps)
        return root_id

    return run(scenario())


def fetch_job(root_id, match_id="EUW1_1"):
    return FetchMatchJob(region="europe", puuid=PUUID, match_id=match_id, root_id=root_id)


class TestFetchMatch:

    def test_single_match_scan_becomes_ready(self, deps, store, riot, storage):
        root_id = one_match_scan(deps, riot)

        prog = store.hashes[prog_key(root_id)]
        assert prog["state"] == "ready"
        assert prog["matchesFetched"] == 1
        assert prog["timelinesFetched"] == 1
        assert set(storage.objects) == {MATCH_KEY, TIMELINE_KEY}

    def test_match_record_layout(self, deps, riot, storage):
        one_match_scan(deps, riot)

        record = storage.objects[MATCH_KEY]
        assert record["matchId"] == "EUW1_1"
        assert record["season"] == 2025
        assert record["patch"] == "15.18"
        assert record["queue"] == 420
        assert record["schemaVersion"] == 1
        assert record["source"] == "riot-api"
        assert record["info"]["gameVersion"] == "15.18.512.3456"
        assert len(storage.objects[TIMELINE_KEY]["frames"]) == 2

    def test_missing_timeline_still_counts_the_match(self, deps, store, riot, storage):
        riot.no_timeline.add("EUW1_1")

        root_id = one_match_scan(deps, riot)

        prog = store.hashes[prog_key(root_id)]
        assert prog["matchesFetched"] == 1
        assert prog["timelinesFetched"] == 0
        assert prog["state"] == "ready"
        assert set(storage.objects) == {MATCH_KEY}

    def test_returns_partition_summary(self, deps, riot):
        riot.add_matches(PUUID, 420, ["EUW1_1"])
        root_id = run(start_scan(
            deps, ScanRequest(scope="player", region="europe", puuid=PUUID, season=SEASON, queues=[420])
        ))
        run(deps.store.set(open_fetch_key(root_id), 1))

        result = run(process_fetch_match(deps, fetch_job(root_id), "run-1"))

        assert result == {"queueId": 420, "patch": "15.18", "timeline": True}

    def test_upstream_error_leaves_open_fetch_untouched(self, deps, store, riot, storage):
        riot.add_matches(PUUID, 420, ["EUW1_1"])
        root_id = run(start_scan(
            deps, ScanRequest(scope="player", region="europe", puuid=PUUID, season=SEASON, queues=[420])
        ))
        run(store.set(open_fetch_key(root_id), 1))
        riot.errors["EUW1_1"] = [RiotAPIError(500, "boom")]

        with pytest.raises(RiotAPIError):
            run(process_fetch_match(deps, fetch_job(root_id), "run-1"))

        assert store.values[open_fetch_key(root_id)] == 1
        assert store.hashes[prog_key(root_id)]["matchesFetched"] == 0
        assert not storage.objects

    def test_rate_limit_is_reported(self, deps, store, riot):
        riot.add_matches(PUUID, 420, ["EUW1_1"])
        root_id = run(start_scan(
            deps, ScanRequest(scope="player", region="europe", puuid=PUUID, season=SEASON, queues=[420])
        ))
        run(store.set(open_fetch_key(root_id), 1))
        riot.errors["EUW1_1"] = [RateLimitedError(12.0)]
        seen = []

        with pytest.raises(RateLimitedError):
            run(process_fetch_match(deps, fetch_job(root_id), "run-1", on_rate_limited=seen.append))

        assert seen == [12.0]
        assert store.values[open_fetch_key(root_id)] == 1


class TestFetchRetries:
    """A fetch attempt that fails after its counter step is retried under the same run id"""

    def _two_listed_matches(self, deps, riot):
        riot.add_matches(PUUID, 420, ["EUW1_1", "EUW1_2"])

        async def scenario():
            root_id = await start_scan(
                deps, ScanRequest(scope="player", region="europe", puuid=PUUID, season=SEASON, queues=[420])
            )
            await drain(deps, max_jobs=1)
            return root_id

        root_id = run(scenario())
        deps.fetch_queue.set_state("EUW1_1", JobState.ACTIVE)
        deps.fetch_queue.set_state("EUW1_2", JobState.ACTIVE)
        return root_id

    def test_retry_after_decrement_keeps_sibling_open(self, deps, store, riot):
        root_id = self._two_listed_matches(deps, riot)
        run_id = deps.fetch_queue.run_ids["EUW1_1"]
        # Completion check fails after the match was counted and its slot given back
        store.fail_once("get", open_pages_key(root_id))

        with pytest.raises(ConnectionError):
            run(process_fetch_match(deps, fetch_job(root_id), run_id))
        run(process_fetch_match(deps, fetch_job(root_id), run_id))

        prog = store.hashes[prog_key(root_id)]
        assert prog["matchesFetched"] == 1
        assert prog["timelinesFetched"] == 1
        assert prog["state"] == "listing"
        assert store.values[open_fetch_key(root_id)] == 1

    def test_release_after_counted_attempt_does_not_decrement_again(self, deps, store, riot):
        root_id = self._two_listed_matches(deps, riot)
        run_id = deps.fetch_queue.run_ids["EUW1_1"]
        store.fail_once("get", open_pages_key(root_id))

        with pytest.raises(ConnectionError):
            run(process_fetch_match(deps, fetch_job(root_id), run_id))
        ready = run(release_fetch_match(deps, root_id, run_id))

        assert ready is False
        assert store.values[open_fetch_key(root_id)] == 1
        assert store.hashes[prog_key(root_id)]["state"] == "listing"

    def test_failure_before_decrement_is_applied_by_the_retry(self, deps, store, riot):
        root_id = self._two_listed_matches(deps, riot)
        run_id = deps.fetch_queue.run_ids["EUW1_1"]
        store.fail_once("decr", open_fetch_key(root_id))

        with pytest.raises(ConnectionError):
            run(process_fetch_match(deps, fetch_job(root_id), run_id))
        run(process_fetch_match(deps, fetch_job(root_id), run_id))

        assert store.hashes[prog_key(root_id)]["matchesFetched"] == 1
        assert store.values[open_fetch_key(root_id)] == 1

    def test_two_stalled_siblings_finish_the_scan_exactly_once(self, deps, store, riot):
        root_id = self._two_listed_matches(deps, riot)
        store.fail_once("get", open_pages_key(root_id))
        first = deps.fetch_queue.run_ids["EUW1_1"]

        with pytest.raises(ConnectionError):
            run(process_fetch_match(deps, fetch_job(root_id), first))
        run(process_fetch_match(deps, fetch_job(root_id), first))
        deps.fetch_queue.set_state("EUW1_1", JobState.COMPLETED)
        run(process_fetch_match(deps, fetch_job(root_id, "EUW1_2"), deps.fetch_queue.run_ids["EUW1_2"]))

        prog = store.hashes[prog_key(root_id)]
        assert prog["state"] == "ready"
        assert prog["matchesFetched"] == 2
        assert store.values[open_fetch_key(root_id)] == 0


class TestFetchHelpers:

    def test_season_is_utc_year_of_game_creation(self):
        # 2024-12-31T23:30:00Z
        assert season_of({"gameCreation": 1735687800000}) == 2024
        assert season_of({"gameCreation": 1735689600000}) == 2025

    def test_timeline_frames(self):
        assert timeline_frames(None) == []
        assert timeline_frames({"info": {}}) == []
        assert timeline_frames({"info": {"frames": "bad"}}) == []
        assert timeline_frames({"info": {"frames": [1, 2]}}) == [1, 2]
