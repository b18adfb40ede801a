from datetime import timedelta

import pytest
from conftest import NOW, FakeApify, stored_account, upstream_failure
from payloads import instagram_profile

from socialproof.models import Platform
from socialproof.services.adapters import InstagramAdapter
from socialproof.services.events import ACCOUNT_FAILED, ACCOUNT_SYNCED, BATCH_FINISHED, BATCH_STARTED
from socialproof.services.registry import AdapterRegistry
from socialproof.workers.single_flight import SingleFlight
from socialproof.workers.sync_scheduler import FAILURE, SUCCESS, DataSyncScheduler

ACTOR = "apify/instagram-profile-scraper"


def by_username(run_input):
    username = run_input["usernames"][0]
    if username == "broken":
        return upstream_failure("actor exploded")
    return [instagram_profile(username=username)]


@pytest.fixture
def apify():
    return FakeApify({ACTOR: by_username})


@pytest.fixture
def registry(apify, store, cache_policy, identity, events):
    return AdapterRegistry({
        Platform.INSTAGRAM: InstagramAdapter(apify, ACTOR, store, cache_policy, identity, events),
    })


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def scheduler(store, registry, cache_policy, events, sleeps):
    return DataSyncScheduler(store, registry, cache_policy, delay_ms=2000, events=events, sleep=sleeps.append)


def test_only_stale_accounts_are_synced(scheduler, make_account, apify, db):
    stale = make_account(owner_id="a", external_username="stale", last_synced_at=NOW - timedelta(days=8))
    fresh = make_account(owner_id="b", external_username="fresh", last_synced_at=NOW - timedelta(days=1))

    summary = scheduler.run()

    assert summary.success_count == 1
    assert summary.failure_count == 0
    assert [call[1]["usernames"] for call in apify.calls] == [["stale"]]
    assert stored_account(db, stale.id).last_synced_at == NOW
    assert stored_account(db, fresh.id).last_synced_at == NOW - timedelta(days=1)


def test_sleeps_between_accounts_not_before_first(scheduler, make_account, sleeps):
    make_account(owner_id="a", external_username="one")
    make_account(owner_id="b", external_username="two")

    scheduler.run()

    assert sleeps == [2.0]


def test_zero_delay_never_sleeps(store, registry, cache_policy, make_account):
    calls = []
    scheduler = DataSyncScheduler(store, registry, cache_policy, delay_ms=0, sleep=calls.append)
    make_account(owner_id="a", external_username="one")
    make_account(owner_id="b", external_username="two")

    scheduler.run()

    assert calls == []


def test_failing_account_does_not_stop_the_batch(scheduler, make_account, events, db):
    first = make_account(owner_id="a", external_username="one")
    broken = make_account(owner_id="b", external_username="broken")
    last = make_account(owner_id="c", external_username="three")

    summary = scheduler.run()

    assert summary.success_count == 2
    assert summary.failure_count == 1
    assert summary.failures[0].account_id == broken.id
    assert summary.failures[0].outcome == FAILURE
    assert "actor exploded" in summary.failures[0].error
    assert stored_account(db, first.id).last_synced_at == NOW
    assert stored_account(db, last.id).last_synced_at == NOW
    assert stored_account(db, broken.id).last_synced_at is None

    names = events.names()
    assert names[0] == BATCH_STARTED
    assert names[-1] == BATCH_FINISHED
    assert names.count(ACCOUNT_SYNCED) == 2
    assert names.count(ACCOUNT_FAILED) == 1
    assert events.events[-1][1] == summary.to_dict()


def test_platform_without_adapter_is_recorded_as_failure(scheduler, make_account):
    make_account(owner_id="a", platform=Platform.YOUTUBE)
    make_account(owner_id="b", external_username="fine")

    summary = scheduler.run()

    assert summary.to_dict()["success"] == 1
    assert summary.to_dict()["failed"] == 1
    assert summary.failures[0].platform == "YOUTUBE"


def test_inactive_accounts_are_skipped(scheduler, make_account, apify):
    make_account(owner_id="a", is_active=False)

    summary = scheduler.run()

    assert summary.total == 0
    assert apify.calls == []


def test_overlapping_run_is_skipped(store, registry, cache_policy, make_account):
    nested = []

    def sleep(seconds):
        nested.append(scheduler.run())
        nested.append(scheduler.run_catch_up())

    scheduler = DataSyncScheduler(store, registry, cache_policy, delay_ms=10, sleep=sleep)
    make_account(owner_id="a", external_username="one")
    make_account(owner_id="b", external_username="two")

    summary = scheduler.run()

    assert nested == [None, None]
    assert summary.success_count == 2
    assert not scheduler.running


def test_guard_shared_between_schedulers(store, registry, cache_policy, make_account):
    guard = SingleFlight("shared")
    other = DataSyncScheduler(store, registry, cache_policy, guard=guard)
    seen = []

    def sleep(seconds):
        seen.append(other.run())

    scheduler = DataSyncScheduler(store, registry, cache_policy, delay_ms=10, sleep=sleep, guard=guard)
    make_account(owner_id="a", external_username="one")
    make_account(owner_id="b", external_username="two")

    scheduler.run_catch_up()

    assert seen == [None]


def test_second_run_after_batch_finds_nothing_due(scheduler, make_account, clock):
    make_account(owner_id="a", external_username="one")
    assert scheduler.run().success_count == 1

    assert scheduler.run().total == 0
    clock.advance(days=7)
    assert scheduler.run().success_count == 1


def test_sync_account_success_result(scheduler, make_account):
    account = make_account(owner_id="a", external_username="one")

    result = scheduler.sync_account(account.id, "INSTAGRAM")

    assert result.outcome == SUCCESS
    assert result.cached is False


def test_sync_account_for_missing_row(scheduler):
    result = scheduler.sync_account(424242, "INSTAGRAM")
    assert result.outcome == FAILURE
    assert "no longer exists" in result.error
