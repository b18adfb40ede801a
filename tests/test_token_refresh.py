import logging
from datetime import timedelta

import pytest
from conftest import NOW, stored_account, upstream_failure

from socialproof.models import Platform
from socialproof.services.events import ACCOUNT_DEACTIVATED, TOKEN_REFRESH_FAILED, TOKEN_REFRESHED
from socialproof.workers.token_refresh import TokenRefreshWorker


@pytest.fixture
def worker(store, vault, events):
    return TokenRefreshWorker(store, vault, horizon_days=7, events=events)


@pytest.fixture
def linked_account(make_account, vault):
    def _make(owner_id="owner-1", expires_in=timedelta(days=2), refresh_token="refresh-old", **fields):
        return make_account(
            owner_id=owner_id,
            platform=Platform.TIKTOK,
            encrypted_access_token=vault.encrypt("access-old"),
            encrypted_refresh_token=vault.encrypt(refresh_token) if refresh_token else None,
            token_expires_at=NOW + expires_in,
            **fields,
        )

    return _make


def test_expiring_token_is_refreshed(worker, linked_account, vault, fake_oauth, events, db):
    account = linked_account()

    summary = worker.run()

    assert summary.refreshed_count == 1
    assert fake_oauth.refreshed == ["refresh-old"]
    row = stored_account(db, account.id)
    assert vault.decrypt(row.encrypted_access_token) == "access-renewed"
    assert vault.decrypt(row.encrypted_refresh_token) == "refresh-renewed"
    assert row.token_expires_at == NOW + timedelta(days=30)
    assert row.is_active
    assert events.names() == [TOKEN_REFRESHED]


def test_unrotated_refresh_token_is_kept(worker, linked_account, fake_oauth, db):
    account = linked_account()
    previous = account.encrypted_refresh_token
    fake_oauth.rotate_refresh_token = False

    worker.run()

    assert stored_account(db, account.id).encrypted_refresh_token == previous


def test_tokens_outside_horizon_are_left_alone(worker, linked_account, fake_oauth):
    linked_account(expires_in=timedelta(days=20))

    summary = worker.run()

    assert summary.to_dict() == {"refreshed": 0, "failed": 0, "deactivated": 0, "failures": []}
    assert fake_oauth.refreshed == []


def test_already_expired_token_is_still_attempted(worker, linked_account, fake_oauth):
    linked_account(expires_in=timedelta(days=-1))

    assert worker.run().refreshed_count == 1


def test_rejected_refresh_deactivates_account(worker, linked_account, fake_oauth, events, db, store):
    account = linked_account()
    fake_oauth.refresh_error = upstream_failure("invalid_grant")

    summary = worker.run()

    assert summary.deactivated_count == 1
    assert summary.failures[0].deactivated is True
    assert "invalid_grant" in summary.failures[0].error
    assert stored_account(db, account.id).is_active is False
    assert events.names() == [ACCOUNT_DEACTIVATED, TOKEN_REFRESH_FAILED]

    # Deactivated accounts drop out of later runs
    assert account.id not in [due.id for due in store.find_due_accounts(NOW)]
    fake_oauth.refresh_error = None
    assert worker.run().refreshed_count == 0


def test_missing_refresh_token_deactivates(worker, linked_account, db):
    account = linked_account(refresh_token=None)

    summary = worker.run()

    assert summary.deactivated_count == 1
    assert stored_account(db, account.id).is_active is False


def test_undecryptable_token_fails_loudly_without_deactivating(worker, linked_account, store, db, caplog):
    account = linked_account()
    store.update_credential(account.id, account.encrypted_access_token, "garbage", account.token_expires_at)
    store.commit()

    with caplog.at_level(logging.CRITICAL):
        summary = worker.run()

    assert summary.failure_count == 1
    assert summary.deactivated_count == 0
    assert stored_account(db, account.id).is_active is True
    assert any(
        record.levelno == logging.CRITICAL and record.name == "socialproof.workers.token_refresh"
        for record in caplog.records
    )


def test_one_failure_does_not_block_others(worker, linked_account, store, db):
    broken = linked_account(owner_id="owner-1")
    healthy = linked_account(owner_id="owner-2")
    store.update_credential(broken.id, broken.encrypted_access_token, "garbage", broken.token_expires_at)
    store.commit()

    summary = worker.run()

    assert summary.refreshed_count == 1
    assert summary.failure_count == 1
    assert stored_account(db, healthy.id).token_expires_at == NOW + timedelta(days=30)


def test_overlapping_refresh_run_is_skipped(store, vault, fake_oauth, linked_account):
    worker = TokenRefreshWorker(store, vault)
    nested = []
    original = fake_oauth.refresh_access_token

    def refresh_and_reenter(refresh_token):
        nested.append(worker.run())
        return original(refresh_token)

    fake_oauth.refresh_access_token = refresh_and_reenter
    linked_account()

    assert worker.run().refreshed_count == 1
    assert nested == [None]
