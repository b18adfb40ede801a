from datetime import datetime, timedelta

import pytest
from conftest import NOW
from sqlalchemy.exc import IntegrityError

from socialproof.models import MediaType, Platform, SocialAccount, SocialPost
from socialproof.schemas import CanonicalPost


def canonical_post(post_id, posted_at, likes=10, caption="", metadata=None):
    return CanonicalPost(
        external_post_id=post_id,
        media_type="VIDEO",
        caption=caption,
        like_count=likes,
        comment_count=1,
        posted_at=posted_at,
        metadata=metadata or {},
    )


def test_upsert_creates_then_updates_same_row(store, make_account):
    first = make_account(follower_count=10)
    second = store.upsert_account("owner-1", Platform.INSTAGRAM, {"follower_count": 20})
    store.commit()

    assert second.id == first.id
    assert second.follower_count == 20
    assert store.db.query(SocialAccount).count() == 1


def test_one_account_per_owner_and_platform(store, make_account):
    make_account(platform=Platform.INSTAGRAM)
    make_account(platform=Platform.TIKTOK)
    make_account(owner_id="owner-2", platform=Platform.INSTAGRAM)

    assert store.db.query(SocialAccount).count() == 3


def test_database_rejects_duplicate_owner_platform(db, make_account):
    make_account()
    db.add(SocialAccount(owner_id="owner-1", platform=Platform.INSTAGRAM, external_id="x", external_username="x"))
    with pytest.raises(IntegrityError):
        db.flush()
    db.rollback()


def test_upsert_rejects_unknown_fields(store):
    with pytest.raises(ValueError, match="password"):
        store.upsert_account("owner-1", Platform.INSTAGRAM, {"password": "x"})


def test_last_synced_at_never_moves_backwards(store, make_account):
    account = make_account(last_synced_at=NOW)
    store.upsert_account("owner-1", Platform.INSTAGRAM, {"last_synced_at": NOW - timedelta(days=1)})
    assert account.last_synced_at == NOW

    store.upsert_account("owner-1", Platform.INSTAGRAM, {"last_synced_at": NOW + timedelta(hours=1)})
    assert account.last_synced_at == NOW + timedelta(hours=1)


def test_upsert_post_updates_counters_in_place(store, make_account):
    account = make_account()
    store.upsert_post(account.id, canonical_post("p1", NOW, likes=10, caption="first", metadata={"a": 1}))
    store.upsert_post(account.id, canonical_post("p1", NOW, likes=99, caption="", metadata={"b": 2}))
    store.commit()

    rows = store.db.query(SocialPost).all()
    assert len(rows) == 1
    assert rows[0].like_count == 99
    assert rows[0].caption == "first"
    assert rows[0].extra_metadata == {"a": 1, "b": 2}
    assert rows[0].media_type == MediaType.VIDEO


def test_list_posts_newest_first_with_limit(store, make_account):
    account = make_account()
    for day in (1, 3, 2):
        store.upsert_post(account.id, canonical_post(f"p{day}", datetime(2025, 5, day)))
    store.commit()

    posts = store.list_posts(account.id, limit=2)

    assert [p.external_post_id for p in posts] == ["p3", "p2"]
    assert store.count_posts(account.id) == 3


def test_delete_account_removes_posts(store, make_account):
    account = make_account()
    account_id = account.id
    store.upsert_post(account_id, canonical_post("p1", NOW))
    store.commit()

    store.delete_account(account_id)
    store.commit()

    assert account.id == account_id
    assert store.find_account(account_id) is None
    assert store.db.query(SocialPost).count() == 0


def test_deactivate_keeps_the_row(store, make_account):
    account = make_account()
    store.deactivate_account(account.id)
    store.commit()

    assert store.find_account(account.id).is_active is False
    store.deactivate_account(9999)


def test_due_accounts_are_active_and_stale(store, make_account):
    never = make_account(owner_id="a")
    stale = make_account(owner_id="b", last_synced_at=NOW - timedelta(days=8))
    make_account(owner_id="c", last_synced_at=NOW - timedelta(days=1))
    make_account(owner_id="d", last_synced_at=NOW - timedelta(days=30), is_active=False)
    boundary = make_account(owner_id="e", last_synced_at=NOW - timedelta(days=7))

    due = store.find_due_accounts(NOW - timedelta(days=7))

    assert [a.id for a in due] == [never.id, stale.id, boundary.id]


def test_expiring_credentials(store, make_account):
    soon = make_account(
        owner_id="a",
        platform=Platform.TIKTOK,
        encrypted_access_token="enc",
        token_expires_at=NOW + timedelta(days=2),
    )
    make_account(
        owner_id="b",
        platform=Platform.TIKTOK,
        encrypted_access_token="enc",
        token_expires_at=NOW + timedelta(days=20),
    )
    make_account(owner_id="c", platform=Platform.TIKTOK, token_expires_at=NOW)
    make_account(
        owner_id="d",
        platform=Platform.TIKTOK,
        encrypted_access_token="enc",
        token_expires_at=NOW,
        is_active=False,
    )

    assert [a.id for a in store.find_expiring_credentials(NOW + timedelta(days=7))] == [soon.id]


def test_update_credential(store, make_account):
    account = make_account(platform=Platform.TIKTOK, encrypted_access_token="old")
    store.update_credential(account.id, "new", None, NOW)
    store.commit()

    assert account.credential.encrypted_access_token == "new"
    assert account.credential.encrypted_refresh_token is None
    assert account.credential.expires_at == NOW
    assert account.is_oauth

    with pytest.raises(ValueError):
        store.update_credential(9999, "x", None, NOW)


def test_scrape_accounts_have_no_credential(make_account):
    account = make_account()
    assert account.credential is None
    assert not account.is_oauth
