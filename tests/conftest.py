from datetime import datetime, timedelta

import pytest
from cryptography.fernet import Fernet
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from socialproof.core.cache_policy import CachePolicy
from socialproof.core.errors import UpstreamError
from socialproof.db.base import Base
from socialproof.models import Platform, SocialAccount
from socialproof.schemas import TokenGrant
from socialproof.services.account_store import SqlAccountStore
from socialproof.services.credential_vault import CredentialVault
from socialproof.services.events import EventSink
from socialproof.services.identity import StaticIdentityLookup

NOW = datetime(2025, 6, 1, 12, 0, 0)


class FrozenClock:
    def __init__(self, now=NOW):
        self.current = now

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)


class RecordingEventSink(EventSink):
    def __init__(self):
        self.events = []

    def emit(self, event, payload):
        self.events.append((event, payload))

    def names(self):
        return [name for name, _ in self.events]


class FakeApify:
    """
    Stand-in for ApifyClient. ``responses`` maps an actor id to a list of
    items, an exception instance, or a callable taking the run input.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    def run_actor(self, actor_id, run_input, limit=None):
        self.calls.append((actor_id, run_input))
        response = self.responses.get(actor_id, [])
        if isinstance(response, Exception):
            raise response
        if callable(response):
            response = response(run_input)
            if isinstance(response, Exception):
                raise response
        return list(response)


class FakeOAuth:
    def __init__(self, profile=None, videos=None, now=NOW):
        self.profile = profile or {}
        self.videos = videos or []
        self.now = now
        self.refresh_error = None
        self.revoke_error = None
        self.exchanged = []
        self.refreshed = []
        self.revoked = []
        self.rotate_refresh_token = True

    def get_authorization_url(self, state=None):
        return f"https://www.tiktok.com/v2/auth/authorize/?state={state}"

    def exchange_code_for_token(self, code):
        self.exchanged.append(code)
        return TokenGrant(
            access_token=f"access-{code}",
            refresh_token=f"refresh-{code}",
            expires_at=self.now + timedelta(days=1),
            open_id="open-123",
        )

    def refresh_access_token(self, refresh_token):
        self.refreshed.append(refresh_token)
        if self.refresh_error is not None:
            raise self.refresh_error
        return TokenGrant(
            access_token="access-renewed",
            refresh_token="refresh-renewed" if self.rotate_refresh_token else None,
            expires_at=self.now + timedelta(days=30),
        )

    def revoke_token(self, access_token):
        self.revoked.append(access_token)
        if self.revoke_error is not None:
            raise self.revoke_error

    def get_user_profile(self, access_token):
        return dict(self.profile)

    def get_user_videos(self, access_token, max_count=20):
        return list(self.videos)


@pytest.fixture(scope="session")
def fernet_key():
    return Fernet.generate_key().decode()


@pytest.fixture(autouse=True)
def encryption_env(monkeypatch, fernet_key):
    monkeypatch.setenv("ENCRYPTION_KEY", fernet_key)


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def store(db):
    return SqlAccountStore(db)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def cache_policy(clock):
    return CachePolicy(ttl_days=7, clock=clock)


@pytest.fixture
def identity():
    return StaticIdentityLookup({"owner-1": "influencer", "owner-2": "influencer", "brand-1": "brand"})


@pytest.fixture
def events():
    return RecordingEventSink()


@pytest.fixture
def fake_oauth():
    return FakeOAuth()


@pytest.fixture
def vault(fake_oauth, fernet_key, clock):
    return CredentialVault(providers={Platform.TIKTOK: fake_oauth}, key=fernet_key, clock=clock)


@pytest.fixture
def make_account(store):
    def _make(owner_id="owner-1", platform=Platform.INSTAGRAM, **fields):
        values = {
            "external_id": fields.pop("external_id", "ext-1"),
            "external_username": fields.pop("external_username", "creator"),
            "is_active": True,
            "extra_metadata": {},
        }
        values.update(fields)
        account = store.upsert_account(owner_id, platform, values)
        store.commit()
        return account

    return _make


def upstream_failure(message="actor failed"):
    return UpstreamError(message, status_code=500)


def stored_account(db, account_id):
    db.expire_all()
    return db.query(SocialAccount).filter(SocialAccount.id == account_id).first()
