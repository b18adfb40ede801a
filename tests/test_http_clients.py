from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from socialproof.core.errors import UpstreamError
from socialproof.services.apify_client import ApifyClient
from socialproof.services.tiktok_oauth import MAX_VIDEOS_PER_PAGE, TikTokOAuthClient
from socialproof.utils.timeparse import utcnow


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else ("" if body is None else str(body))

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def _respond(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def post(self, url, **kwargs):
        return self._respond("POST", url, kwargs)

    def request(self, method, url, **kwargs):
        return self._respond(method, url, kwargs)


# ------------------
# Apify
# ------------------


def test_apify_requires_token():
    with pytest.raises(ValueError):
        ApifyClient("")


def test_apify_run_actor_posts_input_with_bearer_token():
    session = FakeSession(FakeResponse(201, [{"username": "a"}, {"username": "b"}]))
    client = ApifyClient("secret-token", run_timeout_seconds=60, session=session)

    items = client.run_actor("apify/instagram-profile-scraper", {"usernames": ["a"]}, limit=5)

    assert items == [{"username": "a"}, {"username": "b"}]
    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == "https://api.apify.com/v2/acts/apify~instagram-profile-scraper/run-sync-get-dataset-items"
    assert kwargs["json"] == {"usernames": ["a"]}
    assert kwargs["params"] == {"timeout": 60, "limit": 5}
    assert kwargs["headers"]["Authorization"] == "Bearer secret-token"
    assert kwargs["timeout"] == 90
    assert "secret-token" not in url
    assert "secret-token" not in repr(client)


@pytest.mark.parametrize(
    "session",
    [
        FakeSession(error=requests.Timeout()),
        FakeSession(error=requests.ConnectionError()),
        FakeSession(FakeResponse(200, None, text="<html>")),
        FakeSession(FakeResponse(200, {"error": "not a list"})),
    ],
    ids=["timeout", "connection", "invalid-json", "not-a-list"],
)
def test_apify_failures_are_upstream_errors(session):
    with pytest.raises(UpstreamError):
        ApifyClient("token", session=session).run_actor("a/b", {})


def test_apify_http_error_keeps_status():
    session = FakeSession(FakeResponse(402, {"error": {"type": "not-enough-usage"}}))

    with pytest.raises(UpstreamError) as exc_info:
        ApifyClient("token", session=session).run_actor("a/b", {})
    assert exc_info.value.status_code == 402


# ------------------
# TikTok OAuth
# ------------------


def oauth_client(response=None, error=None):
    session = FakeSession(response, error)
    client = TikTokOAuthClient("client-key", "client-secret", "https://app.example.com/cb", session=session)
    return client, session


def test_authorization_url():
    client, _ = oauth_client()

    query = parse_qs(urlparse(client.get_authorization_url("state-1")).query)

    assert query["client_key"] == ["client-key"]
    assert query["response_type"] == ["code"]
    assert query["redirect_uri"] == ["https://app.example.com/cb"]
    assert query["state"] == ["state-1"]
    assert "video.list" in query["scope"][0].split(",")


def test_authorization_url_generates_state():
    client, _ = oauth_client()

    first = parse_qs(urlparse(client.get_authorization_url()).query)["state"][0]
    second = parse_qs(urlparse(client.get_authorization_url()).query)["state"][0]

    assert first and second and first != second


def test_exchange_code_for_token():
    client, session = oauth_client(FakeResponse(200, {
        "access_token": "act.1",
        "refresh_token": "rft.1",
        "expires_in": 86400,
        "open_id": "open-1",
        "scope": "user.info.basic",
    }))
    before = utcnow()

    grant = client.exchange_code_for_token("code-1")

    assert grant.access_token == "act.1"
    assert grant.refresh_token == "rft.1"
    assert grant.open_id == "open-1"
    assert before + timedelta(seconds=86400) <= grant.expires_at <= utcnow() + timedelta(seconds=86400)
    _, url, kwargs = session.calls[0]
    assert url == "https://open.tiktokapis.com/v2/oauth/token/"
    assert kwargs["data"]["grant_type"] == "authorization_code"
    assert kwargs["data"]["code"] == "code-1"


def test_refresh_reads_nested_grant():
    client, session = oauth_client(FakeResponse(200, {"data": {"access_token": "act.2", "expires_in": 60}}))

    grant = client.refresh_access_token("rft.1")

    assert grant.access_token == "act.2"
    assert grant.refresh_token is None
    assert session.calls[0][2]["data"]["grant_type"] == "refresh_token"


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(400, {"error": "invalid_grant", "error_description": "Refresh token is invalid"}),
        FakeResponse(200, {"error": "invalid_request"}),
        FakeResponse(200, {"expires_in": 60}),
        FakeResponse(502, None, text="Bad Gateway"),
    ],
    ids=["rejected", "error-body", "no-access-token", "bad-gateway"],
)
def test_refresh_failures_are_upstream_errors(response):
    client, _ = oauth_client(response)
    with pytest.raises(UpstreamError):
        client.refresh_access_token("rft.1")


def test_token_request_timeout():
    client, _ = oauth_client(error=requests.Timeout())
    with pytest.raises(UpstreamError, match="timed out"):
        client.exchange_code_for_token("code")


def test_revoke_token_posts_to_revoke_endpoint():
    client, session = oauth_client(FakeResponse(200, {}))

    client.revoke_token("act.1")

    _, url, kwargs = session.calls[0]
    assert url == "https://open.tiktokapis.com/v2/oauth/revoke/"
    assert kwargs["data"]["token"] == "act.1"


def test_user_profile_uses_bearer_header():
    client, session = oauth_client(FakeResponse(200, {
        "data": {"user": {"open_id": "open-1", "follower_count": 10}},
        "error": {"code": "ok", "message": ""},
    }))

    user = client.get_user_profile("act.1")

    assert user == {"open_id": "open-1", "follower_count": 10}
    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert url == "https://open.tiktokapis.com/v2/user/info/"
    assert kwargs["headers"]["Authorization"] == "Bearer act.1"
    assert "act.1" not in url
    assert "follower_count" in kwargs["params"]["fields"]


def test_user_videos_caps_page_size():
    client, session = oauth_client(FakeResponse(200, {
        "data": {"videos": [{"id": "v1"}], "has_more": False},
        "error": {"code": "ok"},
    }))

    assert client.get_user_videos("act.1", max_count=50) == [{"id": "v1"}]
    assert session.calls[0][2]["json"] == {"max_count": MAX_VIDEOS_PER_PAGE}


def test_resource_error_code_is_upstream_error():
    client, _ = oauth_client(FakeResponse(401, {
        "error": {"code": "access_token_invalid", "message": "The access token is invalid"},
    }))

    with pytest.raises(UpstreamError) as exc_info:
        client.get_user_profile("act.1")
    assert exc_info.value.status_code == 401
    assert "access token is invalid" in str(exc_info.value)
