"""
TikTok for Developers (v2) OAuth and resource client.

Flow:
1. Owner is redirected to ``get_authorization_url(state)``.
2. TikTok redirects back with a code; ``exchange_code_for_token(code)``.
3. Tokens are encrypted by the Credential Vault before they touch the store.
4. ``refresh_access_token`` renews them before expiry.

Access tokens are passed as bearer headers only, never in URLs or logs.
"""
import logging
import secrets
from datetime import timedelta
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import requests

from socialproof.core.errors import UpstreamError
from socialproof.schemas import TokenGrant
from socialproof.utils.timeparse import utcnow

logger = logging.getLogger(__name__)

TIKTOK_AUTH_URL = "https://www.tiktok.com/v2/auth/authorize/"
TIKTOK_API_BASE = "https://open.tiktokapis.com"

OAUTH_SCOPES = ["user.info.basic", "user.info.profile", "user.info.stats", "video.list"]

USER_FIELDS = [
    "open_id",
    "union_id",
    "avatar_url",
    "avatar_large_url",
    "display_name",
    "username",
    "bio_description",
    "profile_deep_link",
    "is_verified",
    "follower_count",
    "following_count",
    "likes_count",
    "video_count",
]

VIDEO_FIELDS = [
    "id",
    "create_time",
    "cover_image_url",
    "share_url",
    "video_description",
    "duration",
    "title",
    "like_count",
    "comment_count",
    "share_count",
    "view_count",
]

# TikTok caps video.list pages at 20
MAX_VIDEOS_PER_PAGE = 20


class TikTokOAuthClient:
    def __init__(
        self,
        client_key: str,
        client_secret: str,
        redirect_uri: str,
        timeout_seconds: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.client_key = client_key
        self._client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def __repr__(self):
        return f"<TikTokOAuthClient(client_key={self.client_key}, redirect_uri={self.redirect_uri})>"

    # ------------------
    # OAuth endpoints
    # ------------------

    def get_authorization_url(self, state: Optional[str] = None) -> str:
        """Authorization redirect URL; ``state`` defaults to a random CSRF token."""
        params = {
            "client_key": self.client_key,
            "scope": ",".join(OAUTH_SCOPES),
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "state": state or secrets.token_urlsafe(16),
        }
        return f"{TIKTOK_AUTH_URL}?{urlencode(params)}"

    def exchange_code_for_token(self, code: str) -> TokenGrant:
        payload = self._token_request({
            "client_key": self.client_key,
            "client_secret": self._client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        }, action="code exchange")
        return self._grant_from_payload(payload)

    def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        payload = self._token_request({
            "client_key": self.client_key,
            "client_secret": self._client_secret,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }, action="token refresh")
        return self._grant_from_payload(payload)

    def revoke_token(self, access_token: str) -> None:
        self._token_request({
            "client_key": self.client_key,
            "client_secret": self._client_secret,
            "token": access_token,
        }, action="token revoke", path="/v2/oauth/revoke/")

    # ------------------
    # Resource endpoints
    # ------------------

    def get_user_profile(self, access_token: str) -> Dict[str, Any]:
        body = self._resource_request(
            "GET",
            "/v2/user/info/",
            access_token,
            params={"fields": ",".join(USER_FIELDS)},
            action="user info",
        )
        return (body.get("data") or {}).get("user") or {}

    def get_user_videos(self, access_token: str, max_count: int = MAX_VIDEOS_PER_PAGE) -> List[Dict[str, Any]]:
        body = self._resource_request(
            "POST",
            "/v2/video/list/",
            access_token,
            params={"fields": ",".join(VIDEO_FIELDS)},
            json={"max_count": min(max_count, MAX_VIDEOS_PER_PAGE)},
            action="video list",
        )
        return (body.get("data") or {}).get("videos") or []

    # ------------------
    # Helpers
    # ------------------

    def _token_request(self, form: Dict[str, str], action: str, path: str = "/v2/oauth/token/") -> Dict[str, Any]:
        try:
            response = self.session.post(
                f"{TIKTOK_API_BASE}{path}",
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout_seconds,
            )
        except requests.Timeout:
            raise UpstreamError(f"TikTok {action} timed out")
        except requests.RequestException as e:
            raise UpstreamError(f"TikTok {action} failed: {e.__class__.__name__}")

        body = self._json_body(response, action)
        # Older responses nest the grant under "data"
        payload = body.get("data") if isinstance(body.get("data"), dict) else body
        error = payload.get("error") or body.get("error")
        if response.status_code != 200 or (error and error != "ok"):
            description = payload.get("error_description") or body.get("error_description") or error
            logger.error("[TikTokOAuth] %s rejected (status %s): %s", action, response.status_code, description)
            raise UpstreamError(f"TikTok {action} rejected: {description}", status_code=response.status_code)
        return payload

    def _resource_request(
        self,
        method: str,
        path: str,
        access_token: str,
        action: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        try:
            response = self.session.request(
                method,
                f"{TIKTOK_API_BASE}{path}",
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout_seconds,
            )
        except requests.Timeout:
            raise UpstreamError(f"TikTok {action} timed out")
        except requests.RequestException as e:
            raise UpstreamError(f"TikTok {action} failed: {e.__class__.__name__}")

        body = self._json_body(response, action)
        error = body.get("error") or {}
        code = error.get("code", "ok") if isinstance(error, dict) else error
        if response.status_code != 200 or code != "ok":
            message = error.get("message") if isinstance(error, dict) else str(error)
            logger.error("[TikTokOAuth] %s failed (status %s, code %s): %s", action, response.status_code, code, message)
            raise UpstreamError(f"TikTok {action} failed: {message or code}", status_code=response.status_code)
        return body

    @staticmethod
    def _json_body(response: requests.Response, action: str) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            raise UpstreamError(f"TikTok {action} returned invalid JSON", status_code=response.status_code)
        if not isinstance(body, dict):
            raise UpstreamError(f"TikTok {action} returned an unexpected payload", status_code=response.status_code)
        return body

    @staticmethod
    def _grant_from_payload(payload: Dict[str, Any]) -> TokenGrant:
        access_token = payload.get("access_token")
        if not access_token:
            raise UpstreamError("TikTok token response did not include an access token")
        expires_in = int(payload.get("expires_in") or 0)
        return TokenGrant(
            access_token=access_token,
            refresh_token=payload.get("refresh_token") or None,
            expires_at=utcnow() + timedelta(seconds=expires_in),
            open_id=payload.get("open_id"),
            scope=payload.get("scope"),
        )
