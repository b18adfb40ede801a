"""
TikTok via the first-party API (OAuth 2.0).

``connect`` takes an authorization code instead of a handle: the code is
exchanged for tokens, the profile is read with the new access token and only
the encrypted tokens are stored. Syncs reuse the stored access token; the
Token Refresh Worker keeps it alive.
"""
import logging
from typing import Any, Dict, Optional

from socialproof.core.cache_policy import CachePolicy
from socialproof.core.errors import (
    DecryptionError,
    ForbiddenError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from socialproof.models import Platform, SocialAccount
from socialproof.schemas import CanonicalProfile, ScrapeSnapshot
from socialproof.services.account_store import AccountStore
from socialproof.services.adapters.base import SourceAdapter, SyncOutcome
from socialproof.services.adapters.tiktok import normalize_videos
from socialproof.services.credential_vault import CredentialVault
from socialproof.services.events import ACCOUNT_CONNECTED, EventSink
from socialproof.services.identity import IdentityLookup
from socialproof.services.tiktok_oauth import TikTokOAuthClient
from socialproof.utils.counts import field, optional_count, resolve, resolve_count, resolve_flag, resolve_text

logger = logging.getLogger(__name__)

PROFILE_FIELDS = {
    "external_id": [field("open_id"), field("union_id")],
    "username": [field("username"), field("display_name")],
    "display_name": [field("display_name")],
    "avatar": [field("avatar_large_url"), field("avatar_url")],
    "profile_url": [field("profile_deep_link")],
    "followers": [field("follower_count")],
    "following": [field("following_count")],
    "likes": [field("likes_count")],
    "videos": [field("video_count")],
    "verified": [field("is_verified")],
    "bio": [field("bio_description")],
}


class TikTokOAuthAdapter(SourceAdapter):
    platform = Platform.TIKTOK
    connection_method = "oauth"
    include_shares = True

    def __init__(
        self,
        oauth: TikTokOAuthClient,
        vault: CredentialVault,
        store: AccountStore,
        cache_policy: CachePolicy,
        identity: IdentityLookup,
        events: Optional[EventSink] = None,
    ):
        super().__init__(store, cache_policy, identity, events)
        self.oauth = oauth
        self.vault = vault

    def get_authorization_url(self, state: Optional[str] = None) -> str:
        return self.oauth.get_authorization_url(state)

    def exchange_code_for_token(self, code: str):
        return self.oauth.exchange_code_for_token(code)

    def connect(self, owner_id: str, code: str) -> SocialAccount:
        code = (code or "").strip()
        if not code:
            raise ValidationError("Authorization code is required")

        if not self.identity.can_attach(owner_id, self.platform):
            raise ForbiddenError("Only influencers can connect TikTok accounts")

        logger.info("[TikTokOAuthAdapter] Exchanging authorization code for owner %s", owner_id)
        grant = self.exchange_code_for_token(code)
        snapshot = self.fetch_snapshot(grant.access_token)

        existing = self.store.find_account_for_owner(owner_id, self.platform)
        previous_refresh = existing.encrypted_refresh_token if existing is not None else None
        encrypted_access, encrypted_refresh, expires_at = self.vault.seal(grant, previous_refresh)

        account = self._persist(owner_id, snapshot, extra_fields={
            "is_active": True,
            "encrypted_access_token": encrypted_access,
            "encrypted_refresh_token": encrypted_refresh,
            "token_expires_at": expires_at,
        })
        self.events.emit(ACCOUNT_CONNECTED, {
            "account_id": account.id,
            "owner_id": owner_id,
            "platform": self.platform.value,
        })
        logger.info("[TikTokOAuthAdapter] @%s connected as account %s", account.external_username, account.id)
        return account

    def fetch_snapshot(self, access_token: str) -> ScrapeSnapshot:
        """Profile and recent videos read with ``access_token``."""
        raw_profile = self.oauth.get_user_profile(access_token)
        if not raw_profile:
            raise NotFoundError("TikTok user info response was empty")
        profile = self.normalize_profile(raw_profile)

        raw_videos = self.oauth.get_user_videos(access_token)
        posts = normalize_videos(raw_videos, profile.external_username, now=self.cache_policy.now())

        logger.info(
            "[TikTokOAuthAdapter] Fetched @%s: %s followers, %d videos",
            profile.external_username,
            profile.follower_count,
            len(posts),
        )
        return ScrapeSnapshot(profile=profile, posts=posts)

    def fetch_for_account(self, account: SocialAccount) -> ScrapeSnapshot:
        if not account.encrypted_access_token:
            raise NotFoundError(f"TikTok account {account.id} has no stored credential")
        access_token = self.vault.decrypt(account.encrypted_access_token)
        return self.fetch_snapshot(access_token)

    def normalize_profile(self, raw: Dict[str, Any]) -> CanonicalProfile:
        username = resolve_text(raw, PROFILE_FIELDS["username"])
        open_id = resolve_text(raw, PROFILE_FIELDS["external_id"], default=username)
        extra: Dict[str, Any] = {"openId": open_id}
        likes = optional_count(raw, PROFILE_FIELDS["likes"])
        if likes is not None:
            extra["totalLikes"] = likes

        return CanonicalProfile(
            external_id=open_id,
            external_username=username,
            display_name=resolve_text(raw, PROFILE_FIELDS["display_name"], default=username),
            profile_url=resolve_text(raw, PROFILE_FIELDS["profile_url"], default=f"https://www.tiktok.com/@{username}"),
            avatar_url=resolve(raw, PROFILE_FIELDS["avatar"]),
            follower_count=resolve_count(raw, PROFILE_FIELDS["followers"]),
            following_count=resolve_count(raw, PROFILE_FIELDS["following"]),
            post_count=resolve_count(raw, PROFILE_FIELDS["videos"]),
            bio=resolve_text(raw, PROFILE_FIELDS["bio"]),
            is_verified=resolve_flag(raw, PROFILE_FIELDS["verified"]),
            extra=extra,
        )

    def before_disconnect(self, account: SocialAccount) -> None:
        if not account.encrypted_access_token:
            return
        # Revocation is best-effort; the local row is removed regardless
        try:
            self.oauth.revoke_token(self.vault.decrypt(account.encrypted_access_token))
            logger.info("[TikTokOAuthAdapter] Revoked token for account %s", account.id)
        except (UpstreamError, DecryptionError) as e:
            logger.warning("[TikTokOAuthAdapter] Token revoke failed for account %s: %s", account.id, e)

    def connect_tiktok_account(self, owner_id: str, code: str) -> SocialAccount:
        return self.connect(owner_id, code)

    def sync_tiktok_data(self, account_id: int) -> SyncOutcome:
        return self.sync(account_id)
