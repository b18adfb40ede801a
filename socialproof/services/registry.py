"""
Maps a stored account to the adapter that keeps it fresh.

Scrape adapters are keyed by platform. TikTok accounts that carry an OAuth
credential go to the first-party adapter instead.
"""
import logging
from typing import Dict, Optional

from socialproof.core.cache_policy import CachePolicy
from socialproof.core.config import Settings
from socialproof.core.errors import ConfigurationError
from socialproof.models import Platform, SocialAccount
from socialproof.services.account_store import AccountStore
from socialproof.services.adapters import (
    InstagramAdapter,
    SourceAdapter,
    TikTokAdapter,
    TikTokOAuthAdapter,
    TwitterAdapter,
    YouTubeAdapter,
)
from socialproof.services.apify_client import ApifyClient
from socialproof.services.credential_vault import CredentialVault
from socialproof.services.events import EventSink
from socialproof.services.identity import IdentityLookup
from socialproof.services.tiktok_oauth import TikTokOAuthClient

logger = logging.getLogger(__name__)


class AdapterRegistry:
    def __init__(self, adapters: Dict[Platform, SourceAdapter], tiktok_oauth: Optional[TikTokOAuthAdapter] = None):
        self.adapters = dict(adapters)
        self.tiktok_oauth = tiktok_oauth

    def for_platform(self, platform: Platform) -> SourceAdapter:
        adapter = self.adapters.get(Platform(platform))
        if adapter is None:
            raise ConfigurationError(f"No adapter registered for {platform}")
        return adapter

    def for_account(self, account: SocialAccount) -> SourceAdapter:
        platform = Platform(account.platform)
        if platform == Platform.TIKTOK and account.is_oauth:
            if self.tiktok_oauth is None:
                raise ConfigurationError("TikTok OAuth account found but TikTok OAuth is not configured")
            return self.tiktok_oauth
        return self.for_platform(platform)


def build_oauth_client(settings: Settings) -> Optional[TikTokOAuthClient]:
    if not settings.tiktok_oauth_enabled:
        return None
    return TikTokOAuthClient(
        client_key=settings.tiktok_client_key,
        client_secret=settings.tiktok_client_secret,
        redirect_uri=settings.tiktok_redirect_uri,
        timeout_seconds=settings.http_timeout_seconds,
    )


def build_vault(settings: Settings, oauth: Optional[TikTokOAuthClient] = None) -> CredentialVault:
    providers = {Platform.TIKTOK: oauth} if oauth is not None else {}
    return CredentialVault(providers=providers, key=settings.encryption_key)


def build_registry(
    settings: Settings,
    store: AccountStore,
    cache_policy: CachePolicy,
    identity: IdentityLookup,
    events: Optional[EventSink] = None,
    apify: Optional[ApifyClient] = None,
    oauth: Optional[TikTokOAuthClient] = None,
    vault: Optional[CredentialVault] = None,
) -> AdapterRegistry:
    """Wire every adapter from settings; clients may be injected for tests."""
    apify = apify or ApifyClient(settings.apify_api_token, run_timeout_seconds=settings.apify_run_timeout_seconds)
    shared = dict(store=store, cache_policy=cache_policy, identity=identity, events=events)

    adapters: Dict[Platform, SourceAdapter] = {
        Platform.INSTAGRAM: InstagramAdapter(apify, settings.instagram_actor_id, **shared),
        Platform.TIKTOK: TikTokAdapter(apify, settings.tiktok_actor_id, **shared),
        Platform.YOUTUBE: YouTubeAdapter(apify, settings.youtube_actor_id, **shared),
        Platform.TWITTER: TwitterAdapter(apify, settings.twitter_actor_id, **shared),
    }

    oauth = oauth or build_oauth_client(settings)
    tiktok_oauth = None
    if oauth is not None:
        vault = vault or build_vault(settings, oauth)
        tiktok_oauth = TikTokOAuthAdapter(oauth, vault, **shared)
    else:
        logger.info("[AdapterRegistry] TikTok OAuth not configured; scrape adapter only")

    return AdapterRegistry(adapters, tiktok_oauth=tiktok_oauth)
