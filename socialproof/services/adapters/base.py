"""
Source adapter contract shared by every platform.

An adapter turns a platform identifier into a mirrored ``SocialAccount``:

    connect(owner_id, identifier)   validate -> eligibility -> fetch -> persist
    sync(account_id)                cache check -> fetch -> persist
    disconnect(account_id, hard)    soft deactivate or hard delete
    get_account_data(account_id)    stored record plus recent posts

Subclasses only implement the upstream fetch and the normalization of raw
items; persistence, caching and events are handled here.
"""
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from socialproof.core.cache_policy import CachePolicy
from socialproof.core.errors import ForbiddenError, NotFoundError, ValidationError
from socialproof.models import Platform, SocialAccount, SocialPost
from socialproof.schemas import CanonicalProfile, ScrapeSnapshot
from socialproof.services.account_store import AccountStore
from socialproof.services.events import ACCOUNT_CONNECTED, ACCOUNT_DEACTIVATED, EventSink
from socialproof.services.identity import IdentityLookup
from socialproof.utils.engagement import average_counts, compute_engagement_rate
from socialproof.utils.hashtags import extract_top_hashtags

logger = logging.getLogger(__name__)

# Letters, digits, "_", "." and "-"; covers every supported platform's handles
_IDENTIFIER_PATTERN = re.compile(r"^[\w.\-]{1,100}$")
# Path segments that precede the handle in profile URLs
_URL_PREFIX_SEGMENTS = {"c", "user", "channel"}

DEFAULT_RECENT_POSTS = 20


@dataclass
class SyncOutcome:
    account: SocialAccount
    cached: bool


@dataclass
class AccountData:
    account: SocialAccount
    posts: List[SocialPost] = field(default_factory=list)


def clean_identifier(identifier: Optional[str]) -> str:
    """
    Reduce a user-supplied handle or profile URL to the bare handle.

    ``" @name "``, ``"https://www.tiktok.com/@name?lang=en"`` and
    ``"instagram.com/name/"`` all become ``"name"``.

    Raises:
        ValidationError: nothing usable is left.
    """
    text = (identifier or "").strip()

    if "/" in text:
        parsed = urlparse(text if "://" in text else "https://" + text)
        segments = [s for s in parsed.path.split("/") if s]
        while segments and segments[0].lower() in _URL_PREFIX_SEGMENTS and len(segments) > 1:
            segments = segments[1:]
        text = segments[0] if segments else ""

    text = text.lstrip("@").strip()
    if not text:
        raise ValidationError("Account identifier is required")
    if not _IDENTIFIER_PATTERN.match(text):
        raise ValidationError(f"Invalid account identifier: {text!r}")
    return text


class SourceAdapter(ABC):
    platform: Platform
    connection_method = "scrape"
    # Shares count towards engagement on platforms where they are public
    include_shares = False

    def __init__(
        self,
        store: AccountStore,
        cache_policy: CachePolicy,
        identity: IdentityLookup,
        events: Optional[EventSink] = None,
    ):
        self.store = store
        self.cache_policy = cache_policy
        self.identity = identity
        self.events = events or EventSink()

    @property
    def tag(self) -> str:
        return f"[{self.__class__.__name__}]"

    # ------------------
    # Upstream hooks
    # ------------------

    @abstractmethod
    def fetch_snapshot(self, handle: str) -> ScrapeSnapshot:
        """
        Fetch and normalize a profile plus its recent activity.

        Raises ``NotFoundError`` when the upstream returns nothing for
        ``handle`` and ``UpstreamError`` when the call itself fails.
        """

    @abstractmethod
    def normalize_profile(self, raw: Dict[str, Any]) -> CanonicalProfile:
        ...

    def fetch_for_account(self, account: SocialAccount) -> ScrapeSnapshot:
        return self.fetch_snapshot(account.external_username)

    def compute_engagement(self, snapshot: ScrapeSnapshot) -> Tuple[float, Dict[str, Any]]:
        """Engagement rate and the averages recorded alongside it."""
        posts = snapshot.posts
        rate = compute_engagement_rate(posts, snapshot.profile.follower_count, include_shares=self.include_shares)
        return rate, average_counts(posts)

    # ------------------
    # Operations
    # ------------------

    def connect(self, owner_id: str, identifier: str) -> SocialAccount:
        handle = clean_identifier(identifier)

        if not self.identity.can_attach(owner_id, self.platform):
            raise ForbiddenError(f"Only influencers can connect {self.platform.value} accounts")

        logger.info("%s Connecting @%s for owner %s", self.tag, handle, owner_id)
        snapshot = self.fetch_snapshot(handle)
        self._ensure_public(snapshot, handle)

        account = self._persist(owner_id, snapshot, extra_fields={"is_active": True})
        self.events.emit(ACCOUNT_CONNECTED, {
            "account_id": account.id,
            "owner_id": owner_id,
            "platform": self.platform.value,
        })
        logger.info("%s @%s connected as account %s", self.tag, handle, account.id)
        return account

    def sync(self, account_id: int) -> SyncOutcome:
        account = self._get_account(account_id)
        if not account.is_active:
            # Only an explicit reconnect brings a deactivated account back
            raise NotFoundError(f"{self.platform.value} account {account_id} is inactive")

        if self.cache_policy.is_valid(account.last_synced_at):
            logger.info(
                "%s Using cached data for @%s (%s day(s) old)",
                self.tag,
                account.external_username,
                self.cache_policy.age_days(account.last_synced_at),
            )
            return SyncOutcome(account=account, cached=True)

        logger.info("%s Syncing @%s", self.tag, account.external_username)
        snapshot = self.fetch_for_account(account)
        self._ensure_public(snapshot, account.external_username)

        account = self._persist(account.owner_id, snapshot)
        logger.info("%s Sync completed for @%s", self.tag, account.external_username)
        return SyncOutcome(account=account, cached=False)

    def disconnect(self, account_id: int, hard: bool = False, owner_id: Optional[str] = None) -> None:
        account = self._get_account(account_id)
        if owner_id is not None and account.owner_id != owner_id:
            raise ForbiddenError("Account belongs to another owner")

        self.before_disconnect(account)
        try:
            if hard:
                self.store.delete_account(account_id)
            else:
                self.store.deactivate_account(account_id)
            self.store.commit()
        except Exception:
            self.store.rollback()
            raise

        self.events.emit(ACCOUNT_DEACTIVATED, {
            "account_id": account_id,
            "platform": self.platform.value,
            "hard": hard,
        })
        logger.info("%s Account %s %s", self.tag, account_id, "deleted" if hard else "deactivated")

    def before_disconnect(self, account: SocialAccount) -> None:
        """Hook for provider-side cleanup before the row is removed."""

    def get_account_data(self, account_id: int, limit: int = DEFAULT_RECENT_POSTS) -> AccountData:
        account = self._get_account(account_id)
        return AccountData(account=account, posts=self.store.list_posts(account_id, limit=limit))

    # Legacy names kept for callers of the per-platform services
    def connect_public_account(self, owner_id: str, identifier: str) -> SocialAccount:
        return self.connect(owner_id, identifier)

    def sync_public_account(self, account_id: int) -> SyncOutcome:
        return self.sync(account_id)

    # ------------------
    # Helpers
    # ------------------

    def _get_account(self, account_id: int) -> SocialAccount:
        account = self.store.find_account(account_id)
        if account is None or Platform(account.platform) != self.platform:
            raise NotFoundError(f"{self.platform.value} account {account_id} not found")
        return account

    def _ensure_public(self, snapshot: ScrapeSnapshot, handle: str) -> None:
        if snapshot.profile.is_private:
            raise NotFoundError(f"{self.platform.value} account @{handle} is private")

    def build_metadata(self, snapshot: ScrapeSnapshot, averages: Dict[str, Any]) -> Dict[str, Any]:
        profile = snapshot.profile
        metadata: Dict[str, Any] = {
            "bio": profile.bio,
            "isVerified": profile.is_verified,
            "isPrivate": profile.is_private,
            "topHashtags": extract_top_hashtags(post.caption for post in snapshot.posts),
            "recentPostCount": len(snapshot.posts),
            "connectionMethod": self.connection_method,
        }
        if self.connection_method == "scrape":
            metadata["scrapingMethod"] = "apify"
        if profile.view_count is not None:
            metadata["totalViews"] = profile.view_count
        metadata.update(averages)
        metadata.update(profile.extra)
        return metadata

    def account_fields(self, snapshot: ScrapeSnapshot) -> Dict[str, Any]:
        profile = snapshot.profile
        rate, averages = self.compute_engagement(snapshot)
        return {
            "external_id": profile.external_id,
            "external_username": profile.external_username,
            "display_name": profile.display_name or profile.external_username,
            "profile_url": profile.profile_url,
            "avatar_url": profile.avatar_url,
            "follower_count": profile.follower_count,
            "following_count": profile.following_count,
            "post_count": profile.post_count,
            "engagement_rate": rate,
            "last_synced_at": self.cache_policy.now(),
            "extra_metadata": self.build_metadata(snapshot, averages),
        }

    def _persist(self, owner_id: str, snapshot: ScrapeSnapshot, extra_fields: Optional[Dict[str, Any]] = None) -> SocialAccount:
        fields = self.account_fields(snapshot)
        if extra_fields:
            fields.update(extra_fields)

        try:
            account = self.store.upsert_account(owner_id, self.platform, fields)
            for post in snapshot.posts:
                self.store.upsert_post(account.id, post)
            self.store.commit()
        except Exception:
            self.store.rollback()
            raise
        return account


class ApifySourceAdapter(SourceAdapter):
    """Adapter whose upstream is one Apify actor run per fetch."""

    def __init__(
        self,
        apify,
        actor_id: str,
        store: AccountStore,
        cache_policy: CachePolicy,
        identity: IdentityLookup,
        events: Optional[EventSink] = None,
    ):
        super().__init__(store, cache_policy, identity, events)
        self.apify = apify
        self.actor_id = actor_id

    def run_actor(self, run_input: Dict[str, Any], handle: str) -> List[dict]:
        items = self.apify.run_actor(self.actor_id, run_input)
        items = [item for item in items if isinstance(item, dict)]
        if not items:
            raise NotFoundError(f"No {self.platform.value} data found for @{handle}")
        # Scrapers report unknown handles as a single error item
        if len(items) == 1 and items[0].get("error") and not items[0].get("username"):
            logger.warning("%s Actor reported %r for @%s", self.tag, items[0].get("error"), handle)
            raise NotFoundError(f"No {self.platform.value} data found for @{handle}")
        return items
