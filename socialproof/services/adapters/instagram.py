"""
Instagram via the Apify profile scraper. No OAuth: public profiles only.

The actor returns one item per username with the latest posts nested under
``latestPosts``.
"""
import logging
from typing import Any, Dict, List

from socialproof.models import MediaType, Platform, SocialAccount
from socialproof.schemas import CanonicalPost, CanonicalProfile, ScrapeSnapshot
from socialproof.services.adapters.base import ApifySourceAdapter, SyncOutcome
from socialproof.utils.counts import field, optional_count, resolve, resolve_count, resolve_flag, resolve_text
from socialproof.utils.timeparse import parse_timestamp

logger = logging.getLogger(__name__)

RESULTS_LIMIT = 12

PROFILE_FIELDS = {
    "external_id": [field("id"), field("username")],
    "username": [field("username")],
    "display_name": [field("fullName"), field("full_name")],
    "bio": [field("biography"), field("bio")],
    "followers": [field("followersCount"), field("followers_count"), field("edge_followed_by", "count")],
    "following": [field("followsCount"), field("followingCount"), field("follows_count")],
    "posts": [field("postsCount"), field("posts_count"), field("edge_owner_to_timeline_media", "count")],
    "verified": [field("verified"), field("isVerified"), field("is_verified")],
    "private": [field("private"), field("isPrivate"), field("is_private")],
    "avatar": [field("profilePicUrlHD"), field("profilePicUrl"), field("profile_pic_url")],
    "external_url": [field("externalUrl"), field("external_url")],
}

POST_FIELDS = {
    "id": [field("id"), field("shortCode")],
    "caption": [field("caption")],
    "likes": [field("likesCount"), field("likes_count")],
    "comments": [field("commentsCount"), field("comments_count")],
    "views": [field("videoViewCount"), field("videoPlayCount")],
    "timestamp": [field("timestamp"), field("taken_at_timestamp")],
    "url": [field("url")],
    "display_url": [field("displayUrl"), field("display_url")],
}

_MEDIA_TYPES = {
    "image": MediaType.IMAGE,
    "video": MediaType.VIDEO,
    "sidecar": MediaType.CAROUSEL,
    "carousel": MediaType.CAROUSEL,
}


class InstagramAdapter(ApifySourceAdapter):
    platform = Platform.INSTAGRAM

    def fetch_snapshot(self, handle: str) -> ScrapeSnapshot:
        logger.info("[InstagramAdapter] Starting scrape for @%s", handle)
        items = self.run_actor({
            "usernames": [handle],
            "resultsLimit": RESULTS_LIMIT,
            "addParentData": False,
        }, handle)

        raw = dict(items[0])
        if not raw.get("username"):
            raw["username"] = handle
        profile = self.normalize_profile(raw)
        posts = self.normalize_posts(raw.get("latestPosts") or [])

        logger.info(
            "[InstagramAdapter] Scraped @%s: %s followers, %d recent posts",
            profile.external_username,
            profile.follower_count,
            len(posts),
        )
        return ScrapeSnapshot(profile=profile, posts=posts)

    def normalize_profile(self, raw: Dict[str, Any]) -> CanonicalProfile:
        username = resolve_text(raw, PROFILE_FIELDS["username"])
        extra = {}
        external_url = resolve(raw, PROFILE_FIELDS["external_url"])
        if external_url:
            extra["externalUrl"] = external_url

        return CanonicalProfile(
            external_id=str(resolve(raw, PROFILE_FIELDS["external_id"], default=username)),
            external_username=username,
            display_name=resolve_text(raw, PROFILE_FIELDS["display_name"], default=username),
            profile_url=f"https://instagram.com/{username}",
            avatar_url=resolve(raw, PROFILE_FIELDS["avatar"]),
            follower_count=resolve_count(raw, PROFILE_FIELDS["followers"]),
            following_count=resolve_count(raw, PROFILE_FIELDS["following"]),
            post_count=resolve_count(raw, PROFILE_FIELDS["posts"]),
            bio=resolve_text(raw, PROFILE_FIELDS["bio"]),
            is_verified=resolve_flag(raw, PROFILE_FIELDS["verified"]),
            is_private=resolve_flag(raw, PROFILE_FIELDS["private"]),
            extra=extra,
        )

    def normalize_posts(self, raw_posts: List[Dict[str, Any]]) -> List[CanonicalPost]:
        now = self.cache_policy.now()
        posts = []
        for raw in raw_posts:
            if not isinstance(raw, dict):
                continue
            post_id = resolve(raw, POST_FIELDS["id"])
            if not post_id:
                continue
            media_type = _MEDIA_TYPES.get(str(raw.get("type") or "").lower(), MediaType.IMAGE)
            posts.append(CanonicalPost(
                external_post_id=str(post_id),
                media_type=media_type.value,
                caption=resolve_text(raw, POST_FIELDS["caption"]),
                media_url=resolve(raw, POST_FIELDS["url"]),
                thumbnail_url=resolve(raw, POST_FIELDS["display_url"]),
                # Hidden like counts come back as -1
                like_count=max(resolve_count(raw, POST_FIELDS["likes"]), 0),
                comment_count=max(resolve_count(raw, POST_FIELDS["comments"]), 0),
                view_count=optional_count(raw, POST_FIELDS["views"]),
                posted_at=parse_timestamp(resolve(raw, POST_FIELDS["timestamp"]), now=now),
                metadata={"shortCode": raw.get("shortCode")} if raw.get("shortCode") else {},
            ))
        return posts

    def connect_instagram_account(self, owner_id: str, username: str) -> SocialAccount:
        return self.connect(owner_id, username)

    def sync_instagram_data(self, account_id: int) -> SyncOutcome:
        return self.sync(account_id)
