"""
TikTok public data via an Apify scraping actor.

TikTok actors disagree on their input schema, so the run is retried with
several input shapes until one returns items. Datasets mix profile records
and video records; both are recognized by their fields.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from socialproof.core.errors import NotFoundError, UpstreamError
from socialproof.models import MediaType, Platform, SocialAccount
from socialproof.schemas import CanonicalPost, CanonicalProfile, ScrapeSnapshot
from socialproof.services.adapters.base import ApifySourceAdapter, SyncOutcome
from socialproof.utils.counts import (
    field,
    optional_count,
    resolve,
    resolve_count,
    resolve_flag,
    resolve_text,
)
from socialproof.utils.timeparse import parse_duration, parse_timestamp

logger = logging.getLogger(__name__)

MAX_VIDEOS_PER_USER = 24

PROFILE_FIELDS = {
    "external_id": [field("id"), field("open_id"), field("authorMeta", "id")],
    "username": [field("username"), field("handle"), field("uniqueId"), field("name")],
    "display_name": [field("display_name"), field("nickName"), field("nickname")],
    "avatar": [field("avatar_url"), field("avatar"), field("profile_image_url"), field("avatarLarger")],
    "followers": [
        field("follower_count"),
        field("followers"),
        field("fans"),
        field("stats", "followerCount"),
    ],
    "following": [field("following_count"), field("following"), field("stats", "followingCount")],
    "likes": [field("likes_count"), field("heart"), field("stats", "heartCount"), field("stats", "likes")],
    "videos": [field("video_count"), field("video"), field("stats", "videoCount")],
    "verified": [field("is_verified"), field("verified")],
    "private": [field("privateAccount"), field("is_private"), field("private")],
    "bio": [field("bio_description"), field("signature"), field("bio")],
}

VIDEO_FIELDS = {
    "id": [field("id"), field("video_id")],
    "created": [field("create_time"), field("createTimeISO"), field("createTime"), field("timestamp")],
    "cover": [
        field("cover_image_url"),
        field("cover"),
        field("video", "cover"),
        field("videoMeta", "coverUrl"),
        field("thumbnail_url"),
    ],
    "url": [field("share_url"), field("webVideoUrl"), field("url"), field("pageUrl")],
    "caption": [field("video_description"), field("text"), field("description"), field("caption"), field("title")],
    "duration": [field("duration"), field("video", "duration"), field("videoMeta", "duration")],
    "likes": [field("like_count"), field("diggCount"), field("stats", "diggCount"), field("likes")],
    "comments": [field("comment_count"), field("commentCount"), field("stats", "commentCount"), field("comments")],
    "shares": [field("share_count"), field("shareCount"), field("stats", "shareCount"), field("shares")],
    "views": [field("view_count"), field("playCount"), field("stats", "playCount"), field("views")],
}

_VIDEO_MARKERS = ("like_count", "comment_count", "share_count", "diggCount", "playCount")


def input_variants(username: str) -> List[Tuple[str, Dict[str, Any]]]:
    """Actor inputs to try, in order; each names the same profile differently."""
    profile_url = f"https://www.tiktok.com/@{username}"
    common = {
        "maxVideosPerUser": MAX_VIDEOS_PER_USER,
        "includeUserStats": True,
        "includeVideoStats": True,
    }
    return [
        ("handles", {"handles": [username], **common}),
        ("usernames", {"usernames": [username], **common}),
        ("profiles", {"profiles": [profile_url], **common}),
        ("startUrls", {"startUrls": [profile_url], **common}),
    ]


def normalize_videos(raw_videos: List[Dict[str, Any]], username: str, now: datetime) -> List[CanonicalPost]:
    """Canonical posts for TikTok video records, de-duplicated by video id."""
    seen = set()
    posts = []
    for raw in raw_videos:
        video_id = resolve(raw, VIDEO_FIELDS["id"])
        if not video_id or str(video_id) in seen:
            continue
        seen.add(str(video_id))
        posts.append(CanonicalPost(
            external_post_id=str(video_id),
            media_type=MediaType.VIDEO.value,
            caption=resolve_text(raw, VIDEO_FIELDS["caption"]),
            media_url=resolve(raw, VIDEO_FIELDS["url"]) or f"https://www.tiktok.com/@{username}/video/{video_id}",
            thumbnail_url=resolve(raw, VIDEO_FIELDS["cover"]),
            like_count=resolve_count(raw, VIDEO_FIELDS["likes"]),
            comment_count=resolve_count(raw, VIDEO_FIELDS["comments"]),
            share_count=resolve_count(raw, VIDEO_FIELDS["shares"]),
            view_count=optional_count(raw, VIDEO_FIELDS["views"]),
            posted_at=parse_timestamp(resolve(raw, VIDEO_FIELDS["created"]), now=now),
            metadata={"duration": parse_duration(resolve(raw, VIDEO_FIELDS["duration"]))},
        ))
    return posts


def _looks_like_profile(item: Dict[str, Any]) -> bool:
    has_handle = bool(item.get("username") or item.get("handle") or item.get("uniqueId"))
    return has_handle and ("follower_count" in item or "fans" in item or bool(item.get("display_name")))


def _looks_like_video(item: Dict[str, Any]) -> bool:
    if not (item.get("id") or item.get("video_id")) or _looks_like_profile(item):
        return False
    stats = item.get("stats") if isinstance(item.get("stats"), dict) else {}
    return any(marker in item or marker in stats for marker in _VIDEO_MARKERS)


def _is_error_item(item: Dict[str, Any]) -> bool:
    """Actors report an unknown handle as an item carrying only ``error``."""
    return bool(item.get("error")) and not (
        _looks_like_profile(item) or _looks_like_video(item) or isinstance(item.get("authorMeta"), dict)
    )


class TikTokAdapter(ApifySourceAdapter):
    platform = Platform.TIKTOK
    include_shares = True

    def fetch_snapshot(self, handle: str) -> ScrapeSnapshot:
        items = self._run_variants(handle)

        raw_profile: Optional[Dict[str, Any]] = None
        raw_videos: List[Dict[str, Any]] = []
        for item in items:
            if isinstance(item.get("authorMeta"), dict) and raw_profile is None:
                raw_profile = item["authorMeta"]
            if _looks_like_profile(item):
                raw_profile = item
            if _looks_like_video(item):
                raw_videos.append(item)
            # Some actors nest the videos under the profile record
            if isinstance(item.get("videos"), list):
                raw_videos.extend(v for v in item["videos"] if isinstance(v, dict))

        if raw_profile is None:
            logger.warning("[TikTokAdapter] No profile record for @%s, inferring from username", handle)
            stats_item = next(
                (it for it in items if it.get("follower_count") or (it.get("stats") or {}).get("followerCount")),
                {},
            )
            raw_profile = {
                "username": handle,
                "display_name": handle,
                "follower_count": resolve(stats_item, PROFILE_FIELDS["followers"]),
            }

        profile = self.normalize_profile(dict(raw_profile, username=resolve(raw_profile, PROFILE_FIELDS["username"]) or handle))
        posts = self.normalize_videos(raw_videos, profile.external_username)

        logger.info(
            "[TikTokAdapter] Scraped @%s: %s followers, %d unique videos",
            profile.external_username,
            profile.follower_count,
            len(posts),
        )
        return ScrapeSnapshot(profile=profile, posts=posts)

    def _run_variants(self, handle: str) -> List[Dict[str, Any]]:
        variants = input_variants(handle)
        tried = []
        failures = 0
        last_error: Optional[UpstreamError] = None
        for label, payload in variants:
            tried.append(label)
            try:
                items = self.apify.run_actor(self.actor_id, payload)
            except UpstreamError as e:
                logger.warning("[TikTokAdapter] Variant '%s' failed for @%s: %s", label, handle, e)
                last_error = e
                failures += 1
                continue
            items = [item for item in items if isinstance(item, dict)]
            errors = [item for item in items if _is_error_item(item)]
            if errors:
                logger.warning("[TikTokAdapter] Variant '%s' reported %r for @%s", label, errors[0].get("error"), handle)
                items = [item for item in items if not _is_error_item(item)]
            if items:
                logger.info("[TikTokAdapter] Variant '%s' returned %d item(s) for @%s", label, len(items), handle)
                return items

        # Every variant erroring is an upstream outage, not a missing profile
        if last_error is not None and failures == len(variants):
            raise last_error
        raise NotFoundError(f"No TikTok data found for @{handle} (attempted inputs: {', '.join(tried)})")

    def normalize_profile(self, raw: Dict[str, Any]) -> CanonicalProfile:
        username = resolve_text(raw, PROFILE_FIELDS["username"])
        likes = optional_count(raw, PROFILE_FIELDS["likes"])
        extra = {"totalLikes": likes} if likes is not None else {}

        return CanonicalProfile(
            external_id=str(resolve(raw, PROFILE_FIELDS["external_id"], default=username)),
            external_username=username,
            display_name=resolve_text(raw, PROFILE_FIELDS["display_name"], default=username),
            profile_url=f"https://www.tiktok.com/@{username}",
            avatar_url=resolve(raw, PROFILE_FIELDS["avatar"]),
            follower_count=resolve_count(raw, PROFILE_FIELDS["followers"]),
            following_count=resolve_count(raw, PROFILE_FIELDS["following"]),
            post_count=resolve_count(raw, PROFILE_FIELDS["videos"]),
            bio=resolve_text(raw, PROFILE_FIELDS["bio"]),
            is_verified=resolve_flag(raw, PROFILE_FIELDS["verified"]),
            is_private=resolve_flag(raw, PROFILE_FIELDS["private"]),
            extra=extra,
        )

    def normalize_videos(self, raw_videos: List[Dict[str, Any]], username: str) -> List[CanonicalPost]:
        return normalize_videos(raw_videos, username, now=self.cache_policy.now())

    def connect_tiktok_account(self, owner_id: str, username: str) -> SocialAccount:
        return self.connect(owner_id, username)

    def sync_tiktok_data(self, account_id: int) -> SyncOutcome:
        return self.sync(account_id)
