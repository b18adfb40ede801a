"""
YouTube channels via the Apify channel scraper.

Every dataset item is a video with the channel's "about" block nested under
``aboutChannelInfo``. The channel scraper does not expose likes or comments,
so when no item carries interaction data the engagement rate falls back to
views per subscriber and per-video likes/comments are recorded as estimates.
"""
import logging
import re
from typing import Any, Dict, List, Tuple

from socialproof.core.errors import NotFoundError
from socialproof.models import MediaType, Platform, SocialAccount
from socialproof.schemas import CanonicalPost, CanonicalProfile, ScrapeSnapshot
from socialproof.services.adapters.base import ApifySourceAdapter, SyncOutcome
from socialproof.utils.counts import field, optional_count, resolve, resolve_count, resolve_flag, resolve_text
from socialproof.utils.engagement import (
    average_counts,
    compute_engagement_rate,
    compute_view_engagement_rate,
    estimate_interactions_from_views,
    has_interaction_data,
)
from socialproof.utils.timeparse import parse_duration, parse_timestamp

logger = logging.getLogger(__name__)

MAX_VIDEOS = 20

_CHANNEL_ID_PATTERN = re.compile(r"^UC[\w-]{22}$")

CHANNEL_FIELDS = {
    "channel_id": [field("aboutChannelInfo", "channelId"), field("channelId")],
    "name": [field("aboutChannelInfo", "channelName"), field("channelName")],
    "description": [field("aboutChannelInfo", "channelDescription"), field("channelDescription")],
    "url": [field("aboutChannelInfo", "inputChannelUrl"), field("aboutChannelInfo", "channelUrl"), field("channelUrl")],
    "avatar": [field("aboutChannelInfo", "channelAvatarUrl"), field("channelAvatarUrl")],
    "banner": [field("aboutChannelInfo", "channelBannerUrl"), field("channelBannerUrl")],
    "subscribers": [
        field("aboutChannelInfo", "numberOfSubscribers"),
        field("numberOfSubscribers"),
        field("subscriberCount"),
    ],
    "videos": [field("aboutChannelInfo", "channelTotalVideos"), field("channelTotalVideos")],
    "views": [field("aboutChannelInfo", "channelTotalViews"), field("channelTotalViews")],
    "verified": [field("aboutChannelInfo", "isChannelVerified"), field("isChannelVerified")],
    "location": [field("aboutChannelInfo", "channelLocation"), field("channelLocation")],
    "joined": [field("aboutChannelInfo", "channelJoinedDate"), field("channelJoinedDate")],
}

VIDEO_FIELDS = {
    "id": [field("id")],
    "title": [field("title")],
    "description": [field("text"), field("description")],
    "url": [field("url")],
    "thumbnail": [field("thumbnailUrl"), field("thumbnail")],
    "date": [field("date"), field("publishedAt"), field("uploadDate")],
    "duration": [field("duration")],
    "views": [field("viewCount"), field("views")],
    "likes": [field("likes"), field("likeCount")],
    "comments": [field("commentsCount"), field("commentCount")],
}


def channel_url(handle: str) -> str:
    if _CHANNEL_ID_PATTERN.match(handle):
        return f"https://www.youtube.com/channel/{handle}"
    return f"https://www.youtube.com/@{handle}"


class YouTubeAdapter(ApifySourceAdapter):
    platform = Platform.YOUTUBE

    def fetch_snapshot(self, handle: str) -> ScrapeSnapshot:
        url = channel_url(handle)
        logger.info("[YouTubeAdapter] Starting scrape for %s", url)
        items = self.run_actor({
            "startUrls": [{"url": url, "method": "GET"}],
            "maxResults": MAX_VIDEOS,
            "maxResultsShorts": 0,
            "maxResultStreams": 0,
        }, handle)

        first = dict(items[0], handle=handle)
        if not resolve(first, CHANNEL_FIELDS["channel_id"]) and not resolve(first, CHANNEL_FIELDS["name"]):
            raise NotFoundError(f"No YouTube channel data found for @{handle}")

        profile = self.normalize_profile(first)
        posts = self.normalize_videos([item for item in items if item.get("type", "video") == "video"])

        logger.info(
            "[YouTubeAdapter] Scraped @%s: %s subscribers, %d videos",
            profile.external_username,
            profile.follower_count,
            len(posts),
        )
        return ScrapeSnapshot(profile=profile, posts=posts)

    def normalize_profile(self, raw: Dict[str, Any]) -> CanonicalProfile:
        handle = raw.get("handle") or ""
        channel_id = resolve_text(raw, CHANNEL_FIELDS["channel_id"], default=handle)
        name = resolve_text(raw, CHANNEL_FIELDS["name"], default=handle)

        extra: Dict[str, Any] = {"channelId": channel_id}
        for key, extractors in (
            ("bannerUrl", CHANNEL_FIELDS["banner"]),
            ("country", CHANNEL_FIELDS["location"]),
            ("joinedDate", CHANNEL_FIELDS["joined"]),
        ):
            value = resolve(raw, extractors)
            if value:
                extra[key] = value

        return CanonicalProfile(
            external_id=channel_id,
            external_username=handle or name,
            display_name=name,
            profile_url=resolve_text(raw, CHANNEL_FIELDS["url"], default=channel_url(handle or channel_id)),
            avatar_url=resolve(raw, CHANNEL_FIELDS["avatar"]),
            follower_count=resolve_count(raw, CHANNEL_FIELDS["subscribers"]),
            # YouTube has no "following"
            following_count=None,
            post_count=resolve_count(raw, CHANNEL_FIELDS["videos"]),
            view_count=resolve_count(raw, CHANNEL_FIELDS["views"]),
            bio=resolve_text(raw, CHANNEL_FIELDS["description"]),
            is_verified=resolve_flag(raw, CHANNEL_FIELDS["verified"]),
            extra=extra,
        )

    def normalize_videos(self, raw_videos: List[Dict[str, Any]]) -> List[CanonicalPost]:
        now = self.cache_policy.now()
        posts = []
        for raw in raw_videos:
            video_id = resolve(raw, VIDEO_FIELDS["id"])
            if not video_id:
                continue
            title = resolve_text(raw, VIDEO_FIELDS["title"])
            description = resolve_text(raw, VIDEO_FIELDS["description"])
            posts.append(CanonicalPost(
                external_post_id=str(video_id),
                media_type=MediaType.VIDEO.value,
                caption="\n".join(part for part in (title, description) if part),
                media_url=resolve_text(raw, VIDEO_FIELDS["url"], default=f"https://www.youtube.com/watch?v={video_id}"),
                thumbnail_url=resolve(raw, VIDEO_FIELDS["thumbnail"]),
                like_count=resolve_count(raw, VIDEO_FIELDS["likes"]),
                comment_count=resolve_count(raw, VIDEO_FIELDS["comments"]),
                view_count=optional_count(raw, VIDEO_FIELDS["views"]) or 0,
                posted_at=parse_timestamp(resolve(raw, VIDEO_FIELDS["date"]), now=now),
                metadata={
                    "title": title,
                    "duration": parse_duration(resolve(raw, VIDEO_FIELDS["duration"])),
                },
            ))
        return posts

    def compute_engagement(self, snapshot: ScrapeSnapshot) -> Tuple[float, Dict[str, Any]]:
        posts = snapshot.posts
        followers = snapshot.profile.follower_count
        averages: Dict[str, Any] = average_counts(posts)

        if has_interaction_data(posts):
            rate = compute_engagement_rate(posts, followers)
            averages.update({"engagementBasis": "interactions", "engagementEstimated": False})
            return rate, averages

        # Views only: rate is views per subscriber, interaction averages are estimates
        rate = compute_view_engagement_rate(posts, followers)
        averages.update(estimate_interactions_from_views(averages["averageViews"]))
        averages.update({"engagementBasis": "views", "engagementEstimated": True})
        return rate, averages

    def connect_youtube_account(self, owner_id: str, channel_handle: str) -> SocialAccount:
        return self.connect(owner_id, channel_handle)

    def sync_youtube_data(self, account_id: int) -> SyncOutcome:
        return self.sync(account_id)
