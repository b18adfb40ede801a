"""
Twitter/X via an Apify user scraper.

Twitter actors return one of four dataset layouts:

1. a user record carrying its tweets under ``timeline`` or ``tweets``
2. a wrapper with the user under ``user`` and tweets under ``tweets``
3. a flat list of tweets, each with its author under ``author``/``user_info``
4. a flat list whose first item is the user and the rest are tweets

Retweets are dropped so engagement reflects original content only.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from socialproof.core.errors import NotFoundError
from socialproof.models import MediaType, Platform, SocialAccount
from socialproof.schemas import CanonicalPost, CanonicalProfile, ScrapeSnapshot
from socialproof.services.adapters.base import ApifySourceAdapter, SyncOutcome
from socialproof.utils.counts import field, optional_count, resolve, resolve_count, resolve_flag, resolve_text
from socialproof.utils.timeparse import parse_timestamp

logger = logging.getLogger(__name__)

MAX_TWEETS = 20

USER_FIELDS = {
    "id": [field("id_str"), field("id"), field("rest_id"), field("userId")],
    "username": [field("screen_name"), field("userName"), field("username")],
    "name": [field("name"), field("displayName")],
    "bio": [field("description"), field("bio")],
    "followers": [field("followers_count"), field("followers"), field("followersCount")],
    "following": [field("friends_count"), field("following"), field("followingCount")],
    "tweets": [field("statuses_count"), field("statusesCount"), field("tweetsCount")],
    "verified": [field("verified"), field("isVerified"), field("isBlueVerified")],
    "protected": [field("protected"), field("isProtected")],
    "avatar": [field("profile_image_url_https"), field("profile_image_url"), field("profilePicture")],
    "banner": [field("profile_banner_url"), field("coverPicture")],
    "location": [field("location")],
    "website": [field("entities", "url", "urls"), field("url")],
    "joined": [field("created_at"), field("createdAt")],
}

TWEET_FIELDS = {
    "id": [field("id_str"), field("id"), field("tweet_id")],
    "text": [field("full_text"), field("text"), field("fullText")],
    "created": [field("created_at"), field("createdAt")],
    "url": [field("url"), field("twitterUrl")],
    "likes": [field("favorite_count"), field("like_count"), field("likeCount")],
    "retweets": [field("retweet_count"), field("retweetCount")],
    "replies": [field("reply_count"), field("replyCount")],
    "quotes": [field("quote_count"), field("quoteCount")],
    "views": [field("view_count"), field("viewCount")],
}


def split_dataset(items: List[Dict[str, Any]]) -> Tuple[Optional[Dict[str, Any]], List[Any]]:
    """Return ``(user, tweets)`` for whichever dataset layout ``items`` uses."""
    first = items[0]
    if isinstance(first.get("user"), dict) and "tweets" in first:
        return first["user"], list(first.get("tweets") or [])
    if "timeline" in first or "tweets" in first:
        return first, list(first.get("timeline") or first.get("tweets") or [])
    for key in ("author", "user_info", "user"):
        if isinstance(first.get(key), dict):
            return first[key], list(items)
    return first, list(items[1:])


def is_retweet(tweet: Dict[str, Any], text: str) -> bool:
    return bool(tweet.get("retweeted_status") or tweet.get("isRetweet")) or text.startswith("RT @")


def _media_urls(tweet: Dict[str, Any]) -> List[str]:
    media = ((tweet.get("entities") or {}).get("media")) or tweet.get("media") or []
    urls = []
    for item in media:
        if isinstance(item, dict):
            url = item.get("media_url_https") or item.get("url")
            if url:
                urls.append(url)
    return urls


class TwitterAdapter(ApifySourceAdapter):
    platform = Platform.TWITTER
    # Retweets play the role of shares
    include_shares = True

    def fetch_snapshot(self, handle: str) -> ScrapeSnapshot:
        logger.info("[TwitterAdapter] Starting scrape for @%s", handle)
        items = self.run_actor({
            "searchTerms": [handle],
            "maxTweets": MAX_TWEETS,
            "mode": "user",
        }, handle)

        user, raw_tweets = split_dataset(items)
        if not user:
            raise NotFoundError(f"Could not extract profile data for @{handle}")

        profile = self.normalize_profile(dict(user, fallback_username=handle))
        posts = self.normalize_tweets(raw_tweets, profile.external_username)

        logger.info(
            "[TwitterAdapter] Scraped @%s: %s followers, %d original tweets",
            profile.external_username,
            profile.follower_count,
            len(posts),
        )
        return ScrapeSnapshot(profile=profile, posts=posts)

    def normalize_profile(self, raw: Dict[str, Any]) -> CanonicalProfile:
        username = resolve_text(raw, USER_FIELDS["username"], default=raw.get("fallback_username") or "")
        # "_normal" is the 48px variant
        avatar = resolve_text(raw, USER_FIELDS["avatar"]).replace("_normal", "_400x400") or None

        extra: Dict[str, Any] = {}
        website = resolve(raw, USER_FIELDS["website"])
        if isinstance(website, list):
            website = website[0].get("expanded_url") if website and isinstance(website[0], dict) else None
        for key, value in (
            ("bannerUrl", resolve(raw, USER_FIELDS["banner"])),
            ("location", resolve(raw, USER_FIELDS["location"])),
            ("website", website),
            ("joinedDate", resolve(raw, USER_FIELDS["joined"])),
        ):
            if value:
                extra[key] = value

        return CanonicalProfile(
            external_id=str(resolve(raw, USER_FIELDS["id"], default=username)),
            external_username=username,
            display_name=resolve_text(raw, USER_FIELDS["name"], default=username),
            profile_url=f"https://twitter.com/{username}",
            avatar_url=avatar,
            follower_count=resolve_count(raw, USER_FIELDS["followers"]),
            following_count=resolve_count(raw, USER_FIELDS["following"]),
            post_count=resolve_count(raw, USER_FIELDS["tweets"]),
            bio=resolve_text(raw, USER_FIELDS["bio"]),
            is_verified=resolve_flag(raw, USER_FIELDS["verified"]),
            is_private=resolve_flag(raw, USER_FIELDS["protected"]),
            extra=extra,
        )

    def normalize_tweets(self, raw_tweets: List[Any], username: str) -> List[CanonicalPost]:
        now = self.cache_policy.now()
        posts = []
        for tweet in raw_tweets:
            if not isinstance(tweet, dict):
                continue
            tweet_id = resolve(tweet, TWEET_FIELDS["id"])
            text = resolve_text(tweet, TWEET_FIELDS["text"])
            if not tweet_id or not text or is_retweet(tweet, text):
                continue

            media = _media_urls(tweet)
            posts.append(CanonicalPost(
                external_post_id=str(tweet_id),
                media_type=(MediaType.IMAGE if media else MediaType.TEXT).value,
                caption=text,
                media_url=resolve_text(tweet, TWEET_FIELDS["url"], default=f"https://twitter.com/{username}/status/{tweet_id}"),
                thumbnail_url=media[0] if media else None,
                like_count=resolve_count(tweet, TWEET_FIELDS["likes"]),
                comment_count=resolve_count(tweet, TWEET_FIELDS["replies"]),
                share_count=resolve_count(tweet, TWEET_FIELDS["retweets"]),
                view_count=optional_count(tweet, TWEET_FIELDS["views"]),
                posted_at=parse_timestamp(resolve(tweet, TWEET_FIELDS["created"]), now=now),
                metadata={"quoteCount": resolve_count(tweet, TWEET_FIELDS["quotes"]), "mediaUrls": media},
            ))
            if len(posts) >= MAX_TWEETS:
                break
        return posts

    def connect_twitter_account(self, owner_id: str, username: str) -> SocialAccount:
        return self.connect(owner_id, username)

    def sync_twitter_data(self, account_id: int) -> SyncOutcome:
        return self.sync(account_id)
