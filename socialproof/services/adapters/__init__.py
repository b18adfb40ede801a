from socialproof.services.adapters.base import AccountData, SourceAdapter, SyncOutcome, clean_identifier
from socialproof.services.adapters.instagram import InstagramAdapter
from socialproof.services.adapters.tiktok import TikTokAdapter
from socialproof.services.adapters.tiktok_oauth import TikTokOAuthAdapter
from socialproof.services.adapters.twitter import TwitterAdapter
from socialproof.services.adapters.youtube import YouTubeAdapter

__all__ = [
    "AccountData",
    "SourceAdapter",
    "SyncOutcome",
    "clean_identifier",
    "InstagramAdapter",
    "TikTokAdapter",
    "TikTokOAuthAdapter",
    "TwitterAdapter",
    "YouTubeAdapter",
]
