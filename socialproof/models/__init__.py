from socialproof.models.social_account import Platform, SocialAccount, StoredCredential
from socialproof.models.social_post import MediaType, SocialPost

__all__ = [
    "Platform",
    "SocialAccount",
    "StoredCredential",
    "MediaType",
    "SocialPost",
]
