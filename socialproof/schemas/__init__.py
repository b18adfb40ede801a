from socialproof.schemas.social import CanonicalPost, CanonicalProfile, ScrapeSnapshot, TokenGrant

__all__ = [
    "CanonicalPost",
    "CanonicalProfile",
    "ScrapeSnapshot",
    "TokenGrant",
]
