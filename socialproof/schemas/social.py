from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CanonicalPost(BaseModel):
    """One normalized item of recent activity (post, video or tweet)."""

    external_post_id: str
    media_type: str = "IMAGE"
    caption: str = ""
    media_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    like_count: int = 0
    comment_count: int = 0
    share_count: int = 0
    view_count: Optional[int] = None
    posted_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)


class CanonicalProfile(BaseModel):
    """Normalized profile fields shared by every platform."""

    external_id: str
    external_username: str
    display_name: str = ""
    profile_url: str = ""
    avatar_url: Optional[str] = None
    follower_count: int = 0
    following_count: Optional[int] = None
    post_count: int = 0
    view_count: Optional[int] = None
    bio: str = ""
    is_verified: bool = False
    is_private: bool = False
    extra: Dict[str, Any] = Field(default_factory=dict)


class ScrapeSnapshot(BaseModel):
    """A profile and its recent activity, as fetched in one upstream call."""

    profile: CanonicalProfile
    posts: List[CanonicalPost] = Field(default_factory=list)


class TokenGrant(BaseModel):
    """Plaintext OAuth tokens, held in memory only for one call."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: datetime
    open_id: Optional[str] = None
    scope: Optional[str] = None

    def __repr__(self) -> str:
        return f"<TokenGrant(expires_at={self.expires_at}, open_id={self.open_id})>"

    __str__ = __repr__
