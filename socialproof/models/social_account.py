import enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from socialproof.db.base import Base
from socialproof.utils.timeparse import utcnow


class Platform(str, enum.Enum):
    INSTAGRAM = "INSTAGRAM"
    TIKTOK = "TIKTOK"
    YOUTUBE = "YOUTUBE"
    TWITTER = "TWITTER"


class StoredCredential:
    """Encrypted OAuth material attached to an account. Never plaintext."""

    def __init__(self, encrypted_access_token, encrypted_refresh_token, expires_at):
        self.encrypted_access_token = encrypted_access_token
        self.encrypted_refresh_token = encrypted_refresh_token
        self.expires_at = expires_at

    def __repr__(self):
        return f"<StoredCredential(expires_at={self.expires_at}, has_refresh={self.encrypted_refresh_token is not None})>"


class SocialAccount(Base):
    __tablename__ = "social_accounts"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String, nullable=False, index=True)
    platform = Column(Enum(Platform, name="social_platform"), nullable=False)

    external_id = Column(String, nullable=False)
    external_username = Column(String, nullable=False)
    display_name = Column(String, nullable=True)
    profile_url = Column(String, nullable=True)
    avatar_url = Column(Text, nullable=True)

    follower_count = Column(Integer, nullable=False, default=0)
    following_count = Column(Integer, nullable=True)  # YouTube has no "following"
    post_count = Column(Integer, nullable=False, default=0)
    engagement_rate = Column(Float, nullable=False, default=0.0)  # Percent, 2 decimals

    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # OAuth-backed accounts only; encrypted with the process ENCRYPTION_KEY
    encrypted_access_token = Column(Text, nullable=True)
    encrypted_refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime, nullable=True, index=True)

    last_synced_at = Column(DateTime, nullable=True, index=True)
    extra_metadata = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    posts = relationship(
        "SocialPost",
        back_populates="account",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("owner_id", "platform", name="uq_social_accounts_owner_platform"),
    )

    @property
    def credential(self):
        if not self.encrypted_access_token:
            return None
        return StoredCredential(
            self.encrypted_access_token,
            self.encrypted_refresh_token,
            self.token_expires_at,
        )

    @property
    def is_oauth(self) -> bool:
        return self.encrypted_access_token is not None

    def __repr__(self):
        return f"<SocialAccount(id={self.id}, platform={self.platform}, username={self.external_username}, active={self.is_active})>"
