import enum

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from socialproof.db.base import Base
from socialproof.utils.timeparse import utcnow


class MediaType(str, enum.Enum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    CAROUSEL = "CAROUSEL"
    TEXT = "TEXT"


class SocialPost(Base):
    __tablename__ = "social_posts"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("social_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    external_post_id = Column(String, nullable=False)

    media_type = Column(Enum(MediaType, name="social_media_type"), nullable=False, default=MediaType.IMAGE)
    caption = Column(Text, nullable=True)
    media_url = Column(Text, nullable=True)
    thumbnail_url = Column(Text, nullable=True)

    like_count = Column(Integer, nullable=False, default=0)
    comment_count = Column(Integer, nullable=False, default=0)
    share_count = Column(Integer, nullable=False, default=0)
    view_count = Column(Integer, nullable=True)

    posted_at = Column(DateTime, nullable=False, index=True)
    extra_metadata = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    account = relationship("SocialAccount", back_populates="posts")

    __table_args__ = (
        UniqueConstraint("account_id", "external_post_id", name="uq_social_posts_account_external"),
    )

    def __repr__(self):
        return f"<SocialPost(id={self.id}, account_id={self.account_id}, external_post_id={self.external_post_id})>"
