"""
Account Store: persistence boundary for mirrored accounts and posts.

Adapters and workers only talk to ``AccountStore``. ``SqlAccountStore`` is the
SQLAlchemy implementation used by the workers; writes are flushed by each
method and made durable by the caller's ``commit()``.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from socialproof.models import MediaType, Platform, SocialAccount, SocialPost
from socialproof.schemas import CanonicalPost
from socialproof.utils.timeparse import utcnow

ACCOUNT_FIELDS = {
    "external_id",
    "external_username",
    "display_name",
    "profile_url",
    "avatar_url",
    "follower_count",
    "following_count",
    "post_count",
    "engagement_rate",
    "is_active",
    "encrypted_access_token",
    "encrypted_refresh_token",
    "token_expires_at",
    "last_synced_at",
    "extra_metadata",
}


class AccountStore(ABC):
    @abstractmethod
    def find_account(self, account_id: int) -> Optional[SocialAccount]:
        ...

    @abstractmethod
    def find_account_for_owner(self, owner_id: str, platform: Platform) -> Optional[SocialAccount]:
        ...

    @abstractmethod
    def upsert_account(self, owner_id: str, platform: Platform, fields: Dict[str, Any]) -> SocialAccount:
        ...

    @abstractmethod
    def upsert_post(self, account_id: int, post: CanonicalPost) -> SocialPost:
        ...

    @abstractmethod
    def deactivate_account(self, account_id: int) -> None:
        ...

    @abstractmethod
    def delete_account(self, account_id: int) -> None:
        ...

    @abstractmethod
    def find_due_accounts(self, stale_before: datetime) -> List[SocialAccount]:
        ...

    @abstractmethod
    def find_expiring_credentials(self, expires_before: datetime) -> List[SocialAccount]:
        ...

    @abstractmethod
    def update_credential(
        self,
        account_id: int,
        encrypted_access_token: str,
        encrypted_refresh_token: Optional[str],
        expires_at: datetime,
    ) -> None:
        ...

    @abstractmethod
    def list_posts(self, account_id: int, limit: int = 20) -> List[SocialPost]:
        ...

    @abstractmethod
    def count_posts(self, account_id: int) -> int:
        ...

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...


class SqlAccountStore(AccountStore):
    def __init__(self, db: Session):
        self.db = db

    def find_account(self, account_id: int) -> Optional[SocialAccount]:
        return self.db.query(SocialAccount).filter(SocialAccount.id == account_id).first()

    def find_account_for_owner(self, owner_id: str, platform: Platform) -> Optional[SocialAccount]:
        return self.db.query(SocialAccount).filter(
            SocialAccount.owner_id == owner_id,
            SocialAccount.platform == platform,
        ).first()

    def upsert_account(self, owner_id: str, platform: Platform, fields: Dict[str, Any]) -> SocialAccount:
        unknown = set(fields) - ACCOUNT_FIELDS
        if unknown:
            raise ValueError(f"Unknown account fields: {sorted(unknown)}")

        account = self.find_account_for_owner(owner_id, platform)
        if account is None:
            account = SocialAccount(owner_id=owner_id, platform=platform, extra_metadata={})
            self.db.add(account)

        for name, value in fields.items():
            if name == "last_synced_at":
                # Never move the freshness marker backwards
                if account.last_synced_at is not None and value is not None and value < account.last_synced_at:
                    continue
            setattr(account, name, value)

        account.updated_at = utcnow()
        self.db.flush()
        return account

    def upsert_post(self, account_id: int, post: CanonicalPost) -> SocialPost:
        existing = self.db.query(SocialPost).filter(
            SocialPost.account_id == account_id,
            SocialPost.external_post_id == post.external_post_id,
        ).first()

        if existing:
            existing.like_count = post.like_count
            existing.comment_count = post.comment_count
            existing.share_count = post.share_count
            existing.view_count = post.view_count
            existing.caption = post.caption or existing.caption
            existing.thumbnail_url = post.thumbnail_url or existing.thumbnail_url
            existing.extra_metadata = {**(existing.extra_metadata or {}), **post.metadata}
            existing.updated_at = utcnow()
            self.db.flush()
            return existing

        row = SocialPost(
            account_id=account_id,
            external_post_id=post.external_post_id,
            media_type=MediaType(post.media_type),
            caption=post.caption,
            media_url=post.media_url,
            thumbnail_url=post.thumbnail_url,
            like_count=post.like_count,
            comment_count=post.comment_count,
            share_count=post.share_count,
            view_count=post.view_count,
            posted_at=post.posted_at,
            extra_metadata=dict(post.metadata),
        )
        self.db.add(row)
        self.db.flush()
        return row

    def deactivate_account(self, account_id: int) -> None:
        account = self.find_account(account_id)
        if account is None:
            return
        account.is_active = False
        account.updated_at = utcnow()
        self.db.flush()

    def delete_account(self, account_id: int) -> None:
        account = self.find_account(account_id)
        if account is None:
            return
        # The posts relationship cascades, so this holds on SQLite without FK pragmas
        self.db.delete(account)
        self.db.flush()

    def find_due_accounts(self, stale_before: datetime) -> List[SocialAccount]:
        return self.db.query(SocialAccount).filter(
            SocialAccount.is_active == True,  # noqa: E712
            (SocialAccount.last_synced_at.is_(None)) | (SocialAccount.last_synced_at <= stale_before),
        ).order_by(SocialAccount.id.asc()).all()

    def find_expiring_credentials(self, expires_before: datetime) -> List[SocialAccount]:
        return self.db.query(SocialAccount).filter(
            SocialAccount.is_active == True,  # noqa: E712
            SocialAccount.encrypted_access_token.isnot(None),
            SocialAccount.token_expires_at.isnot(None),
            SocialAccount.token_expires_at <= expires_before,
        ).order_by(SocialAccount.id.asc()).all()

    def update_credential(
        self,
        account_id: int,
        encrypted_access_token: str,
        encrypted_refresh_token: Optional[str],
        expires_at: datetime,
    ) -> None:
        account = self.find_account(account_id)
        if account is None:
            raise ValueError(f"Social account {account_id} not found")
        account.encrypted_access_token = encrypted_access_token
        account.encrypted_refresh_token = encrypted_refresh_token
        account.token_expires_at = expires_at
        account.updated_at = utcnow()
        self.db.flush()

    def list_posts(self, account_id: int, limit: int = 20) -> List[SocialPost]:
        return self.db.query(SocialPost).filter(
            SocialPost.account_id == account_id,
        ).order_by(SocialPost.posted_at.desc()).limit(limit).all()

    def count_posts(self, account_id: int) -> int:
        return self.db.query(SocialPost).filter(SocialPost.account_id == account_id).count()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
