"""Create social_accounts and social_posts.

social_accounts: one row per (owner, platform), with optional encrypted
OAuth credential columns.
social_posts: one row per (account, external post id); deleted with the
account.

Revision ID: 001_social_accounts_and_posts
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_social_accounts_and_posts"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PLATFORMS = ("INSTAGRAM", "TIKTOK", "YOUTUBE", "TWITTER")
MEDIA_TYPES = ("IMAGE", "VIDEO", "CAROUSEL", "TEXT")


def upgrade() -> None:
    op.create_table(
        "social_accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("platform", sa.Enum(*PLATFORMS, name="social_platform"), nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("external_username", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("profile_url", sa.String(), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("follower_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("following_count", sa.Integer(), nullable=True),
        sa.Column("post_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("engagement_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("encrypted_access_token", sa.Text(), nullable=True),
        sa.Column("encrypted_refresh_token", sa.Text(), nullable=True),
        sa.Column("token_expires_at", sa.DateTime(), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(), nullable=True),
        sa.Column("extra_metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("owner_id", "platform", name="uq_social_accounts_owner_platform"),
    )
    op.create_index("ix_social_accounts_id", "social_accounts", ["id"])
    op.create_index("ix_social_accounts_owner_id", "social_accounts", ["owner_id"])
    op.create_index("ix_social_accounts_is_active", "social_accounts", ["is_active"])
    op.create_index("ix_social_accounts_token_expires_at", "social_accounts", ["token_expires_at"])
    op.create_index("ix_social_accounts_last_synced_at", "social_accounts", ["last_synced_at"])

    op.create_table(
        "social_posts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "account_id",
            sa.Integer(),
            sa.ForeignKey("social_accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("external_post_id", sa.String(), nullable=False),
        sa.Column("media_type", sa.Enum(*MEDIA_TYPES, name="social_media_type"), nullable=False),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("media_url", sa.Text(), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("like_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("comment_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("share_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("view_count", sa.Integer(), nullable=True),
        sa.Column("posted_at", sa.DateTime(), nullable=False),
        sa.Column("extra_metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("account_id", "external_post_id", name="uq_social_posts_account_external"),
    )
    op.create_index("ix_social_posts_id", "social_posts", ["id"])
    op.create_index("ix_social_posts_account_id", "social_posts", ["account_id"])
    op.create_index("ix_social_posts_posted_at", "social_posts", ["posted_at"])


def downgrade() -> None:
    op.drop_table("social_posts")
    op.drop_table("social_accounts")

    conn = op.get_bind()
    if conn.dialect.name == "postgresql":
        op.execute("DROP TYPE IF EXISTS social_media_type")
        op.execute("DROP TYPE IF EXISTS social_platform")
