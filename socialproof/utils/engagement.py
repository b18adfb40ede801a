"""
Engagement figures computed from normalized recent activity.

All values are best-effort approximations of public data.
"""
from typing import Dict, Sequence

from socialproof.schemas import CanonicalPost

# View-only platforms: estimated share of views that turn into likes/comments.
# A heuristic, not a measurement.
ESTIMATED_LIKE_RATIO = 0.04
ESTIMATED_COMMENT_RATIO = 0.005


def compute_engagement_rate(
    posts: Sequence[CanonicalPost],
    follower_count: int,
    include_shares: bool = False,
) -> float:
    """
    ``mean(likes + comments [+ shares]) / followers * 100``, 2 decimals.

    0 when there are no posts or no followers.
    """
    if not posts or not follower_count or follower_count <= 0:
        return 0.0

    total = 0
    for post in posts:
        total += post.like_count + post.comment_count
        if include_shares:
            total += post.share_count

    average = total / len(posts)
    return round(average / follower_count * 100, 2)


def compute_view_engagement_rate(posts: Sequence[CanonicalPost], follower_count: int) -> float:
    """``mean(views) / followers * 100`` for platforms without like data."""
    if not posts or not follower_count or follower_count <= 0:
        return 0.0
    total_views = sum(post.view_count or 0 for post in posts)
    return round(total_views / len(posts) / follower_count * 100, 2)


def has_interaction_data(posts: Sequence[CanonicalPost]) -> bool:
    return any(post.like_count > 0 or post.comment_count > 0 for post in posts)


def average_counts(posts: Sequence[CanonicalPost]) -> Dict[str, int]:
    """Rounded per-item averages of each counter."""
    if not posts:
        return {"averageLikes": 0, "averageComments": 0, "averageShares": 0, "averageViews": 0}
    count = len(posts)
    return {
        "averageLikes": round(sum(p.like_count for p in posts) / count),
        "averageComments": round(sum(p.comment_count for p in posts) / count),
        "averageShares": round(sum(p.share_count for p in posts) / count),
        "averageViews": round(sum(p.view_count or 0 for p in posts) / count),
    }


def estimate_interactions_from_views(average_views: int) -> Dict[str, int]:
    """Per-item likes and comments estimated as fixed fractions of views."""
    if average_views <= 0:
        return {"averageLikes": 0, "averageComments": 0}
    return {
        "averageLikes": round(average_views * ESTIMATED_LIKE_RATIO),
        "averageComments": round(average_views * ESTIMATED_COMMENT_RATIO),
    }
