"""
Staleness window for mirrored accounts.

One policy object is shared by on-demand ``sync`` calls and the scheduler's
selection query, so a manual sync inside the window never reaches an external
provider.
"""
from datetime import datetime, timedelta
from typing import Callable, Optional

from socialproof.utils.timeparse import utcnow

DEFAULT_TTL_DAYS = 7


class CachePolicy:
    def __init__(self, ttl_days: int = DEFAULT_TTL_DAYS, clock: Callable[[], datetime] = utcnow):
        self.ttl = timedelta(days=ttl_days)
        self.clock = clock

    def now(self) -> datetime:
        return self.clock()

    def is_valid(self, last_synced_at: Optional[datetime]) -> bool:
        """True while ``now - last_synced_at < ttl``; never-synced is stale."""
        if last_synced_at is None:
            return False
        return self.now() - last_synced_at < self.ttl

    def stale_before(self) -> datetime:
        """Accounts synced at or before this instant are due."""
        return self.now() - self.ttl

    def next_sync_at(self, last_synced_at: Optional[datetime]) -> datetime:
        if last_synced_at is None:
            return self.now()
        return last_synced_at + self.ttl

    def age_days(self, last_synced_at: Optional[datetime]) -> Optional[int]:
        if last_synced_at is None:
            return None
        return (self.now() - last_synced_at).days
