"""
Data sync scheduler.

LOGIC:
- Selects active accounts whose last sync is older than the cache window
- Syncs them one at a time, in id order, sleeping between accounts
- A failing account is recorded and rolled back; the batch carries on
"""
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional

from socialproof.core.cache_policy import CachePolicy
from socialproof.core.errors import NotFoundError
from socialproof.services.account_store import AccountStore
from socialproof.services.events import (
    ACCOUNT_FAILED,
    ACCOUNT_SYNCED,
    BATCH_FINISHED,
    BATCH_STARTED,
    EventSink,
)
from socialproof.services.registry import AdapterRegistry
from socialproof.workers.single_flight import SingleFlight

logger = logging.getLogger(__name__)

DEFAULT_DELAY_MS = 2000

SUCCESS = "success"
FAILURE = "failure"


@dataclass
class SyncResult:
    account_id: int
    platform: str
    outcome: str
    error: Optional[str] = None
    cached: bool = False


@dataclass
class BatchSummary:
    success_count: int = 0
    failure_count: int = 0
    failures: List[SyncResult] = field(default_factory=list)

    def record(self, result: SyncResult) -> None:
        if result.outcome == SUCCESS:
            self.success_count += 1
        else:
            self.failure_count += 1
            self.failures.append(result)

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success_count,
            "failed": self.failure_count,
            "failures": [asdict(failure) for failure in self.failures],
        }


class DataSyncScheduler:
    def __init__(
        self,
        store: AccountStore,
        registry: AdapterRegistry,
        cache_policy: CachePolicy,
        delay_ms: int = DEFAULT_DELAY_MS,
        events: Optional[EventSink] = None,
        sleep: Callable[[float], None] = time.sleep,
        guard: Optional[SingleFlight] = None,
    ):
        self.store = store
        self.registry = registry
        self.cache_policy = cache_policy
        self.delay_seconds = max(delay_ms, 0) / 1000.0
        self.events = events or EventSink()
        self.sleep = sleep
        self.guard = guard or SingleFlight("DataSyncScheduler")

    @property
    def running(self) -> bool:
        return self.guard.running

    def run(self) -> Optional[BatchSummary]:
        """Sync every due account. Returns None if a batch is already running."""
        return self.guard.run(self._run_batch, "scheduled")

    def run_catch_up(self) -> Optional[BatchSummary]:
        """Eager pass over accounts that went stale while the process was down."""
        return self.guard.run(self._run_batch, "startup catch-up")

    def _run_batch(self, trigger: str) -> BatchSummary:
        summary = BatchSummary()
        stale_before = self.cache_policy.stale_before()

        # Plain values: a rollback expires ORM instances mid-batch
        due = [(account.id, account.platform.value) for account in self.store.find_due_accounts(stale_before)]
        logger.info("[DataSyncScheduler] Starting %s sync: %d account(s) due (synced before %s)", trigger, len(due), stale_before)
        self.events.emit(BATCH_STARTED, {"trigger": trigger, "count": len(due)})

        for index, (account_id, platform) in enumerate(due):
            if index > 0 and self.delay_seconds:
                self.sleep(self.delay_seconds)
            summary.record(self.sync_account(account_id, platform))

        logger.info(
            "[DataSyncScheduler] Sync finished: %d succeeded, %d failed",
            summary.success_count,
            summary.failure_count,
        )
        self.events.emit(BATCH_FINISHED, summary.to_dict())
        return summary

    def sync_account(self, account_id: int, platform: str) -> SyncResult:
        try:
            account = self.store.find_account(account_id)
            if account is None:
                raise NotFoundError(f"Account {account_id} no longer exists")
            adapter = self.registry.for_account(account)
            outcome = adapter.sync(account_id)
        except Exception as e:
            self.store.rollback()
            logger.error("[DataSyncScheduler] %s account %s failed: %s", platform, account_id, e)
            result = SyncResult(account_id=account_id, platform=platform, outcome=FAILURE, error=str(e))
            self.events.emit(ACCOUNT_FAILED, asdict(result))
            return result

        logger.info("[DataSyncScheduler] %s account %s synced%s", platform, account_id, " (cached)" if outcome.cached else "")
        result = SyncResult(account_id=account_id, platform=platform, outcome=SUCCESS, cached=outcome.cached)
        self.events.emit(ACCOUNT_SYNCED, asdict(result))
        return result
