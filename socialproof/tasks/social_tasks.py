import logging

from socialproof.celery_app import celery_app, settings
from socialproof.core.cache_policy import CachePolicy
from socialproof.db.session import SessionLocal
from socialproof.services.account_store import SqlAccountStore
from socialproof.services.identity import INFLUENCER_ROLE, StaticIdentityLookup
from socialproof.services.registry import build_oauth_client, build_registry, build_vault
from socialproof.workers.single_flight import SingleFlight
from socialproof.workers.sync_scheduler import DataSyncScheduler
from socialproof.workers.token_refresh import TokenRefreshWorker

logger = logging.getLogger(__name__)

# One guard per worker type, shared by every task run in this process
_sync_guard = SingleFlight("DataSyncScheduler")
_refresh_guard = SingleFlight("TokenRefreshWorker")


def _build_scheduler(db) -> DataSyncScheduler:
    store = SqlAccountStore(db)
    cache_policy = CachePolicy(ttl_days=settings.cache_ttl_days)
    # Scheduled syncs only touch accounts that were already allowed to connect
    identity = StaticIdentityLookup(default_role=INFLUENCER_ROLE)
    registry = build_registry(settings, store, cache_policy, identity)
    return DataSyncScheduler(
        store,
        registry,
        cache_policy,
        delay_ms=settings.sync_delay_ms,
        guard=_sync_guard,
    )


@celery_app.task(name="sync_due_accounts")
def sync_due_accounts():
    db = SessionLocal()
    try:
        summary = _build_scheduler(db).run()
        if summary is None:
            return {"status": "skipped"}
        return {"status": "success", **summary.to_dict()}
    finally:
        db.close()


@celery_app.task(name="startup_catch_up_sync")
def startup_catch_up_sync():
    db = SessionLocal()
    try:
        summary = _build_scheduler(db).run_catch_up()
        if summary is None:
            return {"status": "skipped"}
        return {"status": "success", **summary.to_dict()}
    finally:
        db.close()


@celery_app.task(name="refresh_expiring_tokens")
def refresh_expiring_tokens():
    db = SessionLocal()
    try:
        vault = build_vault(settings, build_oauth_client(settings))
        worker = TokenRefreshWorker(
            SqlAccountStore(db),
            vault,
            horizon_days=settings.token_refresh_horizon_days,
            guard=_refresh_guard,
        )
        summary = worker.run()
        if summary is None:
            return {"status": "skipped"}
        return {"status": "success", **summary.to_dict()}
    finally:
        db.close()


@celery_app.task(name="sync_account")
def sync_account(account_id: int):
    """On-demand sync of one account; honours the cache window."""
    db = SessionLocal()
    try:
        store = SqlAccountStore(db)
        account = store.find_account(account_id)
        if account is None:
            return {"status": "error", "account_id": account_id, "message": "Account not found"}
        if not account.is_active:
            return {"status": "error", "account_id": account_id, "message": "Account is inactive"}
        result = _build_scheduler(db).sync_account(account_id, account.platform.value)
        return {"status": result.outcome, "account_id": account_id, "cached": result.cached, "error": result.error}
    finally:
        db.close()
