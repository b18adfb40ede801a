from socialproof.tasks.social_tasks import (
    refresh_expiring_tokens,
    startup_catch_up_sync,
    sync_account,
    sync_due_accounts,
)

__all__ = [
    "refresh_expiring_tokens",
    "startup_catch_up_sync",
    "sync_account",
    "sync_due_accounts",
]
