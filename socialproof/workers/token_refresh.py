"""
Token refresh worker.

LOGIC:
- Selects active OAuth accounts whose token expires within the horizon
- Refreshes each through the Credential Vault and stores the new ciphertext
- A rejected refresh deactivates the account; the owner must reconnect
- A token that fails to decrypt is a key problem, so the account is left active
"""
import logging
from dataclasses import asdict, dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional

from socialproof.core.errors import DecryptionError, NotFoundError, RefreshFailed
from socialproof.services.account_store import AccountStore
from socialproof.services.credential_vault import CredentialVault
from socialproof.services.events import (
    ACCOUNT_DEACTIVATED,
    TOKEN_REFRESH_FAILED,
    TOKEN_REFRESHED,
    EventSink,
)
from socialproof.workers.single_flight import SingleFlight

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 7


@dataclass
class RefreshResult:
    account_id: int
    platform: str
    refreshed: bool
    error: Optional[str] = None
    deactivated: bool = False


@dataclass
class RefreshSummary:
    refreshed_count: int = 0
    failure_count: int = 0
    deactivated_count: int = 0
    failures: List[RefreshResult] = field(default_factory=list)

    def record(self, result: RefreshResult) -> None:
        if result.refreshed:
            self.refreshed_count += 1
            return
        self.failure_count += 1
        if result.deactivated:
            self.deactivated_count += 1
        self.failures.append(result)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "refreshed": self.refreshed_count,
            "failed": self.failure_count,
            "deactivated": self.deactivated_count,
            "failures": [asdict(failure) for failure in self.failures],
        }


class TokenRefreshWorker:
    def __init__(
        self,
        store: AccountStore,
        vault: CredentialVault,
        horizon_days: int = DEFAULT_HORIZON_DAYS,
        events: Optional[EventSink] = None,
        guard: Optional[SingleFlight] = None,
    ):
        self.store = store
        self.vault = vault
        self.horizon_days = horizon_days
        self.events = events or EventSink()
        self.guard = guard or SingleFlight("TokenRefreshWorker")

    @property
    def running(self) -> bool:
        return self.guard.running

    def run(self) -> Optional[RefreshSummary]:
        """Refresh every expiring credential. Returns None if already running."""
        return self.guard.run(self._run_batch)

    def _run_batch(self) -> RefreshSummary:
        summary = RefreshSummary()
        expires_before = self.vault.clock() + timedelta(days=self.horizon_days)

        candidates = self.store.find_expiring_credentials(expires_before)
        targets = [
            (account.id, account.platform.value)
            for account in candidates
            if self.vault.is_expiring_soon(account, self.horizon_days)
        ]
        logger.info("[TokenRefresh] %d credential(s) expire before %s", len(targets), expires_before)

        for account_id, platform in targets:
            summary.record(self.refresh_account(account_id, platform))

        logger.info(
            "[TokenRefresh] Finished: %d refreshed, %d failed, %d deactivated",
            summary.refreshed_count,
            summary.failure_count,
            summary.deactivated_count,
        )
        return summary

    def refresh_account(self, account_id: int, platform: str) -> RefreshResult:
        try:
            account = self.store.find_account(account_id)
            if account is None:
                raise NotFoundError(f"Account {account_id} no longer exists")
            grant = self.vault.refresh(account)
            access, refresh, expires_at = self.vault.seal(grant, account.encrypted_refresh_token)
            self.store.update_credential(account_id, access, refresh, expires_at)
            self.store.commit()
        except RefreshFailed as e:
            self.store.rollback()
            logger.warning("[TokenRefresh] Refresh failed for %s account %s, deactivating: %s", platform, account_id, e)
            return self._deactivate(account_id, platform, str(e))
        except DecryptionError as e:
            self.store.rollback()
            logger.critical("[TokenRefresh] Stored token for account %s cannot be decrypted; check ENCRYPTION_KEY", account_id)
            return self._failed(account_id, platform, str(e))
        except Exception as e:
            self.store.rollback()
            logger.error("[TokenRefresh] Error refreshing %s account %s: %s", platform, account_id, e)
            return self._failed(account_id, platform, str(e))

        logger.info("[TokenRefresh] Refreshed %s account %s", platform, account_id)
        self.events.emit(TOKEN_REFRESHED, {"account_id": account_id, "platform": platform})
        return RefreshResult(account_id=account_id, platform=platform, refreshed=True)

    def _deactivate(self, account_id: int, platform: str, error: str) -> RefreshResult:
        try:
            self.store.deactivate_account(account_id)
            self.store.commit()
        except Exception as e:
            self.store.rollback()
            logger.error("[TokenRefresh] Could not deactivate account %s: %s", account_id, e)
            return self._failed(account_id, platform, error)

        self.events.emit(ACCOUNT_DEACTIVATED, {"account_id": account_id, "platform": platform, "reason": "token_refresh_failed"})
        result = RefreshResult(account_id=account_id, platform=platform, refreshed=False, error=error, deactivated=True)
        self.events.emit(TOKEN_REFRESH_FAILED, asdict(result))
        return result

    def _failed(self, account_id: int, platform: str, error: str) -> RefreshResult:
        result = RefreshResult(account_id=account_id, platform=platform, refreshed=False, error=error)
        self.events.emit(TOKEN_REFRESH_FAILED, asdict(result))
        return result
