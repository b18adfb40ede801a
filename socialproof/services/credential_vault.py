"""
Credential Vault: OAuth tokens at rest.

Tokens are Fernet-encrypted with the process ``ENCRYPTION_KEY`` before they
reach the store. Plaintext only exists inside a single call.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple

from socialproof.core.errors import RefreshFailed, UpstreamError
from socialproof.models import Platform, SocialAccount
from socialproof.schemas import TokenGrant
from socialproof.utils.encryption import decrypt_token, encrypt_token
from socialproof.utils.timeparse import utcnow

logger = logging.getLogger(__name__)


class CredentialVault:
    """
    ``providers`` maps a platform to an OAuth client exposing
    ``refresh_access_token(refresh_token) -> TokenGrant``.
    """

    def __init__(
        self,
        providers: Optional[Dict[Platform, Any]] = None,
        key: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.providers = dict(providers or {})
        self._key = key
        self.clock = clock

    def __repr__(self):
        return f"<CredentialVault(providers={sorted(p.value for p in self.providers)})>"

    def encrypt(self, token: str) -> str:
        return encrypt_token(token, self._key)

    def decrypt(self, ciphertext: str) -> str:
        """Raises ``DecryptionError`` if the ciphertext does not authenticate."""
        return decrypt_token(ciphertext, self._key)

    def is_expiring_soon(self, account: SocialAccount, horizon_days: int) -> bool:
        if account.token_expires_at is None:
            return False
        return account.token_expires_at - self.clock() <= timedelta(days=horizon_days)

    def refresh(self, account: SocialAccount) -> TokenGrant:
        """
        Exchange the account's refresh token for a new grant.

        Raises:
            RefreshFailed: no refresh token, no provider for the platform, or
                the provider rejected the exchange.
            DecryptionError: the stored refresh token does not authenticate.
        """
        if not account.encrypted_refresh_token:
            raise RefreshFailed(f"Account {account.id} has no refresh token")

        provider = self.providers.get(Platform(account.platform))
        if provider is None:
            raise RefreshFailed(f"No OAuth provider configured for {account.platform}")

        refresh_token = self.decrypt(account.encrypted_refresh_token)
        try:
            grant = provider.refresh_access_token(refresh_token)
        except UpstreamError as e:
            logger.warning("[CredentialVault] Refresh rejected for account %s: %s", account.id, e)
            raise RefreshFailed(str(e)) from e

        logger.info("[CredentialVault] Refreshed token for account %s, expires %s", account.id, grant.expires_at)
        return grant

    def seal(self, grant: TokenGrant, previous_refresh_token: Optional[str] = None) -> Tuple[str, Optional[str], datetime]:
        """
        Encrypt ``grant`` into ``(access, refresh, expires_at)`` for the store.

        ``previous_refresh_token`` is the already-encrypted value and is kept
        when the provider did not rotate the refresh token.
        """
        encrypted_access = self.encrypt(grant.access_token)
        if grant.refresh_token:
            encrypted_refresh = self.encrypt(grant.refresh_token)
        else:
            encrypted_refresh = previous_refresh_token
        return encrypted_access, encrypted_refresh, grant.expires_at
