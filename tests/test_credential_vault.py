import logging
from datetime import timedelta

import pytest
from cryptography.fernet import Fernet
from conftest import NOW, upstream_failure

from socialproof.core.errors import ConfigurationError, DecryptionError, RefreshFailed
from socialproof.models import Platform
from socialproof.schemas import TokenGrant
from socialproof.services.credential_vault import CredentialVault
from socialproof.utils.encryption import decrypt_token, encrypt_token


def test_encrypt_round_trip_does_not_store_plaintext(vault):
    ciphertext = vault.encrypt("secret-token")

    assert "secret-token" not in ciphertext
    assert vault.decrypt(ciphertext) == "secret-token"


def test_encryption_reads_key_from_environment(fernet_key):
    ciphertext = encrypt_token("from-env")
    assert decrypt_token(ciphertext, fernet_key) == "from-env"


def test_missing_key_is_a_configuration_error(monkeypatch):
    monkeypatch.delenv("ENCRYPTION_KEY")
    with pytest.raises(ConfigurationError):
        encrypt_token("token")


def test_malformed_key_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        encrypt_token("token", key="not-a-fernet-key")


def test_wrong_key_raises_and_logs_critical(vault, caplog):
    foreign = encrypt_token("token", key=Fernet.generate_key().decode())

    with caplog.at_level(logging.CRITICAL, logger="socialproof.utils.encryption"):
        with pytest.raises(DecryptionError):
            vault.decrypt(foreign)
    assert any(record.levelno == logging.CRITICAL for record in caplog.records)


def test_expiring_soon_window(vault, make_account):
    account = make_account(platform=Platform.TIKTOK, token_expires_at=NOW + timedelta(days=3))
    assert vault.is_expiring_soon(account, 7) is True
    assert vault.is_expiring_soon(account, 2) is False


def test_accounts_without_expiry_never_expire(vault, make_account):
    account = make_account()
    assert vault.is_expiring_soon(account, 7) is False


def test_refresh_uses_decrypted_refresh_token(vault, fake_oauth, make_account):
    account = make_account(
        platform=Platform.TIKTOK,
        encrypted_access_token=vault.encrypt("old-access"),
        encrypted_refresh_token=vault.encrypt("old-refresh"),
        token_expires_at=NOW + timedelta(days=1),
    )

    grant = vault.refresh(account)

    assert fake_oauth.refreshed == ["old-refresh"]
    assert grant.access_token == "access-renewed"


def test_refresh_without_refresh_token(vault, make_account):
    account = make_account(platform=Platform.TIKTOK, encrypted_access_token=vault.encrypt("a"))
    with pytest.raises(RefreshFailed):
        vault.refresh(account)


def test_refresh_without_provider(fernet_key, make_account):
    vault = CredentialVault(providers={}, key=fernet_key)
    account = make_account(
        platform=Platform.TIKTOK,
        encrypted_access_token=vault.encrypt("a"),
        encrypted_refresh_token=vault.encrypt("r"),
    )
    with pytest.raises(RefreshFailed):
        vault.refresh(account)


def test_provider_rejection_becomes_refresh_failed(vault, fake_oauth, make_account):
    fake_oauth.refresh_error = upstream_failure("invalid_grant")
    account = make_account(
        platform=Platform.TIKTOK,
        encrypted_access_token=vault.encrypt("a"),
        encrypted_refresh_token=vault.encrypt("r"),
    )
    with pytest.raises(RefreshFailed, match="invalid_grant"):
        vault.refresh(account)


def test_seal_keeps_previous_refresh_token_when_not_rotated(vault):
    grant = TokenGrant(access_token="new", expires_at=NOW)

    access, refresh, expires_at = vault.seal(grant, previous_refresh_token="sealed-old")

    assert vault.decrypt(access) == "new"
    assert refresh == "sealed-old"
    assert expires_at == NOW


def test_seal_encrypts_rotated_refresh_token(vault):
    grant = TokenGrant(access_token="new", refresh_token="rotated", expires_at=NOW)

    _, refresh, _ = vault.seal(grant, previous_refresh_token="sealed-old")

    assert vault.decrypt(refresh) == "rotated"


def test_grant_repr_hides_tokens():
    grant = TokenGrant(access_token="plain-access", refresh_token="plain-refresh", expires_at=NOW)
    assert "plain-access" not in repr(grant)
    assert "plain-refresh" not in str(grant)
