import logging
import os
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from socialproof.core.errors import ConfigurationError, DecryptionError

logger = logging.getLogger(__name__)


def get_encryption_key(key: Optional[str] = None) -> bytes:
    key = key or os.getenv("ENCRYPTION_KEY")
    if not key:
        raise ConfigurationError("ENCRYPTION_KEY environment variable not set")
    return key.encode() if isinstance(key, str) else key


def get_fernet(key: Optional[str] = None) -> Fernet:
    try:
        return Fernet(get_encryption_key(key))
    except ValueError:
        raise ConfigurationError("ENCRYPTION_KEY is not a valid Fernet key")


def encrypt_token(token: str, key: Optional[str] = None) -> str:
    return get_fernet(key).encrypt(token.encode()).decode()


def decrypt_token(ciphertext: str, key: Optional[str] = None) -> str:
    try:
        return get_fernet(key).decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        # Never fall back to "no token": a bad key or tampered row must be loud
        logger.critical("[Encryption] Stored token failed authentication; check ENCRYPTION_KEY")
        raise DecryptionError("Stored token could not be decrypted")
