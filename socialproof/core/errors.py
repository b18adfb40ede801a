"""
Error taxonomy for the ingestion pipeline.

Synchronous entry points (connect, on-demand sync) let these propagate to the
caller. Scheduled batch runs catch them per account and record them instead.
"""
from typing import Optional


class SocialSyncError(Exception):
    """Base class for every error raised by the ingestion core."""


class ConfigurationError(SocialSyncError):
    """A required setting is missing or malformed. Fatal at startup."""


class ValidationError(SocialSyncError):
    """Malformed identifier or input, rejected before any external call."""


class NotFoundError(SocialSyncError):
    """Target profile is missing or private, or the account id is unknown."""


class ForbiddenError(SocialSyncError):
    """Caller role or ownership does not allow this operation."""


class UpstreamError(SocialSyncError):
    """Scraping actor or OAuth provider failed or timed out."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RefreshFailed(SocialSyncError):
    """Provider rejected a refresh token exchange (expired, revoked, network)."""


class DecryptionError(SocialSyncError):
    """Stored ciphertext could not be authenticated with the current key."""
