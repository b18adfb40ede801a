"""
Identity lookup used to decide whether an owner may attach a platform account.

User and role storage live outside this system; callers inject a lookup.
"""
from abc import ABC, abstractmethod
from typing import Dict, Optional

from socialproof.models import Platform

INFLUENCER_ROLE = "influencer"


class IdentityLookup(ABC):
    @abstractmethod
    def get_role(self, owner_id: str) -> Optional[str]:
        """Role of ``owner_id``, or None if the owner is unknown."""

    def can_attach(self, owner_id: str, platform: Platform) -> bool:
        return self.get_role(owner_id) == INFLUENCER_ROLE


class StaticIdentityLookup(IdentityLookup):
    """Role table held in memory; used by workers that already trust the owner."""

    def __init__(self, roles: Optional[Dict[str, str]] = None, default_role: Optional[str] = None):
        self.roles = dict(roles or {})
        self.default_role = default_role

    def get_role(self, owner_id: str) -> Optional[str]:
        return self.roles.get(owner_id, self.default_role)
