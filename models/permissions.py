import logging

from pydantic import BaseModel, ConfigDict

import config
from models.revision import DELETED_RESTRICTED, DELETED_TEXT, DELETED_USER

logger = logging.getLogger(__name__)


class CallerPermissions(BaseModel):
    """The user rights of whoever is making the request"""

    model_config = ConfigDict(frozen=True)

    rights: frozenset[str] = frozenset()
    anonymous: bool = True

    @classmethod
    def from_token(cls, token: str | None) -> "CallerPermissions":
        if not token:
            return cls()
        if token not in config.API_TOKENS:
            logger.warning("Unknown API token, treating the caller as anonymous")
            return cls()
        return cls(rights=frozenset(config.API_TOKENS[token]), anonymous=False)

    def is_allowed(self, right: str) -> bool:
        return right in self.rights

    def is_allowed_any(self, *rights: str) -> bool:
        return any(r in self.rights for r in rights)

    @property
    def can_patrol(self) -> bool:
        if not (config.USE_RC_PATROL or config.USE_NP_PATROL):
            return False
        return self.is_allowed_any("patrol", "patrolmarks")

    @property
    def max_limit(self) -> int:
        if self.is_allowed("apihighlimits"):
            return config.LIMIT_BIG2
        return config.LIMIT_BIG1


def exclusion_mask(permissions: CallerPermissions) -> int:
    """rev_deleted bits that exclude a row entirely when all of them are set.

    Rows whose author the caller may not see are never returned, so that
    not even their existence leaks."""
    if not permissions.is_allowed("deletedhistory"):
        return DELETED_USER
    if not permissions.is_allowed_any("suppressrevision", "viewsuppressed"):
        return DELETED_USER | DELETED_RESTRICTED
    return 0


def can_view_field(rev_deleted: int, field: int, permissions: CallerPermissions) -> bool:
    """Whether the caller may see a field hidden by the given rev_deleted bit"""
    if not rev_deleted & field:
        return True
    if rev_deleted & DELETED_RESTRICTED:
        return permissions.is_allowed_any("suppressrevision", "viewsuppressed")
    if field == DELETED_TEXT:
        return permissions.is_allowed("deletedtext")
    return permissions.is_allowed("deletedhistory")
