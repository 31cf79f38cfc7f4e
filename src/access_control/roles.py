"""The three-tier role hierarchy: Author < Admin < SuperAdmin."""

from django.db import models


class Role(models.TextChoices):
    """Account role. Members compare by rank, not alphabetically."""

    AUTHOR = "author", "Author"
    ADMIN = "admin", "Admin"
    SUPER_ADMIN = "super_admin", "Super admin"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def at_least(self, other: "Role") -> bool:
        """Return True if this role is ``other`` or above it."""
        return self.rank >= Role(other).rank


_RANKS = {
    Role.AUTHOR: 1,
    Role.ADMIN: 2,
    Role.SUPER_ADMIN: 3,
}


__all__ = ["Role"]
