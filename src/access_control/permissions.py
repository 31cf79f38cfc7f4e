"""Role model: the single capability matrix consulted by the workflow layer.

Every operation asks :func:`can_perform` before touching state. The answer
depends only on the actor's role and, for article actions, on whether the
actor owns the target. Status rules (what may happen to a draft versus a
published article) live in ``articles.state_machine``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .roles import Role


class ActionKind(str, Enum):
    """Capabilities a role may be granted."""

    CREATE_ARTICLE = "create_article"
    READ_ARTICLE = "read_article"
    UPDATE_ARTICLE = "update_article"
    DELETE_ARTICLE = "delete_article"
    SUBMIT_ARTICLE = "submit_article"
    REVIEW_ARTICLE = "review_article"
    PUBLISH_ARTICLE = "publish_article"
    LIST_ACCOUNTS = "list_accounts"
    UPDATE_ACCOUNT_ROLE = "update_account_role"
    READ_AUDIT_LOG = "read_audit_log"


@dataclass(frozen=True)
class Capability:
    """Minimum role for an action.

    ``any_target_from`` is the lowest role allowed to act on articles owned by
    someone else. Below it, the actor must be the article's author. ``None``
    means ownership never matters for this action.
    """

    min_role: Role
    any_target_from: Optional[Role] = None


CAPABILITIES: dict[ActionKind, Capability] = {
    ActionKind.CREATE_ARTICLE: Capability(Role.AUTHOR),
    ActionKind.READ_ARTICLE: Capability(Role.AUTHOR, any_target_from=Role.ADMIN),
    ActionKind.UPDATE_ARTICLE: Capability(Role.AUTHOR, any_target_from=Role.ADMIN),
    ActionKind.DELETE_ARTICLE: Capability(Role.AUTHOR, any_target_from=Role.ADMIN),
    ActionKind.SUBMIT_ARTICLE: Capability(Role.AUTHOR, any_target_from=Role.ADMIN),
    ActionKind.REVIEW_ARTICLE: Capability(Role.ADMIN),
    ActionKind.PUBLISH_ARTICLE: Capability(Role.ADMIN),
    ActionKind.LIST_ACCOUNTS: Capability(Role.ADMIN),
    ActionKind.UPDATE_ACCOUNT_ROLE: Capability(Role.SUPER_ADMIN),
    ActionKind.READ_AUDIT_LOG: Capability(Role.SUPER_ADMIN),
}


def can_perform(actor: Any, action: ActionKind, target: Any = None) -> bool:
    """Return True if ``actor`` may perform ``action`` on ``target``.

    ``target`` is an article (anything with ``author_id``) or None. Anonymous
    and inactive accounts are never allowed. Never mutates state.
    """

    if actor is None or not getattr(actor, "is_authenticated", False):
        return False
    if not getattr(actor, "is_active", False):
        return False

    capability = CAPABILITIES.get(action)
    if capability is None:
        return False

    try:
        role = Role(getattr(actor, "role", None))
    except ValueError:
        return False

    if not role.at_least(capability.min_role):
        return False

    if target is not None and capability.any_target_from is not None:
        if not role.at_least(capability.any_target_from):
            return _is_owner(actor, target)
    return True


def can_act_on_any(actor: Any, action: ActionKind) -> bool:
    """Return True if ``actor`` may perform ``action`` on anyone's articles.

    Used to scope listings: actors without this reach only their own articles.
    """

    if not can_perform(actor, action):
        return False
    capability = CAPABILITIES[action]
    if capability.any_target_from is None:
        return True
    return Role(actor.role).at_least(capability.any_target_from)


def _is_owner(actor: Any, target: Any) -> bool:
    owner_id = getattr(target, "author_id", None)
    return bool(owner_id and owner_id == actor.pk)


__all__ = ["ActionKind", "Capability", "CAPABILITIES", "can_perform", "can_act_on_any"]
