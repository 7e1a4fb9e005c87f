# sped_core/common/permissions.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Set

from rest_framework.exceptions import PermissionDenied

# Group/role names (Django auth Group names recommended)
ROLE_ADMIN = "ADMIN"
ROLE_CASE_MANAGER = "CASE_MANAGER"
ROLE_TEACHER = "TEACHER"
ROLE_READONLY = "READONLY"

# Highest privilege first; an actor carries the first role they hold.
ROLE_PRECEDENCE = (ROLE_ADMIN, ROLE_CASE_MANAGER, ROLE_TEACHER, ROLE_READONLY)


class Action:
    RULE_PACK_VIEW = "rule_pack.view"
    RULE_PACK_MANAGE = "rule_pack.manage"
    RULE_PACK_BULK_REPLACE = "rule_pack.bulk_replace"
    RULE_CONTEXT_VIEW = "rule_context.view"
    REVIEW_VIEW = "review.view"
    REVIEW_MANAGE = "review.manage"
    REVIEW_DELETE = "review.delete"
    TASK_VIEW = "task.view"
    TASK_MANAGE = "task.manage"


_MANAGERS = frozenset({ROLE_ADMIN, ROLE_CASE_MANAGER})
_VIEWERS = frozenset({ROLE_ADMIN, ROLE_CASE_MANAGER, ROLE_TEACHER})

ALLOWED_ROLES_PER_ACTION: dict[str, frozenset[str]] = {
    Action.RULE_PACK_VIEW: _MANAGERS,
    Action.RULE_PACK_MANAGE: _MANAGERS,
    Action.RULE_PACK_BULK_REPLACE: frozenset({ROLE_ADMIN}),
    Action.RULE_CONTEXT_VIEW: _VIEWERS,
    Action.REVIEW_VIEW: _VIEWERS,
    Action.REVIEW_MANAGE: _MANAGERS,
    Action.REVIEW_DELETE: frozenset({ROLE_ADMIN}),
    Action.TASK_VIEW: _VIEWERS,
    Action.TASK_MANAGE: _MANAGERS,
}


@dataclass(frozen=True)
class Actor:
    """
    Authenticated caller as seen by the services: user id + single role.
    """
    id: Optional[int]
    role: str


SYSTEM_ACTOR = Actor(id=None, role=ROLE_ADMIN)


def _user_roles(user) -> Set[str]:
    """
    Resolve roles from:
    1) superuser flag (treated as ADMIN)
    2) Django groups: user.groups

    Authenticated users without any known group are READONLY.
    """
    roles: Set[str] = set()

    if not user or not getattr(user, "is_authenticated", False):
        return roles

    if getattr(user, "is_superuser", False):
        roles.add(ROLE_ADMIN)
        return roles

    if hasattr(user, "groups"):
        roles.update(user.groups.values_list("name", flat=True))

    if not roles & set(ROLE_PRECEDENCE):
        roles.add(ROLE_READONLY)

    return roles


def actor_from_user(user) -> Actor:
    roles = _user_roles(user)
    for role in ROLE_PRECEDENCE:
        if role in roles:
            return Actor(id=getattr(user, "id", None), role=role)
    return Actor(id=getattr(user, "id", None), role=ROLE_READONLY)


def actor_from_request(request) -> Actor:
    return actor_from_user(getattr(request, "user", None))


def is_allowed(actor: Actor, action: str) -> bool:
    """
    Pure check against the static action table. Unknown actions are denied.
    """
    allowed = ALLOWED_ROLES_PER_ACTION.get(action)
    if allowed is None:
        return False
    return actor.role in allowed


def require(actor: Actor, action: str, message: str | None = None) -> None:
    if not is_allowed(actor, action):
        raise PermissionDenied(message or "You do not have permission to perform this action.")
