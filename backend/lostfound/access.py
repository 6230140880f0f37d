"""
Role-based access control.

Three capability tiers are checked per request: the reporter of an item
(owner), staff scoped to one branch, and admins with global reach.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import wraps
from typing import Callable, Optional

from flask import g

from .errors import AuthenticationError, ForbiddenError, ValidationError
from .models.item import Item
from .models.user import User
from .utils import contains_pattern


class Role(str, Enum):
    USER = "user"
    STAFF = "staff"
    ADMIN = "admin"


REVIEWER_ROLES = frozenset({Role.STAFF.value, Role.ADMIN.value})


def current_user() -> Optional[User]:
    return getattr(g, "current_user", None)


def require_user() -> User:
    user = current_user()
    if user is None:
        raise AuthenticationError()
    return user


def login_required(view: Callable) -> Callable:
    @wraps(view)
    def wrapper(*args, **kwargs):
        require_user()
        return view(*args, **kwargs)

    return wrapper


def roles_required(*roles: str) -> Callable:
    allowed = frozenset(str(r.value if isinstance(r, Role) else r) for r in roles)

    def decorator(view: Callable) -> Callable:
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = require_user()
            if user.role not in allowed:
                raise ForbiddenError()
            return view(*args, **kwargs)

        return wrapper

    return decorator


staff_or_admin = roles_required(Role.STAFF, Role.ADMIN)
admin_only = roles_required(Role.ADMIN)


def is_reviewer(user: Optional[User]) -> bool:
    return user is not None and user.role in REVIEWER_ROLES


def can_manage_item(user: Optional[User], item: Item) -> bool:
    """Reporter of the item, or any staff/admin."""
    if user is None:
        return False
    return item.reporter_user_id == user.id or is_reviewer(user)


def ensure_can_manage_item(user: Optional[User], item: Item, action: str = "update") -> None:
    if not can_manage_item(user, item):
        raise ForbiddenError(f"Not authorized to {action} this item")


@dataclass(frozen=True)
class BranchScope:
    """Location filter applied to item queries.

    ``branch`` of None means no restriction. Matching is a case-insensitive
    substring test of the item's location against the branch name.
    """

    branch: Optional[str]
    label: str

    @property
    def is_global(self) -> bool:
        return self.branch is None

    def apply(self, query, column=None):
        if self.branch is None:
            return query
        col = column if column is not None else Item.location
        return query.filter(col.ilike(contains_pattern(self.branch), escape="\\"))

    def matches(self, location: Optional[str]) -> bool:
        if self.branch is None:
            return True
        return self.branch.lower() in (location or "").lower()


GLOBAL_SCOPE = BranchScope(branch=None, label="All Locations")


def branch_scope_for(user: Optional[User], requested_branch: Optional[str] = None) -> BranchScope:
    """Build the location scope for a reporting request.

    Staff are pinned to their own branch. Admins see everything unless they ask
    for a specific branch. Anyone else is refused.
    """
    if user is None:
        raise AuthenticationError()
    if user.role == Role.STAFF.value:
        branch = (user.branch or "").strip()
        if not branch:
            raise ValidationError("Staff user must have a branch assigned")
        return BranchScope(branch=branch, label=f"{branch} Branch")
    if user.role == Role.ADMIN.value:
        requested = (requested_branch or "").strip()
        if requested and requested.lower() != "all":
            return BranchScope(branch=requested, label=f"{requested} Branch")
        return GLOBAL_SCOPE
    raise ForbiddenError()
