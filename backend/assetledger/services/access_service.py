# Overview: Resolves the calling user to an office context and enforces office/role predicates.

"""
Identity and office context.

Every core operation receives an OfficeContext for its caller and checks one
of the predicates below before touching data:

    require_same_office(ctx, office_id)           caller's office is office_id
    require_admin_of(ctx, office_id)              same office and role Admin
    require_admin_of_parent(ctx, request)         Admin of request.parent_office
    require_same_office_or_admin(ctx, office_id)  same office, or any Admin

ROLE NAMES: stored role names are normalised here. Any casing of "admin"
becomes ROLE_ADMIN ("Admin"); the rest of the code compares against that
constant only.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from assetledger.errors import ForbiddenError, UnauthorizedError
from assetledger.extensions import db
from assetledger.models import User
from assetledger.models.auth import ROLE_ADMIN

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OfficeContext:
    user_id: int
    office_id: int
    role_name: str
    username: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role_name == ROLE_ADMIN


def normalize_role_name(name: str | None) -> str:
    if name and name.strip().lower() == ROLE_ADMIN.lower():
        return ROLE_ADMIN
    return (name or "").strip()


def context_for_user(user: User) -> OfficeContext:
    return OfficeContext(
        user_id=user.id,
        office_id=user.office_id,
        role_name=normalize_role_name(user.role.name if user.role else None),
        username=user.username,
    )


def resolve_context(user_id: int | None) -> OfficeContext:
    """Produce the caller's (user, office, role) tuple; unknown or inactive users are Unauthorized."""
    if user_id is None:
        raise UnauthorizedError("Authentication required")
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise UnauthorizedError("Unknown or inactive user")
    return context_for_user(user)


def _deny(ctx: OfficeContext, message: str):
    logger.warning("Forbidden for user %s (office %s): %s", ctx.user_id, ctx.office_id, message)
    raise ForbiddenError(message)


def require_same_office(ctx: OfficeContext, office_id: int | None) -> None:
    if office_id is None or ctx.office_id != office_id:
        _deny(ctx, "You can only access data for your own office")


def require_admin_of(ctx: OfficeContext, office_id: int | None) -> None:
    if office_id is None or ctx.office_id != office_id or not ctx.is_admin:
        _deny(ctx, "Only an Admin of this office can perform this action")


def require_admin_of_parent(ctx: OfficeContext, item_request) -> None:
    require_admin_of(ctx, item_request.parent_office_id)


def require_same_office_or_admin(ctx: OfficeContext, office_id: int | None) -> None:
    if ctx.is_admin:
        return
    require_same_office(ctx, office_id)


def require_admin(ctx: OfficeContext) -> None:
    """Global Admin check used by catalog and office administration."""
    if not ctx.is_admin:
        _deny(ctx, "Admin role required")
