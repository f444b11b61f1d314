"""
Actor resolution.

Authentication happens upstream; the gateway forwards the verified user id and
role in headers. This module only turns them into an Actor and checks roles.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Header

from .exceptions import AuthenticationError, AuthorizationError
from .models import UserRole

logger = logging.getLogger(__name__)

# Higher values have more permissions
ROLE_HIERARCHY = {
    UserRole.CUSTOMER: 1,
    UserRole.CORPORATE_MEMBER: 2,
    UserRole.CORPORATE_ADMIN: 3,
    UserRole.STAFF: 4,
    UserRole.ADMIN: 5,
}

CORPORATE_ROLES = (UserRole.CORPORATE_MEMBER, UserRole.CORPORATE_ADMIN)


@dataclass(frozen=True)
class Actor:
    id: int
    role: str = UserRole.CUSTOMER

    @property
    def is_staff(self) -> bool:
        return has_role(self, UserRole.STAFF)


def has_role(actor: Actor, required_role: str) -> bool:
    """Check if an actor has the required role or higher"""
    return ROLE_HIERARCHY.get(actor.role, 0) >= ROLE_HIERARCHY[required_role]


def require_role(actor: Actor, required_role: str) -> Actor:
    if not has_role(actor, required_role):
        logger.warning(f"🚫 Actor {actor.id} ({actor.role}) lacks required role {required_role}")
        raise AuthorizationError(f"Forbidden: {required_role.title()} access required")
    return actor


async def get_current_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Actor:
    """FastAPI dependency reading the identity forwarded by the auth gateway"""
    if not x_user_id:
        raise AuthenticationError("Unauthorized")

    try:
        user_id = int(x_user_id)
    except ValueError:
        raise AuthenticationError("Unauthorized") from None

    role = (x_user_role or UserRole.CUSTOMER).upper()
    if role not in ROLE_HIERARCHY:
        logger.warning(f"⚠️ Unknown role '{x_user_role}' for user {user_id}, treating as customer")
        role = UserRole.CUSTOMER

    return Actor(id=user_id, role=role)
