"""One-time role bootstrap: seed role records and link users to them.

Roles are stored for later use; no endpoint checks them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from accounts.core.storage import DuplicateKeyError
from accounts.models import Role, User, UserRole

if TYPE_CHECKING:
    from accounts.core.storage import Collection

logger = logging.getLogger(__name__)

DEFAULT_ROLES = ("admin", "moderator")


class BootstrapError(Exception):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


async def seed_roles(roles: Collection[Role], names: Iterable[str] = DEFAULT_ROLES) -> list[str]:
    """Create any missing roles. Idempotent; returns the names created on this run."""
    created: list[str] = []
    for name in names:
        if await roles.find_one({"name": name}) is not None:
            continue
        try:
            await roles.create(Role(name=name))
        except DuplicateKeyError:
            # Created concurrently by another bootstrap run.
            continue
        created.append(name)
    logger.info(
        "Roles seeded: created=%s total=%s",
        len(created),
        await roles.count_documents(),
    )
    return created


async def assign_role(
    users: Collection[User],
    roles: Collection[Role],
    user_roles: Collection[UserRole],
    username: str,
    role_name: str,
) -> UserRole:
    """Link username to role_name. Raises BootstrapError if either does not exist."""
    user = await users.find_one({"username": username})
    if user is None:
        raise BootstrapError(f"User '{username}' not found.")
    role = await roles.find_one({"name": role_name})
    if role is None:
        raise BootstrapError(f"Role '{role_name}' not found; seed roles first.")
    existing = await user_roles.find_one({"user_id": user.id, "role_id": role.id})
    if existing is not None:
        return existing
    link = await user_roles.create(UserRole(user_id=user.id, role_id=role.id))
    logger.info("Role assigned", extra={"user_id": user.id, "role": role_name})
    return link


async def remove_roles(
    roles: Collection[Role],
    user_roles: Collection[UserRole],
    names: Iterable[str] = DEFAULT_ROLES,
) -> tuple[int, int]:
    """Undo the bootstrap: drop every user-role link and the named roles."""
    links_deleted = await user_roles.delete_many({})
    roles_deleted = await roles.delete_many({"name": {"$in": list(names)}})
    logger.info("Roles removed: roles=%s links=%s", roles_deleted, links_deleted)
    return roles_deleted, links_deleted
