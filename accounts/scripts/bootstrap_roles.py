"""
Seed the default roles and optionally make a user an admin. Run from project root:
  python -m accounts.scripts.bootstrap_roles [--assign-admin USERNAME]
Undo with:
  python -m accounts.scripts.bootstrap_roles --rollback
"""
import argparse
import asyncio
import logging
import sys

from accounts.core.config import get_settings
from accounts.core.database import Database
from accounts.core.storage import Collection
from accounts.models import Role, User, UserRole
from accounts.services.bootstrap import BootstrapError, assign_role, remove_roles, seed_roles

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    database = Database(settings.DATABASE_URL)
    await database.connect()
    roles = Collection(database, Role)
    user_roles = Collection(database, UserRole)
    try:
        if args.rollback:
            await remove_roles(roles, user_roles)
            return 0
        await seed_roles(roles)
        if args.assign_admin:
            await assign_role(
                Collection(database, User),
                roles,
                user_roles,
                args.assign_admin.strip(),
                "admin",
            )
        return 0
    except BootstrapError as e:
        print(e.message, file=sys.stderr)
        return 1
    finally:
        await database.disconnect()


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed account roles (admin, moderator).")
    parser.add_argument("--assign-admin", metavar="USERNAME", help="Give this existing user the admin role")
    parser.add_argument("--rollback", action="store_true", help="Remove seeded roles and all user-role links")
    args = parser.parse_args()
    try:
        return asyncio.run(run(args))
    except Exception as e:
        logger.exception("Role bootstrap failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
