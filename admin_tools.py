"""
Admin Tools - create or promote an admin account

Usage:
    python admin_tools.py --email admin@example.com --password 'S3cure!pass'
"""
import argparse
import asyncio
import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from auth_utils import hash_password
from config.settings import PLAN_AGENCY, ROLE_ADMIN, STATUS_ACTIVE
from crud.user import UserRepository
from database import AsyncSessionLocal, init_db
from utils.security_utils import validate_email, validate_password_strength

logger = logging.getLogger(__name__)


async def seed_admin(db: AsyncSession, email: str, password: str, first_name: str = "Admin", last_name: str = "User"):
    """
    Create an admin account, or promote and re-key an existing one.

    Returns:
        Tuple of (user, created)
    """
    email = email.strip().lower()
    if not validate_email(email):
        raise ValueError(f"Invalid email: {email}")
    validate_password_strength(password)

    user_repo = UserRepository(db)
    admin_fields = {
        "role": ROLE_ADMIN,
        "is_active": True,
        "is_suspended": False,
        "plan": PLAN_AGENCY,
        "subscription_status": STATUS_ACTIVE,
        "hashed_password": hash_password(password),
    }

    user = await user_repo.get_user_by_email(email)
    if user is not None:
        return await user_repo.update_user(user, admin_fields), False

    user = await user_repo.create_user({
        "email": email,
        "hashed_password": admin_fields["hashed_password"],
        "first_name": first_name,
        "last_name": last_name,
        "role": ROLE_ADMIN,
    })
    admin_fields["subscription_start_date"] = datetime.utcnow()
    return await user_repo.update_user(user, admin_fields), True


async def _main(args) -> None:
    await init_db()
    async with AsyncSessionLocal() as db:
        user, created = await seed_admin(db, args.email, args.password, args.first_name, args.last_name)
        await db.commit()
    action = "Created" if created else "Updated"
    logger.info(f"{action} admin account {user.email} (id={user.id})")


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Create or promote an admin account")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--first-name", default="Admin")
    parser.add_argument("--last-name", default="User")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    try:
        asyncio.run(_main(args))
    except ValueError as e:
        parser.error(str(e))


if __name__ == "__main__":
    main()
