import argparse
import asyncio
import sys
from pathlib import Path

"""
Create (or promote) an admin account with its profile.

Admins cannot sign themselves up, so the first one comes from here:
- backend/: `uv run python scripts/create_admin.py admin@example.com 'secret'`
- repo root: `uv run python backend/scripts/create_admin.py admin@example.com 'secret'`
"""

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import select  # noqa: E402
from fastapi_users.password import PasswordHelper  # noqa: E402

from db.database import async_session_maker, create_db_and_tables  # noqa: E402
from db.users import User, UserProfile  # noqa: E402

password_helper = PasswordHelper()


async def create_admin(email: str, password: str, name: str | None = None) -> None:
    await create_db_and_tables()
    email = email.strip().lower()
    local = email.split("@", 1)[0]

    async with async_session_maker() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is None:
            user = User(
                email=email,
                hashed_password=password_helper.hash(password),
                is_active=True,
                is_superuser=True,
                is_verified=True,
                user_metadata={"name": name or local, "username": local, "role": "admin"},
            )
            session.add(user)
            await session.flush()
            print(f"Created account {email}")
        else:
            user.is_superuser = True
            print(f"Account {email} already exists, promoting")

        result = await session.execute(select(UserProfile).where(UserProfile.auth_user_id == user.id))
        profile = result.scalar_one_or_none()
        if profile is None:
            profile = UserProfile(auth_user_id=user.id, username=local, name=name or local, role="admin", city=None)
            session.add(profile)
        else:
            profile.role = "admin"
            profile.city = None

        await session.commit()
        print(f"{email} is now an admin (profile {profile.id})")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("--name", default=None, help="Display name (defaults to the email local part)")
    args = parser.parse_args()

    asyncio.run(create_admin(args.email, args.password, args.name))
