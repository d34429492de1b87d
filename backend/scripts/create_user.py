"""
Create (or look up) a user and print an access token for it.

There is no login endpoint; local development and smoke tests get tokens here.

Run from the backend/ directory:
    python scripts/create_user.py admin@example.com --role admin --name "Shop Admin"
"""
import argparse
import asyncio
import os
import sys

# Add backend/ to path so we can import config/database
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from config import settings
from database import async_session, init_db
from db_models import User
from domain.enums import UserRole
from middleware.auth import issue_access_token


async def create_user(email: str, role: str, name: str | None) -> tuple[User, bool]:
    """Return (user, created). An existing email keeps its stored role."""
    await init_db()
    async with async_session() as db:
        res = await db.execute(select(User).where(User.email == email))
        user = res.scalar_one_or_none()
        if user:
            return user, False
        user = User(email=email, name=name, role=role)
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user, True


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("email")
    parser.add_argument("--role", choices=[r.value for r in UserRole], default=UserRole.CUSTOMER.value)
    parser.add_argument("--name", default=None)
    args = parser.parse_args(argv)

    if not settings.jwt_secret:
        print("⚠️  JWT_SECRET is not set; cannot issue a token.", file=sys.stderr)
        return 1

    if settings.database_url.startswith("sqlite:///./data/"):
        os.makedirs("data", exist_ok=True)

    user, created = asyncio.run(create_user(args.email, args.role, args.name))
    print(f"{'Created' if created else 'Found'} user #{user.id} <{user.email}> role={user.role}")
    print(issue_access_token(user_id=user.id, role=user.role))
    return 0


if __name__ == "__main__":
    sys.exit(main())
