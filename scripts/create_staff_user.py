#!/usr/bin/env python3
"""Create (or update) a staff user and print a bearer token for it."""

import asyncio
from datetime import timedelta

from sqlalchemy import select

from app.core.permissions import UserRole
from app.core.security import create_access_token
from app.database import AsyncSessionLocal, close_db
from app.models.user import User


async def create_staff_user(
    email: str,
    role: str = UserRole.ADMIN.value,
    first_name: str | None = None,
    last_name: str | None = None,
    token_hours: int = 12,
) -> None:
    """Create a staff user if it doesn't exist, then mint a token."""
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if user:
            user.role = role
            user.is_active = True
            user.first_name = first_name or user.first_name
            user.last_name = last_name or user.last_name
            print(f"Updated existing user: {email}")
        else:
            user = User(
                email=email,
                role=role,
                first_name=first_name,
                last_name=last_name,
                is_active=True,
            )
            session.add(user)
            print(f"Created user: {email}")
        await session.commit()

        token = create_access_token({"sub": str(user.id)}, timedelta(hours=token_hours))

    await close_db()
    print(f"Role: {role}")
    print(f"Token: {token}")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Create a staff user and print a token")
    parser.add_argument("--email", required=True, help="User email")
    parser.add_argument(
        "--role",
        default=UserRole.ADMIN.value,
        help="member, cleaner, dispatcher, admin, owner or <org>:admin",
    )
    parser.add_argument("--first-name", default=None, help="First name")
    parser.add_argument("--last-name", default=None, help="Last name")
    parser.add_argument("--token-hours", type=int, default=12, help="Token lifetime")

    args = parser.parse_args()

    asyncio.run(
        create_staff_user(
            email=args.email,
            role=args.role,
            first_name=args.first_name,
            last_name=args.last_name,
            token_hours=args.token_hours,
        )
    )
