"""
scripts/create_moderator.py

Run this once from your project root to create the moderator account:

    python -m scripts.create_moderator

The username defaults to MODERATOR_USERNAME from the environment; you will
be prompted for it if that is not set, and always for the password.
"""

import asyncio
import getpass
import sys

from app.core.config import settings
from app.core.database import AsyncSessionLocal, close_db, init_db
from app.core.exceptions import AppError
from app.crud import users as user_crud
from app.models.user import UserRole
from app.schemas.user import PASSWORD_MIN_LENGTH, USERNAME_MIN_LENGTH


async def create_moderator(username: str, password: str) -> None:
    await init_db()
    try:
        async with AsyncSessionLocal() as db:
            existing = await user_crud.find_by_username(db, username)
            if existing is not None:
                await user_crud.ensure_moderator(db, existing.username)
                print(f"'{existing.username}' already exists; moderator claim granted.")
                return

            user = await user_crud.register(
                db,
                username=username,
                password=password,
                role=UserRole.OWNER,
                moderator_username=username,
            )
            print("\nModerator account created.")
            print(f"   ID:       {user.id}")
            print(f"   Username: {user.username}")
    finally:
        await close_db()


def main():
    print("\n── Create Moderator Account ─────────────")

    username = settings.MODERATOR_USERNAME or input("Username: ").strip()
    password = getpass.getpass("Password: ")

    if len(username) < USERNAME_MIN_LENGTH:
        print(f"Username must be at least {USERNAME_MIN_LENGTH} characters.")
        sys.exit(1)
    if len(password) < PASSWORD_MIN_LENGTH:
        print(f"Password must be at least {PASSWORD_MIN_LENGTH} characters.")
        sys.exit(1)

    try:
        asyncio.run(create_moderator(username, password))
    except AppError as e:
        print(f"Failed: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
