#!/usr/bin/env python3
"""
Script to create a deployment owner and issue their API key.
Usage: python scripts/create_user.py --email dev@example.com --name "Dev"
       python scripts/create_user.py --email dev@example.com --rotate
"""
import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from code_deployer.core.config import settings
from code_deployer.core.database import async_session_maker
from code_deployer.core.exceptions import DomainException
from code_deployer.core.security import generate_api_key, hash_api_key, invalidate_api_key_cache
from code_deployer.repositories.user_repository import UserRepository


async def create_user(email: str, name: Optional[str] = None, rotate: bool = False) -> tuple[str, str]:
    """
    Create a user, or replace an existing user's API key.

    Args:
        email: Owner email address
        name: Display name for new users
        rotate: Issue a new key for an existing user instead of creating one

    Returns:
        Tuple of (user_id, plaintext_key)
    """
    prefix, plaintext_key = generate_api_key()
    key_hash = hash_api_key(plaintext_key, settings.API_KEY_SALT)

    async with async_session_maker() as session:
        repo = UserRepository(session)
        if rotate:
            user = await repo.rotate_api_key(email, prefix, key_hash)
            invalidate_api_key_cache(str(user.id))
        else:
            user = await repo.create_user(email, name or email.split("@")[0], prefix, key_hash)

        return str(user.id), plaintext_key


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Create a user and API key")
    parser.add_argument("--email", required=True, help="Email address of the user")
    parser.add_argument("--name", help="Display name (defaults to the email local part)")
    parser.add_argument("--rotate", action="store_true", help="Issue a new key for an existing user")

    args = parser.parse_args()

    try:
        user_id, plaintext_key = await create_user(args.email, args.name, args.rotate)
    except DomainException as e:
        print(f"\nError: {e.message}\n", file=sys.stderr)
        sys.exit(1)

    print("\n" + "=" * 80)
    print("API key rotated" if args.rotate else "User created")
    print("=" * 80)
    print(f"Email:      {args.email}")
    print(f"User ID:    {user_id}")
    print(f"Key:        {plaintext_key}")
    print("\nIMPORTANT: Save this key now! It will not be shown again.")
    print("=" * 80 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
