"""
Security utilities for API key authentication.

Every submission and query call runs as a verified owner. Owners present an
API key of the form "<prefix>.<secret>" in the X-API-Key header; the key is
looked up by prefix and checked against a bcrypt hash.
"""
import bcrypt
import hashlib
import secrets
import time
from typing import Optional, Dict, Tuple
from uuid import UUID
from fastapi import Security, Depends
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from code_deployer.core.config import settings
from code_deployer.core.database import get_db
from code_deployer.core.exceptions import InvalidCredentialsError, MissingCredentialsError
from code_deployer.repositories.user_repository import UserRepository
from code_deployer.schemas.user import CurrentUser


api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Cache for verified API keys: {api_key: (user_id, expiry_time)}
_api_key_cache: Dict[str, Tuple[str, float]] = {}
_CACHE_TTL = 300  # 5 minutes
_CACHE_MAX_SIZE = 10000


def invalidate_api_key_cache(user_id: Optional[str] = None) -> int:
    """
    Invalidate cached API keys.

    Args:
        user_id: If provided, invalidate only entries for this user.
                 If None, invalidate all cached entries.

    Returns:
        Number of cache entries invalidated.
    """
    global _api_key_cache

    if user_id is None:
        count = len(_api_key_cache)
        _api_key_cache = {}
        return count

    keys_to_remove = [
        key for key, (cached_id, _) in _api_key_cache.items()
        if cached_id == user_id
    ]
    for key in keys_to_remove:
        del _api_key_cache[key]

    return len(keys_to_remove)


def generate_api_key() -> Tuple[str, str]:
    """
    Generate a new API key.

    Returns:
        Tuple of (prefix, plaintext_key)
    """
    prefix = secrets.token_hex(4)
    secret = secrets.token_urlsafe(40)
    return prefix, f"{prefix}.{secret}"


def _key_material(api_key: str, salt: str) -> bytes:
    # bcrypt only accepts 72 bytes of input
    return hashlib.sha256(f"{api_key}{salt}".encode()).hexdigest().encode()


def hash_api_key(api_key: str, salt: str) -> str:
    """
    Hash an API key using bcrypt.

    Args:
        api_key: The API key to hash
        salt: The application salt appended before hashing

    Returns:
        The hashed API key
    """
    return bcrypt.hashpw(_key_material(api_key, salt), bcrypt.gensalt()).decode()


def verify_api_key_hash(api_key: str, key_hash: str, salt: str) -> bool:
    """
    Verify an API key against its hash.

    Args:
        api_key: The API key to verify
        key_hash: The hash to verify against
        salt: The salt used for hashing

    Returns:
        True if the API key matches the hash, False otherwise
    """
    try:
        return bcrypt.checkpw(_key_material(api_key, salt), key_hash.encode())
    except ValueError:
        # Malformed stored hash
        return False


def _cache_verified_key(api_key: str, user_id: str) -> None:
    if len(_api_key_cache) >= _CACHE_MAX_SIZE:
        oldest_keys = sorted(
            _api_key_cache.items(),
            key=lambda x: x[1][1]
        )[:_CACHE_MAX_SIZE // 10]
        for old_key, _ in oldest_keys:
            del _api_key_cache[old_key]

    _api_key_cache[api_key] = (user_id, time.time() + _CACHE_TTL)


async def authenticate_api_key(api_key: str, db: AsyncSession) -> CurrentUser:
    """
    Resolve an API key to its owner.

    Args:
        api_key: The plaintext key from the request
        db: Database session

    Returns:
        The verified identity

    Raises:
        InvalidCredentialsError: If the key is malformed, unknown or revoked
    """
    repo = UserRepository(db)

    if api_key in _api_key_cache:
        cached_id, expiry = _api_key_cache[api_key]
        if time.time() < expiry:
            user = await repo.get_by_id(UUID(cached_id))
            if user and user.is_active:
                return CurrentUser.from_user(user)
        del _api_key_cache[api_key]

    if "." not in api_key:
        raise InvalidCredentialsError("Malformed API key")

    prefix, _ = api_key.split(".", 1)
    user = await repo.get_by_api_key_prefix(prefix)

    # No fallback scan: every valid key has a prefix
    if not user or not user.api_key_hash:
        raise InvalidCredentialsError()
    if not verify_api_key_hash(api_key, user.api_key_hash, settings.API_KEY_SALT):
        raise InvalidCredentialsError()

    _cache_verified_key(api_key, str(user.id))
    await repo.touch_last_used(user.id)
    return CurrentUser.from_user(user)


async def get_current_user(
    api_key: Optional[str] = Security(api_key_header),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """
    Dependency for verifying the caller's identity.

    Raises:
        MissingCredentialsError: If no key was sent
        InvalidCredentialsError: If the key does not resolve to an active user
    """
    if not api_key:
        raise MissingCredentialsError()
    return await authenticate_api_key(api_key, db)
