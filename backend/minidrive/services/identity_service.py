"""Identity store lookups: user id to username, email and role."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

import bcrypt
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from minidrive.exceptions import AuthenticationFailed
from minidrive.models.user import User
from minidrive.services.token_service import Identity, Role

logger = logging.getLogger(__name__)

# Seeded in dev mode only
DEMO_USERS = (
    ("user123", "testuser", "test@example.com", Role.USER, "password123"),
    ("admin", "admin", "admin@example.com", Role.ADMIN, "adminpass"),
)

_BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    encoded = password.encode("utf-8")
    if len(encoded) > _BCRYPT_MAX_BYTES:
        return False
    return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))


@lru_cache(maxsize=1)
def _placeholder_hash() -> str:
    return hash_password("minidrive-no-such-user")


def _reject_unknown_user(password: str) -> bool:
    """Spend one bcrypt check so unknown ids cost as much as wrong passwords."""
    verify_password(password, _placeholder_hash())
    return False


def _to_identity(user: User) -> Identity:
    return Identity(
        user_id=user.id,
        username=user.username,
        email=user.email,
        role=Role(user.role),
    )


class IdentityService:
    """Authoritative lookup of identities, bound to one DB session."""

    def __init__(self, db: AsyncSession):
        self._db = db

    async def _get(self, user_id: str) -> Optional[User]:
        result = await self._db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def resolve(self, user_id: str) -> Optional[Identity]:
        user = await self._get(user_id)
        return _to_identity(user) if user else None

    async def authenticate(self, user_id: str, password: str) -> Identity:
        """Check credentials; unknown user and wrong password fail identically.

        bcrypt runs in the threadpool. An unknown id still costs one bcrypt check.
        """
        user = await self._get(user_id)
        if user is None:
            valid = await run_in_threadpool(_reject_unknown_user, password)
        else:
            valid = await run_in_threadpool(verify_password, password, user.password_hash)
        if not valid:
            logger.info("Login failed for %r", user_id)
            raise AuthenticationFailed()
        return _to_identity(user)

    async def create_user(
        self,
        user_id: str,
        username: str,
        password: str,
        email: str = "",
        role: Role = Role.USER,
    ) -> Identity:
        user = User(
            id=user_id,
            username=username,
            email=email,
            role=Role(role).value,
            password_hash=await run_in_threadpool(hash_password, password),
        )
        self._db.add(user)
        await self._db.commit()
        await self._db.refresh(user)
        logger.info("Created user %s (%s)", user_id, user.role)
        return _to_identity(user)

    async def set_role(self, user_id: str, role: Role) -> Identity:
        user = await self._get(user_id)
        if user is None:
            raise LookupError(user_id)
        user.role = Role(role).value
        await self._db.commit()
        return _to_identity(user)

    async def seed_demo_users(self) -> int:
        """Insert the demo accounts that are missing. Returns how many were added."""
        added = 0
        for user_id, username, email, role, password in DEMO_USERS:
            if await self._get(user_id) is None:
                await self.create_user(user_id, username, password, email=email, role=role)
                added += 1
        if added:
            logger.warning("Seeded %d demo account(s) (dev mode only)", added)
        return added
