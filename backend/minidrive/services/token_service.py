"""Signed, time-bounded identity assertions (access and refresh JWTs)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional, Protocol, Union

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JOSEError

from minidrive.exceptions import TokenExpired, TokenInvalid, UnknownUser

logger = logging.getLogger(__name__)

HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")

ACCESS = "access"
REFRESH = "refresh"


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class Identity:
    user_id: str
    username: str
    email: str
    role: Role


@dataclass(frozen=True)
class AccessClaims:
    identity: Identity
    subject: str
    issuer: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class RefreshClaims:
    subject: str
    issuer: str
    issued_at: datetime
    expires_at: datetime


Claims = Union[AccessClaims, RefreshClaims]


class IdentityLookup(Protocol):
    async def resolve(self, user_id: str) -> Optional[Identity]: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issues and validates HMAC-signed JWTs.

    The secret is handed in by whoever builds the service (the app factory in
    production, each test in isolation) and never changes afterwards.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        issuer: str = "minio-cloud-storage",
        access_ttl: timedelta = timedelta(hours=24),
        refresh_ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        if algorithm not in HMAC_ALGORITHMS:
            raise ValueError(f"Unsupported signing algorithm: {algorithm}")
        self._secret = secret_key
        self._algorithm = algorithm
        self._issuer = issuer
        self._access_ttl = access_ttl
        self._refresh_ttl = refresh_ttl
        self._clock = clock

    @property
    def expires_in(self) -> int:
        """Access token lifetime in seconds."""
        return int(self._access_ttl.total_seconds())

    def _encode(self, claims: dict, ttl: timedelta) -> str:
        now = self._clock()
        claims.update(
            iat=int(now.timestamp()),
            exp=int((now + ttl).timestamp()),
            iss=self._issuer,
        )
        try:
            return jwt.encode(claims, self._secret, algorithm=self._algorithm)
        except JOSEError as exc:
            logger.error("Token signing failed: %s", exc)
            raise

    def issue_access_token(self, identity: Identity) -> str:
        return self._encode(
            {
                "sub": identity.user_id,
                "userID": identity.user_id,
                "username": identity.username,
                "email": identity.email,
                "role": Role(identity.role).value,
                "typ": ACCESS,
            },
            self._access_ttl,
        )

    def issue_refresh_token(self, user_id: str) -> str:
        # Subject only: the role is re-read from the identity store on refresh.
        return self._encode({"sub": user_id, "typ": REFRESH}, self._refresh_ttl)

    def validate_token(self, token: str, expected_type: str = ACCESS) -> Claims:
        """Verify algorithm, signature, expiry and issuer; return the decoded claims.

        Raises TokenExpired past ``exp`` and TokenInvalid for everything else.
        """
        try:
            header = jwt.get_unverified_header(token)
        except JWTError:
            raise TokenInvalid("malformed token")

        # Checked before verification so a substituted algorithm never reaches the signer.
        alg = header.get("alg")
        if alg != self._algorithm:
            raise TokenInvalid(f"unexpected signing method: {alg}")

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={"require_exp": True, "require_iat": True, "require_sub": True},
            )
        except ExpiredSignatureError:
            raise TokenExpired()
        except JWTError as exc:
            logger.debug("Token rejected: %s", exc)
            raise TokenInvalid("signature or claims verification failed")

        token_type = payload.get("typ")
        if token_type != expected_type:
            raise TokenInvalid(f"expected {expected_type} token")

        issued_at = datetime.fromtimestamp(payload["iat"], tz=timezone.utc)
        expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)

        if token_type == REFRESH:
            return RefreshClaims(
                subject=payload["sub"],
                issuer=payload["iss"],
                issued_at=issued_at,
                expires_at=expires_at,
            )

        try:
            identity = Identity(
                user_id=payload["userID"],
                username=payload.get("username", ""),
                email=payload.get("email", ""),
                role=Role(payload["role"]),
            )
        except (KeyError, ValueError):
            raise TokenInvalid("incomplete identity claims")
        if identity.user_id != payload["sub"]:
            raise TokenInvalid("subject mismatch")

        return AccessClaims(
            identity=identity,
            subject=payload["sub"],
            issuer=payload["iss"],
            issued_at=issued_at,
            expires_at=expires_at,
        )

    async def refresh_access_token(self, refresh_token: str, identities: IdentityLookup) -> str:
        """Exchange a refresh token for an access token carrying the current role."""
        claims = self.validate_token(refresh_token, expected_type=REFRESH)
        identity = await identities.resolve(claims.subject)
        if identity is None:
            logger.info("Refresh rejected, unknown subject %s", claims.subject)
            raise UnknownUser()
        return self.issue_access_token(identity)
