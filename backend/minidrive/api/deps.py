"""FastAPI dependencies: authorization gate, services and DB session."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from minidrive.config import Settings, settings
from minidrive.database import get_db
from minidrive.exceptions import Forbidden, TokenInvalid
from minidrive.services import Services
from minidrive.services.identity_service import IdentityService
from minidrive.services.object_store import ObjectStore
from minidrive.services.token_service import Identity, Role, TokenService

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.api_prefix}/auth/login",
    auto_error=False,
)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_token_service(services: Services = Depends(get_services)) -> TokenService:
    return services.token_service


def get_object_store(services: Services = Depends(get_services)) -> ObjectStore:
    return services.object_store


def get_identity_service(db: AsyncSession = Depends(get_db)) -> IdentityService:
    return IdentityService(db)


async def get_request_token(
    request: Request,
    bearer: Optional[str] = Depends(oauth2_scheme),
) -> Optional[str]:
    """Bearer header first, else the ``token`` query parameter."""
    return bearer or request.query_params.get("token") or None


async def get_current_identity(
    request: Request,
    token: Optional[str] = Depends(get_request_token),
    tokens: TokenService = Depends(get_token_service),
) -> Identity:
    """Validate the access token and pin the verified identity to the request."""
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        claims = tokens.validate_token(token)
    except TokenInvalid as exc:
        logger.debug("Rejected token on %s: %s", request.url.path, exc.detail)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {exc.detail}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    identity = claims.identity
    # Downstream key building reads only this, never client-supplied ids
    request.state.user_id = identity.user_id
    request.state.role = identity.role
    return identity


async def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.role != Role.ADMIN:
        logger.info("Admin route refused for %s", identity.user_id)
        raise Forbidden()
    return identity
