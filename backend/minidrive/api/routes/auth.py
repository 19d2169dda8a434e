"""Auth routes: login, refresh-token exchange, current identity."""

import logging

from fastapi import APIRouter, Depends

from minidrive.api.deps import get_current_identity, get_identity_service, get_token_service
from minidrive.schemas.auth import LoginRequest, LoginResponse, RefreshRequest, TokenResponse, UserInfo
from minidrive.services.identity_service import IdentityService
from minidrive.services.token_service import Identity, TokenService

logger = logging.getLogger(__name__)
router = APIRouter()


def _user_info(identity: Identity) -> UserInfo:
    return UserInfo(
        user_id=identity.user_id,
        username=identity.username,
        email=identity.email,
        role=identity.role.value,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    identities: IdentityService = Depends(get_identity_service),
    tokens: TokenService = Depends(get_token_service),
):
    """Verify credentials and issue an access/refresh token pair."""
    identity = await identities.authenticate(body.user_id, body.password)
    logger.info("User %s logged in", identity.user_id)
    return LoginResponse(
        access_token=tokens.issue_access_token(identity),
        refresh_token=tokens.issue_refresh_token(identity.user_id),
        expires_in=tokens.expires_in,
        user=_user_info(identity),
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    body: RefreshRequest,
    identities: IdentityService = Depends(get_identity_service),
    tokens: TokenService = Depends(get_token_service),
):
    """Mint a new access token; role comes from the identity store, not the old token."""
    access_token = await tokens.refresh_access_token(body.refresh_token, identities)
    return TokenResponse(access_token=access_token, expires_in=tokens.expires_in)


@router.get("/me", response_model=UserInfo)
async def me(identity: Identity = Depends(get_current_identity)):
    return _user_info(identity)
