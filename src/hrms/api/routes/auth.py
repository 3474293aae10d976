"""Authentication endpoints."""

from fastapi import APIRouter, status

from hrms.api.dependencies import AppSettings, CurrentPrincipal, DbSession
from hrms.api.schemas import (
    AuthResponse,
    EmployeeSummary,
    ErrorResponse,
    LoginRequest,
    MessageResponse,
    RefreshTokenRequest,
)
from hrms.services.token_service import TokenPair, TokenService

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_response(pair: TokenPair) -> AuthResponse:
    return AuthResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type=pair.token_type,
        expires_in=pair.expires_in,
        employee=EmployeeSummary.model_validate(pair.employee),
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"model": ErrorResponse}},
)
async def login(db: DbSession, settings: AppSettings, payload: LoginRequest) -> AuthResponse:
    """Exchange credentials for an access and refresh token."""
    pair = await TokenService(db, settings).issue_token_pair(payload.username, payload.password)
    await db.commit()
    return _auth_response(pair)


@router.post(
    "/refresh",
    response_model=AuthResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def refresh(
    db: DbSession, settings: AppSettings, payload: RefreshTokenRequest
) -> AuthResponse:
    """Exchange a refresh token for a new access token."""
    pair = await TokenService(db, settings).refresh(payload.refresh_token)
    await db.commit()
    return _auth_response(pair)


@router.post(
    "/logout",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def logout(
    db: DbSession,
    settings: AppSettings,
    principal: CurrentPrincipal,
    payload: RefreshTokenRequest,
) -> MessageResponse:
    """Revoke the caller's refresh token."""
    await TokenService(db, settings).revoke(payload.refresh_token, principal.username)
    await db.commit()
    return MessageResponse(message="Logged out successfully")


@router.post(
    "/logout-all",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse}},
)
async def logout_all(
    db: DbSession, settings: AppSettings, principal: CurrentPrincipal
) -> MessageResponse:
    """Revoke every refresh token of the caller."""
    await TokenService(db, settings).revoke_all_for_username(principal.username)
    await db.commit()
    return MessageResponse(message="Logged out from all devices successfully")
