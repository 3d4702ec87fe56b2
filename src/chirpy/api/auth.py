"""Auth API — login, token refresh, revocation.

Learn: Routes for the session lifecycle:
- POST /login   → email/password → access token + refresh token
- POST /refresh → Bearer <refresh token> → new access token
- POST /revoke  → Bearer <refresh token> → 204, idempotent
- GET  /me      → Bearer <access token> → the caller's user id

Errors are raised as AuthError subclasses; the handlers in main.py turn
them into generic JSON bodies, so a wrong password and an unknown email
produce byte-identical responses.
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from chirpy.auth.dependencies import (
    get_bearer,
    get_current_user_id,
    get_session_service,
)
from chirpy.services.session_service import SessionService

router = APIRouter()


# ─── Schemas ─────────────────────────────────────────────


class LoginRequest(BaseModel):
    email: str
    password: str
    # Anything in range is a hint; TokenPolicy decides what is honoured.
    expires_in_seconds: Optional[int] = Field(None, ge=-(2**31), le=2**31 - 1)


class LoginResponse(BaseModel):
    id: uuid.UUID
    email: str
    created_at: datetime
    updated_at: datetime
    token: str
    refresh_token: str


class TokenResponse(BaseModel):
    token: str


class MeResponse(BaseModel):
    id: uuid.UUID


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest, service: SessionService = Depends(get_session_service)
):
    """Login with email and password → access + refresh tokens."""
    requested_ttl = (
        timedelta(seconds=body.expires_in_seconds)
        if body.expires_in_seconds is not None
        else None
    )
    result = await service.login(body.email, body.password, requested_ttl)
    return LoginResponse(
        id=result.user_id,
        email=result.email,
        created_at=result.created_at,
        updated_at=result.updated_at,
        token=result.access_token,
        refresh_token=result.refresh_token,
    )


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    token: str = Depends(get_bearer),
    service: SessionService = Depends(get_session_service),
):
    """Exchange a refresh token for a new access token."""
    result = await service.refresh(token)
    return TokenResponse(token=result.access_token)


# ─── Revoke ─────────────────────────────────────────────


@router.post("/revoke", status_code=204)
async def revoke(
    token: str = Depends(get_bearer),
    service: SessionService = Depends(get_session_service),
):
    """Revoke a refresh token. Revoking twice succeeds both times."""
    await service.revoke(token)
    return Response(status_code=204)


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=MeResponse)
async def get_me(user_id: uuid.UUID = Depends(get_current_user_id)):
    """Return the user id the access token resolves to."""
    return MeResponse(id=user_id)
