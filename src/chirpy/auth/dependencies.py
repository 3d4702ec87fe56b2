"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers. Each collaborator
(clock, hasher, secret, stores) is its own dependency so tests can swap
one (a frozen clock, a fast hasher) via app.dependency_overrides
without touching the rest.
"""

import uuid
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from chirpy.auth.bearer import get_bearer_token
from chirpy.auth.clock import Clock, SystemClock
from chirpy.auth.errors import InvalidToken, Unauthorized
from chirpy.auth.password import Hasher, default_hasher
from chirpy.auth.secret import SigningSecret
from chirpy.config import settings
from chirpy.db.engine import get_db
from chirpy.db.stores import SqlRefreshTokenStore, SqlUserStore
from chirpy.services.session_service import SessionService, TokenPolicy
from chirpy.services.timeouts import ServiceTimeouts
from chirpy.services.user_service import UserService

_system_clock = SystemClock()


def get_clock() -> Clock:
    return _system_clock


def get_hasher() -> Hasher:
    return default_hasher()


def get_signing_secret() -> SigningSecret:
    return SigningSecret.from_text(settings.jwt_secret)


def get_session_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    hasher: Hasher = Depends(get_hasher),
    secret: SigningSecret = Depends(get_signing_secret),
) -> SessionService:
    return SessionService(
        SqlUserStore(db),
        SqlRefreshTokenStore(db),
        hasher=hasher,
        secret=secret,
        clock=clock,
        policy=TokenPolicy.from_settings(settings),
        timeouts=ServiceTimeouts.from_settings(settings),
        issuer=settings.jwt_issuer,
    )


def get_user_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    hasher: Hasher = Depends(get_hasher),
) -> UserService:
    return UserService(
        SqlUserStore(db),
        hasher=hasher,
        clock=clock,
        timeouts=ServiceTimeouts.from_settings(settings),
    )


def get_bearer(authorization: Optional[str] = Header(None)) -> str:
    """Bearer token from the Authorization header (InvalidToken if absent)."""
    return get_bearer_token(authorization)


def get_current_user_id(
    authorization: Optional[str] = Header(None),
    service: SessionService = Depends(get_session_service),
) -> uuid.UUID:
    """Resolve the access token on the request to a user id.

    Learn: A missing or malformed header is an access-token failure here,
    so it surfaces as Unauthorized rather than InvalidToken.
    """
    try:
        token = get_bearer_token(authorization)
    except InvalidToken as e:
        raise Unauthorized(e.detail) from e
    return service.authenticate_request(token)
