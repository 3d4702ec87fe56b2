"""Session service — login, refresh, revoke, and request authentication.

Learn: This is the only stateful part of auth. Everything it needs is
passed in: the two stores, the password hasher, the signing secret, and
the clock. Nothing here reads globals, so tests can run it with a frozen
clock and an in-memory database.

Refresh token validity is decided on every use from a fresh store read:

    valid  ⇔  revoked_at is NULL  and  now <= expires_at

A refresh that reads the row before a concurrent revoke commits may
still succeed once; access tokens already issued stay valid until they
expire. That's the accepted cost of stateless access tokens.

Failure reasons (unknown email vs wrong password, missing vs expired vs
revoked token) are logged for audit but never distinguished in the
exception the caller sees.
"""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import structlog

from chirpy.auth.clock import Clock
from chirpy.auth.errors import (
    Conflict,
    InvalidCredentials,
    InvalidToken,
    StorageFailure,
    Unauthorized,
    ValidationFailure,
)
from chirpy.auth.jwt import (
    ISSUER,
    TokenError,
    issue_access_token,
    validate_access_token,
)
from chirpy.auth.password import Hasher
from chirpy.auth.refresh_tokens import (
    RefreshTokenGenerator,
    RefreshTokenRecord,
    TokenState,
)
from chirpy.auth.secret import SigningSecret
from chirpy.db.stores import RefreshTokenStore, UserStore
from chirpy.services.timeouts import ServiceTimeouts, bounded

logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════
# Policy & results
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TokenPolicy:
    """Token lifetimes.

    Learn: A client may ask for a shorter access token at login. Anything
    outside (0, max_access_ttl] falls back to the default rather than
    erroring, since a bad hint shouldn't block a valid login.
    """

    default_access_ttl: timedelta = timedelta(hours=1)
    max_access_ttl: timedelta = timedelta(hours=1)
    refresh_ttl: timedelta = timedelta(days=60)

    def __post_init__(self):
        if self.default_access_ttl <= timedelta(0) or self.refresh_ttl <= timedelta(0):
            raise ValueError("token lifetimes must be positive")
        if self.default_access_ttl > self.max_access_ttl:
            raise ValueError("default access TTL exceeds the maximum")

    @classmethod
    def from_settings(cls, settings) -> "TokenPolicy":
        return cls(
            default_access_ttl=timedelta(seconds=settings.access_token_default_seconds),
            max_access_ttl=timedelta(seconds=settings.access_token_max_seconds),
            refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
        )

    def access_ttl_for(self, requested: Optional[timedelta]) -> timedelta:
        if requested is not None and timedelta(0) < requested <= self.max_access_ttl:
            return requested
        return self.default_access_ttl


@dataclass(frozen=True)
class LoginResult:
    user_id: uuid.UUID
    email: str
    created_at: datetime
    updated_at: datetime
    access_token: str
    refresh_token: str
    refresh_expires_at: datetime


@dataclass(frozen=True)
class RefreshResult:
    user_id: uuid.UUID
    access_token: str


# ═══════════════════════════════════════════════════════════
# Session Service
# ═══════════════════════════════════════════════════════════


class SessionService:
    """Issues, exchanges, and revokes session tokens."""

    def __init__(
        self,
        users: UserStore,
        refresh_tokens: RefreshTokenStore,
        *,
        hasher: Hasher,
        secret: SigningSecret,
        clock: Clock,
        policy: Optional[TokenPolicy] = None,
        generator: Optional[RefreshTokenGenerator] = None,
        timeouts: Optional[ServiceTimeouts] = None,
        issuer: str = ISSUER,
    ):
        self.users = users
        self.refresh_tokens = refresh_tokens
        self.hasher = hasher
        self.secret = secret
        self.clock = clock
        self.policy = policy or TokenPolicy()
        self.generator = generator or RefreshTokenGenerator()
        self.timeouts = timeouts or ServiceTimeouts()
        self.issuer = issuer

    # ─── Login ────────────────────────────────────────────

    async def login(
        self,
        email: str,
        password: str,
        requested_ttl: Optional[timedelta] = None,
    ) -> LoginResult:
        """Verify credentials and open a session.

        Raises ValidationFailure for empty fields and InvalidCredentials
        for an unknown email or a wrong password (same error either way).
        """
        email = (email or "").strip()
        if not email or not password:
            raise ValidationFailure("email and password are required")

        user = await self._store_call(self.users.find_user_by_email(email), "find_user")
        if user is None:
            # Pay for one bcrypt check anyway so response time doesn't
            # reveal whether the email exists.
            await self._hash_call(self.hasher.dummy_verify, password)
            logger.info("auth.login_failed", reason="unknown_email")
            raise InvalidCredentials("unknown email")

        matched = await self._hash_call(self.hasher.verify, password, user.hashed_password)
        if not matched:
            logger.info("auth.login_failed", reason="password_mismatch", user_id=str(user.id))
            raise InvalidCredentials("password mismatch")

        access_token = self._mint_access_token(
            user.id, self.policy.access_ttl_for(requested_ttl)
        )
        record = await self._persist_new_refresh_token(user.id)

        logger.info("auth.login", user_id=str(user.id))
        return LoginResult(
            user_id=user.id,
            email=user.email,
            created_at=user.created_at,
            updated_at=user.updated_at,
            access_token=access_token,
            refresh_token=record.token,
            refresh_expires_at=record.expires_at,
        )

    # ─── Refresh ──────────────────────────────────────────

    async def refresh(self, refresh_token: str) -> RefreshResult:
        """Exchange a valid refresh token for a new access token.

        The refresh token row is left untouched: no rotation and no sliding
        expiry.
        """
        if not refresh_token:
            raise InvalidToken("empty refresh token")

        record = await self._store_call(
            self.refresh_tokens.find_refresh_token(refresh_token), "find_refresh_token"
        )
        if record is None:
            logger.info("auth.refresh_rejected", reason="not_found")
            raise InvalidToken("refresh token not found")

        state = record.state(self.clock.now())
        if state is not TokenState.ACTIVE:
            logger.info(
                "auth.refresh_rejected", reason=state.value, user_id=str(record.user_id)
            )
            raise InvalidToken(f"refresh token {state.value}")

        access_token = self._mint_access_token(
            record.user_id, self.policy.default_access_ttl
        )
        logger.info("auth.refreshed", user_id=str(record.user_id))
        return RefreshResult(user_id=record.user_id, access_token=access_token)

    # ─── Revoke ───────────────────────────────────────────

    async def revoke(self, refresh_token: str) -> None:
        """Revoke a refresh token. Revoking twice is not an error."""
        if not refresh_token:
            raise InvalidToken("empty refresh token")

        found = await self._store_call(
            self.refresh_tokens.revoke_refresh_token(refresh_token, self.clock.now()),
            "revoke_refresh_token",
        )
        if not found:
            logger.info("auth.revoke_rejected", reason="not_found")
            raise InvalidToken("refresh token not found")
        logger.info("auth.token_revoked")

    # ─── Authenticate ─────────────────────────────────────

    def authenticate_request(self, access_token: str) -> uuid.UUID:
        """Resolve an access token to a user id or raise Unauthorized."""
        try:
            subject = validate_access_token(
                access_token, self.secret, clock=self.clock, issuer=self.issuer
            )
            return uuid.UUID(subject)
        except TokenError as e:
            logger.info("auth.access_rejected", reason=type(e).__name__)
            raise Unauthorized(str(e)) from e
        except ValueError as e:
            logger.info("auth.access_rejected", reason="bad_subject")
            raise Unauthorized("subject is not a user id") from e

    # ─── Internals ────────────────────────────────────────

    def _mint_access_token(self, user_id: uuid.UUID, ttl: timedelta) -> str:
        return issue_access_token(
            str(user_id), self.secret, ttl, clock=self.clock, issuer=self.issuer
        )

    async def _persist_new_refresh_token(self, user_id: uuid.UUID) -> RefreshTokenRecord:
        """Generate and store a refresh token, retrying once on a key collision."""
        try:
            return await self._insert_refresh_token(user_id)
        except Conflict:
            logger.warning("auth.refresh_token_collision", user_id=str(user_id))
        try:
            return await self._insert_refresh_token(user_id)
        except Conflict as e:
            raise StorageFailure("refresh token collided twice") from e

    async def _insert_refresh_token(self, user_id: uuid.UUID) -> RefreshTokenRecord:
        record = self.generator.new_record(
            user_id, self.clock.now(), self.policy.refresh_ttl
        )
        await self._store_call(
            self.refresh_tokens.create_refresh_token(record), "create_refresh_token"
        )
        return record

    async def _store_call(self, awaitable, op: str):
        return await bounded(awaitable, self.timeouts.store_seconds, op)

    async def _hash_call(self, fn, *args):
        return await bounded(
            asyncio.to_thread(fn, *args), self.timeouts.hash_seconds, "password_hash"
        )
