"""Opaque refresh tokens.

Learn: Unlike access tokens, refresh tokens carry no claims. They are
32 random bytes rendered as hex, and all meaning lives in the database
row keyed by the token. That makes them revocable: flip `revoked_at`
and the token is dead, whatever its expiry says.

Lifecycle:
    ACTIVE ──(time passes expires_at)──▶ EXPIRED
    ACTIVE ──(revoke)──────────────────▶ REVOKED   (terminal)
"""

import enum
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol

MIN_TOKEN_BYTES = 32


class TokenState(str, enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


@dataclass(frozen=True, repr=False)
class RefreshTokenRecord:
    """A persisted refresh token row."""

    token: str
    user_id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    revoked_at: Optional[datetime] = None

    def state(self, now: datetime) -> TokenState:
        """Revocation wins over expiry; expiry is inclusive of expires_at."""
        if self.revoked_at is not None:
            return TokenState.REVOKED
        if now > self.expires_at:
            return TokenState.EXPIRED
        return TokenState.ACTIVE

    def is_valid(self, now: datetime) -> bool:
        return self.state(now) is TokenState.ACTIVE

    def __repr__(self) -> str:
        # Keep the token itself out of logs and tracebacks.
        return (
            f"RefreshTokenRecord(token={self.token[:6]}…, user_id={self.user_id}, "
            f"expires_at={self.expires_at.isoformat()}, revoked_at={self.revoked_at})"
        )


class SecureRandomSource(Protocol):
    def token_bytes(self, nbytes: int) -> bytes: ...


class SystemRandomSource:
    """CSPRNG from the OS via the `secrets` module."""

    def token_bytes(self, nbytes: int) -> bytes:
        return secrets.token_bytes(nbytes)


class RefreshTokenGenerator:
    """Mints refresh token strings and the records that back them."""

    def __init__(
        self,
        random: Optional[SecureRandomSource] = None,
        nbytes: int = MIN_TOKEN_BYTES,
    ):
        if nbytes < MIN_TOKEN_BYTES:
            raise ValueError(f"refresh tokens need at least {MIN_TOKEN_BYTES} bytes")
        self.random = random or SystemRandomSource()
        self.nbytes = nbytes

    def generate(self) -> str:
        raw = self.random.token_bytes(self.nbytes)
        if len(raw) != self.nbytes:
            raise ValueError("random source returned the wrong number of bytes")
        return raw.hex()

    def new_record(
        self, user_id: uuid.UUID, now: datetime, ttl: timedelta
    ) -> RefreshTokenRecord:
        return RefreshTokenRecord(
            token=self.generate(),
            user_id=user_id,
            created_at=now,
            updated_at=now,
            expires_at=now + ttl,
        )
