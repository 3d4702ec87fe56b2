"""User and refresh-token stores.

Learn: The session service only talks to these two protocols. The SQL
implementations below are the production ones; anything with the same
methods (an in-memory dict, a Redis adapter) can stand in.

Store methods translate driver errors at the boundary:
- IntegrityError → Conflict (duplicate key)
- any other SQLAlchemyError → StorageFailure, full detail logged here
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chirpy.auth.errors import Conflict, StorageFailure
from chirpy.auth.refresh_tokens import RefreshTokenRecord
from chirpy.db.models import RefreshToken, User

logger = structlog.get_logger()


@dataclass(frozen=True)
class UserRecord:
    """Credential view of a user. The hash is excluded from repr."""

    id: uuid.UUID
    email: str
    created_at: datetime
    updated_at: datetime
    hashed_password: str = field(repr=False)


class UserStore(Protocol):
    async def find_user_by_email(self, email: str) -> Optional[UserRecord]: ...

    async def create_user(
        self, email: str, hashed_password: str, now: datetime
    ) -> UserRecord: ...


class RefreshTokenStore(Protocol):
    async def create_refresh_token(self, record: RefreshTokenRecord) -> None: ...

    async def find_refresh_token(self, token: str) -> Optional[RefreshTokenRecord]: ...

    async def revoke_refresh_token(self, token: str, when: datetime) -> bool: ...


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _user_record(row: User) -> UserRecord:
    return UserRecord(
        id=row.id,
        email=row.email,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
        hashed_password=row.hashed_password,
    )


async def _rollback(db: AsyncSession, op: str) -> None:
    try:
        await db.rollback()
    except SQLAlchemyError as e:
        logger.exception("store.rollback_failed", op=op, error_type=type(e).__name__)


async def _fail(db: AsyncSession, op: str, exc: SQLAlchemyError) -> StorageFailure:
    logger.exception("store.error", op=op, error_type=type(exc).__name__)
    await _rollback(db, op)
    return StorageFailure(f"{op} failed")


class SqlUserStore:
    """Users table access."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        try:
            result = await self.db.execute(select(User).where(User.email == email))
        except SQLAlchemyError as e:
            raise await _fail(self.db, "find_user_by_email", e) from e
        user = result.scalars().first()
        return _user_record(user) if user else None

    async def create_user(
        self, email: str, hashed_password: str, now: datetime
    ) -> UserRecord:
        user = User(
            email=email,
            hashed_password=hashed_password,
            created_at=now,
            updated_at=now,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await _rollback(self.db, "create_user")
            raise Conflict("email already registered") from e
        except SQLAlchemyError as e:
            raise await _fail(self.db, "create_user", e) from e
        return _user_record(user)


class SqlRefreshTokenStore:
    """refresh_tokens table access.

    Learn: Inserts and revokes are single statements committed on their
    own, so a cancelled request either wrote the row or didn't. Reads
    bypass the session's identity map so a revoke committed elsewhere is
    always seen.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_refresh_token(self, record: RefreshTokenRecord) -> None:
        stmt = insert(RefreshToken).values(
            token=record.token,
            user_id=record.user_id,
            created_at=record.created_at,
            updated_at=record.updated_at,
            expires_at=record.expires_at,
            revoked_at=record.revoked_at,
        )
        try:
            await self.db.execute(stmt)
            await self.db.commit()
        except IntegrityError as e:
            await _rollback(self.db, "create_refresh_token")
            raise Conflict("refresh token already exists") from e
        except SQLAlchemyError as e:
            raise await _fail(self.db, "create_refresh_token", e) from e

    async def find_refresh_token(self, token: str) -> Optional[RefreshTokenRecord]:
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.token == token)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise await _fail(self.db, "find_refresh_token", e) from e
        row = result.scalars().first()
        if row is None:
            return None
        return RefreshTokenRecord(
            token=row.token,
            user_id=row.user_id,
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
            expires_at=as_utc(row.expires_at),
            revoked_at=as_utc(row.revoked_at),
        )

    async def revoke_refresh_token(self, token: str, when: datetime) -> bool:
        """Set revoked_at if unset. Returns False only when the token doesn't exist.

        Learn: The `revoked_at IS NULL` guard makes this one atomic
        compare-and-set in the database. Two concurrent revokes can't both
        stamp the row, and the first revocation time is preserved.
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.token == token, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=when, updated_at=when)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
            if result.rowcount:
                return True
            existing = await self.db.scalar(
                select(RefreshToken.token).where(RefreshToken.token == token)
            )
        except SQLAlchemyError as e:
            raise await _fail(self.db, "revoke_refresh_token", e) from e
        return existing is not None
