"""User registration.

Learn: Only what login needs: create a user with a bcrypt hash. Listing,
lookup by id, and profile updates belong to the user-management side.
"""

import asyncio

import structlog

from chirpy.auth.clock import Clock
from chirpy.auth.errors import Conflict, EmailTaken, ValidationFailure
from chirpy.auth.password import Hasher
from chirpy.db.stores import UserRecord, UserStore
from chirpy.services.timeouts import ServiceTimeouts, bounded

logger = structlog.get_logger()


class UserService:
    """Creates user accounts."""

    def __init__(
        self,
        users: UserStore,
        *,
        hasher: Hasher,
        clock: Clock,
        timeouts: ServiceTimeouts | None = None,
    ):
        self.users = users
        self.hasher = hasher
        self.clock = clock
        self.timeouts = timeouts or ServiceTimeouts()

    async def register(self, email: str, password: str) -> UserRecord:
        """Create a user. Raises ValidationFailure or EmailTaken."""
        email = (email or "").strip()
        if not email or not password:
            raise ValidationFailure("email and password are required")

        hashed = await bounded(
            asyncio.to_thread(self.hasher.hash, password),
            self.timeouts.hash_seconds,
            "password_hash",
        )
        try:
            user = await bounded(
                self.users.create_user(email, hashed, self.clock.now()),
                self.timeouts.store_seconds,
                "create_user",
            )
        except Conflict as e:
            raise EmailTaken("email already registered") from e

        logger.info("user.registered", user_id=str(user.id))
        return user
