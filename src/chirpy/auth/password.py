"""Password hashing utilities.

Learn: Uses bcrypt for secure password hashing. bcrypt automatically
handles salting and is resistant to rainbow table attacks.
The work factor (rounds=12) takes ~100ms per hash on modern hardware.

bcrypt only looks at the first 72 bytes of its input. Rather than
silently truncating, hash() refuses longer passwords so two different
long passwords can never share a hash.
"""

from typing import Protocol

import bcrypt
import structlog

from chirpy.auth.errors import EmptyInput

logger = structlog.get_logger()

MAX_PASSWORD_BYTES = 72


class Hasher(Protocol):
    def hash(self, password: str) -> str: ...

    def verify(self, password: str, hashed: str) -> bool: ...

    def dummy_verify(self, password: str) -> bool: ...


class BcryptHasher:
    """Salted, adaptive-cost password hashing backed by bcrypt."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._dummy_hash: bytes | None = None

    def hash(self, password: str) -> str:
        """Hash a password with a fresh random salt.

        Learn: The salt and cost are embedded in the output ("$2b$12$..."),
        so verify() needs nothing but the hash itself.
        """
        pw_bytes = _encode(password)
        if pw_bytes is None:
            raise EmptyInput("password must be 1-72 bytes")
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")

    def verify(self, password: str, hashed: str) -> bool:
        """Check a password against a stored hash.

        A malformed hash is reported as a plain mismatch; the distinction
        only shows up in the logs.
        """
        pw_bytes = _encode(password)
        if pw_bytes is None:
            # Unhashable input still pays for one check, like an unknown email.
            return self.dummy_verify(password)
        try:
            return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("password.malformed_hash", error=type(e).__name__)
            return False

    def dummy_verify(self, password: str) -> bool:
        """Burn one bcrypt check so a missing user costs the same as a bad password."""
        if self._dummy_hash is None:
            salt = bcrypt.gensalt(rounds=self.rounds)
            self._dummy_hash = bcrypt.hashpw(b"chirpy-dummy-password", salt)
        pw_bytes = _encode(password) or b"-"
        bcrypt.checkpw(pw_bytes, self._dummy_hash)
        return False


def _encode(password: str) -> bytes | None:
    if not password:
        return None
    pw_bytes = password.encode("utf-8")
    if len(pw_bytes) > MAX_PASSWORD_BYTES:
        return None
    return pw_bytes


_default_hasher: BcryptHasher | None = None


def default_hasher() -> BcryptHasher:
    """Process-wide hasher using the configured work factor."""
    global _default_hasher
    if _default_hasher is None:
        from chirpy.config import settings

        _default_hasher = BcryptHasher(rounds=settings.bcrypt_rounds)
    return _default_hasher

