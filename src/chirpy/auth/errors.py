"""Auth error taxonomy.

Learn: Every failure that can reach the HTTP boundary is an AuthError
subclass carrying its own status code and a generic, client-safe message.
Handlers never put str(exception) of a lower-level error in a response.
The detail goes to the log, the client gets `message`.
"""


class AuthError(Exception):
    """Base class for failures surfaced by the session service."""

    status_code = 500
    message = "internal server error"

    def __init__(self, detail: str | None = None):
        # `detail` is for logs only; it never reaches the client.
        super().__init__(detail or self.message)
        self.detail = detail or self.message


class ValidationFailure(AuthError):
    """Missing or empty credential fields."""

    status_code = 400
    message = "invalid request body"


class EmptyInput(ValidationFailure):
    """Password empty or longer than the hasher accepts."""


class InvalidCredentials(AuthError):
    """Unknown email or wrong password; the two are indistinguishable."""

    status_code = 401
    message = "incorrect email or password"


class InvalidToken(AuthError):
    """Refresh token missing, expired, or revoked."""

    status_code = 401
    message = "invalid token"


class Unauthorized(AuthError):
    """Access token rejected for any reason."""

    status_code = 401
    message = "unauthorized"


class Conflict(AuthError):
    """Unique constraint violated on insert."""

    status_code = 409
    message = "conflict"


class StorageFailure(AuthError):
    """Persistence layer unavailable or misbehaving."""

    status_code = 500
    message = "internal server error"


class OperationTimeout(AuthError):
    """A hashing or store call ran past its deadline."""

    status_code = 503
    message = "service temporarily unavailable"


class EmailTaken(Conflict):
    """Registration with an email that already has an account."""

    message = "email already registered"
