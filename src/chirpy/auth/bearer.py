"""Bearer token extraction from an Authorization header value."""

from typing import Optional

from chirpy.auth.errors import InvalidToken

BEARER_PREFIX = "Bearer "


def get_bearer_token(authorization: Optional[str]) -> str:
    """Return the token from "Bearer <token>".

    The prefix is case-sensitive. A missing header, a different scheme,
    or an empty token all raise InvalidToken.
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise InvalidToken("missing or malformed Authorization header")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise InvalidToken("empty bearer token")
    return token
