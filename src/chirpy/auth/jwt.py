"""JWT access token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
An access token is short-lived (60min by default) and carries:
- sub: the user id
- iss: a fixed issuer string, so a token minted for something else
  (or by someone else) is never mistaken for one of ours
- iat / exp: issue and expiry times (unix seconds). iat rounds down and
  exp rounds up, so a sub-second TTL still yields a token that is valid
  when issued
- jti: a random id, so two tokens minted in the same second differ

PyJWT's own expiry check reads the wall clock. We switch it off and
compare `exp` against an injected Clock instead, which keeps signing
and verification reproducible under a frozen clock in tests.
"""

import math
import uuid
from datetime import timedelta

import jwt

from chirpy.auth.clock import Clock
from chirpy.auth.secret import SigningSecret

ALGORITHM = "HS256"
ISSUER = "chirpy-access"

_DECODE_OPTIONS = {
    "verify_signature": True,
    "verify_exp": False,
    "verify_iat": False,
    "verify_nbf": False,
    "require": ["sub", "iat", "exp"],
}


class TokenError(Exception):
    """Raised when token creation/verification fails."""


class InvalidTTL(TokenError):
    """Lifetime must be positive."""


class Malformed(TokenError):
    """Token could not be parsed or is missing required claims."""


class BadSignature(TokenError):
    """Signature does not match the signing secret."""


class WrongIssuer(TokenError):
    """Token was not issued by this service."""


class Expired(TokenError):
    """Token is past its expiry time."""


def issue_access_token(
    subject: str,
    secret: SigningSecret,
    ttl: timedelta,
    *,
    clock: Clock,
    issuer: str = ISSUER,
) -> str:
    """Create a signed access token for `subject` valid for `ttl`."""
    if ttl <= timedelta(0):
        raise InvalidTTL(f"ttl must be positive, got {ttl}")
    now = clock.now().timestamp()
    payload = {
        "iss": issuer,
        "sub": subject,
        "iat": math.floor(now),
        "exp": math.ceil(now + ttl.total_seconds()),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret.value, algorithm=ALGORITHM)


def validate_access_token(
    token: str,
    secret: SigningSecret,
    *,
    clock: Clock,
    issuer: str = ISSUER,
) -> str:
    """Verify an access token and return its subject.

    Raises Malformed, BadSignature, WrongIssuer or Expired.
    """
    try:
        payload = jwt.decode(
            token, secret.value, algorithms=[ALGORITHM], options=_DECODE_OPTIONS
        )
    except jwt.InvalidSignatureError:
        raise BadSignature("signature verification failed")
    except jwt.DecodeError as e:
        raise Malformed(f"cannot decode token: {e}")
    except jwt.InvalidTokenError as e:
        raise Malformed(f"invalid claims: {e}")

    if payload.get("iss") != issuer:
        raise WrongIssuer("unexpected issuer")

    subject = payload["sub"]
    expires_at = payload["exp"]
    if not isinstance(subject, str) or not subject:
        raise Malformed("sub must be a non-empty string")
    if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
        raise Malformed("exp must be a number")

    if clock.now().timestamp() > expires_at:
        raise Expired("token has expired")
    return subject
