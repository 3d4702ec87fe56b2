"""Access token codec tests — issue, validate, and every rejection path."""

from datetime import timedelta

import jwt as pyjwt
import pytest

from chirpy.auth.jwt import (
    ALGORITHM,
    ISSUER,
    BadSignature,
    Expired,
    InvalidTTL,
    Malformed,
    TokenError,
    WrongIssuer,
    issue_access_token,
    validate_access_token,
)
from chirpy.auth.secret import SigningSecret

HOUR = timedelta(hours=1)
SUBJECT = "8b0c5e9a-2f1d-4c3b-9a7e-6d5c4b3a2f10"


def test_issue_then_validate_returns_subject(secret, clock):
    token = issue_access_token(SUBJECT, secret, HOUR, clock=clock)
    assert validate_access_token(token, secret, clock=clock) == SUBJECT


def test_token_is_url_safe(secret, clock):
    token = issue_access_token(SUBJECT, secret, HOUR, clock=clock)
    allowed = set("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.")
    assert set(token) <= allowed
    assert token.count(".") == 2


def test_claims(secret, clock):
    token = issue_access_token(SUBJECT, secret, HOUR, clock=clock)
    claims = pyjwt.decode(token, options={"verify_signature": False})
    assert claims["sub"] == SUBJECT
    assert claims["iss"] == ISSUER
    assert claims["iat"] == int(clock.now().timestamp())
    assert claims["exp"] - claims["iat"] == 3600
    assert claims["jti"]


def test_same_second_tokens_differ(secret, clock):
    a = issue_access_token(SUBJECT, secret, HOUR, clock=clock)
    b = issue_access_token(SUBJECT, secret, HOUR, clock=clock)
    assert a != b


def test_wrong_secret_is_bad_signature(secret, clock):
    token = issue_access_token(SUBJECT, secret, HOUR, clock=clock)
    other = SigningSecret(b"another-signing-secret-0123456789abcdef")
    with pytest.raises(BadSignature):
        validate_access_token(token, other, clock=clock)


def test_tampered_payload_is_bad_signature(secret, clock):
    token = issue_access_token(SUBJECT, secret, HOUR, clock=clock)
    forged = pyjwt.encode(
        {"iss": ISSUER, "sub": "someone-else", "iat": 0, "exp": 2**31},
        "guessed-key-guessed-key-guessed-key",
        algorithm=ALGORITHM,
    )
    header, _, signature = token.split(".")
    _, payload, _ = forged.split(".")
    with pytest.raises(BadSignature):
        validate_access_token(f"{header}.{payload}.{signature}", secret, clock=clock)


def test_expiry_boundary(secret, clock):
    token = issue_access_token(SUBJECT, secret, HOUR, clock=clock)

    clock.advance(seconds=3599)
    assert validate_access_token(token, secret, clock=clock) == SUBJECT

    clock.advance(seconds=1)  # exactly at exp is still valid
    assert validate_access_token(token, secret, clock=clock) == SUBJECT

    clock.advance(seconds=1)
    with pytest.raises(Expired):
        validate_access_token(token, secret, clock=clock)


def test_sub_second_ttl_is_valid_when_issued(secret, clock):
    clock.advance(milliseconds=700)
    token = issue_access_token(SUBJECT, secret, timedelta(milliseconds=900), clock=clock)
    assert validate_access_token(token, secret, clock=clock) == SUBJECT

    claims = pyjwt.decode(token, options={"verify_signature": False})
    assert claims["exp"] > clock.now().timestamp()

    clock.advance(milliseconds=900)
    assert validate_access_token(token, secret, clock=clock) == SUBJECT


def test_expiry_never_undershoots_ttl(secret, clock):
    clock.advance(milliseconds=700)
    issued = clock.now()
    token = issue_access_token(SUBJECT, secret, HOUR, clock=clock)

    claims = pyjwt.decode(token, options={"verify_signature": False})
    assert claims["iat"] <= issued.timestamp()
    assert claims["exp"] >= (issued + HOUR).timestamp()

    clock.set(issued + HOUR)
    assert validate_access_token(token, secret, clock=clock) == SUBJECT


def test_wrong_issuer(secret, clock):
    token = issue_access_token(SUBJECT, secret, HOUR, clock=clock, issuer="someone-else")
    with pytest.raises(WrongIssuer):
        validate_access_token(token, secret, clock=clock)


def test_missing_issuer(secret, clock):
    now = int(clock.now().timestamp())
    token = pyjwt.encode(
        {"sub": SUBJECT, "iat": now, "exp": now + 60}, secret.value, algorithm=ALGORITHM
    )
    with pytest.raises(WrongIssuer):
        validate_access_token(token, secret, clock=clock)


@pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b.c", "abc.def"])
def test_garbage_is_malformed(secret, clock, garbage):
    with pytest.raises(Malformed):
        validate_access_token(garbage, secret, clock=clock)


def test_missing_subject_is_malformed(secret, clock):
    now = int(clock.now().timestamp())
    token = pyjwt.encode(
        {"iss": ISSUER, "iat": now, "exp": now + 60}, secret.value, algorithm=ALGORITHM
    )
    with pytest.raises(Malformed):
        validate_access_token(token, secret, clock=clock)


def test_unsigned_token_is_rejected(secret, clock):
    now = int(clock.now().timestamp())
    token = pyjwt.encode(
        {"iss": ISSUER, "sub": SUBJECT, "iat": now, "exp": now + 60},
        None,
        algorithm="none",
    )
    with pytest.raises(TokenError):
        validate_access_token(token, secret, clock=clock)


@pytest.mark.parametrize("ttl", [timedelta(0), timedelta(seconds=-1)])
def test_non_positive_ttl(secret, clock, ttl):
    with pytest.raises(InvalidTTL):
        issue_access_token(SUBJECT, secret, ttl, clock=clock)


def test_errors_share_a_base(secret, clock):
    for exc in (Malformed, BadSignature, WrongIssuer, Expired, InvalidTTL):
        assert issubclass(exc, TokenError)
