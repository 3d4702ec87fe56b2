"""Signing secret value object."""

from dataclasses import dataclass


@dataclass(frozen=True, repr=False)
class SigningSecret:
    """HMAC key for access tokens. Never empty, never printed."""

    value: bytes

    def __post_init__(self):
        if not isinstance(self.value, bytes):
            raise TypeError("SigningSecret value must be bytes")
        if not self.value:
            raise ValueError("signing secret must not be empty")

    @classmethod
    def from_text(cls, text: str) -> "SigningSecret":
        return cls(text.encode("utf-8"))

    def __repr__(self) -> str:
        return "SigningSecret(<redacted>)"
