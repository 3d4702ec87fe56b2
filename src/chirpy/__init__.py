"""Chirpy — password login and session tokens for the Chirpy service.

Verifies credentials, issues short-lived signed access tokens and
long-lived opaque refresh tokens, and enforces expiry and revocation
of refresh tokens stored in the database.
"""

__version__ = "0.1.0"
