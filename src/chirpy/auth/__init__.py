"""Authentication and session tokens.

Learn: Two kinds of token come out of a login:
1. Access token → short-lived JWT, verified statelessly on each request
2. Refresh token → long-lived opaque random string, stored in the DB

Access tokens cannot be revoked; refresh tokens can, and a revoked or
expired refresh token can no longer mint access tokens.
"""
