"""Chirpy CLI — run the server and drive the auth endpoints.

Usage:
    chirpy serve                                  # Run the API with uvicorn
    chirpy init-db                                # Create tables
    chirpy gen-secret                             # Print a new signing secret
    chirpy register a@example.com                 # Create an account
    chirpy login a@example.com                    # Get access + refresh tokens
    chirpy refresh <refresh-token>                # New access token
    chirpy revoke <refresh-token>                 # Revoke a refresh token
    chirpy whoami <access-token>                  # Resolve an access token
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import secrets
import sys
from typing import Optional

import click
import httpx

from chirpy import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8080"


def _api_url() -> str:
    return os.environ.get("CHIRPY_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the Chirpy API."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _check(r: httpx.Response) -> None:
    """Exit with the server's error message on a non-2xx response."""
    if r.is_success:
        return
    try:
        detail = r.json().get("detail", r.text)
    except ValueError:
        detail = r.text
    click.secho(f"Error ({r.status_code}): {detail}", fg="red", err=True)
    sys.exit(1)


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="chirpy")
def main():
    """Chirpy — password login and session tokens."""


# ---------------------------------------------------------------------------
# Server-side commands
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default from CHIRPY_HOST)")
@click.option("--port", default=None, type=int, help="Port (default from CHIRPY_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    import uvicorn

    from chirpy.config import settings

    uvicorn.run(
        "chirpy.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command("init-db")
def init_db():
    """Create the users and refresh_tokens tables if missing."""
    from chirpy.db.engine import create_tables, engine

    async def _init():
        await create_tables()
        await engine.dispose()

    _run(_init())
    click.secho("Tables created.", fg="green")


@main.command("gen-secret")
@click.option("--bytes", "nbytes", default=32, show_default=True, help="Entropy in bytes")
def gen_secret(nbytes: int):
    """Print a random value suitable for CHIRPY_JWT_SECRET."""
    if nbytes < 32:
        click.secho("Use at least 32 bytes for an HS256 key.", fg="red", err=True)
        sys.exit(1)
    click.echo(secrets.token_urlsafe(nbytes))


# ---------------------------------------------------------------------------
# Client commands
# ---------------------------------------------------------------------------


@main.command()
@click.argument("email")
@click.password_option(help="Account password")
def register(email: str, password: str):
    """Create an account."""
    _run(_register_impl(email, password))


async def _register_impl(email: str, password: str):
    async with _client() as c:
        r = await c.post("/api/users", json={"email": email, "password": password})
        _check(r)
        click.secho(f"Registered {email}", fg="green")
        click.echo(_pretty_json(r.json()))


@main.command()
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, help="Account password")
@click.option("--expires-in", type=int, default=None, help="Access token lifetime (s)")
def login(email: str, password: str, expires_in: Optional[int]):
    """Log in and print the token pair."""
    _run(_login_impl(email, password, expires_in))


async def _login_impl(email: str, password: str, expires_in: Optional[int]):
    body: dict = {"email": email, "password": password}
    if expires_in is not None:
        body["expires_in_seconds"] = expires_in
    async with _client() as c:
        r = await c.post("/api/login", json=body)
        _check(r)
        click.echo(_pretty_json(r.json()))


@main.command()
@click.argument("refresh_token", envvar="CHIRPY_REFRESH_TOKEN")
def refresh(refresh_token: str):
    """Exchange a refresh token for a new access token."""
    _run(_refresh_impl(refresh_token))


async def _refresh_impl(refresh_token: str):
    async with _client() as c:
        r = await c.post("/api/refresh", headers=_bearer(refresh_token))
        _check(r)
        click.echo(r.json()["token"])


@main.command()
@click.argument("refresh_token", envvar="CHIRPY_REFRESH_TOKEN")
def revoke(refresh_token: str):
    """Revoke a refresh token."""
    _run(_revoke_impl(refresh_token))


async def _revoke_impl(refresh_token: str):
    async with _client() as c:
        r = await c.post("/api/revoke", headers=_bearer(refresh_token))
        _check(r)
        click.secho("Refresh token revoked.", fg="green")


@main.command()
@click.argument("access_token", envvar="CHIRPY_ACCESS_TOKEN")
def whoami(access_token: str):
    """Show the user id an access token belongs to."""
    _run(_whoami_impl(access_token))


async def _whoami_impl(access_token: str):
    async with _client() as c:
        r = await c.get("/api/me", headers=_bearer(access_token))
        _check(r)
        click.echo(r.json()["id"])


if __name__ == "__main__":
    main()
