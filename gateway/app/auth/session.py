"""
Session Cookie Management
=========================

Issues, clears and reads the shared session cookie. The cookie holds the
provider-issued bearer token verbatim and is scoped to ``.<root domain>`` so
every sibling subdomain of the family sees it.

The cookie domain is computed from the raw hostname with ``root_domain``,
not from family classification; the request has already been classified by
the time a cookie is written.
"""

import re
from typing import Optional

from fastapi import Response
from starlette.requests import cookie_parser

from .domain import root_domain


SESSION_COOKIE_NAME = "session"
SESSION_MAX_AGE = 604800  # 7 days

# Three base64url segments; the signature may be empty for unsigned tokens.
TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*")


def is_token_shaped(token: Optional[str]) -> bool:
    """Check that a value can be stored in the cookie without quoting."""
    return bool(token) and TOKEN_PATTERN.fullmatch(token) is not None


def cookie_domain(hostname: str) -> str:
    """
    Get the cookie domain for a hostname (an optional port is ignored).

    e.g., "login.mklv.tech" -> ".mklv.tech"
    """
    return "." + root_domain(hostname.split(":")[0].lower())


def issue(response: Response, token: str, hostname: str) -> None:
    """
    Set the session cookie on a response.

    Raises:
        ValueError: If the token is not three base64url segments
    """
    if not is_token_shaped(token):
        raise ValueError("Session token must be three base64url segments")

    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=SESSION_MAX_AGE,
        path="/",
        domain=cookie_domain(hostname),
        secure=True,
        httponly=True,
        samesite="lax",
    )


def clear(response: Response, hostname: str) -> None:
    """Expire the session cookie on a response."""
    response.set_cookie(
        SESSION_COOKIE_NAME,
        "",
        max_age=0,
        path="/",
        domain=cookie_domain(hostname),
        secure=True,
        httponly=True,
        samesite="lax",
    )


def read(cookie_header: Optional[str]) -> Optional[str]:
    """
    Extract the session token from a raw Cookie header.

    Returns:
        The token, or None if the cookie is absent or empty
    """
    if not cookie_header:
        return None

    token = cookie_parser(cookie_header).get(SESSION_COOKIE_NAME)
    return token or None
