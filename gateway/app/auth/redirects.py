"""
Post-login redirect validation.

Prevents the gateway from acting as an open redirector: a caller-supplied
``returnUrl`` is only followed when it stays inside the domain family the
request arrived on.
"""

from typing import Optional
from urllib.parse import urlsplit

from .domain import root_domain

BLOCKED_SCHEMES = ("javascript:", "data:")

# Browsers resolve these against the current scheme only and keep their host.
NETWORK_PATH_PREFIXES = ("//", "/\\")


def is_valid_return_url(return_url: str, domain: str) -> bool:
    """
    Decide whether redirecting to ``return_url`` is safe.

    Rules, first match wins:
        1. ``javascript:`` / ``data:`` URLs (any casing) are rejected.
        2. Root-relative paths ("/dashboard") are accepted. Network-path
           references ("//evil.com/x") start with "/" but are not paths
           and are rejected.
        3. Absolute URLs are accepted only when the root domain of their
           host equals ``domain`` exactly. Anything that does not parse into
           an http(s) URL with a host is rejected.
           Backslashes are read as "/" the way browsers parse http(s) URLs.

    Never raises; malformed input yields False.

    Args:
        return_url: Candidate redirect target
        domain: Trusted domain family of the current request

    Returns:
        True if the redirect target is safe to follow
    """
    try:
        lower_url = return_url.lower()
        if lower_url.startswith(BLOCKED_SCHEMES):
            return False

        if return_url.startswith(NETWORK_PATH_PREFIXES):
            return False

        if return_url.startswith("/"):
            return True

        parsed = urlsplit(return_url.replace("\\", "/"))
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            return False

        return root_domain(parsed.hostname) == domain
    except (AttributeError, TypeError, ValueError):
        return False


def safe_redirect_target(return_url: Optional[str], domain: str) -> str:
    """
    Resolve where to send the user after login/logout.

    Returns the caller-supplied URL when it validates, otherwise the root of
    the domain family.
    """
    if return_url and is_valid_return_url(return_url, domain):
        return return_url
    return f"https://{domain}/"
