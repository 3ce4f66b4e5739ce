"""
Domain family classification.

Maps a client-supplied hostname onto one of the configured domain families
(root domains that share the session cookie). Root domains are the last two
dot-separated labels of a hostname; there is no public-suffix awareness, so
``foo.co.uk`` resolves to ``co.uk``.

Everything here is pure: no I/O, no settings lookups.
"""

from typing import Iterable, Optional

from ..config import DEFAULT_SUPPORTED_DOMAINS

SUPPORTED_DOMAINS = tuple(DEFAULT_SUPPORTED_DOMAINS.split(","))


def root_domain(hostname: str) -> str:
    """
    Extract the root domain from a hostname.

    Args:
        hostname: Hostname without port (e.g., "login.mklv.tech")

    Returns:
        Last two labels joined by "." ("mklv.tech"), or the hostname
        unchanged when it has a single label ("localhost").
    """
    parts = hostname.split(".")
    if len(parts) >= 2:
        return ".".join(parts[-2:])
    return hostname


def classify(hostname: str, families: Iterable[str] = SUPPORTED_DOMAINS) -> Optional[str]:
    """
    Classify a hostname against the configured domain families.

    Args:
        hostname: Hostname without port
        families: Root domains accepted by this deployment

    Returns:
        The matching family, or None when the host is not recognized.
    """
    candidate = root_domain(hostname.lower())
    if candidate in tuple(families):
        return candidate
    return None


def from_host_header(
    host: Optional[str],
    families: Iterable[str] = SUPPORTED_DOMAINS,
) -> Optional[str]:
    """
    Classify the value of a Host header.

    Strips an optional ":port" suffix before classifying. A missing header
    yields None without being classified.
    """
    if not host:
        return None

    hostname = host.split(":")[0]
    return classify(hostname, families)
