"""
Token trust utilities: verification key fetching/caching and bearer token checks.

This module handles:
- Decoding token payloads without verification (identity for analytics)
- Fetching and caching the provider's ES256 verification key from its JWKS
- Deciding whether a session token is trusted, with an expiry-only fallback
  when no verification key can be obtained
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx
from jose import jwk, jwt, JWTError
from jose.backends.base import Key
from jose.utils import base64url_decode
from pydantic import ValidationError

from ..models import TokenClaims

logger = logging.getLogger(__name__)


EXPECTED_ALGORITHM = "ES256"
JWKS_PATH = "/auth/v1/.well-known/jwks.json"

# Tolerance applied to "exp" on the verified path only.
CLOCK_SKEW_SECONDS = 60


class KeyFetchError(Exception):
    """The key-publication endpoint returned nothing usable."""


# =============================================================================
# Unverified Decoding
# =============================================================================

def decode_payload_unverified(token: str) -> Optional[TokenClaims]:
    """
    Decode a JWT payload without checking its signature.

    Only used to read the subject for analytics and as the expiry-only
    fallback when no verification key is available.

    Args:
        token: Three dot-separated base64url segments

    Returns:
        Decoded claims, or None when the token is not a three-part JWT or its
        payload is not base64url-encoded JSON object data
    """
    try:
        parts = token.split(".")
        if len(parts) != 3:
            return None

        payload = json.loads(base64url_decode(parts[1].encode("ascii")).decode("utf-8"))
        if not isinstance(payload, dict):
            return None

        return TokenClaims.model_validate(payload)
    except (AttributeError, TypeError, ValueError):
        return None


# =============================================================================
# Verification Key Cache
# =============================================================================

@dataclass(frozen=True)
class CachedKey:
    """A verification key and the time it was fetched."""

    key: Key
    fetched_at: float

    def is_fresh(self, now: float, ttl: float) -> bool:
        return (now - self.fetched_at) < ttl


def jwks_url_for(base_url: Optional[str]) -> Optional[str]:
    """
    Build the key-publication endpoint URL for a provider base URL.

    Returns:
        ``<base>/auth/v1/.well-known/jwks.json``, or None without a base URL
    """
    if not base_url:
        return None
    return f"{base_url.rstrip('/')}{JWKS_PATH}"


class TokenTrustEngine:
    """
    Decides whether bearer tokens represent an authenticated principal.

    Owns a single cached verification key. The key is refetched once it is
    older than ``cache_ttl``; a failed refetch leaves the previous entry in
    place but it is not used again, so the next call retries. Concurrent
    refreshes are last-writer-wins.
    """

    def __init__(
        self,
        jwks_url: Optional[str],
        cache_ttl: float = 3600,
        timeout: float = 5.0,
        clock: Callable[[], float] = time.time,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            jwks_url: Key-publication endpoint, None when unconfigured
            cache_ttl: Seconds a fetched key is trusted
            timeout: Timeout for the key fetch request
            clock: Source of the current time in epoch seconds
            transport: Optional httpx transport (used by tests)
        """
        self.jwks_url = jwks_url
        self.cache_ttl = cache_ttl
        self.timeout = timeout
        self._clock = clock
        self._transport = transport
        self._cache: Optional[CachedKey] = None

    @property
    def cached_key(self) -> Optional[CachedKey]:
        return self._cache

    # -------------------------------------------------------------------------
    # Key fetching
    # -------------------------------------------------------------------------

    async def fetch_jwks(self) -> Dict[str, Any]:
        """
        Fetch the JWKS document from the key-publication endpoint.

        Raises:
            httpx.HTTPError: If the endpoint is unreachable or errors
            KeyFetchError: If the response has no "keys" array
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(self.jwks_url)
            response.raise_for_status()
            jwks_data = response.json()

        if not isinstance(jwks_data, dict) or not isinstance(jwks_data.get("keys"), list):
            raise KeyFetchError("Invalid JWKS response: missing 'keys' field")

        return jwks_data

    @staticmethod
    def select_key(jwks: Dict[str, Any]) -> Dict[str, Any]:
        """
        Pick the first published key for the expected signing algorithm.

        Raises:
            KeyFetchError: If no key uses ES256
        """
        for key in jwks.get("keys", []):
            if isinstance(key, dict) and key.get("alg") == EXPECTED_ALGORITHM:
                return key

        raise KeyFetchError(f"No {EXPECTED_ALGORITHM} key in JWKS")

    async def get_verification_key(self) -> Optional[Key]:
        """
        Return a fresh verification key, fetching it if needed.

        Returns:
            The cached key while younger than the TTL, a newly fetched key,
            or None when the key cannot be obtained
        """
        if self._cache and self._cache.is_fresh(self._clock(), self.cache_ttl):
            return self._cache.key

        if not self.jwks_url:
            logger.warning("No key-publication endpoint configured (SUPABASE_URL unset)")
            return None

        try:
            jwks = await self.fetch_jwks()
            key = jwk.construct(self.select_key(jwks), algorithm=EXPECTED_ALGORITHM)
        except Exception as e:
            logger.warning(f"Failed to obtain verification key from {self.jwks_url}: {e}")
            return None

        self._cache = CachedKey(key=key, fetched_at=self._clock())
        logger.info("Refreshed token verification key")
        return key

    # -------------------------------------------------------------------------
    # Trust decisions
    # -------------------------------------------------------------------------

    async def is_trusted(self, token: str) -> bool:
        """
        Decide whether a session token is trusted.

        With a verification key the signature must verify and "exp" must be
        later than now minus a 60 second skew allowance. Without a key the
        payload is decoded unverified and trusted only if "exp" is strictly
        in the future. Errors never propagate; they mean "not trusted".
        """
        try:
            key = await self.get_verification_key()
            if key is None:
                return self._trust_by_expiry(token)
            return self._verify(token, key)
        except Exception as e:
            logger.error(f"Token trust check failed: {e}", exc_info=True)
            return False

    def _verify(self, token: str, key: Key) -> bool:
        try:
            claims = jwt.decode(
                token,
                key.to_pem().decode("utf-8"),
                algorithms=[EXPECTED_ALGORITHM],
                options={
                    "verify_signature": True,
                    "verify_aud": False,
                    "verify_exp": False,
                    "verify_at_hash": False,
                },
            )
        except JWTError as e:
            logger.info(f"Session token rejected: {e}")
            return False

        try:
            exp = TokenClaims.model_validate(claims).exp
        except ValidationError:
            exp = None
        if exp is None or exp <= self._clock() - CLOCK_SKEW_SECONDS:
            logger.info("Session token rejected: expired or missing exp")
            return False

        return True

    def _trust_by_expiry(self, token: str) -> bool:
        logger.warning("Verification key unavailable, falling back to expiry-only check")
        claims = decode_payload_unverified(token)
        if claims is None or claims.exp is None:
            return False
        return claims.exp > self._clock()
