"""
Shared fixtures for the login gateway tests.
"""

import base64
import json
import time
from typing import Any, Callable, Dict, Optional, Tuple

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from jwt.algorithms import ECAlgorithm

from gateway.app.config import Settings

TEST_KID = "test-key-id-2024"


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


class FakeClock:
    """Controllable replacement for time.time()."""

    def __init__(self, now: Optional[float] = None):
        self.now = now if now is not None else time.time()

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def signing_key() -> ec.EllipticCurvePrivateKey:
    """ES256 (P-256) private key standing in for the provider's signing key."""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def jwks(signing_key) -> Dict[str, Any]:
    """JWKS document publishing the public half of ``signing_key``."""
    public_jwk = ECAlgorithm.to_jwk(signing_key.public_key(), as_dict=True)
    public_jwk.update({"kid": TEST_KID, "alg": "ES256", "use": "sig"})
    return {"keys": [public_jwk]}


@pytest.fixture
def signed_token(signing_key) -> Callable[..., str]:
    """Factory for ES256 tokens signed by the provider key."""

    def _make(exp: float, sub: str = "user-123", key=None) -> str:
        payload = {"sub": sub, "exp": int(exp), "aud": "authenticated", "role": "authenticated"}
        return jwt.encode(payload, key or signing_key, algorithm="ES256", headers={"kid": TEST_KID})

    return _make


@pytest.fixture
def unsigned_token() -> Callable[..., str]:
    """Factory for three-segment tokens with an arbitrary payload and dummy signature."""

    def _make(payload: Dict[str, Any]) -> str:
        header = b64url(json.dumps({"alg": "ES256", "typ": "JWT"}).encode())
        body = b64url(json.dumps(payload).encode())
        return f"{header}.{body}.dummy-signature"

    return _make


@pytest.fixture
def test_settings() -> Settings:
    """Fully configured settings that ignore any local .env file."""
    return Settings(
        _env_file=None,
        GOOGLE_CLIENT_ID="test-google-client-id.apps.googleusercontent.com",
        SUPABASE_URL="https://project.supabase.co",
        SUPABASE_PUBLISHABLE_KEY="sb_publishable_test",
        SUPPORTED_DOMAINS="cddc39.tech,dmikalova.dev,keyforge.cards,mklv.tech",
        DATABASE_URL_TRANSACTION=None,
    )


def split_set_cookie(header: str) -> Tuple[str, str, Dict[str, str]]:
    """Split a Set-Cookie value into name, unquoted value and lowercased attributes."""
    pair, *parts = header.split("; ")
    name, _, value = pair.partition("=")
    attributes = {}
    for part in parts:
        key, _, attr_value = part.partition("=")
        attributes[key.lower()] = attr_value
    return name, value.strip('"'), attributes


@pytest.fixture
def parse_set_cookie() -> Callable[[str], Tuple[str, str, Dict[str, str]]]:
    return split_set_cookie
