"""
Route Tests

End-to-end tests of the login, callback, logout, error and health endpoints
through the FastAPI TestClient. The token trust engine is mocked; its own
behavior is covered in test_token_trust.py.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from gateway.app.auth.utils import TokenTrustEngine
from gateway.app.main import create_app


@pytest.fixture
def trust_engine():
    engine = Mock(spec=TokenTrustEngine)
    engine.jwks_url = "https://project.supabase.co/auth/v1/.well-known/jwks.json"
    engine.is_trusted = AsyncMock(return_value=True)
    return engine


@pytest.fixture
def app(test_settings, trust_engine):
    return create_app(settings=test_settings, trust_engine=trust_engine)


@pytest.fixture
def make_client(app):
    def _make(host: str = "login.mklv.tech") -> TestClient:
        return TestClient(app, base_url=f"https://{host}", follow_redirects=False)

    return _make


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture(autouse=True)
def recorded_logins(monkeypatch):
    """Replace the analytics write so no database is needed."""
    recorder = Mock()
    monkeypatch.setattr("gateway.app.auth.routes.record_domain_login", recorder)
    return recorder


class TestDomainMiddleware:
    """Host header classification applied to every route"""

    def test_unsupported_domain_is_rejected(self, make_client):
        response = make_client("evil.com").get("/login")

        assert response.status_code == 400
        assert response.text == "Unsupported domain: evil.com"
        assert response.headers["content-type"].startswith("text/plain")

    def test_lookalike_domain_is_rejected(self, make_client):
        response = make_client("mklv.tech.evil.com").get("/callback?token=a.b.c")

        assert response.status_code == 400
        assert "set-cookie" not in response.headers

    def test_localhost_is_rejected(self, make_client):
        assert make_client("localhost").get("/login").status_code == 400

    def test_health_skips_domain_check(self, make_client):
        response = make_client("evil.com").get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "login-gateway", "version": "1.0.0"}

    @pytest.mark.parametrize("host", ["login.mklv.tech", "email.dmikalova.dev", "keyforge.cards", "login.cddc39.tech"])
    def test_every_family_is_served(self, make_client, host):
        assert make_client(host).get("/login").status_code == 200


class TestLoginPage:
    """Test suite for GET /login"""

    def test_renders_for_family(self, client):
        response = client.get("/login")

        assert response.status_code == 200
        assert "Sign in to mklv.tech" in response.text
        assert "Continue to mklv.tech" in response.text
        assert 'data-client_id="test-google-client-id.apps.googleusercontent.com"' in response.text
        assert '"https://project.supabase.co"' in response.text

    def test_root_path_serves_login(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "Continue to mklv.tech" in response.text

    def test_valid_return_url_is_embedded(self, client):
        response = client.get("/login", params={"returnUrl": "/dashboard"})
        assert 'const RETURN_URL = "/dashboard";' in response.text

    def test_invalid_return_url_is_dropped(self, client):
        response = client.get("/login", params={"returnUrl": "https://evil.com/steal"})
        assert "const RETURN_URL = null;" in response.text
        assert "evil.com" not in response.text

    def test_error_parameter_is_escaped(self, client):
        response = client.get("/login", params={"error": "</script><script>alert(1)</script>"})
        assert "<script>alert(1)</script>" not in response.text

    def test_trusted_session_skips_login(self, client, trust_engine):
        response = client.get(
            "/login",
            params={"returnUrl": "/dashboard"},
            headers={"cookie": "session=a.b.c"},
        )

        assert response.status_code == 302
        assert response.headers["location"] == "/dashboard"
        trust_engine.is_trusted.assert_awaited_once_with("a.b.c")

    def test_trusted_session_without_return_url_goes_to_root(self, client):
        response = client.get("/login", headers={"cookie": "session=a.b.c"})

        assert response.status_code == 302
        assert response.headers["location"] == "https://mklv.tech/"

    def test_untrusted_session_is_cleared(self, client, trust_engine, parse_set_cookie):
        trust_engine.is_trusted.return_value = False

        response = client.get("/login", headers={"cookie": "session=a.b.c"})

        assert response.status_code == 200
        name, value, attributes = parse_set_cookie(response.headers["set-cookie"])
        assert (name, value) == ("session", "")
        assert attributes["max-age"] == "0"
        assert attributes["domain"] == ".mklv.tech"

    def test_no_cookie_skips_trust_check(self, client, trust_engine):
        client.get("/login")
        trust_engine.is_trusted.assert_not_awaited()

    def test_missing_configuration_is_500(self, test_settings, trust_engine):
        settings = test_settings.model_copy(update={"GOOGLE_CLIENT_ID": None})
        client = TestClient(
            create_app(settings=settings, trust_engine=trust_engine),
            base_url="https://login.mklv.tech",
        )

        response = client.get("/login")

        assert response.status_code == 500
        assert response.text == "Server configuration error"


class TestCallback:
    """Test suite for GET /callback"""

    def test_sets_shared_cookie_and_redirects(self, client, unsigned_token, recorded_logins, parse_set_cookie):
        token = unsigned_token({"sub": "user-123", "exp": 1900000000})

        response = client.get("/callback", params={"token": token, "returnUrl": "/dashboard"})

        assert response.status_code == 302
        assert response.headers["location"] == "/dashboard"
        name, value, attributes = parse_set_cookie(response.headers["set-cookie"])
        assert (name, value) == ("session", token)
        assert attributes["domain"] == ".mklv.tech"
        assert attributes["path"] == "/"
        assert attributes["max-age"] == "604800"
        assert attributes["samesite"].lower() == "lax"
        assert {"httponly", "secure"} <= set(attributes)
        recorded_logins.assert_called_once_with("user-123", "mklv.tech")

    def test_unsafe_return_url_goes_to_root(self, client, unsigned_token):
        token = unsigned_token({"sub": "user-123"})

        response = client.get("/callback", params={"token": token, "returnUrl": "https://evil.com/steal"})

        assert response.status_code == 302
        assert response.headers["location"] == "https://mklv.tech/"

    def test_backslash_return_url_goes_to_root(self, client, unsigned_token):
        token = unsigned_token({"sub": "user-123"})

        response = client.get("/callback", params={"token": token, "returnUrl": "https://evil.com\\@mklv.tech/"})

        assert response.status_code == 302
        assert response.headers["location"] == "https://mklv.tech/"

    def test_cookie_domain_ignores_port(self, make_client, unsigned_token, parse_set_cookie):
        token = unsigned_token({"sub": "user-123"})

        response = make_client("login.keyforge.cards:8443").get("/callback", params={"token": token})

        _, _, attributes = parse_set_cookie(response.headers["set-cookie"])
        assert attributes["domain"] == ".keyforge.cards"

    def test_token_without_subject_is_not_recorded(self, client, unsigned_token, recorded_logins):
        response = client.get("/callback", params={"token": unsigned_token({"exp": 1900000000})})

        assert response.status_code == 302
        recorded_logins.assert_not_called()

    def test_malformed_token_is_rejected(self, client, recorded_logins):
        response = client.get(
            "/callback",
            params={"token": "abc; Domain=evil.com", "returnUrl": "/dashboard"},
        )

        assert response.status_code == 302
        assert response.headers["location"] == "/error?code=invalid_request&returnUrl=%2Fdashboard"
        assert "set-cookie" not in response.headers
        recorded_logins.assert_not_called()

    def test_without_token_serves_extraction_page(self, client):
        response = client.get("/callback")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert 'supabase.createClient("https://project.supabase.co", "sb_publishable_test")' in response.text
        assert "set-cookie" not in response.headers


class TestLogout:
    """Test suite for GET /logout"""

    def test_clears_cookie_and_redirects(self, client, parse_set_cookie):
        response = client.get("/logout", params={"returnUrl": "/goodbye"})

        assert response.status_code == 302
        assert response.headers["location"] == "/goodbye"
        _, value, attributes = parse_set_cookie(response.headers["set-cookie"])
        assert value == ""
        assert attributes["max-age"] == "0"
        assert attributes["domain"] == ".mklv.tech"

    def test_defaults_to_family_root(self, make_client):
        response = make_client("email.dmikalova.dev").get("/logout")

        assert response.headers["location"] == "https://dmikalova.dev/"


class TestErrorPage:
    """Test suite for GET /error"""

    def test_known_code(self, client):
        response = client.get("/error", params={"code": "access_denied"})

        assert response.status_code == 200
        assert "Access Denied" in response.text
        assert "Signing in to mklv.tech" in response.text

    def test_unknown_code_uses_default(self, client):
        response = client.get("/error", params={"code": "bogus"})

        assert response.status_code == 200
        assert "Sign In Error" in response.text
        assert "bogus" not in response.text

    def test_retry_link_keeps_valid_return_url(self, client):
        response = client.get("/error", params={"code": "cancelled", "returnUrl": "/dashboard"})
        assert 'href="/login?returnUrl=%2Fdashboard"' in response.text

    def test_retry_link_drops_invalid_return_url(self, client):
        response = client.get("/error", params={"code": "cancelled", "returnUrl": "//evil.com"})
        assert 'href="/login"' in response.text
