"""
Authentication routes: login page, provider callback, logout and error page.

The domain middleware in ``main`` has already classified the Host header by
the time any handler here runs; ``request.state.domain`` holds the family and
``request.state.hostname`` the host without its port.
"""

import logging
from typing import Optional
from urllib.parse import quote, urlencode

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from ..config import Settings
from ..db.domain_logins import record_domain_login
from ..models import lookup_error
from ..templates import escape_html, js_value, render_template
from . import session
from .redirects import is_valid_return_url, safe_redirect_target
from .utils import TokenTrustEngine, decode_payload_unverified

logger = logging.getLogger(__name__)


# =============================================================================
# Router Setup
# =============================================================================

auth_router = APIRouter(tags=["authentication"])


# =============================================================================
# Dependencies
# =============================================================================

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_trust_engine(request: Request) -> TokenTrustEngine:
    return request.app.state.trust_engine


def _validated(return_url: Optional[str], domain: str) -> Optional[str]:
    if return_url and is_valid_return_url(return_url, domain):
        return return_url
    return None


# =============================================================================
# Login Endpoint
# =============================================================================

@auth_router.get("/", response_class=HTMLResponse, include_in_schema=False)
@auth_router.get("/login", response_class=HTMLResponse)
async def login(
    request: Request,
    return_url: Optional[str] = Query(None, alias="returnUrl"),
    error: Optional[str] = Query(None),
    settings: Settings = Depends(get_app_settings),
    trust_engine: TokenTrustEngine = Depends(get_trust_engine),
):
    """
    Render the login page, or skip it for users with a trusted session.

    A session cookie that fails the trust check is cleared and the login
    form is shown as if no cookie had been sent.
    """
    domain = request.state.domain
    hostname = request.state.hostname

    clear_existing = False
    existing_session = session.read(request.headers.get("cookie"))
    if existing_session:
        if await trust_engine.is_trusted(existing_session):
            return RedirectResponse(url=safe_redirect_target(return_url, domain), status_code=302)
        logger.info(f"Clearing untrusted session cookie on {domain}")
        clear_existing = True

    settings.require("GOOGLE_CLIENT_ID", "SUPABASE_URL", "SUPABASE_PUBLISHABLE_KEY")

    html = render_template(
        "login.html",
        {
            "DOMAIN": escape_html(domain),
            "ERROR": js_value(escape_html(error)) if error else "null",
            "RETURN_URL": js_value(_validated(return_url, domain)),
            "GOOGLE_CLIENT_ID": escape_html(settings.GOOGLE_CLIENT_ID),
            "SUPABASE_URL": js_value(settings.SUPABASE_URL),
            "SUPABASE_KEY": js_value(settings.SUPABASE_PUBLISHABLE_KEY),
        },
    )

    response = HTMLResponse(content=html, status_code=200)
    if clear_existing:
        session.clear(response, hostname)
    return response


# =============================================================================
# Callback Endpoint
# =============================================================================

@auth_router.get("/callback")
async def callback(
    request: Request,
    token: Optional[str] = Query(None),
    return_url: Optional[str] = Query(None, alias="returnUrl"),
    settings: Settings = Depends(get_app_settings),
):
    """
    Store the provider's token in the shared session cookie.

    With ``token`` (One Tap flow) the cookie is set and the user redirected.
    The provider has already verified the token before handing it over.
    Without it the provider put the token in the URL fragment, so an
    extraction page is served that calls back here with ``token`` set.
    """
    domain = request.state.domain

    if not token:
        settings.require("SUPABASE_URL", "SUPABASE_PUBLISHABLE_KEY")
        html = render_template(
            "callback.html",
            {
                "SUPABASE_URL": js_value(settings.SUPABASE_URL),
                "SUPABASE_KEY": js_value(settings.SUPABASE_PUBLISHABLE_KEY),
            },
        )
        return HTMLResponse(content=html, status_code=200)

    if not session.is_token_shaped(token):
        logger.warning(f"Rejected malformed callback token on {domain}")
        params = {"code": "invalid_request"}
        validated = _validated(return_url, domain)
        if validated:
            params["returnUrl"] = validated
        return RedirectResponse(url=f"/error?{urlencode(params)}", status_code=302)

    response = RedirectResponse(url=safe_redirect_target(return_url, domain), status_code=302)
    session.issue(response, token, request.state.hostname)

    # Record domain login for analytics (non-blocking)
    claims = decode_payload_unverified(token)
    if claims and claims.sub:
        record_domain_login(claims.sub, domain)

    return response


# =============================================================================
# Logout Endpoint
# =============================================================================

@auth_router.get("/logout")
async def logout(
    request: Request,
    return_url: Optional[str] = Query(None, alias="returnUrl"),
):
    """Clear the session cookie and redirect."""
    domain = request.state.domain

    response = RedirectResponse(url=safe_redirect_target(return_url, domain), status_code=302)
    session.clear(response, request.state.hostname)
    return response


# =============================================================================
# Error Page
# =============================================================================

@auth_router.get("/error", response_class=HTMLResponse)
async def error_page(
    request: Request,
    code: Optional[str] = Query(None),
    return_url: Optional[str] = Query(None, alias="returnUrl"),
):
    """
    Display a user-friendly error page.

    Unknown codes get the generic message. A valid return URL is carried
    over to the "Try Again" link.
    """
    domain = request.state.domain
    info = lookup_error(code)

    validated = _validated(return_url, domain)
    return_url_param = f"?returnUrl={quote(validated, safe='')}" if validated else ""

    html = render_template(
        "error.html",
        {
            "DOMAIN": escape_html(domain),
            "TITLE": escape_html(info.title),
            "MESSAGE": escape_html(info.message),
            "RETURN_URL_PARAM": escape_html(return_url_param),
        },
    )
    return HTMLResponse(content=html, status_code=200)
