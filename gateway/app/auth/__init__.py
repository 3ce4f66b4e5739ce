"""
Authentication Package

This package holds the session-trust boundary of the login gateway.

Modules:
- domain: Host header classification into domain families
- redirects: open-redirect-safe return URL validation
- utils: verification key caching and bearer token trust decisions
- session: shared session cookie issuing, clearing and reading
- routes: login, callback, logout and error page endpoints

The login flow:
1. Browser opens /login on any subdomain of a supported family
2. A trusted session cookie skips straight to the return URL
3. Otherwise the user signs in with the identity provider
4. /callback stores the provider token in a cookie scoped to the family root
5. Every sibling subdomain now sees the same session
"""

from .routes import auth_router

__all__ = [
    "auth_router",
]
