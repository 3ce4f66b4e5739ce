"""
Login Gateway Application
=========================

FastAPI service that authenticates users once through the identity provider
and shares the resulting session across every subdomain of a supported
domain family.

Packages:
    - auth: domain classification, redirect validation, token trust, cookies, routes
    - db: best-effort domain login analytics
"""
