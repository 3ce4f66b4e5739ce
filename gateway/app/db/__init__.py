"""
Analytics Database Package

Records which domain families each user has signed in to. Nothing in the
login flow reads from here; writes are best-effort.

Modules:
- connection: lazily created async engine and session factory
- domain_logins: the domain_logins table, upsert/listing, fire-and-forget recording
"""

from .domain_logins import DomainLogin, list_domain_logins, record_domain_login, upsert_domain_login

__all__ = [
    "DomainLogin",
    "list_domain_logins",
    "record_domain_login",
    "upsert_domain_login",
]
