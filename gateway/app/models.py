"""
Data Models Module

This module defines the value types shared across the login gateway:

- Token claims decoded from provider-issued bearer tokens
- The closed catalogue of user-facing error codes and their messages
"""

from enum import Enum
from typing import Dict, NamedTuple, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt


# ============================================================================
# Token Models
# ============================================================================

class TokenClaims(BaseModel):
    """Identity and expiry claims read from a bearer token payload."""

    model_config = ConfigDict(extra="ignore")

    sub: Optional[str] = Field(None, description="Subject (provider user id)")
    exp: Optional[Union[StrictInt, StrictFloat]] = Field(None, description="Expiry, seconds since epoch")


# ============================================================================
# Error Catalogue
# ============================================================================

class ErrorCode(str, Enum):
    """Error codes accepted by the /error page."""

    AUTH_FAILED = "auth_failed"
    ACCESS_DENIED = "access_denied"
    CANCELLED = "cancelled"
    NETWORK_ERROR = "network_error"
    INVALID_REQUEST = "invalid_request"
    SERVER_ERROR = "server_error"


class ErrorInfo(NamedTuple):
    title: str
    message: str


ERROR_MESSAGES: Dict[ErrorCode, ErrorInfo] = {
    ErrorCode.AUTH_FAILED: ErrorInfo(
        "Authentication Failed",
        "We couldn't sign you in. Please try again.",
    ),
    ErrorCode.ACCESS_DENIED: ErrorInfo(
        "Access Denied",
        "You denied access to your account. Sign in is required to continue.",
    ),
    ErrorCode.CANCELLED: ErrorInfo(
        "Sign In Cancelled",
        "You cancelled the sign in process.",
    ),
    ErrorCode.NETWORK_ERROR: ErrorInfo(
        "Connection Error",
        "We couldn't connect to the authentication service. "
        "Please check your connection and try again.",
    ),
    ErrorCode.INVALID_REQUEST: ErrorInfo(
        "Invalid Request",
        "Something went wrong with the sign in request.",
    ),
    ErrorCode.SERVER_ERROR: ErrorInfo(
        "Server Error",
        "Something went wrong on our end. Please try again later.",
    ),
}

DEFAULT_ERROR = ErrorInfo(
    "Sign In Error",
    "Something went wrong during sign in. Please try again.",
)


def lookup_error(code: Optional[str]) -> ErrorInfo:
    """
    Map an error code from the query string to its title and message.

    Unknown or missing codes get the generic default so internal detail
    never reaches the page.
    """
    if not code:
        return DEFAULT_ERROR
    try:
        return ERROR_MESSAGES[ErrorCode(code)]
    except ValueError:
        return DEFAULT_ERROR
