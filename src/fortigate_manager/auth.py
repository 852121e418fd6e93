"""Authenticated principal resolution.

The OAuth login flow runs in an authenticating reverse proxy in front of this
service. The proxy forwards the operator's identity in request headers
(X-Auth-Request-Email / X-Auth-Request-User by default); this module turns
those headers into a Principal and applies the access policy. Requests
without a principal never reach the appliance session.
"""
import logging
from dataclasses import dataclass
from typing import Mapping

from .config.settings import AccessPolicy, Settings

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Base class for request authentication failures."""
    status_code = 401


class AuthenticationRequired(AuthError):
    """No authenticated identity was forwarded with the request."""

    def __init__(self):
        super().__init__("Session required. Sign in first.")


class AccessDenied(AuthError):
    """The identity is authenticated but not allowed to use this service."""
    status_code = 403

    def __init__(self, email: str):
        super().__init__(f"Access denied. {email} is not authorized to use this application.")
        self.email = email


@dataclass(frozen=True)
class Principal:
    """The operator behind a request."""
    email: str
    name: str
    is_admin: bool = False

    def to_dict(self) -> dict:
        return {"email": self.email, "name": self.name, "isAdmin": self.is_admin}


def resolve_principal(
    headers: Mapping[str, str],
    settings: Settings,
    policy: AccessPolicy,
) -> Principal:
    """Build the Principal for a request from the proxy's identity headers.

    Raises:
        AuthenticationRequired: No email header
        AccessDenied: Email rejected by the access policy
    """
    email = (headers.get(settings.email_header) or "").strip().lower()
    if not email:
        raise AuthenticationRequired()
    if not policy.is_authorized(email):
        logger.warning(f"Access denied for {email}")
        raise AccessDenied(email)

    name = (headers.get(settings.user_header) or "").strip() or email.split("@")[0]
    return Principal(email=email, name=name, is_admin=policy.is_admin(email))
