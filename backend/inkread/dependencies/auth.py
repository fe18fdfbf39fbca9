"""
InkRead Backend — Caller Identity
===================================

What:  Resolves who is calling: a signed-in user (from the auth provider's
       access token) or a guest identified by IP address.
How:   The access token is a Supabase-issued JWT, read from the
       `Authorization: Bearer` header or the session cookie, and verified
       with PyJWT against the project's HS256 secret and audience.
Who:   `get_caller` is injected into every quota-aware route.

A missing, malformed, expired or wrongly signed token resolves to a guest,
the same outcome as "no session" at the auth provider. The caller is then
limited to the single free guest use of its IP.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, Request

from inkread.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class Caller:
    """The identity quota decisions are made against."""

    user: Optional[AuthenticatedUser]
    ip_address: str

    @property
    def is_guest(self) -> bool:
        return self.user is None

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    @property
    def storage_prefix(self) -> str:
        """Blob key prefix: the user id when signed in, else the IP."""
        return self.user.id if self.user else self.ip_address


def get_client_ip(request: Request) -> str:
    """
    Client IP as seen through the reverse proxy.

    Order: first X-Forwarded-For entry, X-Real-IP, socket peer, "unknown".
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _extract_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("authorization")
    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer "):].strip()
    else:
        token = request.cookies.get(settings.auth_cookie_name, "").strip()

    # Frontends sometimes serialize a missing session as a literal string
    if not token or token.lower() in {"null", "undefined", "none"}:
        return None
    return token


def decode_access_token(token: str) -> Optional[AuthenticatedUser]:
    """
    Verify an access token and return its user, or None when it is not valid.

    Requires `sub`; `email` is carried along when present.
    """
    if not settings.supabase_jwt_secret:
        logger.debug("SUPABASE_JWT_SECRET not configured; treating caller as guest")
        return None

    try:
        payload = jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=["HS256"],
            audience=settings.supabase_jwt_audience,
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        logger.info("Access token expired; treating caller as guest")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning("Rejected access token: %s", str(e))
        return None

    return AuthenticatedUser(id=str(payload["sub"]), email=payload.get("email"))


async def get_current_user(request: Request) -> Optional[AuthenticatedUser]:
    token = _extract_token(request)
    if token is None:
        return None
    return decode_access_token(token)


async def get_caller(
    request: Request,
    user: Optional[AuthenticatedUser] = Depends(get_current_user),
) -> Caller:
    return Caller(user=user, ip_address=get_client_ip(request))
