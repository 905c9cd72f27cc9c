"""
Request authentication.

Every protected route receives one ``SessionContext`` built by
``get_session_context``. The token is read from the auth cookie, falling back
to an ``Authorization: Bearer`` header for API clients.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Request

from temple_hub.core.errors import AuthenticationFailed, PermissionDenied
from temple_hub.core.security import PASSWORD_RESET_PURPOSE, decode_access_token
from temple_hub.core.settings import settings
from temple_hub.models.user import Role


@dataclass(frozen=True)
class SessionContext:
    user_id: str
    role: Role
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role in (Role.ADMIN, Role.VOLUNTEER)


def _extract_token(request: Request) -> Optional[str]:
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


def get_session_context(request: Request) -> SessionContext:
    token = _extract_token(request)
    if not token:
        raise AuthenticationFailed()

    payload = decode_access_token(token)
    if not payload or not payload.get("userId"):
        raise AuthenticationFailed("Invalid or expired token")
    if payload.get("purpose") == PASSWORD_RESET_PURPOSE:
        # Reset tokens are not session tokens
        raise AuthenticationFailed("Invalid token type")

    try:
        role = Role(payload.get("role"))
    except ValueError:
        raise AuthenticationFailed("Invalid token payload")

    return SessionContext(user_id=str(payload["userId"]), role=role, name=payload.get("name"))


def require_roles(*roles: Role) -> Callable[..., SessionContext]:
    """Dependency factory: authenticated session whose role is one of ``roles``."""
    allowed = set(roles)

    def dependency(session: SessionContext = Depends(get_session_context)) -> SessionContext:
        if session.role not in allowed:
            raise PermissionDenied()
        return session

    return dependency
