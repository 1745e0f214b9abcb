import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt as pyjwt
from fastapi import Depends, Header

from core.errors import AuthenticationFailed, PermissionDenied
from security import jwt as jwt_utils


class Role(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class AuthUser:
    id: str
    role: Role = Role.USER
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def resolve_role(claims: Dict[str, Any]) -> Role:
    app_metadata = claims.get("app_metadata") or {}
    raw = app_metadata.get("role") or claims.get("role")
    return Role.ADMIN if raw == Role.ADMIN.value else Role.USER


def verify_token(token: str) -> AuthUser:
    try:
        claims = jwt_utils.decode_access(token)
    except pyjwt.PyJWTError:
        raise AuthenticationFailed("Invalid or expired token")
    sub = claims.get("sub")
    if not sub:
        raise AuthenticationFailed("Invalid or expired token")
    return AuthUser(id=str(sub), role=resolve_role(claims), email=claims.get("email"))


def get_current_user(authorization: Optional[str] = Header(default=None, alias="Authorization")) -> AuthUser:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationFailed("Missing Bearer token")
    return verify_token(authorization.split(" ", 1)[1])


def require_admin(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    if not user.is_admin:
        raise PermissionDenied("Admin only")
    return user
