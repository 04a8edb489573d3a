"""
Auth module: JWT validation and the FastAPI dependencies guarding each route.

Tokens are issued by the auth service; this service only verifies them
(HS256, shared secret) and never issues tokens outside of tests. Every route
except the health checks requires a bearer token. Some routes additionally
require a named permission (``user:create``, ``user:list``...) or one of a set
of roles. Administrators implicitly hold every permission.
"""

import time
from dataclasses import dataclass, field
from typing import Optional
from jose import jwt, JWTError
from fastapi import Depends, HTTPException, Request
from user_management.config import get_settings
from user_management.roles import UserRole, normalize_role

ALGORITHM = "HS256"
TOKEN_EXPIRE_SECONDS = 86400  # 24 hours


@dataclass
class UserPrincipal:
    """Resolved identity attached to each request."""
    id: str
    email: str
    role: Optional[UserRole]
    fullname: str = ""
    permissions: list = field(default_factory=list)
    token: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def authorization(self) -> str:
        """Header value to forward to sibling services."""
        return f"Bearer {self.token}" if self.token else ""

    def has_permission(self, permission: str) -> bool:
        return self.is_admin or permission in self.permissions

    def can_manage(self, user_id: str) -> bool:
        return self.is_admin or self.id == user_id


def create_token(
    user_id: str,
    email: str,
    role: str,
    permissions: Optional[list] = None,
    fullname: str = "",
) -> str:
    """Create a signed JWT in the auth service's claim layout."""
    settings = get_settings()
    payload = {
        "userId": user_id,
        "email": email,
        "fullname": fullname,
        "role": role,
        "permissions": permissions or [],
        "exp": int(time.time()) + TOKEN_EXPIRE_SECONDS,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[UserPrincipal]:
    """Decode and validate a JWT. Returns None if invalid/expired."""
    try:
        settings = get_settings()
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None
    user_id = payload.get("userId") or payload.get("sub")
    if not user_id:
        return None
    return UserPrincipal(
        id=str(user_id),
        email=payload.get("email", ""),
        role=normalize_role(payload.get("role")),
        fullname=payload.get("fullname", ""),
        permissions=list(payload.get("permissions") or []),
        token=token,
    )


async def get_current_user(request: Request) -> UserPrincipal:
    """
    FastAPI dependency. Extracts the JWT from the Authorization header and
    raises 401 when it is missing, malformed or fails verification.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing token")
    token = auth_header[7:].strip()
    if token.count(".") != 2:
        raise HTTPException(status_code=401, detail="Malformed token")
    principal = decode_token(token)
    if not principal:
        raise HTTPException(status_code=401, detail="Invalid token")
    return principal


def require_permission(permission: str):
    async def checker(current_user: UserPrincipal = Depends(get_current_user)) -> UserPrincipal:
        if not current_user.has_permission(permission):
            raise HTTPException(status_code=403, detail=f"Missing permission: {permission}")
        return current_user
    return checker


def require_role(*roles: UserRole):
    async def checker(current_user: UserPrincipal = Depends(get_current_user)) -> UserPrincipal:
        if current_user.role not in roles:
            raise HTTPException(status_code=403, detail="Your role does not permit this action")
        return current_user
    return checker
