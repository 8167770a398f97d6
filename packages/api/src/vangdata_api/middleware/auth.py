"""Admin authentication: API key or Supabase JWT."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog
from fastapi import Depends, HTTPException, Request
from jose import JWTError
from jose import jwt as jose_jwt

from vangdata_shared.config import settings
from vangdata_shared.db import get_supabase_client

logger = structlog.get_logger()

ADMIN_ROLE = "admin"


@dataclass
class AuthUser:
    user_id: str
    role: str
    email: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def _validate_jwt(token: str) -> dict[str, Any] | None:
    """Validate a Supabase JWT and return its claims."""
    try:
        return jose_jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience="authenticated",
        )
    except JWTError:
        return None


async def get_current_user(request: Request) -> AuthUser | None:
    """Extract and validate the caller from an API key or JWT.

    Returns None if no credentials are provided.
    Raises 401 if credentials are invalid.
    """
    api_key = request.headers.get("X-API-Key")
    if api_key:
        supabase = get_supabase_client(service_role=True)
        result = (
            supabase.table("api_keys")
            .select("user_id, role, email, metadata")
            .eq("key", api_key)
            .eq("active", True)
            .limit(1)
            .execute()
        )
        if not result.data:
            raise HTTPException(status_code=401, detail="Invalid API key")
        row = result.data[0]
        return AuthUser(
            user_id=row["user_id"],
            role=row.get("role") or "user",
            email=row.get("email"),
            metadata=row.get("metadata") or {},
        )

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        claims = _validate_jwt(auth_header[7:])
        if claims is None:
            raise HTTPException(status_code=401, detail="Invalid or expired token")
        user_id = claims.get("sub", "")
        supabase = get_supabase_client(service_role=True)
        result = (
            supabase.table("profiles")
            .select("role, email")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        role = "user"
        email = claims.get("email")
        if result.data:
            role = result.data[0].get("role") or "user"
            email = result.data[0].get("email", email)
        return AuthUser(user_id=user_id, role=role, email=email)

    return None


async def require_admin(user: AuthUser | None = Depends(get_current_user)) -> AuthUser:
    """Dependency for /admin routes. Anything short of an admin caller is a 401."""
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    if not user.is_admin:
        logger.warning("admin_access_denied", user_id=user.user_id, role=user.role)
        raise HTTPException(status_code=401, detail="Admin access required")
    return user
