"""Caller identity, injected by the external auth layer as request headers."""

from fastapi import Header, HTTPException

ADMIN_ROLE = "admin"


def current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


def is_admin(x_user_role: str | None = Header(default=None)) -> bool:
    return (x_user_role or "").lower() == ADMIN_ROLE


def require_admin(x_user_id: str | None = Header(default=None), x_user_role: str | None = Header(default=None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    if (x_user_role or "").lower() != ADMIN_ROLE:
        raise HTTPException(status_code=403, detail="Admin role required")
    return x_user_id
