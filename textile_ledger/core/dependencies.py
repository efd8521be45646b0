from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from textile_ledger.core.store import DataStore
from textile_ledger.schemas.user import UserProfile


def get_store(request: Request) -> DataStore:
    """The application-wide store created at startup."""
    return request.app.state.store


def get_user_profile(
    x_user_id: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    x_user_admin: Optional[str] = Header(None),
    x_user_permissions: Optional[str] = Header(None),
) -> UserProfile:
    """
    Resolve the caller from the identity headers set by the upstream identity
    provider. Raises 401 when no user id is present.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    permissions = [p.strip() for p in (x_user_permissions or "").split(",") if p.strip()]
    return UserProfile(
        uid=x_user_id,
        name=x_user_name or "",
        email=x_user_email or "",
        is_admin=(x_user_admin or "").lower() in ("1", "true", "yes"),
        permissions=permissions,
    )


def require_admin(user: UserProfile = Depends(get_user_profile)) -> UserProfile:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required",
        )
    return user


def require_permission(permission: str):
    """Dependency factory: admins pass, everyone else needs ``permission``."""
    def checker(user: UserProfile = Depends(get_user_profile)) -> UserProfile:
        if not user.can(permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission '{permission}' required",
            )
        return user
    return checker
