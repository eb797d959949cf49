from enum import Enum
from typing import Annotated, Callable, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from ecofinds.database import SessionLocal
from ecofinds.exceptions import Forbidden, Unauthenticated
from ecofinds.models.user import User, UserRole
from ecofinds.services.auth_service import (
    decode_token,
    oauth2_bearer,
    oauth2_bearer_optional,
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


db_dependency = Annotated[Session, Depends(get_db)]


def resolve_user(db: Session, token: Optional[str]) -> Optional[User]:
    """Map a bearer token to an active User row, or None."""
    if not token:
        return None
    payload = decode_token(token)
    if payload is None:
        return None
    user = db.query(User).filter(User.id == payload.get("id")).first()
    if user is None or not user.is_active:
        return None
    return user


def get_current_user(
    db: db_dependency, token: Annotated[str, Depends(oauth2_bearer)]
) -> User:
    user = resolve_user(db, token)
    if user is None:
        raise Unauthenticated("Invalid or expired token")
    return user


def get_optional_user(
    db: db_dependency,
    token: Annotated[Optional[str], Depends(oauth2_bearer_optional)],
) -> Optional[User]:
    return resolve_user(db, token)


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[Optional[User], Depends(get_optional_user)]


class Permission(str, Enum):
    MANAGE_PRODUCTS = "manage:products"
    MANAGE_USERS = "manage:users"
    MANAGE_REPORTS = "manage:reports"
    MANAGE_CATEGORIES = "manage:categories"
    VIEW_ANALYTICS = "view:analytics"
    VIEW_AUDIT_LOGS = "view:audit_logs"


ROLE_PERMISSIONS: dict[UserRole, list[Permission]] = {
    UserRole.USER: [],
    UserRole.ADMIN: list(Permission),
}


def require_permission(required: Permission) -> Callable[..., User]:
    def dependency(current_user: CurrentUser) -> User:
        allowed = ROLE_PERMISSIONS.get(current_user.role, [])
        if required not in allowed:
            raise Forbidden("Admin access required")
        return current_user

    return dependency
