from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.security import OAuth2PasswordRequestForm

from ecofinds.dependencies import db_dependency
from ecofinds.exceptions import Unauthenticated
from ecofinds.limits import limiter
from ecofinds.schemas.common import envelope
from ecofinds.schemas.user import RegisterRequest, UserResponse
from ecofinds.services.audit_log_service import AuditLogService
from ecofinds.services.auth_service import authenticate_user, issue_token_for
from ecofinds.services.user_service import UserService

router = APIRouter(prefix="/auth", tags=["auth"])


def _request_context(request: Request) -> dict:
    return {
        "ip_address": request.headers.get("x-forwarded-for")
        or (request.client.host if request.client else None),
        "user_agent": request.headers.get("user-agent"),
        "request_method": request.method,
        "request_path": request.url.path,
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(db: db_dependency, user_request: RegisterRequest, request: Request):
    user = UserService(db).register(user_request)
    AuditLogService().create_log(
        db=db,
        action="user.create",
        resource_type="user",
        resource_id=user.id,
        user_id=user.id,
        status_code=status.HTTP_201_CREATED,
        **_request_context(request),
    )
    return envelope(
        {
            "user": UserResponse.model_validate(user),
            "token": issue_token_for(user),
        },
        message="User registered successfully",
    )


@router.post("/login", status_code=status.HTTP_200_OK)
@limiter.limit("5/minute")
def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: db_dependency,
    request: Request,
):
    user = authenticate_user(form_data.username, form_data.password, db)
    if not user:
        AuditLogService().create_log(
            db=db,
            action="auth.login",
            resource_type="auth",
            status="failure",
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_message="invalid_credentials",
            **_request_context(request),
        )
        raise Unauthenticated("Invalid email or password")
    if not user.is_active:
        AuditLogService().create_log(
            db=db,
            action="auth.login",
            resource_type="auth",
            user_id=user.id,
            status="failure",
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_message="account_inactive",
            **_request_context(request),
        )
        raise Unauthenticated("Account is deactivated")

    token = issue_token_for(user)
    AuditLogService().create_log(
        db=db,
        action="auth.login",
        resource_type="auth",
        user_id=user.id,
        status_code=status.HTTP_200_OK,
        **_request_context(request),
    )
    # access_token/token_type stay top-level for OAuth2 clients
    body = envelope(
        {"user": UserResponse.model_validate(user), "token": token},
        message="Login successful",
    )
    body.update({"access_token": token, "token_type": "bearer"})
    return body
