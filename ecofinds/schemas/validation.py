"""Named request schemas and the collect-all-errors validation contract.

``validate_payload`` never mutates anything: it returns either the parsed
model or the full list of ``{field, message}`` violations for the payload.
"""

from typing import Any, Optional, Type

from pydantic import BaseModel, ValidationError

from ecofinds.exceptions import ValidationFailed
from ecofinds.schemas.cart import CartAdd, CartUpdate
from ecofinds.schemas.category import CategoryCreate
from ecofinds.schemas.chat import MarkMessagesRead, MessageCreate, RoomCreate
from ecofinds.schemas.product import ProductCreate, ProductStatusUpdate, ProductUpdate
from ecofinds.schemas.purchase import PurchaseCreate, PurchaseStatusUpdate
from ecofinds.schemas.report import ReportCreate, ReportStatusUpdate
from ecofinds.schemas.review import ReviewCreate
from ecofinds.schemas.user import (
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    UpdateProfileRequest,
    UserStatusUpdate,
)

SCHEMAS: dict[str, Type[BaseModel]] = {
    "register": RegisterRequest,
    "login": LoginRequest,
    "update_profile": UpdateProfileRequest,
    "change_password": ChangePasswordRequest,
    "product": ProductCreate,
    "product_update": ProductUpdate,
    "product_status": ProductStatusUpdate,
    "cart": CartAdd,
    "cart_update": CartUpdate,
    "purchase": PurchaseCreate,
    "purchase_status": PurchaseStatusUpdate,
    "review": ReviewCreate,
    "report": ReportCreate,
    "room": RoomCreate,
    "message": MessageCreate,
    "mark_read": MarkMessagesRead,
    "category": CategoryCreate,
    "user_status": UserStatusUpdate,
    "report_status": ReportStatusUpdate,
}

# Request locations FastAPI prefixes onto error paths
_LOCATIONS = {"body", "query", "path", "form", "header", "cookie"}


def format_errors(errors: list[dict]) -> list[dict]:
    """Turn pydantic error dicts into ``[{field, message}]``."""
    formatted = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in _LOCATIONS:
            loc = loc[1:]
        message = err.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        formatted.append({"field": ".".join(loc), "message": message})
    return formatted


def validate_payload(name: str, payload: Any) -> tuple[Optional[BaseModel], list[dict]]:
    schema = SCHEMAS.get(name)
    if schema is None:
        raise KeyError(f"Unknown validation schema: {name}")
    try:
        return schema.model_validate(payload), []
    except ValidationError as exc:
        return None, format_errors(exc.errors())


def validate_or_raise(name: str, payload: Any) -> BaseModel:
    model, errors = validate_payload(name, payload)
    if errors:
        raise ValidationFailed(errors)
    return model
