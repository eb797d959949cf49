import re
from typing import Annotated, Any, Optional, Sequence
from pydantic import AfterValidator, BaseModel

PHONE_PATTERN = r"^(\+91[\-\s]?)?[0]?(91)?[789]\d{9}$"
PINCODE_PATTERN = r"^[1-9][0-9]{5}$"


def _check_pincode(value: str) -> str:
    if not re.match(PINCODE_PATTERN, value):
        raise ValueError("Please provide a valid 6-digit PIN code")
    return value


Pincode = Annotated[str, AfterValidator(_check_pincode)]


class Pagination(BaseModel):
    page: int
    limit: int
    hasMore: bool


def envelope(data: Any = None, message: Optional[str] = None) -> dict:
    """Success body: ``{success, data?, message?}``."""
    body: dict = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


def error_envelope(message: str, errors: Optional[list] = None) -> dict:
    body: dict = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


def pagination(items: Sequence, page: int, limit: int) -> dict:
    # hasMore approximates "more rows exist": true iff the page came back full
    return Pagination(page=page, limit=limit, hasMore=len(items) == limit).model_dump()
