import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Tuple

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError

from ecofinds.config import settings
from ecofinds.database import SessionLocal
from ecofinds.models.user import User
from ecofinds.services.audit_log_service import AuditLogService
from ecofinds.services.auth_service import decode_token

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=5)

SKIPPED_PREFIXES = ("/healthy", "/docs", "/openapi.json", "/redoc", "/ws/")


def classify_path(path: str) -> Tuple[str, Optional[int]]:
    """``/products/12/favorite`` -> ("products", 12); ``/cart`` -> ("cart", None)."""
    parts = [p for p in path.split("/") if p]
    if not parts:
        return "http", None
    resource_id = None
    for part in parts[1:]:
        if part.isdigit():
            resource_id = int(part)
            break
    return parts[0], resource_id


def _request_user_id(request: Request) -> Optional[int]:
    auth_header = request.headers.get("authorization", "")
    if not auth_header.lower().startswith("bearer "):
        return None
    payload = decode_token(auth_header.split(" ", 1)[1].strip())
    return payload.get("id") if payload else None


def _write_request_log(entry: dict) -> None:
    db = SessionLocal()
    try:
        # tokens can outlive their user
        if entry["user_id"] is not None and db.get(User, entry["user_id"]) is None:
            entry["user_id"] = None
        AuditLogService().create_log(db=db, action="http.request", **entry)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(
            "Audit logging failed for %s %s: %s",
            entry.get("request_method"),
            entry.get("request_path"),
            exc,
        )
    finally:
        db.close()


async def audit_log_middleware(request: Request, call_next):
    """Append an ``http.request`` audit row per API call, off the event loop."""
    path = request.url.path
    if settings.TESTING or path.startswith(SKIPPED_PREFIXES):
        return await call_next(request)

    started = time.perf_counter()
    resource_type, resource_id = classify_path(path)
    entry = {
        "user_id": _request_user_id(request),
        "resource_type": resource_type,
        "resource_id": resource_id,
        "request_method": request.method,
        "request_path": path,
        "ip_address": request.headers.get("x-forwarded-for")
        or (request.client.host if request.client else None),
        "user_agent": request.headers.get("user-agent"),
    }
    loop = asyncio.get_running_loop()

    try:
        response = await call_next(request)
    except Exception as exc:
        entry.update(status="error", error_message=str(exc)[:1000])
        entry["duration_ms"] = int((time.perf_counter() - started) * 1000)
        loop.run_in_executor(_executor, _write_request_log, entry)
        raise

    entry.update(
        status="success" if response.status_code < 400 else "failure",
        status_code=response.status_code,
        duration_ms=int((time.perf_counter() - started) * 1000),
    )
    loop.run_in_executor(_executor, _write_request_log, entry)
    return response
