from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ecofinds.models.audit_log import AuditLog

# Request metadata columns that may accompany any audit row
REQUEST_FIELDS = (
    "status_code",
    "error_message",
    "ip_address",
    "user_agent",
    "request_method",
    "request_path",
    "duration_ms",
)


class AuditLogService:
    """Writes and queries the audit trail (auth events, moderation, HTTP requests)."""

    def create_log(
        self,
        db: Session,
        action: str,
        resource_type: str,
        resource_id: Optional[int] = None,
        user_id: Optional[int] = None,
        changes: Optional[dict] = None,
        status: str = "success",
        commit: bool = True,
        **request_fields,
    ) -> AuditLog:
        """Add one audit row.

        With ``commit=False`` the row joins the caller's transaction, so a
        moderation change and its audit entry are written (or lost) together.
        """
        unknown = set(request_fields) - set(REQUEST_FIELDS)
        if unknown:
            raise TypeError(f"Unknown audit fields: {', '.join(sorted(unknown))}")

        log = AuditLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            changes=changes,
            status=status,
            **request_fields,
        )
        db.add(log)
        if commit:
            try:
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(log)
        return log

    def get_logs(
        self,
        db: Session,
        user_id: Optional[int] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[int] = None,
        action: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 100,
        skip: int = 0,
    ) -> List[AuditLog]:
        conditions = []
        for column, value in (
            (AuditLog.user_id, user_id),
            (AuditLog.resource_type, resource_type),
            (AuditLog.resource_id, resource_id),
            (AuditLog.action, action),
        ):
            if value is not None:
                conditions.append(column == value)
        if start_date is not None:
            conditions.append(AuditLog.timestamp >= start_date)
        if end_date is not None:
            conditions.append(AuditLog.timestamp <= end_date)

        query = (
            select(AuditLog)
            .where(*conditions)
            .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .offset(skip)
            .limit(max(1, min(limit, 1000)))
        )
        return list(db.execute(query).scalars())
