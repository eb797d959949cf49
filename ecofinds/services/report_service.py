import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ecofinds.exceptions import DomainConflict, NotFound, ValidationFailed
from ecofinds.models.notification import NotificationType
from ecofinds.models.product import Product
from ecofinds.models.report import (
    REPORT_TRANSITIONS,
    Report,
    ReportStatus,
    ReportType,
)
from ecofinds.models.user import User
from ecofinds.schemas.report import ReportCreate, ReportStatusUpdate
from ecofinds.services.audit_log_service import AuditLogService
from ecofinds.services.notifications import create_notification

logger = logging.getLogger(__name__)

TERMINAL = {ReportStatus.RESOLVED, ReportStatus.DISMISSED}


class ReportService:
    def __init__(self, db: Session):
        self.db = db

    def create(self, reporter: User, data: ReportCreate) -> Report:
        if data.report_type == ReportType.USER:
            if data.reported_user_id is None:
                raise ValidationFailed(
                    [{"field": "reported_user_id", "message": "Reported user is required"}]
                )
            if data.reported_user_id == reporter.id:
                raise DomainConflict("You cannot report yourself")
            if self.db.get(User, data.reported_user_id) is None:
                raise NotFound("User not found")
            reported_user_id, reported_product_id = data.reported_user_id, None
        elif data.report_type == ReportType.PRODUCT:
            if data.reported_product_id is None:
                raise ValidationFailed(
                    [{"field": "reported_product_id", "message": "Reported product is required"}]
                )
            product = self.db.get(Product, data.reported_product_id)
            if product is None:
                raise NotFound("Product not found")
            if product.seller_id == reporter.id:
                raise DomainConflict("You cannot report your own product")
            reported_user_id, reported_product_id = product.seller_id, product.id
        else:
            raise DomainConflict("Messages are reported from the chat")

        report = Report(
            reporter_id=reporter.id,
            reported_user_id=reported_user_id,
            reported_product_id=reported_product_id,
            report_type=data.report_type,
            reason=data.reason,
            description=data.description,
        )
        self.db.add(report)
        self.db.commit()
        self.db.refresh(report)
        logger.info("Report %s filed by user %s", report.id, reporter.id)
        return report

    def mine(self, reporter: User, page: int = 1, limit: int = 20) -> List[Report]:
        return list(
            self.db.execute(
                select(Report)
                .where(Report.reporter_id == reporter.id)
                .order_by(Report.created_at.desc(), Report.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).scalars()
        )

    def search(
        self,
        status: Optional[ReportStatus] = None,
        report_type: Optional[ReportType] = None,
        page: int = 1,
        limit: int = 20,
    ) -> List[Report]:
        query = select(Report)
        if status is not None:
            query = query.where(Report.status == status)
        if report_type is not None:
            query = query.where(Report.report_type == report_type)
        return list(
            self.db.execute(
                query.order_by(Report.created_at.desc(), Report.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).scalars()
        )

    def update_status(self, report_id: int, admin: User, data: ReportStatusUpdate) -> Report:
        """Advance a report along the forward-only moderation graph."""
        report = self.db.get(Report, report_id)
        if report is None:
            raise NotFound("Report not found")

        target = data.status
        sources = [src for src, targets in REPORT_TRANSITIONS.items() if target in targets]
        if not sources:
            raise DomainConflict(f"Report cannot move to {target.value}")

        values = {"status": target}
        if data.admin_notes is not None:
            values["admin_notes"] = data.admin_notes
        if target in TERMINAL:
            values["resolved_at"] = datetime.now(timezone.utc)

        previous = report.status
        result = self.db.execute(
            update(Report)
            .where(Report.id == report.id, Report.status.in_(sources))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            raise DomainConflict(
                f"Report cannot move from {report.status.value} to {target.value}"
            )

        create_notification(
            self.db,
            user_id=report.reporter_id,
            type=NotificationType.REPORT,
            title="Report Update",
            message=f"Your report has been {target.value}",
            data={"report_id": report.id, "status": target.value},
        )
        AuditLogService().create_log(
            db=self.db,
            action="report.status",
            resource_type="report",
            resource_id=report.id,
            user_id=admin.id,
            changes={"status": {"old": previous.value, "new": target.value}},
            commit=False,
        )
        self.db.commit()
        self.db.refresh(report)
        return report
