from fastapi import APIRouter, Query, status

from ecofinds.dependencies import CurrentUser, db_dependency
from ecofinds.schemas.common import envelope, pagination
from ecofinds.schemas.report import ReportCreate, ReportResponse
from ecofinds.services.report_service import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_report(body: ReportCreate, db: db_dependency, user: CurrentUser):
    report = ReportService(db).create(user, body)
    return envelope(
        {"report": ReportResponse.model_validate(report)},
        message="Report submitted successfully",
    )


@router.get("/mine", status_code=status.HTTP_200_OK)
def my_reports(
    db: db_dependency,
    user: CurrentUser,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    reports = ReportService(db).mine(user, page, limit)
    return envelope(
        {
            "reports": [ReportResponse.model_validate(r) for r in reports],
            "pagination": pagination(reports, page, limit),
        }
    )
