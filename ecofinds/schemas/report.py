from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from ecofinds.models.report import ReportReason, ReportStatus, ReportType


class ReportCreate(BaseModel):
    reported_user_id: Optional[int] = Field(None, gt=0)
    reported_product_id: Optional[int] = Field(None, gt=0)
    report_type: ReportType
    reason: ReportReason
    description: Optional[str] = Field(None, max_length=1000)


class ReportStatusUpdate(BaseModel):
    status: ReportStatus
    admin_notes: Optional[str] = Field(None, max_length=1000)


class ReportResponse(BaseModel):
    id: int
    reporter_id: int
    reported_user_id: Optional[int] = None
    reported_product_id: Optional[int] = None
    report_type: ReportType
    reason: ReportReason
    description: Optional[str] = None
    status: ReportStatus
    admin_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)
