from datetime import datetime
from typing import Annotated, Literal, Optional

from fastapi import APIRouter, Depends, Query
from starlette import status

from ecofinds.dependencies import Permission, db_dependency, require_permission
from ecofinds.models.product import ProductStatus
from ecofinds.models.report import ReportStatus, ReportType
from ecofinds.models.user import User
from ecofinds.schemas.audit_log import AuditLogResponse
from ecofinds.schemas.category import CategoryCreate, CategoryResponse, CategoryUpdate
from ecofinds.schemas.common import envelope, pagination
from ecofinds.schemas.product import ProductResponse, ProductStatusUpdate
from ecofinds.schemas.report import ReportResponse, ReportStatusUpdate
from ecofinds.schemas.user import UserResponse, UserStatusUpdate
from ecofinds.services.admin_service import AdminService
from ecofinds.services.audit_log_service import AuditLogService
from ecofinds.services.category_service import CategoryService
from ecofinds.services.report_service import ReportService

router = APIRouter(prefix="/admin", tags=["admin"])

products_admin = Annotated[User, Depends(require_permission(Permission.MANAGE_PRODUCTS))]
users_admin = Annotated[User, Depends(require_permission(Permission.MANAGE_USERS))]
reports_admin = Annotated[User, Depends(require_permission(Permission.MANAGE_REPORTS))]
categories_admin = Annotated[User, Depends(require_permission(Permission.MANAGE_CATEGORIES))]
analytics_admin = Annotated[User, Depends(require_permission(Permission.VIEW_ANALYTICS))]
audit_admin = Annotated[User, Depends(require_permission(Permission.VIEW_AUDIT_LOGS))]


@router.get("/dashboard", status_code=status.HTTP_200_OK)
def dashboard(db: db_dependency, admin: analytics_admin):
    return envelope(AdminService(db).dashboard())


@router.get("/analytics", status_code=status.HTTP_200_OK)
def analytics(
    db: db_dependency,
    admin: analytics_admin,
    period: Literal["7d", "30d", "90d", "1y"] = "30d",
):
    return envelope(AdminService(db).analytics(period))


# Products
@router.get("/products/pending", status_code=status.HTTP_200_OK)
def pending_products(
    db: db_dependency,
    admin: products_admin,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    products = AdminService(db).list_products(ProductStatus.PENDING, None, page, limit)
    return envelope(
        {
            "products": [ProductResponse.model_validate(p) for p in products],
            "pagination": pagination(products, page, limit),
        }
    )


@router.get("/products", status_code=status.HTTP_200_OK)
def list_products(
    db: db_dependency,
    admin: products_admin,
    status_filter: Optional[ProductStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    products = AdminService(db).list_products(status_filter, search, page, limit)
    return envelope(
        {
            "products": [ProductResponse.model_validate(p) for p in products],
            "pagination": pagination(products, page, limit),
        }
    )


@router.put("/products/{product_id}/status", status_code=status.HTTP_200_OK)
def set_product_status(
    product_id: int, body: ProductStatusUpdate, db: db_dependency, admin: products_admin
):
    product = AdminService(db).set_product_status(product_id, admin, body)
    return envelope(
        {"product": ProductResponse.model_validate(product)},
        message=f"Product {product.status.value} successfully",
    )


# Users
@router.get("/users", status_code=status.HTTP_200_OK)
def list_users(
    db: db_dependency,
    admin: users_admin,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    is_verified: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    users = AdminService(db).list_users(search, is_active, is_verified, page, limit)
    return envelope(
        {
            "users": [UserResponse.model_validate(u) for u in users],
            "pagination": pagination(users, page, limit),
        }
    )


@router.put("/users/{user_id}/status", status_code=status.HTTP_200_OK)
def set_user_status(
    user_id: int, body: UserStatusUpdate, db: db_dependency, admin: users_admin
):
    user = AdminService(db).set_user_status(user_id, admin, body)
    return envelope(
        {"user": UserResponse.model_validate(user)}, message="User status updated"
    )


# Reports
@router.get("/reports", status_code=status.HTTP_200_OK)
def list_reports(
    db: db_dependency,
    admin: reports_admin,
    status_filter: Optional[ReportStatus] = Query(None, alias="status"),
    report_type: Optional[ReportType] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    reports = ReportService(db).search(status_filter, report_type, page, limit)
    return envelope(
        {
            "reports": [ReportResponse.model_validate(r) for r in reports],
            "pagination": pagination(reports, page, limit),
        }
    )


@router.put("/reports/{report_id}/status", status_code=status.HTTP_200_OK)
def set_report_status(
    report_id: int, body: ReportStatusUpdate, db: db_dependency, admin: reports_admin
):
    report = ReportService(db).update_status(report_id, admin, body)
    return envelope(
        {"report": ReportResponse.model_validate(report)},
        message=f"Report {report.status.value}",
    )


# Categories
@router.post("/categories", status_code=status.HTTP_201_CREATED)
def create_category(body: CategoryCreate, db: db_dependency, admin: categories_admin):
    category = CategoryService(db).create(body)
    return envelope(
        {"category": CategoryResponse.model_validate(category)},
        message="Category created successfully",
    )


@router.put("/categories/{category_id}", status_code=status.HTTP_200_OK)
def update_category(
    category_id: int, body: CategoryUpdate, db: db_dependency, admin: categories_admin
):
    category = CategoryService(db).update(category_id, body)
    return envelope(
        {"category": CategoryResponse.model_validate(category)},
        message="Category updated successfully",
    )


@router.delete("/categories/{category_id}", status_code=status.HTTP_200_OK)
def delete_category(category_id: int, db: db_dependency, admin: categories_admin):
    CategoryService(db).delete(category_id)
    return envelope(message="Category deleted successfully")


# Audit Logs
@router.get("/audit-logs", status_code=status.HTTP_200_OK)
def get_audit_logs(
    db: db_dependency,
    admin: audit_admin,
    user_id: Optional[int] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[int] = None,
    action: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = Query(100, ge=1, le=1000),
    skip: int = Query(0, ge=0),
):
    """Get audit logs with filtering (admin only)"""
    logs = AuditLogService().get_logs(
        db=db,
        user_id=user_id,
        resource_type=resource_type,
        resource_id=resource_id,
        action=action,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        skip=skip,
    )
    return envelope({"logs": [AuditLogResponse.model_validate(log) for log in logs]})
