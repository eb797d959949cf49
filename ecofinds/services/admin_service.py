import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import Session, selectinload

from ecofinds.exceptions import DomainConflict, NotFound, ValidationFailed
from ecofinds.models.category import Category
from ecofinds.models.notification import NotificationType
from ecofinds.models.product import Product, ProductStatus
from ecofinds.models.purchase import Purchase, PurchaseStatus
from ecofinds.models.report import Report, ReportStatus
from ecofinds.models.user import User
from ecofinds.schemas.product import ProductStatusUpdate
from ecofinds.schemas.user import UserStatusUpdate
from ecofinds.services.audit_log_service import AuditLogService
from ecofinds.services.notifications import create_notification

logger = logging.getLogger(__name__)

PERIODS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}

# a listing only becomes sold through a completed purchase
MODERATION_STATUSES = frozenset(
    {ProductStatus.PENDING, ProductStatus.APPROVED, ProductStatus.REJECTED, ProductStatus.INACTIVE}
)


def _count_where(condition):
    return func.count(case((condition, 1)))


class AdminService:
    def __init__(self, db: Session):
        self.db = db

    # ---------- dashboards ----------

    def dashboard(self) -> dict:
        since = datetime.now(timezone.utc) - timedelta(days=30)

        users = self.db.execute(
            select(
                func.count(User.id),
                _count_where(User.is_active.is_(True)),
                _count_where(User.is_verified.is_(True)),
                _count_where(User.created_at >= since),
            )
        ).one()
        products = self.db.execute(
            select(
                func.count(Product.id),
                _count_where(Product.status == ProductStatus.APPROVED),
                _count_where(Product.status == ProductStatus.PENDING),
                _count_where(Product.status == ProductStatus.REJECTED),
                _count_where(Product.status == ProductStatus.SOLD),
                _count_where(Product.created_at >= since),
            )
        ).one()
        purchases = self.db.execute(
            select(
                func.count(Purchase.id),
                _count_where(Purchase.status == PurchaseStatus.COMPLETED),
                _count_where(Purchase.status == PurchaseStatus.PENDING),
                func.coalesce(
                    func.sum(
                        case(
                            (
                                Purchase.status == PurchaseStatus.COMPLETED,
                                Purchase.price * Purchase.quantity,
                            ),
                            else_=0,
                        )
                    ),
                    0,
                ),
            )
        ).one()
        reports = self.db.execute(
            select(
                func.count(Report.id),
                _count_where(Report.status == ReportStatus.PENDING),
                _count_where(Report.status == ReportStatus.RESOLVED),
            )
        ).one()

        recent_users = self.db.execute(
            select(User).order_by(User.created_at.desc(), User.id.desc()).limit(5)
        ).scalars()
        recent_products = self.db.execute(
            select(Product)
            .options(selectinload(Product.seller))
            .order_by(Product.created_at.desc(), Product.id.desc())
            .limit(5)
        ).scalars()
        recent_reports = self.db.execute(
            select(Report)
            .options(selectinload(Report.reporter))
            .order_by(Report.created_at.desc(), Report.id.desc())
            .limit(5)
        ).scalars()

        return {
            "stats": {
                "users": {
                    "total_users": users[0],
                    "active_users": users[1],
                    "verified_users": users[2],
                    "new_users_30d": users[3],
                },
                "products": {
                    "total_products": products[0],
                    "approved_products": products[1],
                    "pending_products": products[2],
                    "rejected_products": products[3],
                    "sold_products": products[4],
                    "new_products_30d": products[5],
                },
                "purchases": {
                    "total_purchases": purchases[0],
                    "completed_purchases": purchases[1],
                    "pending_purchases": purchases[2],
                    "total_revenue": float(purchases[3] or 0),
                },
                "reports": {
                    "total_reports": reports[0],
                    "pending_reports": reports[1],
                    "resolved_reports": reports[2],
                },
            },
            "recentActivity": {
                "users": [
                    {"id": u.id, "name": u.name, "email": u.email, "created_at": u.created_at}
                    for u in recent_users
                ],
                "products": [
                    {
                        "id": p.id,
                        "title": p.title,
                        "status": p.status.value,
                        "created_at": p.created_at,
                        "seller_name": p.seller.name if p.seller else None,
                    }
                    for p in recent_products
                ],
                "reports": [
                    {
                        "id": r.id,
                        "report_type": r.report_type.value,
                        "reason": r.reason.value,
                        "status": r.status.value,
                        "created_at": r.created_at,
                        "reporter_name": r.reporter.name if r.reporter else None,
                    }
                    for r in recent_reports
                ],
            },
        }

    def analytics(self, period: str = "30d") -> dict:
        if period not in PERIODS:
            raise ValidationFailed(
                [{"field": "period", "message": "Period must be one of 7d, 30d, 90d, 1y"}]
            )
        since = datetime.now(timezone.utc) - timedelta(days=PERIODS[period])

        def per_day(model) -> List[dict]:
            day = func.date(model.created_at)
            rows = self.db.execute(
                select(day, func.count(model.id))
                .where(model.created_at >= since)
                .group_by(day)
                .order_by(day)
            ).all()
            return [{"date": str(d), "count": c} for d, c in rows]

        approved = func.count(Product.id)
        category_rows = self.db.execute(
            select(Category.name, approved)
            .outerjoin(
                Product,
                (Product.category_id == Category.id)
                & (Product.status == ProductStatus.APPROVED),
            )
            .group_by(Category.id, Category.name)
            .order_by(approved.desc(), Category.name)
        ).all()

        listings = (
            select(func.count(Product.id))
            .where(Product.seller_id == User.id, Product.status == ProductStatus.APPROVED)
            .scalar_subquery()
        )
        sales = (
            select(func.count(Purchase.id))
            .where(Purchase.seller_id == User.id, Purchase.status == PurchaseStatus.COMPLETED)
            .scalar_subquery()
        )
        seller_rows = self.db.execute(
            select(User.id, User.name, User.email, listings.label("listings"), sales.label("sales"))
            .order_by(sales.desc(), listings.desc(), User.id)
            .limit(10)
        ).all()

        return {
            "period": period,
            "userRegistrations": per_day(User),
            "productListings": per_day(Product),
            "categoryStats": [{"name": n, "count": c} for n, c in category_rows],
            "topSellers": [
                {"id": r.id, "name": r.name, "email": r.email, "listings": r.listings, "sales": r.sales}
                for r in seller_rows
            ],
        }

    # ---------- moderation ----------

    def list_products(
        self,
        status: Optional[ProductStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> List[Product]:
        query = (
            select(Product)
            .join(User, Product.seller_id == User.id)
            .options(
                selectinload(Product.images),
                selectinload(Product.seller),
                selectinload(Product.category),
            )
        )
        if status is not None:
            query = query.where(Product.status == status)
        if search:
            term = search.lower()
            query = query.where(
                or_(
                    func.lower(Product.title).contains(term),
                    func.lower(Product.description).contains(term),
                    func.lower(User.name).contains(term),
                )
            )
        query = (
            query.order_by(Product.created_at.desc(), Product.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(self.db.execute(query).scalars())

    def set_product_status(self, product_id: int, admin: User, data: ProductStatusUpdate) -> Product:
        product = self.db.get(Product, product_id)
        if product is None:
            raise NotFound("Product not found")
        if product.status == ProductStatus.SOLD:
            raise DomainConflict("Sold products cannot change status")
        if data.status not in MODERATION_STATUSES:
            raise DomainConflict(f"Products cannot be set to {data.status.value} by moderation")
        if data.status == ProductStatus.REJECTED and not (data.rejection_reason or "").strip():
            raise ValidationFailed(
                [{"field": "rejection_reason", "message": "Rejection reason is required"}]
            )

        previous = product.status
        product.status = data.status
        product.rejection_reason = (
            data.rejection_reason if data.status == ProductStatus.REJECTED else None
        )

        if data.status == ProductStatus.APPROVED:
            message = "Your product has been approved and is now live"
        elif data.status == ProductStatus.REJECTED:
            message = f"Your product has been rejected. Reason: {data.rejection_reason}"
        else:
            message = None
        if message:
            create_notification(
                self.db,
                user_id=product.seller_id,
                type=NotificationType.ADMIN,
                title=f"Product {data.status.value}",
                message=message,
                data={"product_id": product.id, "status": data.status.value},
            )
        AuditLogService().create_log(
            db=self.db,
            action="product.status",
            resource_type="product",
            resource_id=product.id,
            user_id=admin.id,
            changes={"status": {"old": previous.value, "new": data.status.value}},
            commit=False,
        )
        self.db.commit()
        self.db.refresh(product)
        return product

    def list_users(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        is_verified: Optional[bool] = None,
        page: int = 1,
        limit: int = 20,
    ) -> List[User]:
        query = select(User)
        if search:
            term = search.lower()
            query = query.where(
                or_(
                    func.lower(User.name).contains(term),
                    func.lower(User.email).contains(term),
                    User.phone.contains(search),
                )
            )
        if is_active is not None:
            query = query.where(User.is_active.is_(is_active))
        if is_verified is not None:
            query = query.where(User.is_verified.is_(is_verified))
        query = (
            query.order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(self.db.execute(query).scalars())

    def set_user_status(self, user_id: int, admin: User, data: UserStatusUpdate) -> User:
        if user_id == admin.id:
            raise DomainConflict("You cannot modify your own account")
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")

        changes = data.model_dump(exclude_none=True)
        if not changes:
            raise ValidationFailed(
                [{"field": "is_active", "message": "No valid fields to update"}]
            )

        audit_changes = {
            key: {"old": getattr(user, key), "new": value} for key, value in changes.items()
        }
        for key, value in changes.items():
            setattr(user, key, value)

        messages = []
        if data.is_active is False:
            messages.append("Your account has been deactivated")
        elif data.is_active is True:
            messages.append("Your account has been reactivated")
        if data.is_verified is True:
            messages.append("Your account has been verified")
        if messages:
            create_notification(
                self.db,
                user_id=user.id,
                type=NotificationType.ADMIN,
                title="Account Update",
                message=". ".join(messages),
                data=changes,
            )
        AuditLogService().create_log(
            db=self.db,
            action="user.status",
            resource_type="user",
            resource_id=user.id,
            user_id=admin.id,
            changes=audit_changes,
            commit=False,
        )
        self.db.commit()
        self.db.refresh(user)
        return user
