import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session, selectinload

from ecofinds.exceptions import DomainConflict, Forbidden, NotFound
from ecofinds.models.notification import NotificationType
from ecofinds.models.product import Product, ProductStatus
from ecofinds.models.purchase import Purchase, PurchaseStatus
from ecofinds.models.user import User
from ecofinds.schemas.purchase import PurchaseCreate, PurchaseStatusUpdate
from ecofinds.services.cart_service import CartService
from ecofinds.services.counters import adjust_user_counter
from ecofinds.services.notifications import create_notification

logger = logging.getLogger(__name__)

# target status -> the only status it may be reached from, when the seller acts
SELLER_TRANSITIONS = {
    PurchaseStatus.CONFIRMED: PurchaseStatus.PENDING,
    PurchaseStatus.CANCELLED: PurchaseStatus.PENDING,
    PurchaseStatus.COMPLETED: PurchaseStatus.CONFIRMED,
}

BUYER_MESSAGES = {
    PurchaseStatus.CONFIRMED: "Your purchase has been confirmed by the seller",
    PurchaseStatus.CANCELLED: "Your purchase has been cancelled by the seller",
    PurchaseStatus.COMPLETED: "Your purchase has been completed",
}


class PurchaseService:
    def __init__(self, db: Session):
        self.db = db

    def _get_or_404(self, purchase_id: int) -> Purchase:
        purchase = self.db.get(Purchase, purchase_id)
        if not purchase:
            raise NotFound("Purchase not found")
        return purchase

    def _transition(
        self,
        purchase: Purchase,
        expected: PurchaseStatus,
        target: PurchaseStatus,
        **values,
    ) -> None:
        """Compare-and-swap on the status column; raises DomainConflict if it lost."""
        result = self.db.execute(
            update(Purchase)
            .where(Purchase.id == purchase.id, Purchase.status == expected)
            .values(status=target, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            current = self.db.execute(
                select(Purchase.status).where(Purchase.id == purchase.id)
            ).scalar_one()
            raise DomainConflict(
                f"Purchase cannot move from {current.value} to {target.value}"
            )

    def create(self, buyer: User, data: PurchaseCreate) -> Purchase:
        product = self.db.get(Product, data.product_id)
        if not product:
            raise NotFound("Product not found")
        if product.seller_id == buyer.id:
            raise DomainConflict("You cannot purchase your own product")
        if product.status != ProductStatus.APPROVED:
            raise DomainConflict("Product is not available for purchase")

        purchase = Purchase(
            buyer_id=buyer.id,
            seller_id=product.seller_id,
            product_id=product.id,
            product_title=product.title,
            price=product.price,
            quantity=data.quantity,
            payment_method=data.payment_method,
            status=PurchaseStatus.PENDING,
        )
        self.db.add(purchase)
        self.db.flush()

        CartService(self.db).remove_product_for(buyer.id, product.id)
        create_notification(
            self.db,
            user_id=product.seller_id,
            type=NotificationType.PURCHASE,
            title="New Purchase",
            message=f"Someone wants to buy your product: {product.title}",
            data={
                "purchase_id": purchase.id,
                "product_id": product.id,
                "buyer_id": buyer.id,
            },
        )
        self.db.commit()
        self.db.refresh(purchase)
        logger.info("Purchase %s created for product %s", purchase.id, product.id)
        return purchase

    def update_status(
        self, purchase_id: int, seller: User, data: PurchaseStatusUpdate
    ) -> Purchase:
        purchase = self._get_or_404(purchase_id)
        if purchase.seller_id != seller.id:
            raise Forbidden("You can only update your own sales")

        target = data.status
        expected = SELLER_TRANSITIONS.get(target)
        if expected is None:
            raise DomainConflict(f"Purchase cannot move to {target.value}")

        values = {}
        if data.transaction_id:
            values["transaction_id"] = data.transaction_id
        if target == PurchaseStatus.COMPLETED:
            values["completed_at"] = datetime.now(timezone.utc)
        self._transition(purchase, expected, target, **values)

        if target == PurchaseStatus.COMPLETED:
            if purchase.product_id is not None:
                sold = self.db.execute(
                    update(Product)
                    .where(
                        Product.id == purchase.product_id,
                        Product.status != ProductStatus.SOLD,
                    )
                    .values(status=ProductStatus.SOLD)
                    .execution_options(synchronize_session=False)
                )
                if sold.rowcount == 0:
                    # another purchase already completed; undo this transition too
                    self.db.rollback()
                    raise DomainConflict("Product has already been sold")
            adjust_user_counter(self.db, purchase.seller_id, "sales_count", 1)

        create_notification(
            self.db,
            user_id=purchase.buyer_id,
            type=NotificationType.PURCHASE,
            title="Purchase Update",
            message=BUYER_MESSAGES[target],
            data={"purchase_id": purchase.id, "status": target.value},
        )
        self.db.commit()
        self.db.refresh(purchase)
        return purchase

    def cancel(self, purchase_id: int, buyer: User) -> Purchase:
        purchase = self._get_or_404(purchase_id)
        if purchase.buyer_id != buyer.id:
            raise Forbidden("You can only cancel your own purchases")

        self._transition(purchase, PurchaseStatus.PENDING, PurchaseStatus.CANCELLED)
        create_notification(
            self.db,
            user_id=purchase.seller_id,
            type=NotificationType.PURCHASE,
            title="Purchase Cancelled",
            message="A buyer has cancelled their purchase",
            data={"purchase_id": purchase.id, "status": PurchaseStatus.CANCELLED.value},
        )
        self.db.commit()
        self.db.refresh(purchase)
        return purchase

    def get_for_participant(self, purchase_id: int, user: User) -> Purchase:
        purchase = self._get_or_404(purchase_id)
        if user.id not in (purchase.buyer_id, purchase.seller_id):
            raise NotFound("Purchase not found")
        return purchase

    def _list(
        self,
        column,
        user_id: int,
        status: Optional[PurchaseStatus],
        page: int,
        limit: int,
    ) -> List[Purchase]:
        query = (
            select(Purchase)
            .where(column == user_id)
            .options(
                selectinload(Purchase.product).selectinload(Product.images),
                selectinload(Purchase.buyer),
                selectinload(Purchase.seller),
            )
        )
        if status is not None:
            query = query.where(Purchase.status == status)
        query = (
            query.order_by(Purchase.created_at.desc(), Purchase.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(self.db.execute(query).scalars().all())

    def my_purchases(
        self, user: User, status: Optional[PurchaseStatus] = None, page: int = 1, limit: int = 20
    ) -> List[Purchase]:
        return self._list(Purchase.buyer_id, user.id, status, page, limit)

    def my_sales(
        self, user: User, status: Optional[PurchaseStatus] = None, page: int = 1, limit: int = 20
    ) -> List[Purchase]:
        return self._list(Purchase.seller_id, user.id, status, page, limit)

    def _stats(self, column, user_id: int, noun: str, money_key: str) -> dict:
        def count_of(status: PurchaseStatus):
            return func.count(case((Purchase.status == status, 1)))

        row = self.db.execute(
            select(
                func.count(Purchase.id),
                count_of(PurchaseStatus.PENDING),
                count_of(PurchaseStatus.CONFIRMED),
                count_of(PurchaseStatus.COMPLETED),
                count_of(PurchaseStatus.CANCELLED),
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
            ).where(column == user_id)
        ).one()
        return {
            f"total_{noun}": row[0],
            f"pending_{noun}": row[1],
            f"confirmed_{noun}": row[2],
            f"completed_{noun}": row[3],
            f"cancelled_{noun}": row[4],
            money_key: float(row[5] or 0),
        }

    def stats_overview(self, user: User) -> dict:
        return {
            "purchases": self._stats(Purchase.buyer_id, user.id, "purchases", "total_spent"),
            "sales": self._stats(Purchase.seller_id, user.id, "sales", "total_earned"),
        }
