from typing import List

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ecofinds.exceptions import DomainConflict, NotFound
from ecofinds.models.notification import NotificationType
from ecofinds.models.product import Product
from ecofinds.models.purchase import Purchase, PurchaseStatus
from ecofinds.models.review import Review
from ecofinds.models.user import User
from ecofinds.schemas.review import ReviewCreate
from ecofinds.services.notifications import create_notification


class ReviewService:
    def __init__(self, db: Session):
        self.db = db

    def create(self, buyer: User, data: ReviewCreate) -> Review:
        product = self.db.get(Product, data.product_id)
        if product is None:
            raise NotFound("Product not found")

        purchase = self.db.execute(
            select(Purchase)
            .where(
                Purchase.buyer_id == buyer.id,
                Purchase.product_id == product.id,
                Purchase.status == PurchaseStatus.COMPLETED,
            )
            .order_by(Purchase.completed_at.desc(), Purchase.id.desc())
            .limit(1)
        ).scalar_one_or_none()
        if purchase is None:
            raise DomainConflict("You can only review products you have purchased")

        review = Review(
            buyer_id=buyer.id,
            seller_id=purchase.seller_id,
            product_id=product.id,
            purchase_id=purchase.id,
            rating=data.rating,
            comment=data.comment,
        )
        self.db.add(review)
        create_notification(
            self.db,
            user_id=purchase.seller_id,
            type=NotificationType.REVIEW,
            title="New Review",
            message=f"{buyer.name} rated {product.title} {data.rating}/5",
            data={"product_id": product.id, "rating": data.rating},
        )
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DomainConflict("You have already reviewed this product")
        self.db.refresh(review)
        return review

    def _list(self, condition, page: int, limit: int) -> List[Review]:
        return list(
            self.db.execute(
                select(Review)
                .where(condition)
                .options(selectinload(Review.buyer))
                .order_by(Review.created_at.desc(), Review.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).scalars()
        )

    def _rating(self, condition) -> dict:
        count, average = self.db.execute(
            select(func.count(Review.id), func.avg(Review.rating)).where(condition)
        ).one()
        return {
            "review_count": count,
            "average_rating": round(float(average), 2) if average is not None else None,
        }

    def for_product(self, product_id: int, page: int = 1, limit: int = 20) -> dict:
        condition = Review.product_id == product_id
        return {"reviews": self._list(condition, page, limit), **self._rating(condition)}

    def for_seller(self, seller_id: int, page: int = 1, limit: int = 20) -> dict:
        condition = Review.seller_id == seller_id
        return {"reviews": self._list(condition, page, limit), **self._rating(condition)}
