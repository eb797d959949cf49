import logging
from dataclasses import dataclass
from typing import List, Optional

from fastapi import UploadFile
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.orm import Session, selectinload

from ecofinds.config import settings
from ecofinds.exceptions import DomainConflict, Forbidden, NotFound, ValidationFailed
from ecofinds.models.category import Category
from ecofinds.models.favorite import Favorite
from ecofinds.models.product import Product, ProductCondition, ProductStatus
from ecofinds.models.product_images import ProductImage
from ecofinds.models.user import User
from ecofinds.schemas.product import ProductCreate, ProductUpdate
from ecofinds.services.counters import adjust_product_counter, adjust_user_counter
from ecofinds.services.image_service import ImageService, check_image

logger = logging.getLogger(__name__)

SORT_OPTIONS = {
    "newest": (Product.created_at.desc(), Product.id.desc()),
    "oldest": (Product.created_at.asc(), Product.id.asc()),
    "price_low": (Product.price.asc(), Product.id.asc()),
    "price_high": (Product.price.desc(), Product.id.desc()),
    "popular": (Product.views_count.desc(), Product.favorites_count.desc(), Product.id.desc()),
}

PRODUCT_FOLDER = "products"


@dataclass
class ProductFilters:
    category_id: Optional[int] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    condition: Optional[ProductCondition] = None
    brand: Optional[str] = None
    location: Optional[str] = None
    search: Optional[str] = None
    sort_by: str = "newest"


def _with_listing_relations(query):
    return query.options(
        selectinload(Product.images),
        selectinload(Product.seller),
        selectinload(Product.category),
    )


def check_upload_batch(files: List[UploadFile]) -> None:
    if len(files) > settings.MAX_PRODUCT_IMAGES:
        raise ValidationFailed(
            [
                {
                    "field": "images",
                    "message": f"Maximum {settings.MAX_PRODUCT_IMAGES} images allowed",
                }
            ]
        )
    for file in files:
        check_image(file, settings.MAX_IMAGE_SIZE_MB)


class ProductService:
    # ---------- reads ----------

    def get_or_404(self, db: Session, product_id: int) -> Product:
        product = db.get(Product, product_id)
        if not product:
            raise NotFound("Product not found")
        return product

    def search_products(
        self,
        db: Session,
        filters: ProductFilters,
        page: int = 1,
        limit: int = 20,
        status: Optional[ProductStatus] = ProductStatus.APPROVED,
        seller_id: Optional[int] = None,
    ) -> List[Product]:
        """Listing query shared by browse, search, category and seller pages."""
        query = _with_listing_relations(select(Product))
        conditions = []

        if status is not None:
            conditions.append(Product.status == status)
        if seller_id is not None:
            conditions.append(Product.seller_id == seller_id)
        if filters.category_id is not None:
            conditions.append(Product.category_id == filters.category_id)
        if filters.min_price is not None:
            conditions.append(Product.price >= filters.min_price)
        if filters.max_price is not None:
            conditions.append(Product.price <= filters.max_price)
        if filters.condition:
            conditions.append(Product.condition == filters.condition)
        if filters.brand:
            conditions.append(func.lower(Product.brand).contains(filters.brand.lower()))
        if filters.location:
            conditions.append(
                func.lower(Product.location).contains(filters.location.lower())
            )
        if filters.search:
            term = filters.search.lower()
            conditions.append(
                or_(
                    func.lower(Product.title).contains(term),
                    func.lower(Product.description).contains(term),
                    func.lower(Product.brand).contains(term),
                )
            )

        if conditions:
            query = query.where(and_(*conditions))

        order = SORT_OPTIONS.get(filters.sort_by, SORT_OPTIONS["newest"])
        query = query.order_by(*order).offset((page - 1) * limit).limit(limit)
        return list(db.execute(query).scalars().all())

    def favorited_ids(self, db: Session, user: Optional[User], product_ids: List[int]) -> set:
        if user is None or not product_ids:
            return set()
        rows = db.execute(
            select(Favorite.product_id).where(
                Favorite.user_id == user.id, Favorite.product_id.in_(product_ids)
            )
        )
        return set(rows.scalars().all())

    def view_product(self, db: Session, product_id: int, viewer: Optional[User]) -> Product:
        """Fetch a listing for display; every call counts as a view."""
        product = self.get_or_404(db, product_id)
        if product.status != ProductStatus.APPROVED and not (
            viewer is not None and product.can_edit(viewer)
        ):
            raise NotFound("Product not found")

        adjust_product_counter(db, product_id, "views_count", 1)
        db.commit()
        db.refresh(product)
        return product

    def similar_products(self, db: Session, product: Product, limit: int = 6) -> List[Product]:
        query = (
            _with_listing_relations(select(Product))
            .where(
                Product.category_id == product.category_id,
                Product.id != product.id,
                Product.status == ProductStatus.APPROVED,
            )
            .order_by(Product.created_at.desc(), Product.id.desc())
            .limit(limit)
        )
        return list(db.execute(query).scalars().all())

    def categories_with_counts(self, db: Session) -> List[dict]:
        approved_count = func.count(Product.id)
        rows = db.execute(
            select(Category, approved_count)
            .outerjoin(
                Product,
                and_(
                    Product.category_id == Category.id,
                    Product.status == ProductStatus.APPROVED,
                ),
            )
            .group_by(Category.id)
            .order_by(Category.name)
        ).all()
        return [
            {
                "id": category.id,
                "name": category.name,
                "icon": category.icon,
                "description": category.description,
                "created_at": category.created_at,
                "product_count": count,
            }
            for category, count in rows
        ]

    def get_category_or_404(self, db: Session, category_id: int) -> Category:
        category = db.get(Category, category_id)
        if not category:
            raise NotFound("Category not found")
        return category

    # ---------- writes ----------

    async def create_product(
        self,
        db: Session,
        data: ProductCreate,
        seller: User,
        files: List[UploadFile],
    ) -> Product:
        self.get_category_or_404(db, data.category_id)
        check_upload_batch(files)

        images = ImageService()
        uploaded = await images.upload_many(files, PRODUCT_FOLDER) if files else []

        try:
            product = Product(
                **data.model_dump(),
                seller_id=seller.id,
                status=ProductStatus.PENDING,
            )
            if uploaded:
                for index, result in enumerate(uploaded):
                    product.images.append(
                        ProductImage(
                            file_key=result["public_id"],
                            image_url=result["secure_url"],
                            is_primary=index == 0,
                        )
                    )
            else:
                product.images.append(
                    ProductImage(
                        file_key=None,
                        image_url=settings.PLACEHOLDER_IMAGE_URL,
                        is_primary=True,
                    )
                )
            db.add(product)
            db.flush()
            adjust_user_counter(db, seller.id, "listings_count", 1)
            db.commit()
        except Exception:
            db.rollback()
            await images.discard([u["public_id"] for u in uploaded])
            raise

        db.refresh(product)
        logger.info("Product %s created by user %s", product.id, seller.id)
        return product

    async def update_product(
        self,
        db: Session,
        product_id: int,
        data: ProductUpdate,
        user: User,
        files: List[UploadFile],
    ) -> Product:
        product = self.get_or_404(db, product_id)
        if not product.can_edit(user):
            raise Forbidden("You can only update your own products")

        changes = data.model_dump(exclude_unset=True)
        if "category_id" in changes:
            self.get_category_or_404(db, changes["category_id"])
        if files:
            check_upload_batch(files)
            if len(product.images) + len(files) > settings.MAX_PRODUCT_IMAGES:
                raise ValidationFailed(
                    [
                        {
                            "field": "images",
                            "message": f"Maximum {settings.MAX_PRODUCT_IMAGES} images allowed",
                        }
                    ]
                )

        images = ImageService()
        uploaded = await images.upload_many(files, PRODUCT_FOLDER) if files else []

        try:
            for key, value in changes.items():
                setattr(product, key, value)
            if uploaded:
                # first new upload becomes the primary image
                db.execute(
                    update(ProductImage)
                    .where(ProductImage.product_id == product.id)
                    .values(is_primary=False)
                    .execution_options(synchronize_session=False)
                )
                for index, result in enumerate(uploaded):
                    db.add(
                        ProductImage(
                            product_id=product.id,
                            file_key=result["public_id"],
                            image_url=result["secure_url"],
                            is_primary=index == 0,
                        )
                    )
            db.commit()
        except Exception:
            db.rollback()
            await images.discard([u["public_id"] for u in uploaded])
            raise

        db.refresh(product)
        return product

    def set_primary_image(self, db: Session, product_id: int, image_id: int, user: User) -> Product:
        product = self.get_or_404(db, product_id)
        if not product.can_edit(user):
            raise Forbidden("You can only update your own products")
        image = db.get(ProductImage, image_id)
        if not image or image.product_id != product.id:
            raise NotFound("Image not found")

        db.execute(
            update(ProductImage)
            .where(ProductImage.product_id == product.id)
            .values(is_primary=(ProductImage.id == image.id))
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return product

    async def delete_image(self, db: Session, product_id: int, image_id: int, user: User) -> Product:
        product = self.get_or_404(db, product_id)
        if not product.can_edit(user):
            raise Forbidden("You can only update your own products")
        image = db.get(ProductImage, image_id)
        if not image or image.product_id != product.id:
            raise NotFound("Image not found")

        file_key = image.file_key
        was_primary = image.is_primary
        db.delete(image)
        db.flush()
        if was_primary:
            successor = db.execute(
                select(ProductImage)
                .where(ProductImage.product_id == product.id)
                .order_by(ProductImage.created_at.asc(), ProductImage.id.asc())
                .limit(1)
            ).scalar_one_or_none()
            if successor is not None:
                successor.is_primary = True
        db.commit()

        if file_key:
            await ImageService().discard([file_key])
        return product

    async def delete_product(self, db: Session, product_id: int, user: User) -> None:
        product = self.get_or_404(db, product_id)
        if not product.can_edit(user):
            raise Forbidden("You can only delete your own products")

        file_keys = [image.file_key for image in product.images if image.file_key]
        seller_id = product.seller_id

        db.delete(product)
        adjust_user_counter(db, seller_id, "listings_count", -1)
        db.commit()
        logger.info("Product %s deleted by user %s", product_id, user.id)

        # rows are gone; stored files are removed best-effort
        await ImageService().discard(file_keys)

    def toggle_favorite(self, db: Session, product_id: int, user: User) -> bool:
        """Flip the caller's favorite on a listing; returns the new state."""
        product = self.get_or_404(db, product_id)
        if product.seller_id == user.id:
            raise DomainConflict("You cannot favorite your own product")

        existing = (
            db.query(Favorite)
            .filter(Favorite.user_id == user.id, Favorite.product_id == product_id)
            .first()
        )
        if existing:
            db.delete(existing)
            adjust_product_counter(db, product_id, "favorites_count", -1)
            db.commit()
            return False

        db.add(Favorite(user_id=user.id, product_id=product_id))
        adjust_product_counter(db, product_id, "favorites_count", 1)
        db.commit()
        return True
