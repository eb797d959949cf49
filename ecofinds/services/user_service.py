import logging
from typing import List, Optional

from fastapi import UploadFile
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ecofinds.config import settings
from ecofinds.exceptions import DomainConflict, NotFound, ValidationFailed
from ecofinds.models.favorite import Favorite
from ecofinds.models.follow import Follow
from ecofinds.models.notification import NotificationType
from ecofinds.models.product import Product, ProductStatus
from ecofinds.models.purchase import Purchase, PurchaseStatus
from ecofinds.models.user import User, UserRole
from ecofinds.schemas.user import ChangePasswordRequest, RegisterRequest, UpdateProfileRequest
from ecofinds.services.auth_service import get_password_hash, verify_password
from ecofinds.services.counters import adjust_user_counter
from ecofinds.services.image_service import ImageService, check_image
from ecofinds.services.notifications import create_notification

logger = logging.getLogger(__name__)

AVATAR_FOLDER = "avatars"


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_or_404(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def register(self, data: RegisterRequest) -> User:
        user = User(
            name=data.name,
            email=data.email,
            phone=data.phone,
            password_hash=get_password_hash(data.password),
            age=data.age,
            gender=data.gender,
            location=data.location,
            pincode=data.pincode,
            avatar=settings.DEFAULT_AVATAR_URL,
            role=UserRole.USER,
            is_active=True,
            is_verified=False,
        )
        self.db.add(user)
        # duplicate email/phone surfaces as IntegrityError -> 409 at the boundary
        self.db.commit()
        self.db.refresh(user)
        logger.info("Registered user %s", user.id)
        return user

    def stats(self, user_id: int) -> dict:
        def completed(column) -> int:
            return self.db.execute(
                select(func.count(Purchase.id)).where(
                    column == user_id, Purchase.status == PurchaseStatus.COMPLETED
                )
            ).scalar_one()

        listings = self.db.execute(
            select(func.count(Product.id)).where(Product.seller_id == user_id)
        ).scalar_one()
        return {
            "listings": listings,
            "sales": completed(Purchase.seller_id),
            "purchases": completed(Purchase.buyer_id),
        }

    async def update_profile(
        self, user: User, data: UpdateProfileRequest, avatar: Optional[UploadFile] = None
    ) -> User:
        changes = data.model_dump(exclude_unset=True)
        images = ImageService()
        uploaded = None
        previous_key = None

        if avatar is not None:
            check_image(avatar, settings.MAX_AVATAR_SIZE_MB, field="avatar")
            uploaded = await images.upload_image(avatar, AVATAR_FOLDER)
            previous_key = user.avatar_key
            changes["avatar"] = uploaded["secure_url"]
            changes["avatar_key"] = uploaded["public_id"]

        try:
            for key, value in changes.items():
                setattr(user, key, value)
            self.db.commit()
        except Exception:
            self.db.rollback()
            if uploaded:
                await images.discard([uploaded["public_id"]])
            raise

        if previous_key:
            await images.discard([previous_key])
        self.db.refresh(user)
        return user

    def change_password(self, user: User, data: ChangePasswordRequest) -> None:
        if not verify_password(data.currentPassword, user.password_hash):
            raise ValidationFailed(
                [{"field": "currentPassword", "message": "Current password is incorrect"}],
                message="Current password is incorrect",
            )
        user.password_hash = get_password_hash(data.newPassword)
        self.db.commit()

    # ---------- follows ----------

    def is_following(self, follower_id: int, following_id: int) -> bool:
        return (
            self.db.execute(
                select(Follow.id).where(
                    Follow.follower_id == follower_id,
                    Follow.following_id == following_id,
                )
            ).first()
            is not None
        )

    def follow(self, user: User, target_id: int) -> None:
        if target_id == user.id:
            raise DomainConflict("You cannot follow yourself")
        target = self.get_or_404(target_id)
        if self.is_following(user.id, target.id):
            raise DomainConflict("You are already following this user")

        self.db.add(Follow(follower_id=user.id, following_id=target.id))
        adjust_user_counter(self.db, user.id, "following_count", 1)
        adjust_user_counter(self.db, target.id, "followers_count", 1)
        create_notification(
            self.db,
            user_id=target.id,
            type=NotificationType.FOLLOW,
            title="New Follower",
            message=f"{user.name} started following you",
            data={"follower_id": user.id},
        )
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DomainConflict("You are already following this user")

    def unfollow(self, user: User, target_id: int) -> None:
        result = self.db.execute(
            delete(Follow).where(
                Follow.follower_id == user.id, Follow.following_id == target_id
            )
        )
        if result.rowcount == 0:
            self.db.rollback()
            raise DomainConflict("You are not following this user")
        adjust_user_counter(self.db, user.id, "following_count", -1)
        adjust_user_counter(self.db, target_id, "followers_count", -1)
        self.db.commit()

    def followers(self, user_id: int, page: int = 1, limit: int = 20) -> List[User]:
        return list(
            self.db.execute(
                select(User)
                .join(Follow, Follow.follower_id == User.id)
                .where(Follow.following_id == user_id)
                .order_by(Follow.created_at.desc(), Follow.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).scalars()
        )

    def following(self, user_id: int, page: int = 1, limit: int = 20) -> List[User]:
        return list(
            self.db.execute(
                select(User)
                .join(Follow, Follow.following_id == User.id)
                .where(Follow.follower_id == user_id)
                .order_by(Follow.created_at.desc(), Follow.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).scalars()
        )

    def favorites(self, user: User, page: int = 1, limit: int = 20) -> List[Product]:
        return list(
            self.db.execute(
                select(Product)
                .join(Favorite, Favorite.product_id == Product.id)
                .where(
                    Favorite.user_id == user.id,
                    Product.status == ProductStatus.APPROVED,
                )
                .options(
                    selectinload(Product.images),
                    selectinload(Product.seller),
                    selectinload(Product.category),
                )
                .order_by(Favorite.created_at.desc(), Favorite.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).scalars()
        )
