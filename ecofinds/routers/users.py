from typing import Optional

from fastapi import APIRouter, Query, Request, status
from starlette.datastructures import UploadFile

from ecofinds.dependencies import CurrentUser, OptionalUser, db_dependency
from ecofinds.exceptions import NotFound
from ecofinds.models.product import ProductStatus
from ecofinds.models.purchase import PurchaseStatus
from ecofinds.schemas.common import envelope, pagination
from ecofinds.schemas.product import ProductSummary
from ecofinds.schemas.purchase import purchase_out
from ecofinds.schemas.user import ChangePasswordRequest, UserPublic, UserResponse, UserSummary
from ecofinds.schemas.validation import validate_or_raise
from ecofinds.services.product_service import ProductFilters, ProductService
from ecofinds.services.purchase_service import PurchaseService
from ecofinds.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/profile", status_code=status.HTTP_200_OK)
def get_profile(db: db_dependency, user: CurrentUser):
    return envelope(
        {
            "user": UserResponse.model_validate(user),
            "stats": UserService(db).stats(user.id),
        }
    )


@router.put("/profile", status_code=status.HTTP_200_OK)
async def update_profile(request: Request, db: db_dependency, user: CurrentUser):
    """Accepts multipart (with an optional ``avatar`` file) or JSON."""
    avatar = None
    if request.headers.get("content-type", "").startswith("application/json"):
        fields = await request.json()
    else:
        form = await request.form()
        upload = form.get("avatar")
        if isinstance(upload, UploadFile) and upload.filename:
            avatar = upload
        fields = {
            key: value
            for key, value in form.items()
            if key != "avatar" and isinstance(value, str) and value.strip() != ""
        }
    data = validate_or_raise("update_profile", fields)
    user = await UserService(db).update_profile(user, data, avatar)
    return envelope(
        {"user": UserResponse.model_validate(user)}, message="Profile updated successfully"
    )


@router.put("/change-password", status_code=status.HTTP_200_OK)
def change_password(body: ChangePasswordRequest, db: db_dependency, user: CurrentUser):
    UserService(db).change_password(user, body)
    return envelope(message="Password changed successfully")


@router.get("/products", status_code=status.HTTP_200_OK)
def my_products(
    db: db_dependency,
    user: CurrentUser,
    status_filter: Optional[ProductStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    products = ProductService().search_products(
        db, ProductFilters(), page, limit, status=status_filter, seller_id=user.id
    )
    return envelope(
        {
            "products": [ProductSummary.model_validate(p) for p in products],
            "pagination": pagination(products, page, limit),
        }
    )


@router.get("/purchases", status_code=status.HTTP_200_OK)
def my_purchases(
    db: db_dependency,
    user: CurrentUser,
    status_filter: Optional[PurchaseStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    purchases = PurchaseService(db).my_purchases(user, status_filter, page, limit)
    return envelope(
        {
            "purchases": [purchase_out(p) for p in purchases],
            "pagination": pagination(purchases, page, limit),
        }
    )


@router.get("/sales", status_code=status.HTTP_200_OK)
def my_sales(
    db: db_dependency,
    user: CurrentUser,
    status_filter: Optional[PurchaseStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    sales = PurchaseService(db).my_sales(user, status_filter, page, limit)
    return envelope(
        {
            "sales": [purchase_out(p) for p in sales],
            "pagination": pagination(sales, page, limit),
        }
    )


@router.get("/favorites", status_code=status.HTTP_200_OK)
def my_favorites(
    db: db_dependency,
    user: CurrentUser,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    products = UserService(db).favorites(user, page, limit)
    return envelope(
        {
            "products": [ProductSummary.model_validate(p) for p in products],
            "pagination": pagination(products, page, limit),
        }
    )


@router.get("/{user_id}/followers", status_code=status.HTTP_200_OK)
def followers(
    user_id: int,
    db: db_dependency,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    service = UserService(db)
    service.get_or_404(user_id)
    users = service.followers(user_id, page, limit)
    return envelope(
        {
            "users": [UserSummary.model_validate(u) for u in users],
            "pagination": pagination(users, page, limit),
        }
    )


@router.get("/{user_id}/following", status_code=status.HTTP_200_OK)
def following(
    user_id: int,
    db: db_dependency,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    service = UserService(db)
    service.get_or_404(user_id)
    users = service.following(user_id, page, limit)
    return envelope(
        {
            "users": [UserSummary.model_validate(u) for u in users],
            "pagination": pagination(users, page, limit),
        }
    )


@router.post("/{user_id}/follow", status_code=status.HTTP_200_OK)
def follow(user_id: int, db: db_dependency, user: CurrentUser):
    UserService(db).follow(user, user_id)
    return envelope(message="User followed successfully")


@router.delete("/{user_id}/follow", status_code=status.HTTP_200_OK)
def unfollow(user_id: int, db: db_dependency, user: CurrentUser):
    UserService(db).unfollow(user, user_id)
    return envelope(message="User unfollowed successfully")


@router.get("/{user_id}/products", status_code=status.HTTP_200_OK)
def user_products(
    user_id: int,
    db: db_dependency,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    UserService(db).get_or_404(user_id)
    products = ProductService().search_products(
        db, ProductFilters(), page, limit, seller_id=user_id
    )
    return envelope(
        {
            "products": [ProductSummary.model_validate(p) for p in products],
            "pagination": pagination(products, page, limit),
        }
    )


@router.get("/{user_id}", status_code=status.HTTP_200_OK)
def public_profile(user_id: int, db: db_dependency, viewer: OptionalUser):
    service = UserService(db)
    profile = service.get_or_404(user_id)
    if not profile.is_active:
        raise NotFound("User not found")
    is_following = viewer is not None and service.is_following(viewer.id, profile.id)
    return envelope(
        {
            "user": UserPublic.model_validate(profile),
            "stats": service.stats(profile.id),
            "is_following": is_following,
        }
    )
