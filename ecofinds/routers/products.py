from typing import List, Literal, Optional

from fastapi import APIRouter, Query, Request, status
from starlette.datastructures import UploadFile

from ecofinds.dependencies import CurrentUser, OptionalUser, db_dependency
from ecofinds.exceptions import ValidationFailed
from ecofinds.models.product import Product, ProductCondition
from ecofinds.schemas.category import CategoryResponse
from ecofinds.schemas.common import envelope, pagination
from ecofinds.schemas.product import ProductDetail, ProductResponse, ProductSummary
from ecofinds.schemas.validation import validate_or_raise
from ecofinds.services.product_service import ProductFilters, ProductService

router = APIRouter(prefix="/products", tags=["products"])

SortBy = Literal["newest", "oldest", "price_low", "price_high", "popular"]


async def read_product_form(request: Request) -> tuple[dict, List[UploadFile]]:
    """Split a multipart body into plain fields and uploaded image files."""
    form = await request.form()
    files = [
        f
        for f in form.getlist("images")
        if isinstance(f, UploadFile) and f.filename
    ]
    fields = {
        key: value
        for key, value in form.items()
        if key != "images" and isinstance(value, str) and value.strip() != ""
    }
    return fields, files


def summaries(products: List[Product]) -> List[ProductSummary]:
    return [ProductSummary.model_validate(p) for p in products]


def _filters(
    category_id: Optional[int],
    min_price: Optional[float],
    max_price: Optional[float],
    condition: Optional[ProductCondition],
    brand: Optional[str],
    location: Optional[str],
    search: Optional[str],
    sort_by: str,
) -> ProductFilters:
    return ProductFilters(
        category_id=category_id,
        min_price=min_price,
        max_price=max_price,
        condition=condition,
        brand=brand,
        location=location,
        search=search,
        sort_by=sort_by,
    )


@router.get("", status_code=status.HTTP_200_OK)
def list_products(
    db: db_dependency,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category_id: Optional[int] = Query(None, ge=1),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    condition: Optional[ProductCondition] = None,
    brand: Optional[str] = None,
    location: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: SortBy = "newest",
):
    filters = _filters(
        category_id, min_price, max_price, condition, brand, location, search, sort_by
    )
    products = ProductService().search_products(db, filters, page, limit)
    return envelope(
        {"products": summaries(products), "pagination": pagination(products, page, limit)}
    )


@router.get("/categories/all", status_code=status.HTTP_200_OK)
def list_categories(db: db_dependency):
    categories = ProductService().categories_with_counts(db)
    return envelope({"categories": [CategoryResponse(**c) for c in categories]})


@router.get("/search/{query}", status_code=status.HTTP_200_OK)
def search_products(
    query: str,
    db: db_dependency,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category_id: Optional[int] = Query(None, ge=1),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    condition: Optional[ProductCondition] = None,
    brand: Optional[str] = None,
    location: Optional[str] = None,
    sort_by: SortBy = "newest",
):
    query = query.strip()
    if len(query) < 2:
        raise ValidationFailed(
            [{"field": "query", "message": "Search query must be at least 2 characters"}]
        )
    filters = _filters(
        category_id, min_price, max_price, condition, brand, location, query, sort_by
    )
    products = ProductService().search_products(db, filters, page, limit)
    return envelope(
        {
            "products": summaries(products),
            "query": query,
            "pagination": pagination(products, page, limit),
        }
    )


@router.get("/user/{user_id}", status_code=status.HTTP_200_OK)
def products_by_seller(
    user_id: int,
    db: db_dependency,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    products = ProductService().search_products(
        db, ProductFilters(), page, limit, seller_id=user_id
    )
    return envelope(
        {"products": summaries(products), "pagination": pagination(products, page, limit)}
    )


@router.get("/category/{category_id}", status_code=status.HTTP_200_OK)
def products_by_category(
    category_id: int,
    db: db_dependency,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: SortBy = "newest",
):
    service = ProductService()
    category = service.get_category_or_404(db, category_id)
    products = service.search_products(
        db, ProductFilters(category_id=category_id, sort_by=sort_by), page, limit
    )
    return envelope(
        {
            "category": {
                "id": category.id,
                "name": category.name,
                "icon": category.icon,
                "description": category.description,
            },
            "products": summaries(products),
            "pagination": pagination(products, page, limit),
        }
    )


@router.get("/{product_id}", status_code=status.HTTP_200_OK)
def get_product(product_id: int, db: db_dependency, viewer: OptionalUser):
    service = ProductService()
    product = service.view_product(db, product_id, viewer)
    detail = ProductDetail.model_validate(product)
    detail.is_favorited = product.id in service.favorited_ids(db, viewer, [product.id])
    detail.similar_products = summaries(service.similar_products(db, product))
    return envelope({"product": detail})


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(request: Request, db: db_dependency, user: CurrentUser):
    fields, files = await read_product_form(request)
    data = validate_or_raise("product", fields)
    product = await ProductService().create_product(db, data, user, files)
    return envelope(
        {"product": ProductResponse.model_validate(product)},
        message="Product created successfully and is pending approval",
    )


@router.put("/{product_id}", status_code=status.HTTP_200_OK)
async def update_product(
    product_id: int, request: Request, db: db_dependency, user: CurrentUser
):
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        fields, files = await request.json(), []
    else:
        fields, files = await read_product_form(request)
    data = validate_or_raise("product_update", fields)
    product = await ProductService().update_product(db, product_id, data, user, files)
    return envelope(
        {"product": ProductResponse.model_validate(product)},
        message="Product updated successfully",
    )


@router.delete("/{product_id}", status_code=status.HTTP_200_OK)
async def delete_product(product_id: int, db: db_dependency, user: CurrentUser):
    await ProductService().delete_product(db, product_id, user)
    return envelope(message="Product deleted successfully")


@router.post("/{product_id}/favorite", status_code=status.HTTP_200_OK)
def toggle_favorite(product_id: int, db: db_dependency, user: CurrentUser):
    favorited = ProductService().toggle_favorite(db, product_id, user)
    return envelope(
        {"is_favorited": favorited},
        message="Added to favorites" if favorited else "Removed from favorites",
    )


@router.put("/{product_id}/images/{image_id}/primary", status_code=status.HTTP_200_OK)
def set_primary_image(
    product_id: int, image_id: int, db: db_dependency, user: CurrentUser
):
    product = ProductService().set_primary_image(db, product_id, image_id, user)
    db.refresh(product)
    return envelope(
        {"product": ProductResponse.model_validate(product)},
        message="Primary image updated",
    )


@router.delete("/{product_id}/images/{image_id}", status_code=status.HTTP_200_OK)
async def delete_product_image(
    product_id: int, image_id: int, db: db_dependency, user: CurrentUser
):
    product = await ProductService().delete_image(db, product_id, image_id, user)
    db.refresh(product)
    return envelope(
        {"product": ProductResponse.model_validate(product)},
        message="Image deleted successfully",
    )
