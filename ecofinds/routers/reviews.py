from fastapi import APIRouter, Query, status

from ecofinds.dependencies import CurrentUser, db_dependency
from ecofinds.schemas.common import envelope, pagination
from ecofinds.schemas.review import ReviewCreate, ReviewResponse
from ecofinds.services.review_service import ReviewService

router = APIRouter(prefix="/reviews", tags=["reviews"])


def _listing(result: dict, page: int, limit: int) -> dict:
    reviews = result["reviews"]
    return {
        "reviews": [ReviewResponse.model_validate(r) for r in reviews],
        "review_count": result["review_count"],
        "average_rating": result["average_rating"],
        "pagination": pagination(reviews, page, limit),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_review(body: ReviewCreate, db: db_dependency, user: CurrentUser):
    review = ReviewService(db).create(user, body)
    return envelope(
        {"review": ReviewResponse.model_validate(review)},
        message="Review submitted successfully",
    )


@router.get("/product/{product_id}", status_code=status.HTTP_200_OK)
def product_reviews(
    product_id: int,
    db: db_dependency,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    return envelope(_listing(ReviewService(db).for_product(product_id, page, limit), page, limit))


@router.get("/seller/{seller_id}", status_code=status.HTTP_200_OK)
def seller_reviews(
    seller_id: int,
    db: db_dependency,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    return envelope(_listing(ReviewService(db).for_seller(seller_id, page, limit), page, limit))
