from typing import Optional

from fastapi import APIRouter, Query, status

from ecofinds.dependencies import CurrentUser, db_dependency
from ecofinds.models.purchase import PurchaseStatus
from ecofinds.schemas.common import envelope, pagination
from ecofinds.schemas.purchase import PurchaseCreate, PurchaseStatusUpdate, purchase_out
from ecofinds.services.purchase_service import PurchaseService

router = APIRouter(prefix="/purchases", tags=["purchases"])


@router.post("/create", status_code=status.HTTP_201_CREATED)
def create_purchase(body: PurchaseCreate, db: db_dependency, user: CurrentUser):
    purchase = PurchaseService(db).create(user, body)
    return envelope(
        {"purchase": purchase_out(purchase)}, message="Purchase created successfully"
    )


@router.get("/my-purchases", status_code=status.HTTP_200_OK)
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


@router.get("/my-sales", status_code=status.HTTP_200_OK)
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


@router.get("/stats/overview", status_code=status.HTTP_200_OK)
def purchase_stats(db: db_dependency, user: CurrentUser):
    return envelope(PurchaseService(db).stats_overview(user))


@router.get("/{purchase_id}", status_code=status.HTTP_200_OK)
def get_purchase(purchase_id: int, db: db_dependency, user: CurrentUser):
    purchase = PurchaseService(db).get_for_participant(purchase_id, user)
    return envelope({"purchase": purchase_out(purchase)})


@router.put("/{purchase_id}/status", status_code=status.HTTP_200_OK)
def update_purchase_status(
    purchase_id: int, body: PurchaseStatusUpdate, db: db_dependency, user: CurrentUser
):
    purchase = PurchaseService(db).update_status(purchase_id, user, body)
    return envelope(
        {"purchase": purchase_out(purchase)},
        message=f"Purchase {purchase.status.value} successfully",
    )


@router.put("/{purchase_id}/cancel", status_code=status.HTTP_200_OK)
def cancel_purchase(purchase_id: int, db: db_dependency, user: CurrentUser):
    purchase = PurchaseService(db).cancel(purchase_id, user)
    return envelope(
        {"purchase": purchase_out(purchase)}, message="Purchase cancelled successfully"
    )
