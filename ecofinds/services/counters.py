"""Single write path for the denormalized counter columns.

Every counter change is an atomic ``col = col + delta`` UPDATE issued on the
caller's session, so it commits (or rolls back) together with the write that
triggered it. Counters never go below zero.
"""

import logging

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from ecofinds.models.product import Product
from ecofinds.models.user import User

logger = logging.getLogger(__name__)

USER_COUNTERS = {"followers_count", "following_count", "listings_count", "sales_count"}
PRODUCT_COUNTERS = {"views_count", "favorites_count"}


def adjust_counter(db: Session, model, row_id: int, field: str, delta: int = 1) -> int:
    allowed = USER_COUNTERS if model is User else PRODUCT_COUNTERS if model is Product else set()
    if field not in allowed:
        raise ValueError(f"{model.__name__}.{field} is not a counter column")

    column = getattr(model, field)
    if delta >= 0:
        new_value = column + delta
    else:
        new_value = case((column + delta < 0, 0), else_=column + delta)

    result = db.execute(
        update(model)
        .where(model.id == row_id)
        .values({field: new_value})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.warning("Counter %s.%s not adjusted: row %s missing", model.__name__, field, row_id)
    return result.rowcount


def adjust_user_counter(db: Session, user_id: int, field: str, delta: int = 1) -> int:
    return adjust_counter(db, User, user_id, field, delta)


def adjust_product_counter(db: Session, product_id: int, field: str, delta: int = 1) -> int:
    return adjust_counter(db, Product, product_id, field, delta)
