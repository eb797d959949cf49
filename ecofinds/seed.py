"""Insert the default categories and the bootstrap admin account.

Run with ``python -m ecofinds.seed``; rows that already exist are left alone.
"""

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from ecofinds import models  # noqa: F401
from ecofinds.config import settings
from ecofinds.database import Base, SessionLocal, engine
from ecofinds.models.user import User, UserRole
from ecofinds.services.auth_service import get_password_hash
from ecofinds.services.category_service import CategoryService

logger = logging.getLogger(__name__)


def seed_admin(db: Session) -> bool:
    email = settings.ADMIN_EMAIL.lower()
    if db.execute(select(User.id).where(User.email == email)).first() is not None:
        return False
    db.add(
        User(
            name=settings.ADMIN_NAME,
            email=email,
            password_hash=get_password_hash(settings.ADMIN_PASSWORD),
            avatar=settings.DEFAULT_AVATAR_URL,
            role=UserRole.ADMIN,
            is_active=True,
            is_verified=True,
        )
    )
    db.commit()
    return True


def seed_defaults(db: Session) -> dict:
    categories = CategoryService(db).seed_defaults()
    admin = seed_admin(db)
    logger.info("Seeded %s categories, admin created: %s", categories, admin)
    return {"categories": categories, "admin": admin}


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        seed_defaults(session)
    finally:
        session.close()
