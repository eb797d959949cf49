import os
import pytest
from datetime import timedelta
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker

# CRITICAL: Set test environment BEFORE importing any ecofinds modules
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["TESTING"] = "true"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("CLOUDINARY_CLOUD_NAME", "test-cloud")
os.environ.setdefault("CLOUDINARY_API_KEY", "test-key")
os.environ.setdefault("CLOUDINARY_API_SECRET", "test-secret")

from ecofinds.main import app
from ecofinds.database import Base
import ecofinds.database as db_module
import ecofinds.dependencies as dependencies_module
import ecofinds.Middleware.audit_middleware as audit_mw
from ecofinds.models.category import Category
from ecofinds.models.product import Product, ProductCondition, ProductStatus
from ecofinds.models.product_images import ProductImage
from ecofinds.models.user import User, UserRole
from ecofinds.services import image_service as image_service_module
from ecofinds.services.auth_service import create_access_token


@pytest.fixture(scope="session")
def test_engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,  # share same in-memory DB across connections
    )
    return engine


@pytest.fixture()
def db_session(test_engine):
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=test_engine
    )
    # Fresh schema per test to avoid cross-test data (e.g., unique email)
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def patch_sessionlocal(monkeypatch, test_engine, db_session):
    monkeypatch.setattr(db_module, "engine", test_engine, raising=False)

    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=test_engine
    )
    monkeypatch.setattr(db_module, "SessionLocal", TestingSessionLocal, raising=True)
    # get_db (and through it every router and the websocket) reads this global
    monkeypatch.setattr(
        dependencies_module, "SessionLocal", TestingSessionLocal, raising=True
    )
    monkeypatch.setattr(audit_mw, "SessionLocal", TestingSessionLocal, raising=True)

    # Disable rate limiter globally for tests
    if hasattr(app.state, "limiter"):
        setattr(app.state.limiter, "enabled", False)
    yield


class FakeStorage:
    """Records Cloudinary traffic instead of sending it."""

    def __init__(self):
        self.uploaded = []
        self.deleted = []
        self.fail_uploads = False

    async def upload(self, file, folder):
        if self.fail_uploads:
            raise RuntimeError("storage unavailable")
        public_id = f"{folder}/file-{len(self.uploaded) + 1}"
        self.uploaded.append(public_id)
        return {"public_id": public_id, "secure_url": f"https://cdn.test/{public_id}.jpg"}

    async def delete(self, public_id):
        self.deleted.append(public_id)
        return True


@pytest.fixture(autouse=True)
def storage(monkeypatch):
    fake = FakeStorage()
    monkeypatch.setattr(
        image_service_module.ImageService,
        "upload_image",
        staticmethod(fake.upload),
        raising=True,
    )
    monkeypatch.setattr(
        image_service_module.ImageService,
        "delete_image",
        staticmethod(fake.delete),
        raising=True,
    )
    return fake


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture()
def make_user(db_session):
    counter = {"n": 0}

    def _make(name="Test User", role=UserRole.USER, is_active=True, **fields):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            name=name,
            email=fields.pop("email", f"user{n}@ecofinds.com"),
            phone=fields.pop("phone", f"98765{n:05d}"),
            password_hash=fields.pop("password_hash", "x"),
            role=role,
            is_active=is_active,
            is_verified=fields.pop("is_verified", False),
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def admin_user(make_user):
    return make_user(name="Admin", role=UserRole.ADMIN, is_verified=True)


@pytest.fixture()
def category(db_session):
    cat = Category(name="Electronics", icon="📱", description="Gadgets")
    db_session.add(cat)
    db_session.commit()
    db_session.refresh(cat)
    return cat


@pytest.fixture()
def make_product(db_session, category):
    def _make(seller, status=ProductStatus.APPROVED, images=1, **fields):
        product = Product(
            title=fields.pop("title", "Vintage camera"),
            description=fields.pop("description", "A lovingly used film camera"),
            price=fields.pop("price", 1500.0),
            category_id=fields.pop("category_id", category.id),
            seller_id=seller.id,
            condition=fields.pop("condition", ProductCondition.GOOD),
            location=fields.pop("location", "Pune"),
            status=status,
            **fields,
        )
        for i in range(images):
            product.images.append(
                ProductImage(
                    file_key=f"products/seed-{i}",
                    image_url=f"https://cdn.test/seed-{i}.jpg",
                    is_primary=i == 0,
                )
            )
        db_session.add(product)
        db_session.commit()
        db_session.refresh(product)
        return product

    return _make


def auth_headers(user):
    token = create_access_token(
        user.email, user.id, user.role.value, timedelta(minutes=30)
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def headers():
    return auth_headers
