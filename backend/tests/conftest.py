import os

# Must be set before the application modules read their settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app
from models.users import User, UserRole
from models.store import Store
from models.product import Product
from services.stores import slugify
from utils.hashing import get_password_hash
from utils.tokenJWT import create_access_token


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---- factories ----
@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role=UserRole.CUSTOMER, email=None, name="Test User", password="password123"):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@shop.com",
            name=name,
            role=role,
            password_hash=get_password_hash(password),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def make_store(db):
    def _make(owner, name="Corner Shop", is_active=True):
        slug = slugify(name)
        suffix = db.query(Store).filter(Store.slug.like(f"{slug}%")).count()
        store = Store(
            name=name,
            slug=f"{slug}-{suffix}" if suffix else slug,
            business_id=owner.id,
            is_active=is_active,
        )
        db.add(store)
        db.commit()
        db.refresh(store)
        return store
    return _make


@pytest.fixture
def make_product(db):
    def _make(store, name="Widget", price="10.00", stock=5, is_active=True):
        product = Product(
            name=name,
            price=Decimal(price),
            stock=stock,
            store_id=store.id,
            is_active=is_active,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    return _make


@pytest.fixture
def business(make_user):
    return make_user(UserRole.BUSINESS, email="owner@shop.com", name="Store Owner")


@pytest.fixture
def customer(make_user):
    return make_user(UserRole.CUSTOMER, email="buyer@shop.com", name="Buyer")


def auth_headers(user):
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}
