import os
import sys
from decimal import Decimal

import pytest

CURRENT_DIR = os.path.dirname(__file__)
SERVICE_ROOT = os.path.dirname(CURRENT_DIR)
if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

# settings are read once at import time, so these go in before any dashboard import
os.environ["DATABASE_URL"] = "sqlite:///./test_dashboard.db"
os.environ["CACHE_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dashboard.infrastructure.db import get_db
from dashboard.infrastructure.models import Base, UserORM, Product
from dashboard.infrastructure.security import PasswordHasher, create_access_token
from dashboard.main import app

# in-memory DB shared by every session through a single connection
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture
def db_session():
    """Fresh schema per test plus a session for seeding and assertions"""
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    db = TestingSessionLocal()
    yield db
    db.close()
    Base.metadata.drop_all(bind=test_engine)

@pytest.fixture
def client(db_session):
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    if get_db in app.dependency_overrides:
        del app.dependency_overrides[get_db]

@pytest.fixture
def make_user(db_session):
    def _make_user(email="user@example.com", password="secret1", name="User", role="user"):
        row = UserORM(name=name, email=email, password_hash=PasswordHasher().hash(password), role=role)
        db_session.add(row)
        db_session.commit()
        db_session.refresh(row)
        return row
    return _make_user

@pytest.fixture
def make_product(db_session):
    def _make_product(name="Widget", price=Decimal("9.99"), stock=10, description=None):
        row = Product(name=name, price=price, stock=stock, description=description)
        db_session.add(row)
        db_session.commit()
        db_session.refresh(row)
        return row
    return _make_product

@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        token = create_access_token(sub=user.email, role=user.role)
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers
