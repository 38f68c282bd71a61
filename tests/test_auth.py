import pytest
from sqlalchemy.exc import OperationalError

from dashboard.config import settings
from dashboard.infrastructure.models import UserORM
from dashboard.infrastructure.rate_limit import limiter
from dashboard.infrastructure.repositories import UserRepository
from dashboard.infrastructure.security import PasswordHasher, create_access_token

REGISTER_URL = "/api/auth/register"
VALID = {"name": "Jane", "email": "jane@x.com", "password": "secret1"}


def count_users(db_session, email):
    db_session.expire_all()
    return db_session.query(UserORM).filter(UserORM.email == email).count()


@pytest.mark.parametrize("payload", [
    {},
    {"email": "jane@x.com", "password": "secret1"},
    {"name": "Jane", "password": "secret1"},
    {"name": "Jane", "email": "jane@x.com"},
    {"name": "", "email": "jane@x.com", "password": "secret1"},
    {"name": "Jane", "email": "jane@x.com", "password": None},
])
def test_register_missing_field(client, payload):
    response = client.post(REGISTER_URL, json=payload)
    assert response.status_code == 400
    assert response.json() == {"message": "Name, email, and password are required"}

@pytest.mark.parametrize("email", ["noat.com", "a@b", "jane @x.com"])
def test_register_invalid_email(client, email):
    response = client.post(REGISTER_URL, json={**VALID, "email": email})
    assert response.status_code == 400
    assert response.json() == {"message": "Invalid email format"}

def test_register_short_password(client):
    response = client.post(REGISTER_URL, json={**VALID, "password": "abc"})
    assert response.status_code == 400
    assert response.json() == {"message": "Password must be at least 6 characters long"}

def test_register_success(client, db_session):
    response = client.post(REGISTER_URL, json=VALID)
    assert response.status_code == 201
    data = response.json()
    assert data["message"] == "User registered successfully"
    user = data["user"]
    assert user["name"] == "Jane"
    assert user["email"] == "jane@x.com"
    assert user["role"] == "user"
    assert isinstance(user["id"], int)
    assert user["createdAt"]
    assert "password" not in user
    assert "passwordHash" not in user

    db_session.expire_all()
    rows = db_session.query(UserORM).filter(UserORM.email == "jane@x.com").all()
    assert len(rows) == 1
    assert rows[0].password_hash != "secret1"
    assert PasswordHasher().verify("secret1", rows[0].password_hash)

def test_register_ignores_unknown_fields(client):
    response = client.post(REGISTER_URL, json={**VALID, "role": "admin", "password_hash": "x"})
    assert response.status_code == 201
    assert response.json()["user"]["role"] == "user"

def test_register_duplicate(client, db_session, make_user):
    make_user(email="jane@x.com")
    response = client.post(REGISTER_URL, json=VALID)
    assert response.status_code == 409
    assert response.json() == {"message": "User with this email already exists"}
    assert count_users(db_session, "jane@x.com") == 1

def test_register_twice_is_not_idempotent(client, db_session):
    first = client.post(REGISTER_URL, json=VALID)
    second = client.post(REGISTER_URL, json=VALID)
    assert first.status_code == 201
    assert second.status_code == 409
    assert count_users(db_session, "jane@x.com") == 1

def test_register_email_lookup_is_exact(client):
    assert client.post(REGISTER_URL, json=VALID).status_code == 201
    response = client.post(REGISTER_URL, json={**VALID, "email": "Jane@x.com"})
    assert response.status_code == 201

def test_register_race_caught_by_unique_constraint(client, db_session, make_user, monkeypatch):
    make_user(email="jane@x.com")
    # the existence check misses, as it would for a concurrent request
    monkeypatch.setattr(UserRepository, "find_by_email", lambda self, email: None)
    response = client.post(REGISTER_URL, json=VALID)
    assert response.status_code == 409
    assert count_users(db_session, "jane@x.com") == 1

@pytest.mark.parametrize("body", ["not json", "[1, 2, 3]", '"jane"', '{"name": 5, "email": "jane@x.com", "password": "secret1"}'])
def test_register_malformed_payload(client, body):
    response = client.post(REGISTER_URL, content=body, headers={"Content-Type": "application/json"})
    assert response.status_code == 500
    assert response.json() == {"message": "Internal Server Error"}

def test_register_store_failure_is_opaque(client, monkeypatch):
    def broken(self, email):
        raise OperationalError("SELECT users", {}, Exception("connection refused by db-host:5432"))
    monkeypatch.setattr(UserRepository, "find_by_email", broken)

    response = client.post(REGISTER_URL, json=VALID)
    assert response.status_code == 500
    assert response.json() == {"message": "Internal Server Error"}
    assert "db-host" not in response.text

def test_login_success(client, make_user):
    make_user(email="jane@x.com", password="secret1")
    response = client.post("/api/auth/login", json={"email": "jane@x.com", "password": "secret1"})
    assert response.status_code == 200
    data = response.json()
    assert data["access_token"]
    assert data["token_type"] == "bearer"

def test_login_wrong_password(client, make_user):
    make_user(email="jane@x.com", password="secret1")
    response = client.post("/api/auth/login", json={"email": "jane@x.com", "password": "secret2"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"

def test_login_unknown_user(client):
    response = client.post("/api/auth/login", json={"email": "ghost@x.com", "password": "secret1"})
    assert response.status_code == 401

def test_login_inactive_user(client, db_session, make_user):
    user = make_user(email="jane@x.com", password="secret1")
    user.is_active = False
    db_session.commit()
    response = client.post("/api/auth/login", json={"email": "jane@x.com", "password": "secret1"})
    assert response.status_code == 401

def test_me(client, make_user, auth_headers):
    user = make_user(email="jane@x.com", name="Jane")
    response = client.get("/api/auth/me", headers=auth_headers(user))
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == "jane@x.com"
    assert data["name"] == "Jane"
    assert "password" not in data

def test_me_invalid_token(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer invalid_token"})
    assert response.status_code == 401

def test_me_unknown_user(client):
    token = create_access_token(sub="ghost@x.com")
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401

def test_me_no_token(client):
    response = client.get("/api/auth/me")
    # HTTPBearer answers 403 on older FastAPI releases, 401 on newer ones
    assert response.status_code in (401, 403)

@pytest.fixture
def rate_limited(monkeypatch):
    """Turn the limiter on with empty counters for one test"""
    limiter.reset()
    monkeypatch.setattr(limiter, "enabled", True)
    yield limiter
    limiter.reset()

def test_register_rate_limit(client, rate_limited):
    for _ in range(settings.RATE_LIMIT_PER_MINUTE):
        assert client.post(REGISTER_URL, json={}).status_code == 400
    response = client.post(REGISTER_URL, json=VALID)
    assert response.status_code == 429

def test_login_rate_limit(client, rate_limited):
    credentials = {"email": "ghost@x.com", "password": "secret1"}
    for _ in range(10):
        assert client.post("/api/auth/login", json=credentials).status_code == 401
    response = client.post("/api/auth/login", json=credentials)
    assert response.status_code == 429

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert client.get("/api/auth/health").status_code == 404
