from fastapi.testclient import TestClient

from conftest import register
from tripledger.main import app


def test_register_returns_user_token_and_cookie(client: TestClient) -> None:
    response = client.post(
        "/api/auth/register",
        json={
            "username": "alice",
            "password": "secret123",
            "firstName": "Alice",
            "lastName": "Smith",
            "email": "alice@example.com",
        },
    )
    assert response.status_code == 201
    data = response.json()
    assert data["token"]
    assert data["user"]["username"] == "alice"
    assert data["user"]["firstName"] == "Alice"
    assert "passwordHash" not in data["user"]
    assert "token" in response.cookies


def test_register_duplicate_username(client: TestClient) -> None:
    register(client, "alice")
    response = client.post("/api/auth/register", json={"username": "alice", "password": "other"})
    assert response.status_code == 409
    assert response.json()["message"] == "Username already exists"


def test_register_duplicate_email(client: TestClient) -> None:
    register(client, "alice", email="same@example.com")
    response = client.post(
        "/api/auth/register",
        json={"username": "bob", "password": "secret123", "email": "same@example.com"},
    )
    assert response.status_code == 409


def test_register_rejects_bad_email(client: TestClient) -> None:
    response = client.post(
        "/api/auth/register",
        json={"username": "alice", "password": "secret123", "email": "not-an-email"},
    )
    assert response.status_code == 400
    assert response.json()["message"].startswith("email")


def test_login_and_current_user(client: TestClient) -> None:
    register(client, "alice", password="secret123")

    response = client.post("/api/auth/login", json={"username": "alice", "password": "secret123"})
    assert response.status_code == 200
    token = response.json()["token"]

    client.cookies.clear()
    for path in ("/api/auth/user", "/api/user"):
        me = client.get(path, headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["username"] == "alice"


def test_login_wrong_password(client: TestClient) -> None:
    register(client, "alice", password="secret123")
    response = client.post("/api/auth/login", json={"username": "alice", "password": "nope"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid username or password"


def test_cookie_session_is_accepted(client: TestClient) -> None:
    register(client, "alice", password="secret123")
    client.post("/api/auth/login", json={"username": "alice", "password": "secret123"})

    assert client.get("/api/auth/user").status_code == 200

    client.post("/api/auth/logout")
    assert client.get("/api/auth/user").status_code == 401


def test_missing_or_bad_token_is_401() -> None:
    fresh = TestClient(app)
    response = fresh.get("/api/auth/user")
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"

    response = fresh.get("/api/auth/user", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
