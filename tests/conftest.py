import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="tripledger-tests-")

os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["ENV_FILE"] = os.path.join(_TMP_DIR, ".env")
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["COOKIE_SECURE"] = "false"
os.environ["DEFAULT_OCR_METHOD"] = "gemini"
os.environ["OCR_TEMPLATE"] = "general"
# Keep real keys from a developer .env out of the tests
for _key in ("OPENAI_API_KEY", "GEMINI_API_KEY", "ANTHROPIC_API_KEY", "OPENROUTER_API_KEY"):
    os.environ[_key] = ""

from fastapi.testclient import TestClient  # noqa: E402
import pytest  # noqa: E402

from tripledger.core.config import settings  # noqa: E402
from tripledger.db.base import Base  # noqa: E402
from tripledger.db.session import engine  # noqa: E402
from tripledger.main import app  # noqa: E402
from tripledger.services.ocr_service import ocr_service  # noqa: E402

PNG_BYTES = b"\x89PNG\r\n\x1a\n fake image"

CHICAGO_TRIP = "Client Meeting in Chicago"


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(autouse=True)
def restore_ocr_settings():
    saved = {key: getattr(settings, key) for key in (
        "DEFAULT_OCR_METHOD", "OCR_TEMPLATE",
        "OPENAI_API_KEY", "GEMINI_API_KEY", "ANTHROPIC_API_KEY", "OPENROUTER_API_KEY",
    )}
    yield
    for key, value in saved.items():
        setattr(settings, key, value)
        os.environ[key] = value


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


def register(client: TestClient, username: str = "alice", password: str = "secret123", **extra) -> dict:
    """Registers a user and returns bearer headers; the session cookie is dropped."""
    response = client.post(
        "/api/auth/register",
        json={"username": username, "password": password, "firstName": username.title(), **extra},
    )
    assert response.status_code == 201, response.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture()
def auth(client: TestClient) -> dict:
    return register(client)


def create_trip(client: TestClient, headers: dict, name: str = CHICAGO_TRIP, description: str = None) -> dict:
    response = client.post("/api/trips", json={"name": name, "description": description}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def expense_form(**overrides) -> dict:
    form = {
        "date": "2025-04-15",
        "cost": "89.99",
        "type": "Transportation",
        "vendor": "Taxi Service",
        "location": "Chicago",
        "tripName": CHICAGO_TRIP,
    }
    form.update(overrides)
    return form


def create_expense(client: TestClient, headers: dict, receipt: tuple = None, **overrides) -> dict:
    files = {"receipt": receipt} if receipt else None
    response = client.post("/api/expenses", data=expense_form(**overrides), files=files, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture()
def fake_vision(monkeypatch):
    """Replaces the provider call; set .answer to what the model should say."""

    class FakeVision:
        answer = "{}"
        error = None
        calls = []

        def __call__(self, method, contents, mime_type, template):
            self.calls.append({"method": method, "mime_type": mime_type, "template": template})
            if self.error is not None:
                raise self.error
            return self.answer

    fake = FakeVision()
    fake.calls = []
    monkeypatch.setattr(ocr_service, "ask_vision", fake)
    return fake
