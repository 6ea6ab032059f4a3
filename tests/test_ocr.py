import json
import threading
import time

import pytest
from fastapi.testclient import TestClient

from conftest import PNG_BYTES
from tripledger.main import app
from tripledger.services.ocr_service import (
    OCRError,
    OCRService,
    extract_data_from_text,
    guess_expense_type,
    normalize_date,
    ocr_service,
    parse_odometer_reading,
    to_form_data,
)


def test_process_receipt_maps_fields(client: TestClient, auth: dict, fake_vision) -> None:
    fake_vision.answer = json.dumps({
        "Date": "04/15/2025",
        "merchant": "Hilton Hotel Chicago",
        "Address": "720 S Michigan Ave",
        "TotalAmount": "245.10",
        "items": [{"name": "Room", "price": 245.10}],
        "paymentMethod": "Visa",
    })

    response = client.post(
        "/api/ocr/process",
        data={"method": "openai", "template": "travel"},
        files={"receipt": ("hotel.jpg", PNG_BYTES, "image/jpeg")},
        headers=auth,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["formData"]["vendor"] == "Hilton Hotel Chicago"
    assert data["formData"]["date"] == "2025-04-15"
    assert data["formData"]["cost"] == "245.1"
    assert data["formData"]["type"] == "Accommodation"
    assert data["formData"]["items"] == [{"name": "Room", "price": 245.10}]
    assert data["formData"]["paymentMethod"] == "Visa"
    assert data["data"]["location"] == "720 S Michigan Ave"
    assert fake_vision.calls == [{"method": "openai", "mime_type": "image/jpeg", "template": "travel"}]


def test_missing_api_key_is_partial_success(client: TestClient, auth: dict) -> None:
    response = client.post(
        "/api/ocr/process",
        data={"method": "claude"},
        files={"receipt": ("r.png", PNG_BYTES, "image/png")},
        headers=auth,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert "No API key configured for claude" in data["error"]
    assert data["formData"]["vendor"] == ""
    assert data["formData"]["type"] == "Other"


def test_unstructured_answer_still_succeeds(client: TestClient, auth: dict, fake_vision) -> None:
    fake_vision.answer = "Joe's Diner dinner 04/15/2025 Total: $31.40 USD"
    response = client.post(
        "/api/ocr/process",
        files={"receipt": ("r.png", PNG_BYTES, "image/png")},
        headers=auth,
    )
    data = response.json()
    assert data["success"] is True
    assert data["formData"]["cost"] == "31.4"
    assert data["formData"]["currency"] == "USD"
    assert data["formData"]["type"] == "Food"


def test_process_requires_valid_file(client: TestClient, auth: dict) -> None:
    response = client.post("/api/ocr/process", data={"method": "gemini"}, headers=auth)
    assert response.status_code == 400

    response = client.post(
        "/api/ocr/process",
        files={"receipt": ("r.txt", b"text", "text/plain")},
        headers=auth,
    )
    assert response.status_code == 400


def test_unsupported_method_is_reported() -> None:
    result = OCRService().process_receipt(PNG_BYTES, "r.png", method="tesseract")
    assert result["success"] is False
    assert "Unsupported OCR method" in result["error"]


def test_client_for_requires_key() -> None:
    with pytest.raises(OCRError):
        OCRService().client_for("gemini")

    client = OCRService().client_for("openrouter", api_key="sk-test")
    assert str(client.base_url).startswith("https://openrouter.ai/api/v1")


def test_pdf_with_unknown_method_falls_back(monkeypatch) -> None:
    from tripledger.core.config import settings

    monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test")
    assert OCRService().resolve_method("tesseract", "scan.pdf") == "openai"
    assert OCRService().resolve_method("tesseract", "photo.png") == "tesseract"


def test_extract_prefers_fenced_json() -> None:
    text = 'Here you go:\n```json\n{"vendor": "Uber", "total": "$18.20"}\n```'
    assert extract_data_from_text(text) == {"vendor": "Uber", "cost": 18.2}


def test_to_form_data_failure_is_blank() -> None:
    form = to_form_data({"success": False, "error": "timeout"})
    assert form["cost"] == "" and form["items"] == [] and form["type"] == "Other"


@pytest.mark.parametrize(
    "text,vendor,expected",
    [
        ("Boarding pass flight 22", "", "Transportation"),
        ("", "Marriott Inn", "Accommodation"),
        ("Lunch special", "", "Food"),
        ("Office supplies", "Staples", "Other"),
    ],
)
def test_guess_expense_type(text, vendor, expected) -> None:
    assert guess_expense_type(text, vendor) == expected


def test_normalize_date() -> None:
    assert normalize_date("2025-04-15") == "2025-04-15"
    assert normalize_date("") == ""
    assert normalize_date("sometime") == "sometime"


@pytest.mark.parametrize(
    "text,expected",
    [("123456.7", 123456.7), ('{"odometer": 98765}', 98765.0), ("12.345.6 km", 12.3456), ("none", None)],
)
def test_parse_odometer_reading(text, expected) -> None:
    assert parse_odometer_reading(text) == expected


def test_slow_provider_does_not_hold_up_other_requests(auth: dict, monkeypatch) -> None:
    started = threading.Event()

    def slow_vision(method, contents, mime_type, template):
        started.set()
        time.sleep(1.0)
        return "{}"

    monkeypatch.setattr(ocr_service, "ask_vision", slow_vision)

    with TestClient(app) as client:
        scan = threading.Thread(target=lambda: client.post(
            "/api/ocr/process",
            files={"receipt": ("r.png", PNG_BYTES, "image/png")},
            headers=auth,
        ))
        scan.start()
        assert started.wait(timeout=5)

        begin = time.perf_counter()
        assert client.get("/").status_code == 200
        elapsed = time.perf_counter() - begin
        scan.join()

    assert elapsed < 0.5
