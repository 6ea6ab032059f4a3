import io
import os
from decimal import Decimal

import pandas as pd
import pytest
from fastapi.testclient import TestClient

from conftest import CHICAGO_TRIP, PNG_BYTES, create_expense, create_trip, expense_form, register
from tripledger.services.storage_service import storage_service


def test_client_meeting_in_chicago(client: TestClient, auth: dict) -> None:
    create_trip(client, auth, CHICAGO_TRIP)
    create_expense(client, auth)

    response = client.get("/api/expenses", params={"tripName": CHICAGO_TRIP}, headers=auth)
    assert response.status_code == 200
    expenses = response.json()
    assert len(expenses) == 1
    assert Decimal(expenses[0]["cost"]) == Decimal("89.99")
    assert expenses[0]["vendor"] == "Taxi Service"
    assert expenses[0]["date"] == "2025-04-15"


@pytest.mark.parametrize("cost", ["12", "0.01", "1234.50"])
def test_persisted_cost_matches_submitted_string(client: TestClient, auth: dict, cost: str) -> None:
    create_trip(client, auth)
    expense = create_expense(client, auth, cost=cost)

    stored = client.get(f"/api/expenses/{expense['id']}", headers=auth).json()
    assert Decimal(stored["cost"]) == Decimal(cost)
    assert Decimal(stored["cost"]) > 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"cost": "0"},
        {"cost": "-5"},
        {"cost": "abc"},
        {"cost": "1.234"},
        {"date": "15/04/2025"},
        {"vendor": ""},
        {"location": "   "},
    ],
)
def test_invalid_expense_is_400(client: TestClient, auth: dict, overrides: dict) -> None:
    create_trip(client, auth)
    response = client.post("/api/expenses", data=expense_form(**overrides), headers=auth)
    assert response.status_code == 400
    assert response.json()["message"]


def test_missing_field_is_400(client: TestClient, auth: dict) -> None:
    create_trip(client, auth)
    form = expense_form()
    del form["vendor"]
    response = client.post("/api/expenses", data=form, headers=auth)
    assert response.status_code == 400


def test_expense_needs_existing_trip_of_same_user(client: TestClient, auth: dict) -> None:
    response = client.post("/api/expenses", data=expense_form(tripName="Nowhere"), headers=auth)
    assert response.status_code == 400
    assert "Nowhere" in response.json()["message"]

    other = register(client, "bob")
    create_trip(client, other, CHICAGO_TRIP)
    response = client.post("/api/expenses", data=expense_form(), headers=auth)
    assert response.status_code == 400


def test_list_is_date_descending_and_scoped_to_user(client: TestClient, auth: dict) -> None:
    create_trip(client, auth)
    create_expense(client, auth, date="2025-04-14")
    create_expense(client, auth, date="2025-04-16")

    other = register(client, "bob")
    create_trip(client, other)
    create_expense(client, other)

    dates = [e["date"] for e in client.get("/api/expenses", headers=auth).json()]
    assert dates == ["2025-04-16", "2025-04-14"]


def test_receipt_upload_and_replace(client: TestClient, auth: dict) -> None:
    create_trip(client, auth)
    expense = create_expense(client, auth, receipt=("taxi.png", PNG_BYTES, "image/png"))
    old_path = expense["receiptPath"]
    assert old_path.startswith("/uploads/receipts/")
    assert client.get(old_path).content == PNG_BYTES

    response = client.put(
        f"/api/expenses/{expense['id']}",
        data=expense_form(vendor="Yellow Cab"),
        files={"receipt": ("new.pdf", b"%PDF-1.4", "application/pdf")},
        headers=auth,
    )
    assert response.status_code == 200
    updated = response.json()
    assert updated["vendor"] == "Yellow Cab"
    assert updated["receiptPath"].endswith(".pdf")
    assert not os.path.exists(storage_service.local_path(old_path))


def test_update_without_receipt_keeps_it(client: TestClient, auth: dict) -> None:
    create_trip(client, auth)
    expense = create_expense(client, auth, receipt=("taxi.png", PNG_BYTES, "image/png"))

    response = client.put(f"/api/expenses/{expense['id']}", data=expense_form(cost="45.50"), headers=auth)
    assert response.status_code == 200
    assert response.json()["receiptPath"] == expense["receiptPath"]
    assert Decimal(response.json()["cost"]) == Decimal("45.50")


def test_receipt_type_is_checked(client: TestClient, auth: dict) -> None:
    create_trip(client, auth)
    response = client.post(
        "/api/expenses",
        data=expense_form(),
        files={"receipt": ("notes.txt", b"hello", "text/plain")},
        headers=auth,
    )
    assert response.status_code == 400
    assert "Invalid file type" in response.json()["message"]
    assert client.get("/api/expenses", headers=auth).json() == []


def test_delete_expense_removes_receipt(client: TestClient, auth: dict) -> None:
    create_trip(client, auth)
    expense = create_expense(client, auth, receipt=("taxi.png", PNG_BYTES, "image/png"))
    path = storage_service.local_path(expense["receiptPath"])

    response = client.delete(f"/api/expenses/{expense['id']}", headers=auth)
    assert response.status_code == 204
    assert not os.path.exists(path)
    assert client.get(f"/api/expenses/{expense['id']}", headers=auth).status_code == 404


def test_other_users_expense_is_forbidden(client: TestClient, auth: dict) -> None:
    create_trip(client, auth)
    expense = create_expense(client, auth)
    other = register(client, "bob")

    assert client.get(f"/api/expenses/{expense['id']}", headers=other).status_code == 403
    assert client.delete(f"/api/expenses/{expense['id']}", headers=other).status_code == 403


def test_export_expenses_xlsx(client: TestClient, auth: dict) -> None:
    create_trip(client, auth)
    create_trip(client, auth, "Berlin")
    create_expense(client, auth)
    create_expense(client, auth, tripName="Berlin", vendor="U-Bahn", cost="3.20")

    response = client.get("/api/export-expenses", params={"tripName": CHICAGO_TRIP}, headers=auth)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert 'filename="expenses-' in response.headers["content-disposition"]

    df = pd.read_excel(io.BytesIO(response.content), sheet_name="Expenses")
    assert list(df["Vendor"]) == ["Taxi Service"]
    assert df["Amount"].iloc[0] == pytest.approx(89.99)
    assert df["Has Receipt"].iloc[0] == "No"


def test_expense_summary(client: TestClient, auth: dict) -> None:
    create_trip(client, auth)
    create_expense(client, auth, cost="89.99")
    create_expense(client, auth, cost="20.00", type="Food", vendor="Deli")

    response = client.get("/api/expenses/summary", headers=auth)
    assert response.status_code == 200
    data = response.json()
    assert data["expenseCount"] == 2
    assert data["totalSpent"] == pytest.approx(109.99)
    assert dict(zip(data["byType"]["labels"], data["byType"]["data"])) == {
        "Food": 20.0,
        "Transportation": 89.99,
    }
    assert data["topVendors"]["labels"][0] == "Taxi Service"


def test_expense_summary_trend_and_receipts(client: TestClient, auth: dict) -> None:
    empty = client.get("/api/expenses/summary", headers=auth).json()
    assert empty["receiptCount"] == 0
    assert empty["trend"] == {"labels": [], "data": []}

    create_trip(client, auth)
    create_expense(client, auth, cost="89.99", date="2025-04-15")
    create_expense(client, auth, cost="20.00", date="2025-04-30", type="Food", vendor="Deli")
    create_expense(client, auth, receipt=("deli.png", PNG_BYTES, "image/png"), cost="10.01", date="2025-05-02")

    data = client.get("/api/expenses/summary", headers=auth).json()
    assert data["receiptCount"] == 1
    assert data["trend"]["labels"] == ["2025-04", "2025-05"]
    assert data["trend"]["data"] == pytest.approx([109.99, 10.01])
