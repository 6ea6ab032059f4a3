from decimal import Decimal

import pytest

from tripledger.client.listing import (
    SortState,
    dashboard_totals,
    filter_expenses,
    sort_expenses,
    trip_totals,
)

EXPENSES = [
    {"id": 1, "date": "2025-04-15", "type": "Transportation", "vendor": "Taxi Service",
     "location": "Chicago", "cost": "89.99", "tripName": "Chicago"},
    {"id": 2, "date": "2025-04-02", "type": "food", "vendor": "deli", "location": "Chicago",
     "cost": "9.50", "tripName": "Chicago"},
    {"id": 3, "date": "2025-05-01", "type": "Accommodation", "vendor": "Berlin Hotel",
     "location": "Berlin", "cost": "120.00", "tripName": "Berlin"},
    {"id": 4, "date": "2025-04-15", "type": "Food", "vendor": "Cafe", "location": "Chicago",
     "cost": "100", "tripName": "Chicago"},
]


def ids(items):
    return [item["id"] for item in items]


def test_select_flips_and_resets() -> None:
    state = SortState()
    assert state.select("date") == SortState("date", "desc")
    assert state.select("date").select("date") == SortState("date", "asc")
    assert state.select("date").select("cost") == SortState("cost", "asc")

    with pytest.raises(ValueError):
        state.select("location")


def test_sort_by_date_is_stable() -> None:
    assert ids(sort_expenses(EXPENSES, SortState("date", "asc"))) == [2, 1, 4, 3]
    assert ids(sort_expenses(EXPENSES, SortState("date", "desc"))) == [3, 1, 4, 2]


def test_sort_by_cost_is_numeric() -> None:
    assert ids(sort_expenses(EXPENSES, SortState("cost", "asc"))) == [2, 1, 4, 3]


def test_sort_text_ignores_case() -> None:
    assert ids(sort_expenses(EXPENSES, SortState("vendor", "asc"))) == [3, 4, 2, 1]
    assert ids(sort_expenses(EXPENSES, SortState("type", "asc"))) == [3, 2, 4, 1]


def test_sort_text_places_accented_letters_with_their_base() -> None:
    items = [{"vendor": v} for v in ["Zeta", "Éclair", "apple", "Eagle", "émile"]]
    ordered = [i["vendor"] for i in sort_expenses(items, SortState("vendor", "asc"))]
    assert ordered == ["apple", "Eagle", "Éclair", "émile", "Zeta"]


@pytest.mark.parametrize("field", ["date", "type", "vendor", "cost"])
def test_reversing_twice_restores_order(field) -> None:
    state = SortState().select(field)
    if state.field == "date" and state.direction == "desc":
        state = state.select(field)
    original = sort_expenses(EXPENSES, state)
    twice = sort_expenses(EXPENSES, state.select(field).select(field))
    assert twice == original


def test_filter_by_trip_and_search() -> None:
    assert ids(filter_expenses(EXPENSES, "all")) == [1, 2, 3, 4]
    assert ids(filter_expenses(EXPENSES, "Berlin")) == [3]
    assert ids(filter_expenses(EXPENSES, "Chicago", "FOOD")) == [2, 4]
    assert ids(filter_expenses(EXPENSES, "all", "berlin")) == [3]


def test_trip_totals_only_count_that_trip() -> None:
    total, count = trip_totals({"name": "Chicago"}, EXPENSES)
    assert total == Decimal("199.49")
    assert count == 3
    assert trip_totals({"name": "Nowhere"}, EXPENSES) == (Decimal(0), 0)


def test_dashboard_totals() -> None:
    expenses = EXPENSES + [
        {"id": 5, "date": "not a date", "type": "Food", "vendor": "Kiosk", "cost": "0.51",
         "tripName": "Berlin", "receiptPath": "/uploads/receipts/1/a.png"},
    ]
    expenses[0] = {**expenses[0], "receiptPath": "/uploads/receipts/1/b.png"}

    totals = dashboard_totals([{"name": "Chicago"}, {"name": "Berlin"}], expenses)

    assert totals.trip_count == 2
    assert totals.expense_count == 5
    assert totals.total_spent == Decimal("320.00")
    assert totals.receipts_processed == 2
    assert totals.by_type == {
        "Transportation": Decimal("89.99"),
        "food": Decimal("9.50"),
        "Accommodation": Decimal("120.00"),
        "Food": Decimal("100.51"),
    }
    assert totals.by_month == {"2025-04": Decimal("199.49"), "2025-05": Decimal("120.00")}


def test_dashboard_totals_when_empty() -> None:
    totals = dashboard_totals([], [])
    assert (totals.trip_count, totals.expense_count, totals.receipts_processed) == (0, 0, 0)
    assert totals.total_spent == 0
    assert totals.by_type == {} and totals.by_month == {}
