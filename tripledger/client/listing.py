import unicodedata
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Tuple

import pandas as pd

SORT_FIELDS = ("date", "type", "vendor", "cost")
SEARCH_FIELDS = ("vendor", "location", "type")


@dataclass(frozen=True)
class SortState:
    field: str = "date"
    direction: str = "asc"

    def select(self, field: str) -> "SortState":
        """Same field flips the direction, a new field starts ascending."""
        if field not in SORT_FIELDS:
            raise ValueError(f"Cannot sort by {field!r}")
        if field == self.field:
            return SortState(field, "desc" if self.direction == "asc" else "asc")
        return SortState(field, "asc")


def _to_decimal(value) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(0)


def _text_key(value) -> Tuple[str, str]:
    """Accents only break ties, so "Éclair" sorts among the e's."""
    text = str(value or "")
    base = "".join(c for c in unicodedata.normalize("NFKD", text) if not unicodedata.combining(c))
    return base.casefold(), text.casefold()


def _sort_key(field: str):
    if field == "date":
        def key(item):
            ts = pd.to_datetime(item.get("date"), errors="coerce")
            # Unparseable dates sort as the oldest
            return pd.Timestamp.min if pd.isna(ts) else ts
    elif field == "cost":
        def key(item):
            return _to_decimal(item.get("cost"))
    else:
        def key(item):
            return _text_key(item.get(field))
    return key


def sort_expenses(items: Iterable[dict], state: SortState) -> List[dict]:
    return sorted(items, key=_sort_key(state.field), reverse=state.direction == "desc")


def filter_expenses(items: Iterable[dict], trip_name: str = "all", query: str = "") -> List[dict]:
    needle = (query or "").strip().casefold()
    result = []
    for item in items:
        if trip_name and trip_name != "all" and item.get("tripName") != trip_name:
            continue
        if needle and not any(needle in str(item.get(f) or "").casefold() for f in SEARCH_FIELDS):
            continue
        result.append(item)
    return result


def trip_totals(trip: dict, expenses: Iterable[dict]) -> Tuple[Decimal, int]:
    """Total spent and expense count over the expenses loaded so far."""
    matching = [e for e in expenses if e.get("tripName") == trip.get("name")]
    return sum((_to_decimal(e.get("cost")) for e in matching), Decimal(0)), len(matching)


@dataclass
class DashboardTotals:
    trip_count: int = 0
    expense_count: int = 0
    total_spent: Decimal = Decimal(0)
    receipts_processed: int = 0
    by_type: Dict[str, Decimal] = field(default_factory=dict)
    by_month: Dict[str, Decimal] = field(default_factory=dict)


def dashboard_totals(trips: Iterable[dict], expenses: Iterable[dict]) -> DashboardTotals:
    """
    Dashboard cards and charts folded from the loaded lists. ``by_type`` keeps the
    order types first appear in; ``by_month`` is keyed "YYYY-MM" in calendar order
    and leaves out expenses whose date does not parse.
    """
    totals = DashboardTotals(trip_count=len(list(trips)))
    months: Dict[str, Decimal] = {}
    for expense in expenses:
        cost = _to_decimal(expense.get("cost"))
        totals.expense_count += 1
        totals.total_spent += cost
        if expense.get("receiptPath"):
            totals.receipts_processed += 1

        kind = expense.get("type") or "Other"
        totals.by_type[kind] = totals.by_type.get(kind, Decimal(0)) + cost

        ts = pd.to_datetime(expense.get("date"), errors="coerce")
        if not pd.isna(ts):
            month = ts.strftime("%Y-%m")
            months[month] = months.get(month, Decimal(0)) + cost

    totals.by_month = dict(sorted(months.items()))
    return totals
