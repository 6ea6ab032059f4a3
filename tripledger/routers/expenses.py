import logging
from typing import Optional

import pandas as pd
from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from sqlalchemy import func
from sqlalchemy.orm import Session

from tripledger.core.security import get_current_user
from tripledger.db.session import get_db
from tripledger.models.expense import Expense
from tripledger.models.user import User
from tripledger.routers.common import get_owned, require_trip_name
from tripledger.schemas.expense import ExpenseForm, ExpenseOut
from tripledger.services.export_service import XLSX_MEDIA_TYPE, export_service
from tripledger.services.storage_service import storage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["expenses"])


def _parse_form(**fields) -> ExpenseForm:
    # Missing multipart fields arrive as None; pydantic reports them as required
    return ExpenseForm.model_validate({k: v for k, v in fields.items() if v is not None})


def _store_receipt(user: User, receipt: Optional[UploadFile]) -> Optional[str]:
    if receipt is None or not receipt.filename:
        return None
    storage_service.validate(receipt.filename)
    contents = receipt.file.read()
    return storage_service.save_receipt(user.id, receipt.filename, contents)


def _user_expenses(db: Session, user: User, trip_name: Optional[str] = None):
    query = db.query(Expense).filter(Expense.user_id == user.id)
    if trip_name:
        query = query.filter(Expense.trip_name == trip_name)
    return query.order_by(Expense.date.desc(), Expense.id.desc())


@router.get("/expenses", response_model=list[ExpenseOut])
def list_expenses(
    trip_name: Optional[str] = Query(None, alias="tripName"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _user_expenses(db, user, trip_name).all()


@router.get("/expenses/summary")
def expense_summary(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    # 1. Totals by type
    type_data = (
        db.query(Expense.type, func.sum(Expense.cost))
        .filter(Expense.user_id == user.id)
        .group_by(Expense.type)
        .order_by(Expense.type)
        .all()
    )

    # 2. Top 5 vendors
    vendor_data = (
        db.query(Expense.vendor, func.sum(Expense.cost))
        .filter(Expense.user_id == user.id)
        .group_by(Expense.vendor)
        .order_by(func.sum(Expense.cost).desc())
        .limit(5)
        .all()
    )

    total, count, receipts = (
        db.query(
            func.coalesce(func.sum(Expense.cost), 0),
            func.count(Expense.id),
            func.count(Expense.receipt_path),
        )
        .filter(Expense.user_id == user.id)
        .one()
    )

    # 3. Monthly trend, last 12 months with spending
    rows = db.query(Expense.date, Expense.cost).filter(Expense.user_id == user.id).all()
    trend = pd.Series(dtype=float)
    if rows:
        df = pd.DataFrame([tuple(row) for row in rows], columns=["date", "cost"])
        df["month"] = pd.to_datetime(df["date"]).dt.strftime("%Y-%m")
        trend = df.assign(cost=df["cost"].astype(float)).groupby("month")["cost"].sum().sort_index().tail(12)

    return {
        "totalSpent": round(float(total), 2),
        "expenseCount": count,
        "receiptCount": receipts,
        "byType": {
            "labels": [row[0] for row in type_data],
            "data": [round(float(row[1]), 2) for row in type_data],
        },
        "topVendors": {
            "labels": [row[0] for row in vendor_data],
            "data": [round(float(row[1]), 2) for row in vendor_data],
        },
        "trend": {
            "labels": list(trend.index),
            "data": [round(float(v), 2) for v in trend.values],
        },
    }


@router.get("/expenses/{expense_id}", response_model=ExpenseOut)
def get_expense(expense_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_owned(db, Expense, expense_id, user, "Expense")


@router.post("/expenses", response_model=ExpenseOut, status_code=201)
def create_expense(
    date: Optional[str] = Form(None),
    type: Optional[str] = Form(None),
    vendor: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    cost: Optional[str] = Form(None),
    trip_name: Optional[str] = Form(None, alias="tripName"),
    comments: Optional[str] = Form(None),
    receipt: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _parse_form(
        date=date, type=type, vendor=vendor, location=location,
        cost=cost, trip_name=trip_name, comments=comments,
    )
    require_trip_name(db, user, form.trip_name)

    receipt_path = _store_receipt(user, receipt)

    expense = Expense(user_id=user.id, receipt_path=receipt_path, **form.model_dump())
    db.add(expense)
    db.commit()
    db.refresh(expense)

    logger.info(f"Created expense {expense.id} for user {user.id} on trip '{expense.trip_name}'")
    return expense


@router.put("/expenses/{expense_id}", response_model=ExpenseOut)
def update_expense(
    expense_id: int,
    date: Optional[str] = Form(None),
    type: Optional[str] = Form(None),
    vendor: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    cost: Optional[str] = Form(None),
    trip_name: Optional[str] = Form(None, alias="tripName"),
    comments: Optional[str] = Form(None),
    receipt: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    expense = get_owned(db, Expense, expense_id, user, "Expense")

    form = _parse_form(
        date=date, type=type, vendor=vendor, location=location,
        cost=cost, trip_name=trip_name, comments=comments,
    )
    require_trip_name(db, user, form.trip_name)

    new_receipt = _store_receipt(user, receipt)
    if new_receipt:
        if expense.receipt_path:
            storage_service.delete_file(expense.receipt_path)
        expense.receipt_path = new_receipt

    for field, value in form.model_dump().items():
        setattr(expense, field, value)

    db.commit()
    db.refresh(expense)
    return expense


@router.delete("/expenses/{expense_id}", status_code=204)
def delete_expense(expense_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    expense = get_owned(db, Expense, expense_id, user, "Expense")

    if expense.receipt_path:
        storage_service.delete_file(expense.receipt_path)

    db.delete(expense)
    db.commit()
    return Response(status_code=204)


@router.get("/export-expenses")
def export_expenses(
    trip_name: Optional[str] = Query(None, alias="tripName"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    expenses = _user_expenses(db, user, trip_name).all()

    content = export_service.to_xlsx(expenses)
    filename = export_service.filename()
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
