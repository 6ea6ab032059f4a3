import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session

from tripledger.core.security import get_current_user
from tripledger.db.session import get_db
from tripledger.models.expense import Expense
from tripledger.models.trip import Trip
from tripledger.models.user import User
from tripledger.routers.common import get_owned, is_truthy, require_trip_name
from tripledger.schemas.expense import BatchResult, ExpenseForm, ExpenseOut
from tripledger.services.ocr_service import ocr_service, to_form_data
from tripledger.services.storage_service import is_allowed_file, storage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/expenses", tags=["upload"])

INVALID_FILE_TYPE = "Invalid file type. Only JPG, PNG, GIF, and PDF files are allowed."


def _ocr_cost(value) -> Optional[Decimal]:
    try:
        return round(Decimal(str(value).replace(",", "")), 2)
    except (InvalidOperation, ValueError):
        return None


def _form_from_ocr(result: dict, trip_name: str) -> ExpenseForm:
    """Maps an OCR result onto the expense form, filling the gaps the way the form does."""
    data = to_form_data(result)
    return ExpenseForm(
        date=data["date"] or date.today().isoformat(),
        type=data["type"] or "Other",
        vendor=data["vendor"] or "Unknown Vendor",
        location=data["location"] or "Unknown Location",
        cost=_ocr_cost(data["cost"]),
        trip_name=trip_name,
        comments=data["description"] or (result.get("text") or "")[:200],
    )


@router.post("/batch-process", response_model=list[BatchResult])
def batch_process(
    trip_id: int = Query(..., alias="tripId"),
    receipts: list[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    trip = get_owned(db, Trip, trip_id, user, "Trip")

    if not receipts:
        raise HTTPException(status_code=400, detail="No receipt files uploaded")

    results = []
    for receipt in receipts:
        filename = receipt.filename or "receipt.jpg"

        if not is_allowed_file(filename):
            results.append(BatchResult(filename=filename, status="failed", error=INVALID_FILE_TYPE))
            continue

        contents = receipt.file.read()
        try:
            receipt_path = storage_service.save_receipt(user.id, filename, contents)
        except HTTPException as e:
            results.append(BatchResult(filename=filename, status="failed", error=str(e.detail)))
            continue

        ocr_result = ocr_service.process_receipt(contents, filename)
        if not ocr_result.get("success"):
            storage_service.delete_file(receipt_path)
            results.append(BatchResult(
                filename=filename,
                status="failed",
                error=ocr_result.get("error") or "OCR processing failed",
            ))
            continue

        try:
            form = _form_from_ocr(ocr_result, trip.name)
        except ValidationError:
            storage_service.delete_file(receipt_path)
            results.append(BatchResult(
                filename=filename,
                status="failed",
                error=f"Missing required fields extracted from {filename}",
            ))
            continue

        expense = Expense(user_id=user.id, receipt_path=receipt_path, **form.model_dump())
        db.add(expense)
        db.commit()
        db.refresh(expense)
        results.append(BatchResult(filename=filename, status="success", expense_id=expense.id))

    succeeded = sum(1 for r in results if r.status == "success")
    logger.info(f"Batch processed {len(results)} receipt(s) for trip {trip.id}: {succeeded} succeeded")
    return results


@router.post("/upload")
def upload_receipt(
    receipt: UploadFile = File(None),
    process_ocr: Optional[str] = Form(None, alias="processOcr"),
    date: Optional[str] = Form(None),
    type: Optional[str] = Form(None),
    vendor: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    cost: Optional[str] = Form(None),
    trip_name: Optional[str] = Form(None, alias="tripName"),
    comments: Optional[str] = Form(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Stores a receipt and, when asked, runs OCR on it. An expense is only created
    when every required field came along with the upload.
    """
    if receipt is None or not receipt.filename:
        raise HTTPException(status_code=400, detail="Receipt file is required")
    storage_service.validate(receipt.filename)

    # Reject a bad form before anything is written to storage
    form = None
    if all((date, type, vendor, location, cost, trip_name)):
        form = ExpenseForm.model_validate({
            "date": date, "type": type, "vendor": vendor, "location": location,
            "cost": cost, "tripName": trip_name, "comments": comments,
        })
        require_trip_name(db, user, form.trip_name)

    contents = receipt.file.read()
    file_url = storage_service.save_receipt(user.id, receipt.filename, contents)

    ocr_result = None
    if is_truthy(process_ocr):
        ocr_result = ocr_service.process_receipt(contents, receipt.filename)

    expense_record = None
    if form is not None:
        expense = Expense(user_id=user.id, receipt_path=file_url, **form.model_dump())
        db.add(expense)
        db.commit()
        db.refresh(expense)
        expense_record = ExpenseOut.model_validate(expense).model_dump(mode="json", by_alias=True)

    return {
        "success": True,
        "fileUrl": file_url,
        "ocrResult": ocr_result,
        "expense": expense_record,
    }
