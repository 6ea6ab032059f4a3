import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from tripledger.core.security import get_current_user
from tripledger.models.user import User
from tripledger.services.ocr_service import FORM_FIELDS, ocr_service, to_form_data
from tripledger.services.storage_service import storage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ocr", tags=["ocr"])


@router.post("/process")
def process_receipt(
    receipt: UploadFile = File(None),
    method: Optional[str] = Form(None),
    template: Optional[str] = Form(None),
    user: User = Depends(get_current_user),
):
    if receipt is None or not receipt.filename:
        raise HTTPException(status_code=400, detail="Receipt file is required")
    storage_service.validate(receipt.filename)

    contents = receipt.file.read()
    result = ocr_service.process_receipt(contents, receipt.filename, method=method, template=template)

    form_data = to_form_data(result)
    if result.get("success"):
        found = [field for field in FORM_FIELDS if form_data.get(field)]
        logger.info(f"OCR for user {user.id} extracted {len(found)} field(s): {', '.join(found) or 'none'}")

    return {
        **result,
        "data": {field: form_data[field] for field in FORM_FIELDS},
        "formData": form_data,
    }
