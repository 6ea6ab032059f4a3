import logging

from fastapi import APIRouter, Depends, HTTPException

from tripledger.core.config import OCR_KEY_NAMES, settings
from tripledger.core.security import get_current_user
from tripledger.models.user import User
from tripledger.schemas.settings import TestOcrRequest, UpdateEnvRequest
from tripledger.services.ocr_service import TEMPLATES, ocr_service
from tripledger.services.storage_service import storage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["settings"])


def _current_settings() -> dict:
    return {
        "defaultOcrMethod": settings.DEFAULT_OCR_METHOD,
        "ocrTemplate": settings.OCR_TEMPLATE,
    }


@router.get("/settings")
def get_settings(user: User = Depends(get_current_user)):
    return {
        **_current_settings(),
        "availableMethods": list(OCR_KEY_NAMES),
        "templates": list(TEMPLATES),
        "configuredProviders": settings.configured_providers(),
    }


@router.post("/update-env")
def update_env(payload: UpdateEnvRequest, user: User = Depends(get_current_user)):
    if payload.ocr_method and payload.ocr_method not in OCR_KEY_NAMES:
        raise HTTPException(status_code=400, detail=f"Unsupported OCR method: {payload.ocr_method}")
    if payload.ocr_template and payload.ocr_template not in TEMPLATES:
        raise HTTPException(status_code=400, detail=f"Unsupported OCR template: {payload.ocr_template}")

    api_key = payload.ocr_api_key if payload.ocr_api_key is not None else payload.api_key
    settings.update_ocr_settings(method=payload.ocr_method, api_key=api_key, template=payload.ocr_template)

    if payload.ocr_method:
        logger.info(f"Set default OCR method to {payload.ocr_method}" + (" with a new API key" if api_key else ""))
    if payload.ocr_template:
        logger.info(f"Set OCR template to {payload.ocr_template}")

    return {
        "success": True,
        "message": "Settings updated successfully",
        "settings": _current_settings(),
    }


@router.post("/test-ocr")
def test_ocr(payload: TestOcrRequest, user: User = Depends(get_current_user)):
    return ocr_service.test_connection(payload.method, payload.api_key or settings.api_key_for(payload.method))


@router.get("/system/storage-status")
def storage_status(user: User = Depends(get_current_user)):
    return storage_service.status()
