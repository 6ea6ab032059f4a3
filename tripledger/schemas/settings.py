from typing import Optional

from tripledger.schemas.base import CamelModel


class UpdateEnvRequest(CamelModel):
    ocr_method: Optional[str] = None
    api_key: Optional[str] = None
    ocr_api_key: Optional[str] = None
    ocr_template: Optional[str] = None


class TestOcrRequest(CamelModel):
    method: str
    api_key: Optional[str] = None
