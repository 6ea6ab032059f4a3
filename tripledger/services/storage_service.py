import logging
import os
import uuid

from fastapi import HTTPException

from tripledger.core.config import settings

logger = logging.getLogger(__name__)

RECEIPTS_BUCKET = "receipts"
ODOMETER_BUCKET = "odometer"
PUBLIC_PREFIX = "/uploads"

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".pdf"}

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
}


def file_extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()


def is_allowed_file(filename: str) -> bool:
    return file_extension(filename) in ALLOWED_EXTENSIONS


def content_type_for(filename: str) -> str:
    return CONTENT_TYPES.get(file_extension(filename), "application/octet-stream")


class StorageService:
    """
    Stores receipts and odometer photos on local disk, one folder per bucket and
    user, and hands out public paths served by the /uploads static mount.
    """

    def __init__(self, root: str = None):
        self._root = root

    @property
    def root(self) -> str:
        # Resolved lazily so UPLOAD_DIR can change between app instances
        return self._root or settings.UPLOAD_DIR

    def ensure_buckets(self) -> None:
        for bucket in (RECEIPTS_BUCKET, ODOMETER_BUCKET):
            os.makedirs(os.path.join(self.root, bucket), exist_ok=True)

    def validate(self, filename: str) -> None:
        if not is_allowed_file(filename):
            raise HTTPException(
                status_code=400,
                detail="Invalid file type. Only JPG, PNG, GIF, and PDF files are allowed.",
            )

    def save(self, bucket: str, user_id: int, filename: str, contents: bytes) -> str:
        """
        Writes the file under <root>/<bucket>/<user_id>/<uuid><ext>.
        Returns the public path of the stored file.
        """
        self.validate(filename)

        folder = os.path.join(self.root, bucket, str(user_id))
        os.makedirs(folder, exist_ok=True)
        stored_name = f"{uuid.uuid4().hex}{file_extension(filename)}"

        try:
            with open(os.path.join(folder, stored_name), "wb") as buffer:
                buffer.write(contents)
        except OSError as e:
            logger.error(f"Could not save {filename} to {bucket}: {e}")
            raise HTTPException(status_code=500, detail=f"Failed to upload {bucket} file")

        return f"{PUBLIC_PREFIX}/{bucket}/{user_id}/{stored_name}"

    def save_receipt(self, user_id: int, filename: str, contents: bytes) -> str:
        return self.save(RECEIPTS_BUCKET, user_id, filename, contents)

    def save_odometer_image(self, user_id: int, filename: str, contents: bytes) -> str:
        return self.save(ODOMETER_BUCKET, user_id, filename, contents)

    def local_path(self, public_path: str) -> str:
        if not public_path or not public_path.startswith(PUBLIC_PREFIX + "/"):
            return None
        root = os.path.abspath(self.root)
        full = os.path.abspath(os.path.join(root, public_path[len(PUBLIC_PREFIX) + 1:]))
        # Never step outside the storage root
        if not full.startswith(root + os.sep):
            return None
        return full

    def delete_file(self, public_path: str) -> bool:
        path = self.local_path(public_path)
        if not path or not os.path.exists(path):
            return False
        try:
            os.remove(path)
        except OSError as e:
            logger.warning(f"Could not delete {public_path}: {e}")
            return False
        return True

    def status(self) -> dict:
        root = os.path.abspath(self.root)
        writable = os.path.isdir(root) and os.access(root, os.W_OK)
        return {
            "provider": "local",
            "root": root,
            "publicPrefix": PUBLIC_PREFIX,
            "buckets": [RECEIPTS_BUCKET, ODOMETER_BUCKET],
            "writable": writable,
        }


# Export a singleton instance
storage_service = StorageService()
