import logging
import mimetypes
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import httpx

from tripledger.client.api import ApiClient, ApiError, QueryCache
from tripledger.client.modal_store import ModalStore

logger = logging.getLogger(__name__)

USER_KEY = "/api/auth/user"
TRIPS_KEY = "/api/trips"
EXPENSES_KEY = "/api/expenses"
MILEAGE_KEY = "/api/mileage-logs"

FILENAME_PATTERN = re.compile(r'filename="?([^";]+)"?')


@dataclass
class Toast:
    title: str
    description: str = ""
    variant: str = "default"


def _file_part(filename: str, contents: bytes) -> tuple:
    content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return (filename, contents, content_type)


def _form_fields(form: dict) -> dict:
    return {key: str(value) for key, value in form.items() if value is not None}


class Workspace:
    """
    What the screens do with the API: load lists through the query cache,
    run mutations, close the open dialog on success and toast on failure.
    """

    def __init__(self, api: ApiClient, cache: QueryCache = None, modals: ModalStore = None):
        self.api = api
        self.cache = cache or QueryCache()
        self.modals = modals or ModalStore()
        self.toasts: List[Toast] = []

    # -- feedback ---------------------------------------------------------

    def notify(self, title: str, description: str = "", variant: str = "default") -> None:
        self.toasts.append(Toast(title, description, variant))

    def _failed(self, title: str, error: ApiError) -> None:
        logger.warning(f"{title}: {error}")
        self.notify(title, str(error), variant="destructive")

    def _succeeded(self, title: str, *invalidate: str) -> None:
        self.modals.close_all()
        for prefix in invalidate:
            self.cache.invalidate(prefix)
        self.notify(title)

    # -- session ----------------------------------------------------------

    def _start_session(self, url: str, payload: dict) -> Optional[dict]:
        try:
            body = self.api.request("POST", url, payload).json()
        except ApiError as e:
            self._failed("Authentication failed", e)
            return None
        self.api.tokens.set(body["token"])
        self.cache.clear()
        self.cache.set(USER_KEY, body["user"])
        return body["user"]

    def login(self, username: str, password: str) -> Optional[dict]:
        return self._start_session("/api/auth/login", {"username": username, "password": password})

    def register(self, **fields) -> Optional[dict]:
        return self._start_session("/api/auth/register", fields)

    def logout(self) -> None:
        try:
            self.api.request("POST", "/api/auth/logout")
        except ApiError as e:
            logger.warning(f"Logout request failed: {e}")
        finally:
            self.modals.close_all()
            self.api.tokens.clear()
            self.cache.clear()
            self.cache.set(USER_KEY, None)

    def current_user(self) -> Optional[dict]:
        return self.cache.fetch(USER_KEY, lambda: self.api.query(USER_KEY, on_401="return_null"))

    # -- queries ----------------------------------------------------------

    def trips(self) -> list:
        return self.cache.fetch(TRIPS_KEY, lambda: self.api.query(TRIPS_KEY))

    def expenses(self, trip_name: Optional[str] = None) -> list:
        params = {"tripName": trip_name} if trip_name else None
        key = f"{EXPENSES_KEY}?{httpx.QueryParams(params)}" if params else EXPENSES_KEY
        return self.cache.fetch(key, lambda: self.api.query(EXPENSES_KEY, params=params))

    def mileage_logs(self, trip_id: Optional[int] = None) -> list:
        params = {"tripId": trip_id} if trip_id else None
        key = f"{MILEAGE_KEY}?{httpx.QueryParams(params)}" if params else MILEAGE_KEY
        return self.cache.fetch(key, lambda: self.api.query(MILEAGE_KEY, params=params))

    # -- trips ------------------------------------------------------------

    def save_trip(self, name: str, description: Optional[str] = None, trip_id: Optional[int] = None) -> Optional[dict]:
        payload = {"name": name, "description": description}
        try:
            if trip_id is None:
                trip = self.api.request("POST", TRIPS_KEY, payload).json()
            else:
                trip = self.api.request("PUT", f"{TRIPS_KEY}/{trip_id}", payload).json()
        except ApiError as e:
            self._failed("Failed to save trip", e)
            return None

        # A rename moves the trip's expenses along with it
        self._succeeded("Trip saved", TRIPS_KEY, EXPENSES_KEY)
        return trip

    def delete_trip(self, trip_id: int) -> bool:
        try:
            self.api.request("DELETE", f"{TRIPS_KEY}/{trip_id}")
        except ApiError as e:
            self._failed("Failed to delete trip", e)
            return False
        self._succeeded("Trip deleted", TRIPS_KEY, EXPENSES_KEY, MILEAGE_KEY)
        return True

    # -- expenses ---------------------------------------------------------

    def save_expense(
        self,
        form: dict,
        receipt: Optional[Tuple[str, bytes]] = None,
        expense_id: Optional[int] = None,
    ) -> Optional[dict]:
        """Submits the expense form as multipart, with the receipt when one is attached."""
        files = {"receipt": _file_part(*receipt)} if receipt else {}
        method, url = ("POST", EXPENSES_KEY) if expense_id is None else ("PUT", f"{EXPENSES_KEY}/{expense_id}")
        try:
            expense = self.api.request(method, url, _form_fields(form), files=files).json()
        except ApiError as e:
            self._failed("Failed to save expense", e)
            return None
        self._succeeded("Expense saved", EXPENSES_KEY, TRIPS_KEY)
        return expense

    def delete_expense(self, expense_id: int) -> bool:
        try:
            self.api.request("DELETE", f"{EXPENSES_KEY}/{expense_id}")
        except ApiError as e:
            self._failed("Failed to delete expense", e)
            return False
        self._succeeded("Expense deleted", EXPENSES_KEY, TRIPS_KEY)
        return True

    def batch_upload(self, trip_id: int, receipts: Iterable[Tuple[str, bytes]]) -> Optional[list]:
        files = [("receipts", _file_part(name, contents)) for name, contents in receipts]
        try:
            results = self.api.request(
                "POST", f"{EXPENSES_KEY}/batch-process?tripId={trip_id}", files=files
            ).json()
        except ApiError as e:
            self._failed("Batch upload failed", e)
            return None

        succeeded = sum(1 for r in results if r.get("status") == "success")
        self._succeeded(f"Processed {succeeded} of {len(results)} receipt(s)", EXPENSES_KEY, TRIPS_KEY)
        return results

    def scan_receipt(self, filename: str, contents: bytes, method: Optional[str] = None) -> dict:
        """
        Runs OCR on a receipt and returns the fields to pre-fill the expense form with.
        When the provider fails the form is still returned (empty) so it can be filled by hand.
        """
        data = {"method": method} if method else {}
        try:
            result = self.api.request(
                "POST", "/api/ocr/process", data, files={"receipt": _file_part(filename, contents)}
            ).json()
        except ApiError as e:
            self._failed("Receipt scan failed", e)
            return {}

        if not result.get("success"):
            self.notify("Could not read the receipt", result.get("error") or "Please fill in the details manually.")
        return result.get("formData") or {}

    def export_expenses(self, trip_name: Optional[str] = None) -> Optional[Tuple[str, bytes]]:
        url = "/api/export-expenses"
        if trip_name:
            url = f"{url}?{httpx.QueryParams({'tripName': trip_name})}"
        try:
            response = self.api.request("GET", url)
        except ApiError as e:
            self._failed("Export failed", e)
            return None

        match = FILENAME_PATTERN.search(response.headers.get("content-disposition", ""))
        return (match.group(1) if match else "expenses.xlsx"), response.content

    # -- mileage ----------------------------------------------------------

    def save_mileage_log(self, payload: dict, log_id: Optional[int] = None) -> Optional[dict]:
        try:
            if log_id is None:
                log = self.api.request("POST", MILEAGE_KEY, payload).json()
            else:
                log = self.api.request("PUT", f"{MILEAGE_KEY}/{log_id}", payload).json()
        except ApiError as e:
            self._failed("Failed to save mileage log", e)
            return None
        self._succeeded("Mileage log saved", MILEAGE_KEY)
        return log
