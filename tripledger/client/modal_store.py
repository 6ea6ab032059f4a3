"""
Which dialog is open, and what it is editing.

The active dialog is a single tagged value, so two dialogs can never be open
at once and a closed dialog never keeps a stale payload around.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union


@dataclass(frozen=True)
class AddTrip:
    pass


@dataclass(frozen=True)
class EditTrip:
    trip: Any


@dataclass(frozen=True)
class AddExpense:
    default_trip_name: Optional[str] = None


@dataclass(frozen=True)
class EditExpense:
    expense: Any


@dataclass(frozen=True)
class BatchUpload:
    trip_id: int
    trip_name: str


@dataclass(frozen=True)
class ReceiptViewer:
    url: str


@dataclass(frozen=True)
class MileageLogEditor:
    log: Any = None
    trip_id: Optional[int] = None


Dialog = Union[AddTrip, EditTrip, AddExpense, EditExpense, BatchUpload, ReceiptViewer, MileageLogEditor]

# Snapshot keys, in display order
DIALOG_NAMES = {
    AddTrip: "addTrip",
    EditTrip: "editTrip",
    AddExpense: "addExpense",
    EditExpense: "editExpense",
    BatchUpload: "batchUpload",
    ReceiptViewer: "receiptViewer",
    MileageLogEditor: "mileageLog",
}


@dataclass(frozen=True)
class DialogState:
    open: bool = False
    payload: Optional[Dialog] = None


class ModalStore:
    def __init__(self):
        self._active: Optional[Dialog] = None
        self._listeners = []

    @property
    def active(self) -> Optional[Dialog]:
        return self._active

    def _set(self, dialog: Optional[Dialog]) -> None:
        changed = dialog != self._active
        self._active = dialog
        if changed:
            snapshot = self.snapshot()
            for listener in list(self._listeners):
                listener(snapshot)

    def _toggle(self, kind: type, dialog: Dialog) -> None:
        # Closing ignores whatever payload came with the call
        if isinstance(self._active, kind):
            self._set(None)
        else:
            self._set(dialog)

    def toggle_add_trip(self) -> None:
        self._toggle(AddTrip, AddTrip())

    def toggle_edit_trip(self, trip=None) -> None:
        self._toggle(EditTrip, EditTrip(trip))

    def toggle_add_expense(self, default_trip_name: Optional[str] = None) -> None:
        self._toggle(AddExpense, AddExpense(default_trip_name))

    def toggle_edit_expense(self, expense=None) -> None:
        self._toggle(EditExpense, EditExpense(expense))

    def toggle_batch_upload(self, trip_id: Optional[int] = None, trip_name: Optional[str] = None) -> None:
        self._toggle(BatchUpload, BatchUpload(trip_id, trip_name))

    def toggle_receipt_viewer(self, url: Optional[str] = None) -> None:
        self._toggle(ReceiptViewer, ReceiptViewer(url))

    def toggle_mileage_log(self, log=None, trip_id: Optional[int] = None) -> None:
        self._toggle(MileageLogEditor, MileageLogEditor(log, trip_id))

    def close_all(self) -> None:
        self._set(None)

    def is_open(self, kind: type) -> bool:
        return isinstance(self._active, kind)

    def snapshot(self) -> Dict[str, DialogState]:
        """Visibility and payload of every dialog."""
        return {
            name: DialogState(open=True, payload=self._active) if isinstance(self._active, kind) else DialogState()
            for kind, name in DIALOG_NAMES.items()
        }

    def subscribe(self, listener: Callable[[Dict[str, DialogState]], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
