import io
from datetime import date

import pandas as pd

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

COLUMNS = ["Type", "Date", "Vendor", "Location", "Amount", "Trip", "Comments", "Has Receipt"]


class ExportService:
    def build_rows(self, expenses: list) -> list:
        return [
            {
                "Type": expense.type,
                "Date": expense.date.isoformat() if expense.date else "",
                "Vendor": expense.vendor,
                "Location": expense.location,
                "Amount": float(expense.cost),
                "Trip": expense.trip_name,
                "Comments": expense.comments or "",
                "Has Receipt": "Yes" if expense.receipt_path else "No",
            }
            for expense in expenses
        ]

    def to_xlsx(self, expenses: list) -> bytes:
        """One 'Expenses' sheet, one row per expense."""
        df = pd.DataFrame(self.build_rows(expenses), columns=COLUMNS)
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="Expenses", index=False)
        return buffer.getvalue()

    def filename(self, today: date = None) -> str:
        return f"expenses-{(today or date.today()).isoformat()}.xlsx"


export_service = ExportService()
