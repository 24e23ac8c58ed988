"""
Google Sheets backend.

Every tab keeps a header in row 1, so data row ``i`` of a ``get`` result
starting at row 2 lives at sheet row ``i + 2``. Sheets has no conditional
write, which is why ``supports_conditional_update`` is False and the
allocator serializes claims in-process.
"""

import logging
from datetime import datetime
from threading import Lock
from typing import Any

import gspread

from voucher_relay.core.config import Settings
from voucher_relay.stores.records import (
    USED_MARKER,
    AffiliateSaleEvent,
    AffiliateTotals,
    AllocatedVoucher,
    PaymentRecord,
    is_consumed,
    iso_timestamp,
)

logger = logging.getLogger(__name__)

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
RAW = "RAW"
FIRST_DATA_ROW = 2


def _cell(row: list[Any], index: int) -> str:
    if index < len(row) and row[index] is not None:
        return str(row[index])
    return ""


def _as_number(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _number_cell(value: float) -> int | float:
    return int(value) if float(value).is_integer() else value


class SheetsStore:
    name = "sheets"
    supports_conditional_update = False

    def __init__(self, spreadsheet, settings: Settings):
        self._spreadsheet = spreadsheet
        self._voucher_tab = settings.VOUCHER_TAB
        self._affiliates_tab = settings.AFFILIATES_TAB
        self._affiliate_sales_tab = settings.AFFILIATE_SALES_TAB
        self._payments_tab = settings.PAYMENTS_TAB
        self._worksheets: dict[str, Any] = {}
        self._worksheets_lock = Lock()
        self._affiliates_lock = Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SheetsStore":
        credentials = {
            "type": "service_account",
            "client_email": settings.GOOGLE_CLIENT_EMAIL,
            "private_key": settings.google_private_key,
            "token_uri": "https://oauth2.googleapis.com/token",
        }
        client = gspread.service_account_from_dict(credentials, scopes=SHEETS_SCOPES)
        return cls(client.open_by_key(settings.SHEET_ID), settings)

    def _worksheet(self, title: str):
        with self._worksheets_lock:
            worksheet = self._worksheets.get(title)
            if worksheet is None:
                worksheet = self._spreadsheet.worksheet(title)
                self._worksheets[title] = worksheet
            return worksheet

    def claim_voucher(
        self,
        phone: str,
        email: str,
        affiliate_code: str | None,
        assigned_at: datetime,
    ) -> AllocatedVoucher | None:
        worksheet = self._worksheet(self._voucher_tab)
        rows = worksheet.get("A2:G") or []
        for index, row in enumerate(rows):
            if is_consumed(_cell(row, 2)):
                continue
            serial = _cell(row, 0).strip()
            pin = _cell(row, 1).strip()
            row_number = index + FIRST_DATA_ROW
            if not serial:
                logger.warning("sheets.voucher_row_skipped row=%s: no serial", row_number)
                continue
            worksheet.update(
                values=[[serial, pin, USED_MARKER, phone or "", email or "", iso_timestamp(assigned_at), affiliate_code or ""]],
                range_name=f"A{row_number}:G{row_number}",
                value_input_option=RAW,
            )
            logger.debug("sheets.voucher_marked row=%s serial=%s", row_number, serial)
            return AllocatedVoucher(serial=serial, pin=pin)
        return None

    def payment_exists(self, reference: str) -> bool:
        rows = self._worksheet(self._payments_tab).get("B2:B") or []
        return any(_cell(row, 0) == reference for row in rows)

    def append_payment(self, record: PaymentRecord) -> None:
        self._worksheet(self._payments_tab).append_row(
            [
                iso_timestamp(record.logged_at),
                record.reference,
                record.phone,
                record.email,
                _number_cell(record.amount),
                record.voucher_serial,
                record.affiliate_code,
            ],
            value_input_option=RAW,
        )

    def append_affiliate_sale(self, event: AffiliateSaleEvent) -> None:
        self._worksheet(self._affiliate_sales_tab).append_row(
            [
                iso_timestamp(event.timestamp),
                event.code,
                event.buyer_phone,
                _number_cell(event.amount),
                _number_cell(event.commission),
                event.voucher_serial,
                event.paid,
            ],
            value_input_option=RAW,
        )

    def accrue_affiliate(self, code: str, commission: float) -> AffiliateTotals:
        # Read-modify-write on the totals row; concurrent accruals for one
        # code must not overwrite each other or append a second account row.
        with self._affiliates_lock:
            return self._accrue_affiliate(code, commission)

    def _accrue_affiliate(self, code: str, commission: float) -> AffiliateTotals:
        worksheet = self._worksheet(self._affiliates_tab)
        rows = worksheet.get("A2:E") or []
        for index, row in enumerate(rows):
            if _cell(row, 0) != code:
                continue
            total_sales = int(_as_number(_cell(row, 3))) + 1
            total_commission = _as_number(_cell(row, 4)) + commission
            row_number = index + FIRST_DATA_ROW
            worksheet.update(
                values=[[total_sales, _number_cell(total_commission)]],
                range_name=f"D{row_number}:E{row_number}",
                value_input_option=RAW,
            )
            return AffiliateTotals(code=code, total_sales=total_sales, total_commission=total_commission)

        worksheet.append_row([code, "", "", 1, _number_cell(commission)], value_input_option=RAW)
        return AffiliateTotals(code=code, total_sales=1, total_commission=commission)
