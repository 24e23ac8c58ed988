from voucher_relay.core.config import Settings
from voucher_relay.core.exceptions import AppException
from voucher_relay.db.session import build_engine, build_session_factory
from voucher_relay.stores.database_store import DatabaseStore
from voucher_relay.stores.records import (
    AffiliateSaleEvent,
    AffiliateTotals,
    AllocatedVoucher,
    PaymentRecord,
)
from voucher_relay.stores.sheets_store import SheetsStore

STORE_BACKENDS = ("sheets", "database")


def build_store(settings: Settings) -> SheetsStore | DatabaseStore:
    backend = settings.store_backend
    if backend == "sheets":
        if not settings.sheets_configured:
            raise AppException(
                "Google Sheets is not configured (SHEET_ID / GOOGLE_CLIENT_EMAIL / GOOGLE_PRIVATE_KEY)",
                status_code=500,
            )
        return SheetsStore.from_settings(settings)
    if backend == "database":
        engine = build_engine(settings.DATABASE_URL)
        return DatabaseStore(build_session_factory(engine))
    raise AppException(
        f"Unknown STORE_BACKEND '{settings.STORE_BACKEND}', expected one of {', '.join(STORE_BACKENDS)}",
        status_code=500,
    )


__all__ = [
    "AffiliateSaleEvent",
    "AffiliateTotals",
    "AllocatedVoucher",
    "DatabaseStore",
    "PaymentRecord",
    "SheetsStore",
    "build_store",
]
