from dataclasses import dataclass, field
from datetime import datetime, timezone

USED_MARKER = "USED"
CONSUMED_MARKERS = ("used", "yes")


def is_consumed(status) -> bool:
    return str(status or "").strip().lower() in CONSUMED_MARKERS


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(value: datetime | None = None) -> str:
    value = value or utc_now()
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class AllocatedVoucher:
    serial: str
    pin: str


@dataclass
class PaymentRecord:
    reference: str
    phone: str = ""
    email: str = ""
    amount: float = 0.0
    voucher_serial: str = ""
    affiliate_code: str = ""
    logged_at: datetime = field(default_factory=utc_now)


@dataclass
class AffiliateSaleEvent:
    code: str
    buyer_phone: str
    amount: float
    commission: float
    voucher_serial: str
    paid: str = "no"
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class AffiliateTotals:
    code: str
    total_sales: int
    total_commission: float
