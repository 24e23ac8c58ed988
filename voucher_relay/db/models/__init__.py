from voucher_relay.db.models.affiliate import Affiliate, AffiliateSale
from voucher_relay.db.models.payment import PaymentLogEntry
from voucher_relay.db.models.voucher import Voucher

__all__ = [
    "Affiliate",
    "AffiliateSale",
    "PaymentLogEntry",
    "Voucher",
]
