import logging
from threading import Lock

from voucher_relay.stores.records import AllocatedVoucher, utc_now

logger = logging.getLogger(__name__)


class VoucherAllocator:
    """
    Hands out the lowest-index unused voucher and marks it used.

    Stores with a conditional update resolve concurrent claims themselves.
    For the others every claim goes through one in-process lock, which only
    holds while this process is the sole writer to the voucher inventory
    (run a single worker against a Sheets backend).
    """

    def __init__(self, store):
        self._store = store
        self._lock = None if store.supports_conditional_update else Lock()

    @property
    def serialized(self) -> bool:
        return self._lock is not None

    def allocate(self, phone: str, email: str, affiliate_code: str | None = None) -> AllocatedVoucher | None:
        assigned_at = utc_now()
        if self._lock is None:
            voucher = self._store.claim_voucher(phone, email, affiliate_code, assigned_at)
        else:
            with self._lock:
                voucher = self._store.claim_voucher(phone, email, affiliate_code, assigned_at)

        if voucher is None:
            logger.error("voucher.exhausted phone=%s email=%s: no unused vouchers left", phone, email)
            return None

        logger.info("voucher.allocated serial=%s phone=%s affiliate=%s", voucher.serial, phone, affiliate_code or "-")
        return voucher
