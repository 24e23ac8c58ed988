import logging

from voucher_relay.stores.records import PaymentRecord

logger = logging.getLogger(__name__)


class PaymentLog:
    def __init__(self, store):
        self._store = store

    def seen(self, reference: str) -> bool:
        # An unreadable log (tab not provisioned, store hiccup) must not stop
        # voucher delivery, so the check fails open.
        try:
            return self._store.payment_exists(reference)
        except Exception as exc:
            logger.warning("payments.lookup_failed reference=%s error=%s; continuing as unseen", reference, exc)
            return False

    def record(self, record: PaymentRecord) -> None:
        self._store.append_payment(record)
        logger.info("payments.recorded reference=%s serial=%s", record.reference, record.voucher_serial)
