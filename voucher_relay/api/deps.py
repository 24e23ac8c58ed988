import logging
from threading import Lock

from fastapi import Depends, Request

from voucher_relay.core.config import Settings
from voucher_relay.services.affiliate_service import AffiliateLedger
from voucher_relay.services.checkout_service import CheckoutService
from voucher_relay.services.fulfillment_service import FulfillmentService
from voucher_relay.services.payment_log_service import PaymentLog
from voucher_relay.services.paystack_service import PaystackClient
from voucher_relay.services.sms_service import ArkeselClient
from voucher_relay.services.voucher_service import VoucherAllocator
from voucher_relay.stores import build_store

logger = logging.getLogger(__name__)


class ServiceRegistry:
    """
    Builds every component once from a single Settings object.

    The store is opened lazily: a Sheets backend needs network access, and a
    failure there should surface as a 500 on the request that needed it
    (and be retried on the next one) rather than keep the process from
    starting. Pre-built collaborators can be passed in to replace the real
    providers.
    """

    def __init__(
        self,
        settings: Settings,
        store=None,
        paystack: PaystackClient | None = None,
        sms: ArkeselClient | None = None,
    ):
        self.settings = settings
        self.paystack = paystack or PaystackClient(settings)
        self.sms = sms or ArkeselClient(settings)
        self.checkout = CheckoutService(self.paystack, settings)
        self._store = store
        self._fulfillment: FulfillmentService | None = None
        self._lock = Lock()

    def store(self):
        if self._store is not None:
            return self._store
        with self._lock:
            if self._store is None:
                self._store = build_store(self.settings)
                logger.info("store.opened backend=%s", self._store.name)
            return self._store

    def fulfillment(self) -> FulfillmentService:
        if self._fulfillment is not None:
            return self._fulfillment
        store = self.store()
        with self._lock:
            if self._fulfillment is None:
                self._fulfillment = FulfillmentService(
                    settings=self.settings,
                    allocator=VoucherAllocator(store),
                    payment_log=PaymentLog(store),
                    ledger=AffiliateLedger(store, self.settings),
                    sms=self.sms,
                )
            return self._fulfillment


def get_registry(request: Request) -> ServiceRegistry:
    return request.app.state.registry


def get_checkout_service(registry: ServiceRegistry = Depends(get_registry)) -> CheckoutService:
    return registry.checkout
