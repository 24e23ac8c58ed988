"""
Webhook fulfillment: one Paystack delivery in, one outcome out.

The only transactional step is the voucher claim. Everything after it
(payment record, SMS, affiliate bookkeeping) runs as an independent side
effect with its own failure boundary, so none of them can change the outcome
already decided or stop the others from running.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from threading import Lock
from typing import Callable

from voucher_relay.core.config import Settings
from voucher_relay.core.security import verify_paystack_signature
from voucher_relay.schemas.webhook import (
    Buyer,
    ChargeData,
    EventKind,
    MalformedWebhookError,
    parse_webhook_envelope,
)
from voucher_relay.services.affiliate_service import AffiliateLedger
from voucher_relay.services.payment_log_service import PaymentLog
from voucher_relay.services.sms_service import ArkeselClient, format_voucher_message
from voucher_relay.services.voucher_service import VoucherAllocator
from voucher_relay.stores.records import AllocatedVoucher, PaymentRecord

logger = logging.getLogger(__name__)


class WebhookOutcome(str, Enum):
    rejected_bad_signature = "rejected_bad_signature"
    malformed = "malformed"
    event_filtered = "event_filtered"
    deduped = "deduped"
    exhausted = "exhausted"
    fulfilled = "fulfilled"


OUTCOME_RESPONSES: dict[WebhookOutcome, tuple[int, str]] = {
    WebhookOutcome.rejected_bad_signature: (400, "Invalid signature"),
    WebhookOutcome.malformed: (400, "Invalid webhook payload"),
    WebhookOutcome.event_filtered: (200, "ignored"),
    WebhookOutcome.deduped: (200, "already processed"),
    WebhookOutcome.exhausted: (200, "no vouchers"),
    WebhookOutcome.fulfilled: (200, "ok"),
}


@dataclass
class WebhookResult:
    outcome: WebhookOutcome
    reference: str = ""
    voucher: AllocatedVoucher | None = None
    failed_side_effects: list[str] = field(default_factory=list)

    @property
    def status_code(self) -> int:
        return OUTCOME_RESPONSES[self.outcome][0]

    @property
    def body(self) -> str:
        return OUTCOME_RESPONSES[self.outcome][1]


SideEffect = tuple[str, Callable[[], object]]


class FulfillmentService:
    def __init__(
        self,
        settings: Settings,
        allocator: VoucherAllocator,
        payment_log: PaymentLog,
        ledger: AffiliateLedger,
        sms: ArkeselClient,
    ):
        self._webhook_secret = settings.webhook_secret
        self._price = settings.VOUCHER_PRICE
        self._sms_template = settings.SMS_TEMPLATE
        self._brand = settings.BRAND_NAME
        self._allocator = allocator
        self._payment_log = payment_log
        self._ledger = ledger
        self._sms = sms
        self._in_flight: set[str] = set()
        self._in_flight_lock = Lock()

    def handle_webhook(self, raw_body: bytes, signature: str | None) -> WebhookResult:
        if not verify_paystack_signature(raw_body, signature, self._webhook_secret):
            logger.warning("webhook.signature_invalid signature_present=%s", bool(signature))
            return WebhookResult(WebhookOutcome.rejected_bad_signature)

        try:
            envelope = parse_webhook_envelope(raw_body)
        except MalformedWebhookError as exc:
            logger.warning("webhook.malformed error=%s", exc)
            return WebhookResult(WebhookOutcome.malformed)

        charge = envelope.data
        if envelope.kind is not EventKind.successful_charge:
            logger.info(
                "webhook.ignored event=%s status=%s reference=%s",
                envelope.event or "-",
                charge.status or "-",
                charge.reference or "-",
            )
            return WebhookResult(WebhookOutcome.event_filtered, reference=charge.reference)

        reference = charge.reference
        if not self._begin(reference):
            logger.info("webhook.duplicate_in_flight reference=%s", reference)
            return WebhookResult(WebhookOutcome.deduped, reference=reference)
        try:
            return self._fulfill(charge)
        finally:
            self._finish(reference)

    def _fulfill(self, charge: ChargeData) -> WebhookResult:
        reference = charge.reference
        if self._payment_log.seen(reference):
            logger.info("webhook.already_processed reference=%s", reference)
            return WebhookResult(WebhookOutcome.deduped, reference=reference)

        buyer = charge.buyer()
        voucher = self._allocator.allocate(buyer.phone, buyer.email, buyer.affiliate_code or None)
        if voucher is None:
            return WebhookResult(WebhookOutcome.exhausted, reference=reference)

        failed = self._run_side_effects(reference, self._side_effects(charge, buyer, voucher))
        logger.info(
            "webhook.fulfilled reference=%s serial=%s failed_side_effects=%s",
            reference,
            voucher.serial,
            ",".join(failed) or "-",
        )
        return WebhookResult(
            WebhookOutcome.fulfilled,
            reference=reference,
            voucher=voucher,
            failed_side_effects=failed,
        )

    def _side_effects(self, charge: ChargeData, buyer: Buyer, voucher: AllocatedVoucher) -> list[SideEffect]:
        record = PaymentRecord(
            reference=charge.reference,
            phone=buyer.phone,
            email=buyer.email,
            amount=charge.amount_major_units(self._price),
            voucher_serial=voucher.serial,
            affiliate_code=buyer.affiliate_code,
        )
        # The payment record goes first so a redelivery is deduplicated as
        # early as possible.
        effects: list[SideEffect] = [
            ("payment_record", partial(self._payment_log.record, record)),
            ("sms", partial(self._notify, buyer.phone, voucher)),
        ]
        if buyer.affiliate_code:
            effects.append(
                ("affiliate_sale", partial(self._ledger.record_sale, buyer.affiliate_code, buyer.phone, voucher.serial))
            )
            effects.append(("affiliate_accrual", partial(self._ledger.accrue, buyer.affiliate_code)))
        return effects

    def _run_side_effects(self, reference: str, effects: list[SideEffect]) -> list[str]:
        failed: list[str] = []
        for name, effect in effects:
            try:
                effect()
            except Exception:
                logger.exception("fulfillment.side_effect_failed effect=%s reference=%s", name, reference)
                failed.append(name)
        return failed

    def _notify(self, phone: str, voucher: AllocatedVoucher) -> None:
        message = format_voucher_message(self._sms_template, voucher, self._brand)
        response = self._sms.send(phone, message)
        logger.info("sms.sent to=%s serial=%s response=%s", phone, voucher.serial, response)

    def _begin(self, reference: str) -> bool:
        with self._in_flight_lock:
            if reference in self._in_flight:
                return False
            self._in_flight.add(reference)
            return True

    def _finish(self, reference: str) -> None:
        with self._in_flight_lock:
            self._in_flight.discard(reference)
