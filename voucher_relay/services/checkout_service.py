import logging

from voucher_relay.core.config import Settings
from voucher_relay.core.phone import normalize_phone
from voucher_relay.services.paystack_service import PaystackClient

logger = logging.getLogger(__name__)


class CheckoutService:
    def __init__(self, paystack: PaystackClient, settings: Settings):
        self._paystack = paystack
        self._price = settings.VOUCHER_PRICE
        self._amount = settings.price_minor_units
        self._currency = settings.CURRENCY.upper()
        self._callback_url = settings.PAYSTACK_CALLBACK_URL or None

    def create_payment(self, name: str, phone: str, email: str, ref: str | None = None) -> dict:
        normalized_phone = normalize_phone(phone)
        metadata = {
            "name": name,
            "phone": normalized_phone,
            "email": email,
            "ref": (ref or "").strip(),
        }
        data = self._paystack.initialize_transaction(
            email=email,
            amount=self._amount,
            currency=self._currency,
            metadata=metadata,
            callback_url=self._callback_url,
        )
        logger.info(
            "checkout.created reference=%s phone=%s ref=%s",
            data.get("reference"),
            normalized_phone,
            metadata["ref"] or "-",
        )
        return {
            "authorization_url": data["authorization_url"],
            "reference": data.get("reference", ""),
            "amount": self._price,
        }
