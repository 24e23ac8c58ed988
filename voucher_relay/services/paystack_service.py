import json
import logging
from typing import Any
from urllib import error, request

from voucher_relay.core.config import Settings
from voucher_relay.core.exceptions import PaystackError

logger = logging.getLogger(__name__)


def _decode(raw: bytes) -> Any:
    text = raw.decode("utf-8", errors="ignore")
    try:
        return json.loads(text)
    except ValueError:
        return text


class PaystackClient:
    def __init__(self, settings: Settings):
        self._secret_key = settings.PAYSTACK_SECRET_KEY
        self._base_url = settings.PAYSTACK_BASE_URL.rstrip("/")
        self._timeout = settings.HTTP_TIMEOUT_SECONDS

    @property
    def configured(self) -> bool:
        return bool(self._secret_key)

    def initialize_transaction(
        self,
        email: str,
        amount: int,
        currency: str,
        metadata: dict[str, Any],
        callback_url: str | None = None,
    ) -> dict[str, Any]:
        """
        Open a Paystack checkout session.

        ``amount`` is in the currency's minor unit (pesewas for GHS). The
        reference is assigned by Paystack and returned in the result together
        with ``authorization_url``.
        """
        if not self._secret_key:
            raise PaystackError("Paystack is not configured")

        payload: dict[str, Any] = {
            "email": email,
            "amount": amount,
            "currency": currency,
            "metadata": metadata,
        }
        if callback_url:
            payload["callback_url"] = callback_url

        req = request.Request(
            f"{self._base_url}/transaction/initialize",
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Authorization": f"Bearer {self._secret_key}",
                "Content-Type": "application/json",
            },
        )
        try:
            with request.urlopen(req, timeout=self._timeout) as resp:
                data = _decode(resp.read())
        except error.HTTPError as exc:
            detail = _decode(exc.read())
            logger.error("paystack.initialize_rejected status=%s detail=%s", exc.code, detail)
            raise PaystackError("Paystack initialize failed", detail=detail) from exc
        except (error.URLError, OSError) as exc:
            logger.error("paystack.initialize_unreachable error=%s", exc)
            raise PaystackError("Paystack initialize failed", detail=str(exc)) from exc

        if not isinstance(data, dict) or not data.get("status") or not (data.get("data") or {}).get("authorization_url"):
            logger.error("paystack.initialize_unexpected response=%s", data)
            raise PaystackError("Unable to initialize payment", detail=data)
        return data["data"]
