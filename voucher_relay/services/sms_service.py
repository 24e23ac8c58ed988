import json
import logging
from typing import Any
from urllib import error, request

from voucher_relay.core.config import Settings
from voucher_relay.core.exceptions import SmsDeliveryError
from voucher_relay.stores.records import AllocatedVoucher

logger = logging.getLogger(__name__)


def format_voucher_message(template: str, voucher: AllocatedVoucher, brand: str) -> str:
    return template.format(serial=voucher.serial, pin=voucher.pin, brand=brand)


class ArkeselClient:
    def __init__(self, settings: Settings):
        self._api_key = settings.ARKESEL_API_KEY
        self._sender = settings.ARKESEL_SENDER
        self._url = settings.ARKESEL_BASE_URL
        self._timeout = settings.HTTP_TIMEOUT_SECONDS

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def send(self, phone: str, message: str) -> dict[str, Any]:
        if not self._api_key:
            raise SmsDeliveryError("ARKESEL_API_KEY missing")
        if not phone:
            raise SmsDeliveryError("No recipient phone number")

        payload: dict[str, Any] = {"recipients": [phone], "message": message}
        if self._sender:
            payload["sender"] = self._sender

        req = request.Request(
            self._url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Content-Type": "application/json",
                "api-key": self._api_key,
            },
        )
        try:
            with request.urlopen(req, timeout=self._timeout) as resp:
                body = resp.read().decode("utf-8", errors="ignore")
        except error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore")
            raise SmsDeliveryError(f"Arkesel rejected the message ({exc.code})", detail=detail) from exc
        except (error.URLError, OSError) as exc:
            raise SmsDeliveryError(f"Arkesel unreachable: {exc}") from exc

        try:
            data = json.loads(body)
        except ValueError as exc:
            raise SmsDeliveryError("Arkesel returned a non-JSON response", detail=body[:500]) from exc

        if isinstance(data, dict) and str(data.get("status", "success")).lower() != "success":
            raise SmsDeliveryError("Arkesel rejected the message", detail=data)
        return data
