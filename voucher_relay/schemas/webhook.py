import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from voucher_relay.core.phone import normalize_phone

CHARGE_SUCCESS = "charge.success"


class MalformedWebhookError(ValueError):
    pass


class EventKind(str, Enum):
    successful_charge = "successful_charge"
    unsuccessful_charge = "unsuccessful_charge"
    other = "other"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class ChargeMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    phone: str = ""
    email: str = ""
    ref: str = ""

    @field_validator("name", "phone", "email", "ref", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _text(value)


class PaystackCustomer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: str = ""
    phone: str = ""
    mobile: str = ""

    @field_validator("email", "phone", "mobile", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _text(value)


@dataclass(frozen=True)
class Buyer:
    name: str
    phone: str
    email: str
    affiliate_code: str


class ChargeData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: str = ""
    reference: str = ""
    amount: int | None = None
    currency: str = ""
    metadata: ChargeMetadata = Field(default_factory=ChargeMetadata)
    customer: PaystackCustomer | None = None

    @field_validator("status", "reference", "currency", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _text(value)

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> int | None:
        if isinstance(value, bool):
            return None
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return None

    @field_validator("metadata", mode="before")
    @classmethod
    def _coerce_metadata(cls, value: Any) -> Any:
        # Paystack echoes metadata back as "" when none was sent and some
        # clients send it as a JSON-encoded string.
        if isinstance(value, str):
            try:
                value = json.loads(value) if value.strip() else {}
            except ValueError:
                return {}
        return value if isinstance(value, dict) else {}

    @field_validator("customer", mode="before")
    @classmethod
    def _coerce_customer(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None

    def buyer(self) -> Buyer:
        customer = self.customer or PaystackCustomer()
        phone = self.metadata.phone or customer.phone or customer.mobile
        email = self.metadata.email or customer.email
        return Buyer(
            name=self.metadata.name,
            phone=normalize_phone(phone),
            email=email,
            affiliate_code=self.metadata.ref,
        )

    def amount_major_units(self, default: float) -> float:
        if self.amount is None:
            return default
        return self.amount / 100


class WebhookEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event: str = ""
    data: ChargeData = Field(default_factory=ChargeData)

    @field_validator("event", mode="before")
    @classmethod
    def _coerce_event(cls, value: Any) -> str:
        return _text(value)

    @field_validator("data", mode="before")
    @classmethod
    def _coerce_data(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @model_validator(mode="after")
    def _fulfillable_charge_needs_reference(self) -> "WebhookEnvelope":
        # Only a delivery that would hand out a voucher needs a reference;
        # anything else is acknowledged and dropped.
        if self.kind is EventKind.successful_charge and not self.data.reference:
            raise ValueError("successful charge.success event without a reference")
        return self

    @property
    def kind(self) -> EventKind:
        if self.event != CHARGE_SUCCESS:
            return EventKind.other
        if self.data.status.lower() != "success":
            return EventKind.unsuccessful_charge
        return EventKind.successful_charge


def parse_webhook_envelope(raw_body: bytes) -> WebhookEnvelope:
    """
    Parse a signed webhook body.

    Only a body that is not JSON, or a successful charge with no reference,
    is malformed. Any other JSON value yields an envelope that classifies as
    ``EventKind.other`` or ``unsuccessful_charge``.
    """
    try:
        payload = json.loads(raw_body)
    except ValueError as exc:
        raise MalformedWebhookError(f"body: not valid JSON ({exc})") from exc
    if not isinstance(payload, dict):
        payload = {}

    try:
        return WebhookEnvelope.model_validate(payload)
    except ValidationError as exc:
        raise MalformedWebhookError(
            "; ".join(f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}" for err in exc.errors())
        ) from exc
