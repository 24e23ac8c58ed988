import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from voucher_relay.api.deps import ServiceRegistry
from voucher_relay.core.config import Settings
from voucher_relay.core.exceptions import SmsDeliveryError
from voucher_relay.core.security import compute_paystack_signature
from voucher_relay.db.session import build_session_factory
from voucher_relay.main import create_app
from voucher_relay.stores import DatabaseStore

PAYSTACK_SECRET = "sk_test_4f9a1c"


class StubPaystack:
    configured = True

    def __init__(self):
        self.calls = []
        self.error = None

    def initialize_transaction(self, email, amount, currency, metadata, callback_url=None):
        self.calls.append(
            {
                "email": email,
                "amount": amount,
                "currency": currency,
                "metadata": metadata,
                "callback_url": callback_url,
            }
        )
        if self.error is not None:
            raise self.error
        reference = f"T{len(self.calls):06d}"
        return {
            "authorization_url": f"https://checkout.paystack.com/{reference.lower()}",
            "access_code": reference.lower(),
            "reference": reference,
        }


class StubSms:
    configured = True

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, phone, message):
        if self.fail:
            raise SmsDeliveryError("Arkesel unreachable: connection refused")
        self.sent.append({"phone": phone, "message": message})
        return {"status": "success", "data": [{"recipient": phone, "id": "msg-1"}]}


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        PAYSTACK_SECRET_KEY=PAYSTACK_SECRET,
        ARKESEL_API_KEY="ak_test",
        STORE_BACKEND="database",
        DATABASE_URL="sqlite://",
        VOUCHER_PRICE=25.0,
        AFFILIATE_COMMISSION=3.0,
    )


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    return build_session_factory(engine)


@pytest.fixture
def store(session_factory):
    store = DatabaseStore(session_factory)
    store.create_schema()
    return store


@pytest.fixture
def paystack():
    return StubPaystack()


@pytest.fixture
def sms():
    return StubSms()


@pytest.fixture
def registry(settings, store, paystack, sms):
    return ServiceRegistry(settings, store=store, paystack=paystack, sms=sms)


@pytest.fixture
def client(settings, registry):
    return TestClient(create_app(settings, registry=registry))


@pytest.fixture
def charge_event():
    def _build(
        reference,
        phone="0551234567",
        email="k@example.com",
        ref=None,
        event="charge.success",
        status="success",
        amount=2500,
    ):
        metadata = {"name": "Kwame", "phone": phone, "email": email}
        if ref is not None:
            metadata["ref"] = ref
        return {
            "event": event,
            "data": {
                "id": 302961,
                "status": status,
                "reference": reference,
                "amount": amount,
                "currency": "GHS",
                "metadata": metadata,
                "customer": {"email": email, "phone": None},
            },
        }

    return _build


@pytest.fixture
def post_webhook(client):
    def _post(payload, secret=PAYSTACK_SECRET, signature=None):
        raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
        if signature is None:
            signature = compute_paystack_signature(secret, raw)
        return client.post(
            "/webhook",
            content=raw,
            headers={"x-paystack-signature": signature, "Content-Type": "application/json"},
        )

    return _post
