import io
import json
from urllib import error

import pytest

from voucher_relay.core.config import Settings
from voucher_relay.core.exceptions import PaystackError, SmsDeliveryError
from voucher_relay.services import paystack_service, sms_service
from voucher_relay.services.paystack_service import PaystackClient
from voucher_relay.services.sms_service import ArkeselClient, format_voucher_message
from voucher_relay.stores.records import AllocatedVoucher


class FakeResponse:
    def __init__(self, body):
        self._body = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False


class Recorder:
    """Replaces urlopen; remembers the outgoing request and replays a canned outcome."""

    def __init__(self, outcome):
        self.outcome = outcome
        self.requests = []

    def __call__(self, req, timeout=None):
        self.requests.append((req, timeout))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return FakeResponse(self.outcome)

    @property
    def last_payload(self):
        return json.loads(self.requests[-1][0].data.decode("utf-8"))


def _http_error(url, code, body):
    return error.HTTPError(url, code, "error", {}, io.BytesIO(body))


@pytest.fixture
def client_settings():
    return Settings(
        _env_file=None,
        PAYSTACK_SECRET_KEY="sk_test_abc",
        ARKESEL_API_KEY="ak_test",
        ARKESEL_SENDER="AuthChk",
        HTTP_TIMEOUT_SECONDS=5,
    )


def test_paystack_initialize_posts_expected_request(client_settings, monkeypatch):
    recorder = Recorder(
        {
            "status": True,
            "message": "Authorization URL created",
            "data": {"authorization_url": "https://checkout.paystack.com/abc", "access_code": "abc", "reference": "r1"},
        }
    )
    monkeypatch.setattr(paystack_service.request, "urlopen", recorder)

    data = PaystackClient(client_settings).initialize_transaction(
        "k@example.com", 2500, "GHS", {"phone": "233551234567"}, callback_url="https://shop.example.com/done"
    )

    req, timeout = recorder.requests[0]
    assert data["reference"] == "r1"
    assert req.full_url == "https://api.paystack.co/transaction/initialize"
    assert req.get_header("Authorization") == "Bearer sk_test_abc"
    assert timeout == 5
    assert recorder.last_payload == {
        "email": "k@example.com",
        "amount": 2500,
        "currency": "GHS",
        "metadata": {"phone": "233551234567"},
        "callback_url": "https://shop.example.com/done",
    }


def test_paystack_rejection_carries_upstream_detail(client_settings, monkeypatch):
    body = json.dumps({"status": False, "message": "Invalid key"}).encode()
    recorder = Recorder(_http_error("https://api.paystack.co/transaction/initialize", 401, body))
    monkeypatch.setattr(paystack_service.request, "urlopen", recorder)

    with pytest.raises(PaystackError) as exc_info:
        PaystackClient(client_settings).initialize_transaction("k@example.com", 2500, "GHS", {})

    assert exc_info.value.status_code == 500
    assert exc_info.value.detail == {"status": False, "message": "Invalid key"}


def test_paystack_unreachable(client_settings, monkeypatch):
    monkeypatch.setattr(paystack_service.request, "urlopen", Recorder(error.URLError("timed out")))

    with pytest.raises(PaystackError):
        PaystackClient(client_settings).initialize_transaction("k@example.com", 2500, "GHS", {})


def test_paystack_response_without_url_is_an_error(client_settings, monkeypatch):
    monkeypatch.setattr(paystack_service.request, "urlopen", Recorder({"status": False, "message": "Duplicate"}))

    with pytest.raises(PaystackError) as exc_info:
        PaystackClient(client_settings).initialize_transaction("k@example.com", 2500, "GHS", {})
    assert exc_info.value.message == "Unable to initialize payment"


def test_paystack_without_key_never_calls_out(monkeypatch):
    recorder = Recorder({})
    monkeypatch.setattr(paystack_service.request, "urlopen", recorder)
    client = PaystackClient(Settings(_env_file=None, PAYSTACK_SECRET_KEY=""))

    assert client.configured is False
    with pytest.raises(PaystackError):
        client.initialize_transaction("k@example.com", 2500, "GHS", {})
    assert recorder.requests == []


def test_arkesel_send(client_settings, monkeypatch):
    recorder = Recorder({"status": "success", "data": [{"recipient": "233551234567", "id": "m1"}]})
    monkeypatch.setattr(sms_service.request, "urlopen", recorder)

    data = ArkeselClient(client_settings).send("233551234567", "hello")

    req, _ = recorder.requests[0]
    assert data["status"] == "success"
    assert req.full_url == "https://sms.arkesel.com/api/v2/sms/send"
    assert req.get_header("Api-key") == "ak_test"
    assert recorder.last_payload == {"recipients": ["233551234567"], "message": "hello", "sender": "AuthChk"}


def test_arkesel_without_sender_omits_field(client_settings, monkeypatch):
    client_settings.ARKESEL_SENDER = ""
    recorder = Recorder({"status": "success"})
    monkeypatch.setattr(sms_service.request, "urlopen", recorder)

    ArkeselClient(client_settings).send("233551234567", "hello")

    assert "sender" not in recorder.last_payload


@pytest.mark.parametrize(
    "outcome",
    [
        {"status": "error", "message": "Insufficient balance"},
        b"<html>bad gateway</html>",
        error.URLError("connection refused"),
    ],
)
def test_arkesel_failures_raise(client_settings, monkeypatch, outcome):
    monkeypatch.setattr(sms_service.request, "urlopen", Recorder(outcome))

    with pytest.raises(SmsDeliveryError):
        ArkeselClient(client_settings).send("233551234567", "hello")


def test_arkesel_http_error_keeps_body(client_settings, monkeypatch):
    failure = _http_error("https://sms.arkesel.com/api/v2/sms/send", 422, b'{"message": "invalid recipient"}')
    monkeypatch.setattr(sms_service.request, "urlopen", Recorder(failure))

    with pytest.raises(SmsDeliveryError) as exc_info:
        ArkeselClient(client_settings).send("233551234567", "hello")
    assert "invalid recipient" in exc_info.value.detail


def test_arkesel_refuses_missing_key_or_phone(client_settings):
    with pytest.raises(SmsDeliveryError):
        ArkeselClient(Settings(_env_file=None, ARKESEL_API_KEY="")).send("233551234567", "hello")
    with pytest.raises(SmsDeliveryError):
        ArkeselClient(client_settings).send("", "hello")


def test_message_uses_template_and_brand():
    voucher = AllocatedVoucher(serial="WAEC123", pin="998877")

    message = format_voucher_message("{brand}: {serial}/{pin}", voucher, "Authentic Checkers")

    assert message == "Authentic Checkers: WAEC123/998877"
