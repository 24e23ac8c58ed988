import logging

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from voucher_relay.api.deps import ServiceRegistry, get_checkout_service, get_registry
from voucher_relay.schemas.payment import CreatePaymentRequest, CreatePaymentResponse
from voucher_relay.services.checkout_service import CheckoutService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/create-payment", response_model=CreatePaymentResponse)
def create_payment(
    payload: CreatePaymentRequest,
    checkout: CheckoutService = Depends(get_checkout_service),
):
    return checkout.create_payment(
        name=payload.name,
        phone=payload.phone,
        email=str(payload.email),
        ref=payload.ref,
    )


@router.post("/webhook", response_class=PlainTextResponse)
async def paystack_webhook(
    request: Request,
    x_paystack_signature: str | None = Header(default=None),
    registry: ServiceRegistry = Depends(get_registry),
):
    # The signature covers the bytes as sent, so read them before anything
    # gets a chance to parse the body.
    raw = await request.body()
    service = await run_in_threadpool(registry.fulfillment)
    result = await run_in_threadpool(service.handle_webhook, raw, x_paystack_signature)
    logger.debug("webhook.response outcome=%s status=%s", result.outcome.value, result.status_code)
    return PlainTextResponse(result.body, status_code=result.status_code)
