from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from voucher_relay.api.deps import ServiceRegistry, get_registry

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
def root():
    return "Voucher server running"


@router.get("/health")
def health(registry: ServiceRegistry = Depends(get_registry)):
    settings = registry.settings
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "storeBackend": settings.store_backend,
        "smsConfigured": registry.sms.configured,
        "paystackConfigured": registry.paystack.configured,
    }
