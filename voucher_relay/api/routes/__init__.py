from fastapi import APIRouter

from voucher_relay.api.routes import health, payment

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(payment.router, tags=["payment"])
