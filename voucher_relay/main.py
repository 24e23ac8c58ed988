import logging
import secrets
import uuid

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from voucher_relay.api.deps import ServiceRegistry
from voucher_relay.api.routes import api_router
from voucher_relay.core.config import Settings, get_settings
from voucher_relay.core.exceptions import register_exception_handlers
from voucher_relay.core.logging import setup_logging
from voucher_relay.middleware.request_context import RequestContextMiddleware
from voucher_relay.stores import DatabaseStore

logger = logging.getLogger(__name__)

DEMO_VOUCHER_COUNT = 20


def generate_voucher_code() -> str:
    return f"{uuid.uuid4().hex[:8].upper()}-{secrets.randbelow(9000) + 1000}"


def generate_voucher_pin() -> str:
    return f"{secrets.randbelow(10**10):010d}"


def _seed_dev_vouchers(store: DatabaseStore) -> None:
    if store.count_vouchers() > 0:
        return
    added = store.add_vouchers(
        [(generate_voucher_code(), generate_voucher_pin()) for _ in range(DEMO_VOUCHER_COUNT)]
    )
    logger.info("store.seeded_demo_vouchers count=%s", added)


def _log_configuration_problems(settings: Settings) -> None:
    if settings.store_backend == "sheets" and not settings.sheets_configured:
        logger.error("config.missing Google Sheets config (SHEET_ID / GOOGLE_CLIENT_EMAIL / GOOGLE_PRIVATE_KEY)")
    if not settings.PAYSTACK_SECRET_KEY:
        logger.error("config.missing PAYSTACK_SECRET_KEY; payments and webhook verification will fail")
    if not settings.ARKESEL_API_KEY:
        logger.warning("config.missing ARKESEL_API_KEY; SMS will fail until provided")


def create_app(settings: Settings | None = None, registry: ServiceRegistry | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)
    if not settings.log_level_valid:
        logger.warning("config.invalid LOG_LEVEL=%r; using %s", settings.LOG_LEVEL, logging.getLevelName(settings.log_level))

    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)
    app.state.registry = registry or ServiceRegistry(settings)
    app.include_router(api_router)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.on_event("startup")
    async def on_startup():
        _log_configuration_problems(settings)
        if settings.store_backend != "database":
            return
        store = app.state.registry.store()
        if not isinstance(store, DatabaseStore):
            return
        store.create_schema()
        if settings.ENVIRONMENT.lower() == "development":
            _seed_dev_vouchers(store)

    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    # Claims against a Sheets store are serialized in-process, so this stays
    # a single worker.
    uvicorn.run(
        "voucher_relay.main:app",
        host=settings.BACKEND_HOST,
        port=settings.PORT,
        log_level="debug" if settings.DEBUG else "info",
        workers=1,
    )
