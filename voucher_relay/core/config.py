import logging
from functools import lru_cache
from pathlib import Path
from typing import List
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = Path(__file__).resolve().parents[2] / ".env"

DEFAULT_SMS_TEMPLATE = (
    "Your WASSCE voucher:\n"
    "Serial: {serial}\n"
    "PIN: {pin}\n"
    "Thank you for buying from {brand}!"
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=str(ENV_FILE), case_sensitive=False, extra="ignore")

    APP_NAME: str = "Voucher Relay"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = ""
    BACKEND_HOST: str = "0.0.0.0"
    PORT: int = 3000

    CORS_ORIGINS: str = "*"

    PAYSTACK_SECRET_KEY: str = ""
    # Empty means "use PAYSTACK_SECRET_KEY".
    PAYSTACK_WEBHOOK_SECRET: str = ""
    PAYSTACK_BASE_URL: str = "https://api.paystack.co"
    PAYSTACK_CALLBACK_URL: str = ""
    CURRENCY: str = "GHS"
    VOUCHER_PRICE: float = 25.0
    AFFILIATE_COMMISSION: float = 3.0

    ARKESEL_API_KEY: str = ""
    ARKESEL_SENDER: str = ""
    ARKESEL_BASE_URL: str = "https://sms.arkesel.com/api/v2/sms/send"
    SMS_TEMPLATE: str = DEFAULT_SMS_TEMPLATE
    BRAND_NAME: str = "Authentic Checkers"

    STORE_BACKEND: str = "sheets"
    SHEET_ID: str = ""
    GOOGLE_CLIENT_EMAIL: str = ""
    GOOGLE_PRIVATE_KEY: str = ""
    VOUCHER_TAB: str = "Main voucher sheet"
    AFFILIATES_TAB: str = "Affiliates"
    AFFILIATE_SALES_TAB: str = "AffiliateSales"
    PAYMENTS_TAB: str = "Payments"

    DATABASE_URL: str = "sqlite:///./vouchers.db"

    HTTP_TIMEOUT_SECONDS: float = 20.0

    @property
    def cors_origins(self) -> List[str]:
        origins: list[str] = []
        for raw in self.CORS_ORIGINS.split(","):
            value = raw.strip()
            if not value:
                continue
            parsed = urlparse(value)
            if parsed.scheme and parsed.netloc:
                value = f"{parsed.scheme}://{parsed.netloc}"
            origins.append(value.rstrip("/"))
        return origins

    @property
    def log_level_valid(self) -> bool:
        return not self.LOG_LEVEL.strip() or isinstance(logging.getLevelName(self.LOG_LEVEL.strip().upper()), int)

    @property
    def log_level(self) -> int:
        # Unset or unknown LOG_LEVEL falls back to DEBUG/INFO from the DEBUG flag.
        if self.LOG_LEVEL.strip() and self.log_level_valid:
            return logging.getLevelName(self.LOG_LEVEL.strip().upper())
        return logging.DEBUG if self.DEBUG else logging.INFO

    @property
    def webhook_secret(self) -> str:
        return self.PAYSTACK_WEBHOOK_SECRET or self.PAYSTACK_SECRET_KEY

    @property
    def google_private_key(self) -> str:
        # Keys pasted into a single env line carry literal "\n" sequences.
        return self.GOOGLE_PRIVATE_KEY.replace("\\n", "\n")

    @property
    def store_backend(self) -> str:
        return self.STORE_BACKEND.strip().lower()

    @property
    def sheets_configured(self) -> bool:
        return bool(self.SHEET_ID and self.GOOGLE_CLIENT_EMAIL and self.GOOGLE_PRIVATE_KEY)

    @property
    def price_minor_units(self) -> int:
        return int(round(self.VOUCHER_PRICE * 100))


@lru_cache
def get_settings() -> Settings:
    return Settings()
