import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from voucher_relay.db.base import Base


class PaymentLogEntry(Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    reference: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    phone: Mapped[str] = mapped_column(String(32), default="")
    email: Mapped[str] = mapped_column(String(255), default="")
    amount: Mapped[float] = mapped_column(Float, default=0)
    voucher_serial: Mapped[str] = mapped_column(String(64), default="")
    affiliate_code: Mapped[str] = mapped_column(String(64), default="")
    logged_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
