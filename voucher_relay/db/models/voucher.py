from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from voucher_relay.db.base import Base


class Voucher(Base):
    __tablename__ = "vouchers"

    # Insertion order is the allocation order.
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    serial: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    pin: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str | None] = mapped_column(String(16), nullable=True, default="")
    assigned_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    assigned_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    affiliate_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
