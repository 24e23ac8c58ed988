import logging
from datetime import datetime, timezone

from sqlalchemy import and_, func, or_, update
from sqlalchemy.orm import Session, sessionmaker

from voucher_relay.db.base import Base
from voucher_relay.db.models import Affiliate, AffiliateSale, PaymentLogEntry, Voucher
from voucher_relay.stores.records import (
    CONSUMED_MARKERS,
    USED_MARKER,
    AffiliateSaleEvent,
    AffiliateTotals,
    AllocatedVoucher,
    PaymentRecord,
)

logger = logging.getLogger(__name__)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class DatabaseStore:
    """SQLAlchemy backend. Claims are a conditional UPDATE on the row's prior status."""

    name = "database"
    supports_conditional_update = True

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def create_schema(self) -> None:
        with self._session_factory() as db:
            Base.metadata.create_all(bind=db.get_bind())

    def count_vouchers(self) -> int:
        with self._session_factory() as db:
            return db.query(Voucher).count()

    def add_vouchers(self, vouchers: list[tuple[str, ...]]) -> int:
        """Append (serial, pin) or (serial, pin, status) rows in the given order."""
        with self._session_factory() as db:
            db.add_all(
                [
                    Voucher(serial=row[0], pin=row[1], status=row[2] if len(row) > 2 else "")
                    for row in vouchers
                ]
            )
            db.commit()
        return len(vouchers)

    def claim_voucher(
        self,
        phone: str,
        email: str,
        affiliate_code: str | None,
        assigned_at: datetime,
    ) -> AllocatedVoucher | None:
        eligible = and_(
            func.trim(Voucher.serial) != "",
            or_(
                Voucher.status.is_(None),
                func.lower(func.trim(Voucher.status)).notin_(CONSUMED_MARKERS),
            ),
        )
        with self._session_factory() as db:
            while True:
                row = db.query(Voucher).filter(eligible).order_by(Voucher.id.asc()).first()
                if row is None:
                    return None

                voucher_id, prior_status = row.id, row.status
                claimed = AllocatedVoucher(serial=(row.serial or "").strip(), pin=(row.pin or "").strip())
                result = db.execute(
                    update(Voucher)
                    .where(Voucher.id == voucher_id, Voucher.status.is_not_distinct_from(prior_status))
                    .values(
                        status=USED_MARKER,
                        assigned_phone=phone or "",
                        assigned_email=email or "",
                        assigned_at=_naive_utc(assigned_at),
                        affiliate_code=affiliate_code or None,
                    )
                    .execution_options(synchronize_session=False)
                )
                db.commit()
                if result.rowcount == 1:
                    return claimed

                # Another writer took this row between our read and update.
                logger.info("voucher.claim_conflict voucher_id=%s", voucher_id)
                db.expire_all()

    def payment_exists(self, reference: str) -> bool:
        with self._session_factory() as db:
            return (
                db.query(PaymentLogEntry.id)
                .filter(PaymentLogEntry.reference == reference)
                .first()
                is not None
            )

    def append_payment(self, record: PaymentRecord) -> None:
        with self._session_factory() as db:
            db.add(
                PaymentLogEntry(
                    reference=record.reference,
                    phone=record.phone,
                    email=record.email,
                    amount=record.amount,
                    voucher_serial=record.voucher_serial,
                    affiliate_code=record.affiliate_code,
                    logged_at=_naive_utc(record.logged_at),
                )
            )
            db.commit()

    def append_affiliate_sale(self, event: AffiliateSaleEvent) -> None:
        with self._session_factory() as db:
            db.add(
                AffiliateSale(
                    code=event.code,
                    buyer_phone=event.buyer_phone,
                    amount=event.amount,
                    commission=event.commission,
                    voucher_serial=event.voucher_serial,
                    paid=event.paid,
                    created_at=_naive_utc(event.timestamp),
                )
            )
            db.commit()

    def accrue_affiliate(self, code: str, commission: float) -> AffiliateTotals:
        with self._session_factory() as db:
            result = db.execute(
                update(Affiliate)
                .where(Affiliate.code == code)
                .values(
                    total_sales=Affiliate.total_sales + 1,
                    total_commission=Affiliate.total_commission + commission,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                db.add(Affiliate(code=code, total_sales=1, total_commission=commission))
            db.commit()

            account = db.query(Affiliate).filter(Affiliate.code == code).one()
            return AffiliateTotals(
                code=account.code,
                total_sales=int(account.total_sales or 0),
                total_commission=float(account.total_commission or 0),
            )

    def get_affiliate(self, code: str) -> AffiliateTotals | None:
        with self._session_factory() as db:
            account = db.query(Affiliate).filter(Affiliate.code == code).first()
            if not account:
                return None
            return AffiliateTotals(
                code=account.code,
                total_sales=int(account.total_sales or 0),
                total_commission=float(account.total_commission or 0),
            )
