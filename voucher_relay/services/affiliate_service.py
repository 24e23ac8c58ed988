import logging

from voucher_relay.core.config import Settings
from voucher_relay.stores.records import AffiliateSaleEvent, AffiliateTotals

logger = logging.getLogger(__name__)


class AffiliateLedger:
    def __init__(self, store, settings: Settings):
        self._store = store
        self._price = settings.VOUCHER_PRICE
        self._commission = settings.AFFILIATE_COMMISSION

    @property
    def commission(self) -> float:
        return self._commission

    def record_sale(self, code: str, buyer_phone: str, voucher_serial: str) -> AffiliateSaleEvent | None:
        if not code:
            return None
        event = AffiliateSaleEvent(
            code=code,
            buyer_phone=buyer_phone,
            amount=self._price,
            commission=self._commission,
            voucher_serial=voucher_serial,
        )
        self._store.append_affiliate_sale(event)
        logger.info("affiliate.sale_recorded code=%s serial=%s", code, voucher_serial)
        return event

    def accrue(self, code: str) -> AffiliateTotals | None:
        if not code:
            return None
        totals = self._store.accrue_affiliate(code, self._commission)
        logger.info(
            "affiliate.accrued code=%s total_sales=%s total_commission=%s",
            code,
            totals.total_sales,
            totals.total_commission,
        )
        return totals
