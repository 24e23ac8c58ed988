from voucher_relay.db.models import AffiliateSale
from voucher_relay.services.affiliate_service import AffiliateLedger


def test_accrue_creates_then_accumulates(store, settings):
    ledger = AffiliateLedger(store, settings)

    first = ledger.accrue("KOFI")
    second = ledger.accrue("KOFI")

    assert (first.total_sales, first.total_commission) == (1, 3.0)
    assert (second.total_sales, second.total_commission) == (2, 6.0)
    assert store.get_affiliate("KOFI") == second


def test_codes_are_tracked_separately(store, settings):
    ledger = AffiliateLedger(store, settings)
    ledger.accrue("KOFI")
    ledger.accrue("AMA")
    ledger.accrue("KOFI")

    assert store.get_affiliate("KOFI").total_sales == 2
    assert store.get_affiliate("AMA").total_sales == 1
    assert store.get_affiliate("kofi") is None


def test_record_sale_appends_one_event_per_call(store, settings, session_factory):
    ledger = AffiliateLedger(store, settings)
    ledger.record_sale("KOFI", "233551234567", "SER1")
    ledger.record_sale("KOFI", "233201112222", "SER2")

    with session_factory() as db:
        rows = db.query(AffiliateSale).order_by(AffiliateSale.voucher_serial).all()
        assert [(r.code, r.buyer_phone, r.voucher_serial, r.amount, r.commission, r.paid) for r in rows] == [
            ("KOFI", "233551234567", "SER1", 25.0, 3.0, "no"),
            ("KOFI", "233201112222", "SER2", 25.0, 3.0, "no"),
        ]


def test_empty_code_is_a_no_op(store, settings, session_factory):
    ledger = AffiliateLedger(store, settings)

    assert ledger.record_sale("", "233551234567", "SER1") is None
    assert ledger.accrue("") is None
    with session_factory() as db:
        assert db.query(AffiliateSale).count() == 0
