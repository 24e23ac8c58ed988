from concurrent.futures import ThreadPoolExecutor

from sqlalchemy import create_engine

from voucher_relay.db.models import Voucher
from voucher_relay.db.session import build_session_factory
from voucher_relay.services.voucher_service import VoucherAllocator
from voucher_relay.stores import DatabaseStore


def test_n_allocations_exhaust_n_rows(store):
    store.add_vouchers([(f"SER{i}", f"PIN{i}") for i in range(3)])
    allocator = VoucherAllocator(store)

    serials = [allocator.allocate("233551234567", "k@example.com").serial for _ in range(3)]

    assert serials == ["SER0", "SER1", "SER2"]
    assert allocator.allocate("233551234567", "k@example.com") is None


def test_lowest_index_unused_row_wins(store):
    store.add_vouchers([("A", "1111", "USED"), ("B", "2222", ""), ("C", "3333", "")])

    voucher = VoucherAllocator(store).allocate("233551234567", "k@example.com")

    assert voucher.serial == "B"
    assert voucher.pin == "2222"


def test_consumed_markers_are_trimmed_and_case_insensitive(store):
    store.add_vouchers(
        [
            ("A", "1", " yes "),
            ("B", "2", "Used"),
            ("C", "3", "YES"),
            ("D", "4", "no"),
        ]
    )

    assert VoucherAllocator(store).allocate("233551234567", "").serial == "D"


def test_rows_without_a_serial_are_never_handed_out(store):
    store.add_vouchers([("", "0000"), ("  ", "1111"), ("B", "2222")])
    allocator = VoucherAllocator(store)

    assert allocator.allocate("233551234567", "").serial == "B"
    assert allocator.allocate("233551234567", "") is None


def test_null_status_is_eligible(store, session_factory):
    with session_factory() as db:
        db.add(Voucher(serial="N1", pin="9", status=None))
        db.commit()

    assert VoucherAllocator(store).allocate("233551234567", "").serial == "N1"


def test_claim_writes_buyer_details(store, session_factory):
    store.add_vouchers([(" SER1 ", " 4321 ")])

    voucher = VoucherAllocator(store).allocate("233551234567", "k@example.com", "AFF7")

    assert (voucher.serial, voucher.pin) == ("SER1", "4321")
    with session_factory() as db:
        row = db.query(Voucher).one()
        assert row.status == "USED"
        assert row.assigned_phone == "233551234567"
        assert row.assigned_email == "k@example.com"
        assert row.assigned_at is not None
        assert row.affiliate_code == "AFF7"


def test_database_store_is_not_serialized_in_process(store):
    assert VoucherAllocator(store).serialized is False


def test_concurrent_claims_never_share_a_voucher(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'vouchers.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    store = DatabaseStore(build_session_factory(engine))
    store.create_schema()
    store.add_vouchers([(f"SER{i}", f"PIN{i}") for i in range(5)])
    allocator = VoucherAllocator(store)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda i: allocator.allocate(f"2335500000{i:02d}", ""), range(12)))

    claimed = [voucher.serial for voucher in results if voucher is not None]
    assert sorted(claimed) == [f"SER{i}" for i in range(5)]
    assert results.count(None) == 7
