import asyncio
from datetime import timedelta

import pytest

from app.core.exceptions import InvalidStateError, NotFoundError, StoreError, ValidationError
from app.db.store import ITEMS, LOANS, PROFILES
from app.models.enum import LoanStatus
from app.services.loans import LoanRequestService
from tests.fakes import TODAY, make_item, make_loan, make_profile


@pytest.fixture
def service(seeded_store):
    return LoanRequestService(seeded_store)


def run(coro):
    return asyncio.run(coro)


def stock(store, item_id="alat-1"):
    return store.row(ITEMS, item_id)["jumlah"]


# --- Pengajuan ---
def test_submit_creates_pending_request_without_touching_stock(service, seeded_store):
    loan = run(service.submit("siswa-1", "alat-1", 3, "Praktik mesin", TODAY + timedelta(days=2)))

    assert loan.status == LoanStatus.PENDING
    assert loan.dikembalikan is False
    assert loan.tanggal_pinjam == TODAY
    assert seeded_store.row(LOANS, loan.id)["status"] == "pending"
    assert stock(seeded_store) == 10


def test_submit_more_than_stock_is_rejected(service, seeded_store):
    with pytest.raises(ValidationError) as exc:
        run(service.submit("siswa-1", "alat-1", 11, "Praktik", TODAY + timedelta(days=1)))
    assert "melebihi stok" in exc.value.message
    assert seeded_store.tables.get(LOANS, {}) == {}


@pytest.mark.parametrize("jumlah", [0, -1, "dua"])
def test_submit_invalid_quantity(service, seeded_store, jumlah):
    with pytest.raises(ValidationError):
        run(service.submit("siswa-1", "alat-1", jumlah, "Praktik", TODAY + timedelta(days=1)))
    assert seeded_store.tables.get(LOANS, {}) == {}


def test_submit_unknown_item(service):
    with pytest.raises(NotFoundError):
        run(service.submit("siswa-1", "tidak-ada", 1, "Praktik", TODAY + timedelta(days=1)))


def test_submit_unknown_requester(service):
    with pytest.raises(NotFoundError):
        run(service.submit("hantu", "alat-1", 1, "Praktik", TODAY + timedelta(days=1)))


def test_submit_return_date_before_borrow_date(service):
    with pytest.raises(ValidationError):
        run(service.submit(
            "siswa-1", "alat-1", 1, "Praktik", TODAY, tanggal_pinjam=TODAY + timedelta(days=2)
        ))


def test_submit_many_writes_nothing_when_one_line_fails(service, seeded_store):
    seeded_store.seed(ITEMS, make_item("alat-2", jumlah=1))
    lines = [{"alat_id": "alat-1", "jumlah": 2}, {"alat_id": "alat-2", "jumlah": 5}]

    with pytest.raises(ValidationError):
        run(service.submit_many("siswa-1", lines, "Praktik", TODAY + timedelta(days=1)))
    assert seeded_store.tables.get(LOANS, {}) == {}


def test_submit_many_creates_one_request_per_item(service, seeded_store):
    seeded_store.seed(ITEMS, make_item("alat-2", jumlah=4))
    lines = [{"alat_id": "alat-1", "jumlah": 2}, {"alat_id": "alat-2", "jumlah": 4}]

    loans = run(service.submit_many("siswa-1", lines, "Praktik", TODAY + timedelta(days=1)))

    assert [(l.alat_id, l.jumlah) for l in loans] == [("alat-1", 2), ("alat-2", 4)]
    assert len(seeded_store.tables[LOANS]) == 2


def test_submit_many_rolls_back_on_store_failure(service, seeded_store, monkeypatch):
    seeded_store.seed(ITEMS, make_item("alat-2", jumlah=4))
    original_insert = seeded_store.insert
    inserted = []

    async def flaky_insert(table, doc):
        if table == LOANS and inserted:
            raise StoreError("Gagal menyimpan data.")
        inserted.append(doc["id"])
        return await original_insert(table, doc)

    monkeypatch.setattr(seeded_store, "insert", flaky_insert)
    lines = [{"alat_id": "alat-1", "jumlah": 1}, {"alat_id": "alat-2", "jumlah": 1}]

    with pytest.raises(StoreError):
        run(service.submit_many("siswa-1", lines, "Praktik", TODAY + timedelta(days=1)))
    assert seeded_store.tables.get(LOANS, {}) == {}


# --- Keputusan admin ---
def test_full_cycle_restores_stock(service, seeded_store):
    loan = run(service.submit("siswa-1", "alat-1", 3, "Praktik", TODAY + timedelta(days=2)))

    approved = run(service.decide(loan.id, LoanStatus.DISETUJUI))
    assert approved.status == LoanStatus.DISETUJUI
    assert stock(seeded_store) == 7

    returned = run(service.confirm_return(loan.id))
    assert returned.status == LoanStatus.SELESAI
    assert returned.dikembalikan is True
    assert returned.tanggal_kembali == TODAY
    assert stock(seeded_store) == 10


def test_reject_does_not_touch_stock(service, seeded_store):
    seeded_store.seed(LOANS, make_loan(jumlah=4))
    rejected = run(service.decide("pinjam-1", LoanStatus.DITOLAK))
    assert rejected.status == LoanStatus.DITOLAK
    assert stock(seeded_store) == 10


def test_repeat_decision_is_a_noop(service, seeded_store):
    seeded_store.seed(LOANS, make_loan(jumlah=4))
    run(service.decide("pinjam-1", LoanStatus.DISETUJUI))
    again = run(service.decide("pinjam-1", LoanStatus.DISETUJUI))

    assert again.status == LoanStatus.DISETUJUI
    assert stock(seeded_store) == 6
    assert seeded_store.calls.count(("increment", ITEMS)) == 1


def test_contrary_decision_on_decided_request(service, seeded_store):
    seeded_store.seed(LOANS, make_loan(status="ditolak"))
    with pytest.raises(InvalidStateError):
        run(service.decide("pinjam-1", LoanStatus.DISETUJUI))
    assert stock(seeded_store) == 10


def test_decide_unknown_request(service):
    with pytest.raises(NotFoundError):
        run(service.decide("tidak-ada", LoanStatus.DISETUJUI))


def test_decide_with_non_decision_outcome(service, seeded_store):
    seeded_store.seed(LOANS, make_loan())
    with pytest.raises(ValidationError):
        run(service.decide("pinjam-1", LoanStatus.SELESAI))
    with pytest.raises(ValidationError):
        run(service.decide("pinjam-1", "dipinjam"))


def test_approval_clamps_stock_at_zero(service, seeded_store):
    seeded_store.seed(ITEMS, make_item("alat-1", jumlah=2))
    seeded_store.seed(LOANS, make_loan(jumlah=5))
    run(service.decide("pinjam-1", LoanStatus.DISETUJUI))
    assert stock(seeded_store) == 0


def test_concurrent_approvals_on_same_item_both_apply(service, seeded_store):
    seeded_store.seed(ITEMS, make_item("alat-1", jumlah=5))
    seeded_store.seed(LOANS, make_loan("pinjam-1", jumlah=4))
    seeded_store.seed(LOANS, make_loan("pinjam-2", jumlah=4))

    async def both():
        return await asyncio.gather(
            service.decide("pinjam-1", LoanStatus.DISETUJUI),
            service.decide("pinjam-2", LoanStatus.DISETUJUI),
        )

    results = run(both())
    assert [r.status for r in results] == [LoanStatus.DISETUJUI, LoanStatus.DISETUJUI]
    assert stock(seeded_store) == 0


def test_concurrent_decisions_on_same_request_apply_once(service, seeded_store):
    seeded_store.seed(LOANS, make_loan(jumlah=3))

    async def race():
        return await asyncio.gather(
            service.decide("pinjam-1", LoanStatus.DISETUJUI),
            service.decide("pinjam-1", LoanStatus.DISETUJUI),
        )

    results = run(race())
    assert all(r.status == LoanStatus.DISETUJUI for r in results)
    assert stock(seeded_store) == 7


def test_concurrent_contrary_decisions_one_wins(service, seeded_store):
    seeded_store.seed(LOANS, make_loan(jumlah=3))

    async def race():
        return await asyncio.gather(
            service.decide("pinjam-1", LoanStatus.DISETUJUI),
            service.decide("pinjam-1", LoanStatus.DITOLAK),
            return_exceptions=True,
        )

    results = run(race())
    errors = [r for r in results if isinstance(r, Exception)]
    assert len(errors) == 1 and isinstance(errors[0], InvalidStateError)
    final = seeded_store.row(LOANS, "pinjam-1")["status"]
    assert stock(seeded_store) == (7 if final == "disetujui" else 10)


def test_approval_rolled_back_when_item_is_gone(service, seeded_store):
    seeded_store.seed(LOANS, make_loan(alat_id="alat-hilang"))
    with pytest.raises(NotFoundError):
        run(service.decide("pinjam-1", LoanStatus.DISETUJUI))
    assert seeded_store.row(LOANS, "pinjam-1")["status"] == "pending"


def test_approval_rolled_back_on_store_failure(service, seeded_store):
    seeded_store.seed(LOANS, make_loan(jumlah=2))
    seeded_store.fail(ITEMS, "increment")

    with pytest.raises(StoreError):
        run(service.decide("pinjam-1", LoanStatus.DISETUJUI))
    assert seeded_store.row(LOANS, "pinjam-1")["status"] == "pending"
    assert stock(seeded_store) == 10

    seeded_store.heal(ITEMS, "increment")
    run(service.decide("pinjam-1", LoanStatus.DISETUJUI))
    assert stock(seeded_store) == 8


# --- Pengembalian ---
@pytest.mark.parametrize("status", ["pending", "ditolak", "selesai"])
def test_return_requires_approved_request(service, seeded_store, status):
    seeded_store.seed(LOANS, make_loan(status=status))
    with pytest.raises(InvalidStateError):
        run(service.confirm_return("pinjam-1"))
    assert stock(seeded_store) == 10


def test_return_twice_is_rejected(service, seeded_store):
    seeded_store.seed(LOANS, make_loan(status="disetujui", jumlah=2))
    run(service.confirm_return("pinjam-1"))
    with pytest.raises(InvalidStateError):
        run(service.confirm_return("pinjam-1"))
    assert stock(seeded_store) == 12


def test_return_of_deleted_item_still_completes(service, seeded_store, log_messages):
    seeded_store.seed(LOANS, make_loan(status="disetujui", alat_id="alat-hilang"))
    returned = run(service.confirm_return("pinjam-1"))

    assert returned.status == LoanStatus.SELESAI
    assert any(r["level"].name == "ERROR" and "alat-hilang" in r["message"] for r in log_messages)


def test_return_rolled_back_on_store_failure(service, seeded_store):
    seeded_store.seed(LOANS, make_loan(status="disetujui", jumlah=2))
    seeded_store.fail(ITEMS, "increment")

    with pytest.raises(StoreError):
        run(service.confirm_return("pinjam-1"))
    row = seeded_store.row(LOANS, "pinjam-1")
    assert row["status"] == "disetujui"
    assert row["dikembalikan"] is False
    assert row["tanggal_kembali"] is None


def test_failed_stock_write_keeps_request_pending_and_stock_exact(service, seeded_store):
    seeded_store.seed(LOANS, make_loan(jumlah=3))
    seeded_store.fail(ITEMS, "increment")

    with pytest.raises(StoreError):
        run(service.decide("pinjam-1", LoanStatus.DISETUJUI))
    row = seeded_store.row(LOANS, "pinjam-1")
    assert row["status"] == "pending"
    assert ("rollback", None) in seeded_store.calls

    seeded_store.heal(ITEMS, "increment")
    run(service.decide("pinjam-1", LoanStatus.DISETUJUI))
    assert stock(seeded_store) == 7
    run(service.confirm_return("pinjam-1"))
    assert stock(seeded_store) == 10


# --- Query ---
def test_list_filters_and_orders_newest_first(service, seeded_store):
    base = make_loan()["created_at"]
    seeded_store.seed(LOANS, make_loan("lama", created_at=base - timedelta(hours=2), status="ditolak"))
    seeded_store.seed(LOANS, make_loan("baru", created_at=base))
    seeded_store.seed(LOANS, make_loan("lain", user_id="siswa-2", created_at=base - timedelta(hours=1)))

    mine = run(service.list(user_id="siswa-1"))
    assert [l.id for l in mine] == ["baru", "lama"]

    pending = run(service.list(status=[LoanStatus.PENDING]))
    assert [l.id for l in pending] == ["baru", "lain"]

    everything = run(service.list())
    assert [l.id for l in everything] == ["baru", "lain", "lama"]


def test_details_attach_borrower_and_item_in_one_lookup_each(service, seeded_store):
    seeded_store.seed(PROFILES, make_profile("siswa-2"))
    seeded_store.seed(LOANS, make_loan("p1"))
    seeded_store.seed(LOANS, make_loan("p2", user_id="siswa-2"))
    seeded_store.seed(LOANS, make_loan("p3", alat_id="alat-hilang"))
    loans = run(service.list())
    seeded_store.calls.clear()

    details = {r.id: r for r in run(service.with_details(loans))}

    assert details["p1"].peminjam.nama_lengkap == "Pengguna siswa-1"
    assert details["p1"].peminjam.kelas == "XI"
    assert details["p1"].alat.nama == "Kunci alat-1"
    assert details["p2"].peminjam.id == "siswa-2"
    assert details["p3"].alat is None
    assert seeded_store.calls == [("find", PROFILES), ("find", ITEMS)]


def test_details_of_empty_list(service, seeded_store):
    seeded_store.calls.clear()
    assert run(service.with_details([])) == []
    assert seeded_store.calls == []


@pytest.mark.parametrize("jumlah", [True, 2.5, "2"])
def test_non_integer_quantity_is_rejected(service, seeded_store, jumlah):
    with pytest.raises(ValidationError):
        run(service.submit("siswa-1", "alat-1", jumlah, "Praktik", TODAY + timedelta(days=1)))
    assert seeded_store.tables.get(LOANS, {}) == {}


def test_concurrent_approvals_within_stock_subtract_exactly(service, seeded_store):
    seeded_store.seed(LOANS, make_loan("pinjam-1", jumlah=3))
    seeded_store.seed(LOANS, make_loan("pinjam-2", jumlah=4))

    async def both():
        await asyncio.gather(
            service.decide("pinjam-1", LoanStatus.DISETUJUI),
            service.decide("pinjam-2", LoanStatus.DISETUJUI),
        )

    run(both())
    assert stock(seeded_store) == 3
