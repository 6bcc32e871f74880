# app/services/loans.py
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from app.core.exceptions import InvalidStateError, NotFoundError, StoreError, ValidationError
from app.core.state_machine import LoanAction, LoanStateMachine
from app.core.utils import new_id, today, utc_now, validate_model
from app.db.store import DataStore, DESCENDING, ITEMS, LOANS, PROFILES
from app.models.enum import LoanStatus
from app.models.item import Item
from app.models.loan import LoanRequest

OVER_STOCK_MESSAGE = "Jumlah yang diminta melebihi stok yang tersedia"


class LoanRequestService:
    """Loan request lifecycle plus the coupled stock mutation on `alat`.

    Stock is never reserved at submission; it is decremented when an admin
    approves and restored when the return is confirmed. The status change
    is a conditional update on the expected current status, and it shares
    one store transaction with its stock increment, so concurrent decisions
    on the same request cannot both apply.
    """

    def __init__(self, store: DataStore, state_machine: Optional[LoanStateMachine] = None):
        self.store = store
        self.state_machine = state_machine or LoanStateMachine()

    # --- Queries ---
    async def get(self, request_id: str) -> LoanRequest:
        doc = await self.store.get(LOANS, request_id)
        if not doc:
            raise NotFoundError(f"Peminjaman dengan ID '{request_id}' tidak ditemukan.")
        return LoanRequest.model_validate(doc)

    async def list(
        self,
        status: Optional[Iterable[LoanStatus]] = None,
        user_id: Optional[str] = None,
        alat_id: Optional[str] = None,
    ) -> List[LoanRequest]:
        query_filters: Dict[str, Any] = {}
        if status:
            query_filters["status"] = {"$in": [LoanStatus(s).value for s in status]}
        if user_id:
            query_filters["user_id"] = user_id
        if alat_id:
            query_filters["alat_id"] = alat_id
        docs = await self.store.find(LOANS, query_filters, sort=[("created_at", DESCENDING)])
        return [LoanRequest.model_validate(doc) for doc in docs]

    async def with_details(self, loans: List[LoanRequest]) -> List[LoanRequest.Response]:
        """Attach borrower and item summaries, one lookup per table."""
        user_ids = sorted({loan.user_id for loan in loans})
        item_ids = sorted({loan.alat_id for loan in loans})
        profiles = {
            doc["id"]: doc for doc in await self.store.find(PROFILES, {"id": {"$in": user_ids}})
        } if user_ids else {}
        items = {
            doc["id"]: doc for doc in await self.store.find(ITEMS, {"id": {"$in": item_ids}})
        } if item_ids else {}
        return [
            LoanRequest.Response.model_validate({
                **loan.model_dump(),
                "peminjam": profiles.get(loan.user_id),
                "alat": items.get(loan.alat_id),
            })
            for loan in loans
        ]

    # --- Submission ---
    async def _build_request(
        self,
        store: DataStore,
        requester_id: str,
        item_id: str,
        jumlah: Any,
        keperluan: str,
        tanggal_kembali_rencana: Any,
        tanggal_pinjam: Optional[date],
    ) -> LoanRequest:
        payload = validate_model(LoanRequest.Create, {
            "alat_id": item_id,
            "jumlah": jumlah,
            "keperluan": keperluan,
            "tanggal_pinjam": tanggal_pinjam,
            "tanggal_kembali_rencana": tanggal_kembali_rencana,
        })
        borrow_date = payload.tanggal_pinjam or today()
        if payload.tanggal_kembali_rencana < borrow_date:
            raise ValidationError("Tanggal rencana pengembalian tidak boleh sebelum tanggal pinjam.")

        # Stok dibaca ulang saat pengajuan, bukan dari cache
        item_doc = await store.get(ITEMS, payload.alat_id)
        if not item_doc:
            raise NotFoundError(f"Alat dengan ID '{payload.alat_id}' tidak ditemukan.")
        item = Item.model_validate(item_doc)
        if payload.jumlah > item.jumlah:
            logger.info(
                f"Request for {payload.jumlah} x '{item.nama}' rejected: only {item.jumlah} in stock."
            )
            raise ValidationError(f"{OVER_STOCK_MESSAGE} ({item.nama}: {item.jumlah}).")

        now = utc_now()
        return LoanRequest(
            id=new_id(),
            user_id=requester_id,
            alat_id=item.id,
            jumlah=payload.jumlah,
            keperluan=payload.keperluan,
            tanggal_pinjam=borrow_date,
            tanggal_kembali_rencana=payload.tanggal_kembali_rencana,
            tanggal_kembali=None,
            dikembalikan=False,
            status=LoanStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

    async def _ensure_requester(self, requester_id: str) -> None:
        if not await self.store.get(PROFILES, requester_id):
            raise NotFoundError(f"Profil dengan ID '{requester_id}' tidak ditemukan.")

    async def submit(
        self,
        requester_id: str,
        item_id: str,
        jumlah: Any,
        keperluan: str,
        tanggal_kembali_rencana: Any,
        tanggal_pinjam: Optional[date] = None,
    ) -> LoanRequest:
        await self._ensure_requester(requester_id)
        # Baca stok dan simpan pengajuan dalam satu transaksi
        async with self.store.transaction() as tx:
            loan = await self._build_request(
                tx, requester_id, item_id, jumlah, keperluan, tanggal_kembali_rencana, tanggal_pinjam
            )
            await tx.insert(LOANS, loan.model_dump())
        logger.info(f"User '{requester_id}' submitted loan '{loan.id}' for {loan.jumlah} x item '{loan.alat_id}'.")
        return loan

    async def submit_many(
        self,
        requester_id: str,
        lines: Iterable[Dict[str, Any]],
        keperluan: str,
        tanggal_kembali_rencana: Any,
        tanggal_pinjam: Optional[date] = None,
    ) -> List[LoanRequest]:
        """One request per item; every line is validated before anything is written."""
        lines = list(lines)
        if not lines:
            raise ValidationError("Pilih minimal satu alat untuk dipinjam.")
        await self._ensure_requester(requester_id)

        try:
            async with self.store.transaction() as tx:
                loans = [
                    await self._build_request(
                        tx, requester_id, line.get("alat_id"), line.get("jumlah", 1),
                        keperluan, tanggal_kembali_rencana, tanggal_pinjam,
                    )
                    for line in lines
                ]
                for loan in loans:
                    await tx.insert(LOANS, loan.model_dump())
        except StoreError:
            logger.error(f"Batch submission by '{requester_id}' failed; no rows were kept.")
            raise
        logger.info(f"User '{requester_id}' submitted {len(loans)} loan requests in one batch.")
        return loans

    # --- Keputusan admin ---
    async def decide(self, request_id: str, outcome: LoanStatus) -> LoanRequest:
        """Status claim and stock decrement commit together or not at all."""
        try:
            outcome = LoanStatus(outcome)
        except ValueError:
            raise ValidationError(f"Keputusan '{outcome}' tidak dikenal.") from None
        action = self.state_machine.action_for_outcome(outcome)

        loan = await self.get(request_id)
        if loan.status == outcome:
            logger.info(f"Loan '{request_id}' already '{outcome.value}'. No action taken.")
            return loan
        self.state_machine.next_state(loan.status, action)

        update_data: Dict[str, Any] = {"status": outcome.value, "updated_at": utc_now()}
        if action == LoanAction.APPROVE:
            update_data.update({"tanggal_kembali": None, "dikembalikan": False})

        async with self.store.transaction() as tx:
            claimed = await tx.update(
                LOANS, request_id, update_data, expected={"status": LoanStatus.PENDING.value}
            )
            if claimed and action == LoanAction.APPROVE:
                await self._take_stock(tx, loan)

        if not claimed:
            # Admin lain memutuskan lebih dulu
            current = await self.get(request_id)
            if current.status == outcome:
                logger.info(f"Loan '{request_id}' was decided concurrently with the same outcome.")
                return current
            raise InvalidStateError(
                f"Peminjaman sudah berstatus '{current.status.value}' dan tidak dapat diubah lagi."
            )
        logger.info(f"Loan '{request_id}' status updated to '{outcome.value}'.")
        return LoanRequest.model_validate(claimed)

    async def _take_stock(self, tx: DataStore, loan: LoanRequest) -> None:
        item_doc = await tx.increment(ITEMS, loan.alat_id, "jumlah", -loan.jumlah, floor=0)
        if item_doc is None:
            logger.warning(f"Approval of loan '{loan.id}' aborted: item '{loan.alat_id}' is gone.")
            raise NotFoundError(f"Alat dengan ID '{loan.alat_id}' tidak ditemukan.")
        logger.info(f"Item '{loan.alat_id}' stock decremented by {loan.jumlah} to {item_doc.get('jumlah')}.")

    # --- Pengembalian ---
    async def confirm_return(self, request_id: str) -> LoanRequest:
        loan = await self.get(request_id)
        self.state_machine.next_state(loan.status, LoanAction.RETURN)
        if loan.dikembalikan:
            raise InvalidStateError("Alat untuk peminjaman ini sudah dikembalikan.")

        async with self.store.transaction() as tx:
            claimed = await tx.update(
                LOANS,
                request_id,
                {
                    "status": LoanStatus.SELESAI.value,
                    "dikembalikan": True,
                    "tanggal_kembali": today(),
                    "updated_at": utc_now(),
                },
                expected={"status": LoanStatus.DISETUJUI.value, "dikembalikan": False},
            )
            if not claimed:
                raise InvalidStateError("Pengembalian untuk peminjaman ini sudah diproses.")
            item_doc = await tx.increment(ITEMS, loan.alat_id, "jumlah", loan.jumlah)

        if item_doc is None:
            logger.error(
                f"Item '{loan.alat_id}' for loan '{request_id}' no longer exists; stock restore skipped."
            )
        else:
            logger.info(f"Item '{loan.alat_id}' stock incremented by {loan.jumlah} to {item_doc.get('jumlah')}.")
        logger.info(f"Loan '{request_id}' returned and marked '{LoanStatus.SELESAI.value}'.")
        return LoanRequest.model_validate(claimed)
