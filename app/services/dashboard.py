# app/services/dashboard.py
from typing import Optional

from app.db.store import DataStore, DESCENDING, ITEMS, LOANS, PROFILES
from app.models.enum import LoanStatus, ProfileStatus
from app.models.loan import LoanRequest
from app.models.report import AdminStats, BorrowerSummary
from app.services.loans import LoanRequestService


class DashboardService:
    """Read-only counts for the admin dashboard and a borrower's own history."""

    def __init__(self, store: DataStore, loans: Optional[LoanRequestService] = None):
        self.store = store
        self.loans = loans or LoanRequestService(store)

    async def admin_stats(self) -> AdminStats:
        return AdminStats(
            pending_users=await self.store.count(PROFILES, {"status": ProfileStatus.PENDING.value}),
            total_alat=await self.store.count(ITEMS),
            pending_peminjaman=await self.store.count(LOANS, {"status": LoanStatus.PENDING.value}),
            active_peminjaman=await self.store.count(
                LOANS, {"status": LoanStatus.DISETUJUI.value, "dikembalikan": False}
            ),
        )

    async def user_history(self, user_id: str) -> BorrowerSummary:
        docs = await self.store.find(LOANS, {"user_id": user_id}, sort=[("created_at", DESCENDING)])
        loans = [LoanRequest.model_validate(doc) for doc in docs]
        counts = {status: 0 for status in LoanStatus}
        for loan in loans:
            counts[loan.status] += 1
        return BorrowerSummary(
            user_id=user_id,
            total=len(loans),
            pending=counts[LoanStatus.PENDING],
            disetujui=counts[LoanStatus.DISETUJUI],
            ditolak=counts[LoanStatus.DITOLAK],
            selesai=counts[LoanStatus.SELESAI],
            riwayat=await self.loans.with_details(loans),
        )
