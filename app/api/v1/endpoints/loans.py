# app/api/v1/endpoints/loans.py
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, Request, status
from loguru import logger

from app.core.rate_limiter import limiter
from app.core.security import get_current_profile, get_services, require_admin, require_verified_borrower
from app.core.utils import validate_model
from app.models.enum import LoanStatus, ProfileRole
from app.models.loan import LoanRequest
from app.models.profile import Profile
from app.services.container import Services

router = APIRouter(tags=["Loan Requests"])


def to_loan_response(loan: LoanRequest) -> LoanRequest.Response:
    return LoanRequest.Response.model_validate(loan.model_dump())


@router.post(
    "/",
    response_model=LoanRequest.Response,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a loan request",
)
@limiter.limit("10/minute")
async def submit_loan(
    request: Request,
    payload: dict = Body(...),
    borrower: Profile = Depends(require_verified_borrower),
    services: Services = Depends(get_services),
):
    data = validate_model(LoanRequest.Create, payload)
    loan = await services.loans.submit(
        borrower.id,
        data.alat_id,
        data.jumlah,
        data.keperluan,
        data.tanggal_kembali_rencana,
        tanggal_pinjam=data.tanggal_pinjam,
    )
    return to_loan_response(loan)


@router.post(
    "/batch",
    response_model=List[LoanRequest.Response],
    status_code=status.HTTP_201_CREATED,
    summary="Submit several items at once",
)
@limiter.limit("10/minute")
async def submit_loan_batch(
    request: Request,
    payload: dict = Body(...),
    borrower: Profile = Depends(require_verified_borrower),
    services: Services = Depends(get_services),
):
    data = validate_model(LoanRequest.CreateBatch, payload)
    loans = await services.loans.submit_many(
        borrower.id,
        [line.model_dump() for line in data.items],
        data.keperluan,
        data.tanggal_kembali_rencana,
        tanggal_pinjam=data.tanggal_pinjam,
    )
    return [to_loan_response(loan) for loan in loans]


@router.get("/", response_model=List[LoanRequest.Response], summary="List loan requests")
@limiter.limit("120/minute")
async def read_loans(
    request: Request,
    status_filter: Optional[List[LoanStatus]] = Query(None, alias="status"),
    user_id: Optional[str] = Query(None, description="Admin only: filter by borrower"),
    current_profile: Profile = Depends(get_current_profile),
    services: Services = Depends(get_services),
):
    # Non-admin hanya melihat pengajuannya sendiri
    if current_profile.role != ProfileRole.ADMIN:
        user_id = current_profile.id
    loans = await services.loans.list(status=status_filter, user_id=user_id)
    return await services.loans.with_details(loans)


@router.get("/{loan_id}", response_model=LoanRequest.Response, summary="Get one loan request")
async def read_loan(
    loan_id: str = Path(...),
    current_profile: Profile = Depends(get_current_profile),
    services: Services = Depends(get_services),
):
    loan = await services.loans.get(loan_id)
    if current_profile.role != ProfileRole.ADMIN and loan.user_id != current_profile.id:
        logger.warning(f"Profile '{current_profile.id}' tried to read loan '{loan_id}' of another user.")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Bukan peminjaman Anda.")
    details = await services.loans.with_details([loan])
    return details[0]


@router.patch("/{loan_id}/approve", response_model=LoanRequest.Response, summary="Approve (Admin)")
@limiter.limit("60/minute")
async def approve_loan(
    request: Request,
    loan_id: str = Path(...),
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    loan = await services.loans.decide(loan_id, LoanStatus.DISETUJUI)
    return to_loan_response(loan)


@router.patch("/{loan_id}/reject", response_model=LoanRequest.Response, summary="Reject (Admin)")
@limiter.limit("60/minute")
async def reject_loan(
    request: Request,
    loan_id: str = Path(...),
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    loan = await services.loans.decide(loan_id, LoanStatus.DITOLAK)
    return to_loan_response(loan)


@router.post("/{loan_id}/return", response_model=LoanRequest.Response, summary="Confirm return (Admin)")
@limiter.limit("60/minute")
async def return_loan(
    request: Request,
    loan_id: str = Path(...),
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    loan = await services.loans.confirm_return(loan_id)
    return to_loan_response(loan)
