"""Loan lifecycle, follow-up and stock repair routes."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ...database.loan_repository import LoanCreateSchema, LoanSearchParams
from ...database.repository import PaginatedResponse
from ...models.loan import (
    Loan,
    LoanStatistics,
    LoanStatus,
    LoanSummary,
    OverdueFilters,
    OverdueLoan,
    OverdueStatistics,
    ResourceStockDebug,
    StockCorrection,
)
from ...models.resource import StockStatistics
from ...models.user import User
from ...services.loan_service import DEFAULT_RENEWAL_DAYS, LoanService
from ..dependencies import get_db, require_staff

router = APIRouter(prefix="/loans", tags=["Loans"])


class ReturnLoanRequest(BaseModel):
    observations: str | None = Field(None, max_length=500)


class RenewLoanRequest(BaseModel):
    additional_days: int = DEFAULT_RENEWAL_DAYS


class MarkAsLostRequest(BaseModel):
    observations: str | None = Field(None, max_length=500)


@router.post("", response_model=Loan, status_code=status.HTTP_201_CREATED)
def create_loan(
    request: LoanCreateSchema,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return LoanService(db).create(request, loaned_by=user.id)


@router.get("", response_model=PaginatedResponse[Loan], dependencies=[Depends(require_staff)])
def list_loans(
    search: str | None = None,
    person_id: str | None = None,
    resource_id: str | None = None,
    loan_status: LoanStatus | None = Query(None, alias="status"),
    is_overdue: bool | None = None,
    page: int = 1,
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Loans newest first; ``page`` below 1 is treated as the first page."""
    return LoanService(db).list_loans(
        LoanSearchParams(
            search=search,
            person_id=person_id,
            resource_id=resource_id,
            status=loan_status,
            is_overdue=is_overdue,
        ),
        page=page,
        page_size=page_size,
    )


@router.get("/statistics", response_model=LoanStatistics, dependencies=[Depends(require_staff)])
def loan_statistics(db: Session = Depends(get_db)):
    return LoanService(db).statistics()


@router.get("/summary", response_model=LoanSummary, dependencies=[Depends(require_staff)])
def loan_summary(period: str = "month", db: Session = Depends(get_db)):
    return LoanService(db).summary(period)


@router.get("/date-range", response_model=PaginatedResponse[Loan], dependencies=[Depends(require_staff)])
def loans_by_date_range(
    start: datetime,
    end: datetime,
    loan_status: LoanStatus | None = Query(None, alias="status"),
    page: int = 1,
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return LoanService(db).loans_by_date_range(start, end, loan_status, page, page_size)


@router.get("/overdue", response_model=list[OverdueLoan], dependencies=[Depends(require_staff)])
def list_overdue_loans(
    person_type: str | None = None,
    grade: str | None = None,
    min_days_overdue: int | None = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    return LoanService(db).overdue(
        OverdueFilters(person_type=person_type, grade=grade, min_days_overdue=min_days_overdue)
    )


@router.get(
    "/overdue/statistics", response_model=OverdueStatistics, dependencies=[Depends(require_staff)]
)
def overdue_statistics(db: Session = Depends(get_db)):
    return LoanService(db).overdue_statistics()


@router.post("/overdue/update-statuses", dependencies=[Depends(require_staff)])
def update_overdue_statuses(db: Session = Depends(get_db)) -> dict[str, int]:
    """Flag active loans past their due date as overdue."""
    return {"updated": LoanService(db).update_overdue_statuses()}


@router.get("/stock/statistics", response_model=StockStatistics, dependencies=[Depends(require_staff)])
def loan_stock_statistics(db: Session = Depends(get_db)):
    return LoanService(db).stock_statistics()


@router.post("/stock/sync", response_model=list[StockCorrection], dependencies=[Depends(require_staff)])
def sync_resource_stock(resource_id: str | None = None, db: Session = Depends(get_db)):
    """Recompute loan counters from outstanding loans, for one resource or all."""
    return LoanService(db).sync_resource_stock(resource_id)


@router.get(
    "/stock/debug/{resource_id}",
    response_model=ResourceStockDebug,
    dependencies=[Depends(require_staff)],
)
def debug_resource_stock(resource_id: str, db: Session = Depends(get_db)):
    return LoanService(db).debug_resource_stock(resource_id)


@router.get("/person/{person_id}/active", response_model=list[Loan], dependencies=[Depends(require_staff)])
def active_loans_by_person(person_id: str, db: Session = Depends(get_db)):
    return LoanService(db).find_active_by_person(person_id)


@router.get("/person/{person_id}/history", response_model=list[Loan], dependencies=[Depends(require_staff)])
def loan_history_by_person(
    person_id: str, limit: int | None = Query(None, ge=1, le=500), db: Session = Depends(get_db)
):
    return LoanService(db).history_by_person(person_id, limit)


@router.get(
    "/resource/{resource_id}/history", response_model=list[Loan], dependencies=[Depends(require_staff)]
)
def loan_history_by_resource(
    resource_id: str, limit: int | None = Query(None, ge=1, le=500), db: Session = Depends(get_db)
):
    return LoanService(db).history_by_resource(resource_id, limit)


@router.get("/{loan_id}", response_model=Loan, dependencies=[Depends(require_staff)])
def get_loan(loan_id: str, db: Session = Depends(get_db)):
    return LoanService(db).get(loan_id)


@router.put("/{loan_id}/return", response_model=Loan)
def return_loan(
    loan_id: str,
    request: ReturnLoanRequest | None = None,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    observations = request.observations if request else None
    return LoanService(db).return_loan(loan_id, returned_by=user.id, observations=observations)


@router.put("/{loan_id}/renew", response_model=Loan)
def renew_loan(
    loan_id: str,
    request: RenewLoanRequest | None = None,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    days = request.additional_days if request else DEFAULT_RENEWAL_DAYS
    return LoanService(db).renew_loan(loan_id, additional_days=days, renewed_by=user.id)


@router.put("/{loan_id}/lost", response_model=Loan)
def mark_loan_as_lost(
    loan_id: str,
    request: MarkAsLostRequest | None = None,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    observations = request.observations if request else None
    return LoanService(db).mark_as_lost(loan_id, observations=observations, user_id=user.id)
