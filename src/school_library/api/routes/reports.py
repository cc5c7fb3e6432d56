"""Report routes: yearly loans per person and status changes from the report view."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...models.loan import Loan
from ...models.report import (
    LoanStatusFilter,
    LoanStatusUpdate,
    MultipleLoanStatusResult,
    MultipleLoanStatusUpdate,
    PersonLoansReport,
)
from ...models.user import User
from ...services.report_service import ReportService
from ..dependencies import get_db, require_staff

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/person-loans", response_model=PersonLoansReport, dependencies=[Depends(require_staff)])
def person_loans_report(
    search: str | None = None,
    loan_status: list[LoanStatusFilter] | None = Query(None, alias="status"),
    year: int | None = Query(None, ge=2000, le=2100),
    db: Session = Depends(get_db),
):
    """Loans of ``year`` grouped by person; ``status`` may be repeated."""
    return ReportService(db).person_loans(search=search, status=loan_status, year=year)


@router.put("/loan-status", response_model=Loan)
def update_loan_status(
    request: LoanStatusUpdate,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return ReportService(db).update_loan_status(
        request.loan_id, request.status, request.observations, user_id=user.id
    )


@router.put("/loan-status/bulk", response_model=MultipleLoanStatusResult)
def update_multiple_loan_status(
    request: MultipleLoanStatusUpdate,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    """Each loan is updated on its own; failures are reported, not raised."""
    return ReportService(db).update_multiple_loan_status(
        request.loan_ids, request.status, request.observations, user_id=user.id
    )
