"""
Report models.

The person-loans report groups a year of loans by borrower and flags whether
each person is up to date (nothing outstanding) or not.
"""

from enum import Enum

from pydantic import BaseModel, Field

from .loan import Loan, LoanStatus


class LoanStatusFilter(str, Enum):
    """Statuses the person-loans report can be filtered by."""

    ACTIVE = "active"
    OVERDUE = "overdue"
    RETURNED = "returned"
    LOST = "lost"


class PersonStatus(str, Enum):
    UP_TO_DATE = "up_to_date"
    NOT_UP_TO_DATE = "not_up_to_date"


class ReportPerson(BaseModel):
    id: str
    name: str
    document_number: str = "Sin documento"
    person_type: str | None = None
    grade: str | None = None


class PersonLoanCounts(BaseModel):
    total_loans: int = 0
    active_loans: int = 0
    overdue_loans: int = 0
    returned_loans: int = 0
    lost_loans: int = 0


class PersonLoanSummary(BaseModel):
    person: ReportPerson
    loans: list[Loan] = []
    summary: PersonLoanCounts = Field(default_factory=PersonLoanCounts)
    person_status: PersonStatus = PersonStatus.UP_TO_DATE


class PersonLoansReport(BaseModel):
    year: int
    total_people: int
    people: list[PersonLoanSummary]


class LoanStatusUpdate(BaseModel):
    """Request body for changing the status of one loan from the report view."""

    loan_id: str
    status: LoanStatus
    observations: str | None = Field(None, max_length=500)


class MultipleLoanStatusUpdate(BaseModel):
    loan_ids: list[str] = Field(..., min_length=1, max_length=200)
    status: LoanStatus
    observations: str | None = Field(None, max_length=500)


class FailedLoanUpdate(BaseModel):
    loan_id: str
    error: str


class MultipleLoanStatusResult(BaseModel):
    updated: int
    failed: list[FailedLoanUpdate] = []
