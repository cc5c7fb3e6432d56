"""
Reports over loan activity.

The person-loans report groups a year of loans by borrower. Status changes
made from the report view go through the loan service so stock stays
consistent with the loans.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ..database.errors import RepositoryException
from ..database.loan_repository import LoanRepository
from ..models.loan import Loan, LoanStatus
from ..models.report import (
    FailedLoanUpdate,
    LoanStatusFilter,
    MultipleLoanStatusResult,
    PersonLoanCounts,
    PersonLoansReport,
    PersonLoanSummary,
    PersonStatus,
    ReportPerson,
)
from ..observability import traced
from .loan_service import LoanService

logger = logging.getLogger(__name__)

_COUNT_FIELDS = {
    LoanStatus.ACTIVE: "active_loans",
    LoanStatus.OVERDUE: "overdue_loans",
    LoanStatus.RETURNED: "returned_loans",
    LoanStatus.LOST: "lost_loans",
}


def effective_status(loan: Loan, now: datetime) -> LoanStatus:
    """Active loans already past due are reported as overdue."""
    status = LoanStatus(loan.status)
    if status == LoanStatus.ACTIVE and loan.returned_date is None and loan.due_date < now:
        return LoanStatus.OVERDUE
    return status


def count_loans(loans: list[Loan], now: datetime) -> PersonLoanCounts:
    counts = PersonLoanCounts(total_loans=len(loans))
    for loan in loans:
        field = _COUNT_FIELDS[effective_status(loan, now)]
        setattr(counts, field, getattr(counts, field) + 1)
    return counts


def person_status(counts: PersonLoanCounts) -> PersonStatus:
    if counts.active_loans or counts.overdue_loans or counts.lost_loans:
        return PersonStatus.NOT_UP_TO_DATE
    return PersonStatus.UP_TO_DATE


class ReportService:
    """Per-person loan reports and bulk status changes."""

    def __init__(self, session: Session):
        self.session = session
        self.loans = LoanRepository(session)
        self.loan_service = LoanService(session)

    @traced("reports.person_loans")
    def person_loans(
        self,
        search: str | None = None,
        status: list[LoanStatusFilter] | None = None,
        year: int | None = None,
    ) -> PersonLoansReport:
        """
        Group the loans of ``year`` by person.

        Args:
            search: Matches first name, last name or document number
            status: Keep people with at least one loan in any of these statuses
            year: Calendar year of the loan date (current year by default)

        Returns:
            People sorted by name with their loans, counts and status
        """
        now = datetime.now()
        year = year or now.year
        start, end = datetime(year, 1, 1), datetime(year + 1, 1, 1)

        grouped: dict[str, tuple[ReportPerson, list[Loan]]] = {}
        for db_loan in self.loans.find_for_report(start, end, search):
            person = db_loan.person
            if person.id not in grouped:
                grouped[person.id] = (
                    ReportPerson(
                        id=person.id,
                        name=person.full_name,
                        document_number=person.document_number or "Sin documento",
                        person_type=person.person_type.name if person.person_type else None,
                        grade=person.grade,
                    ),
                    [],
                )
            grouped[person.id][1].append(self.loans._to_response_model(db_loan))

        wanted = {_COUNT_FIELDS[LoanStatus(s.value)] for s in status or []}
        summaries = []
        for report_person, loans in grouped.values():
            counts = count_loans(loans, now)
            if wanted and not any(getattr(counts, field) > 0 for field in wanted):
                continue
            summaries.append(
                PersonLoanSummary(
                    person=report_person,
                    loans=loans,
                    summary=counts,
                    person_status=person_status(counts),
                )
            )

        summaries.sort(key=lambda s: s.person.name.lower())
        return PersonLoansReport(year=year, total_people=len(summaries), people=summaries)

    @traced("reports.update_loan_status")
    def update_loan_status(
        self,
        loan_id: str,
        status: LoanStatus | str,
        observations: str | None = None,
        user_id: str | None = None,
    ) -> Loan:
        """
        Change a loan's status through the matching loan operation.

        ``returned`` returns the loan and ``lost`` marks it lost, both moving
        stock; ``active`` and ``overdue`` only relabel an outstanding loan.
        """
        target = LoanStatus(status)
        if target == LoanStatus.RETURNED:
            return self.loan_service.return_loan(
                loan_id, returned_by=user_id, observations=observations
            )
        if target == LoanStatus.LOST:
            return self.loan_service.mark_as_lost(
                loan_id, observations=observations, user_id=user_id
            )
        return self.loan_service.set_status(loan_id, target, observations)

    @traced("reports.update_multiple_loan_status")
    def update_multiple_loan_status(
        self,
        loan_ids: list[str],
        status: LoanStatus | str,
        observations: str | None = None,
        user_id: str | None = None,
    ) -> MultipleLoanStatusResult:
        """Apply ``update_loan_status`` to each loan independently and collect failures."""
        updated = 0
        failed = []
        for loan_id in loan_ids:
            try:
                self.update_loan_status(loan_id, status, observations, user_id)
                updated += 1
            except RepositoryException as e:
                logger.warning("Status update of loan %s failed: %s", loan_id, e)
                failed.append(FailedLoanUpdate(loan_id=loan_id, error=str(e)))
        return MultipleLoanStatusResult(updated=updated, failed=failed)
