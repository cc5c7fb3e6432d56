"""
Loan lifecycle and lending policy.

This service coordinates the loan and resource repositories so that every
state change of a loan moves stock in the same transaction:

1. **Lending**: create, return, renew and mark as lost
2. **Policy**: borrowing limits, quantity limits and pre-flight validation
3. **Follow-up**: overdue listing, severity classification and statistics
4. **Stock Repair**: recompute loan counters from the loans themselves
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from ..config import get_config
from ..database.errors import BusinessRuleError, ValidationError
from ..database.loan_repository import LoanCreateSchema, LoanRepository, LoanSearchParams
from ..database.person_repository import PersonRepository
from ..database.repository import PaginatedResponse, PaginationParams
from ..database.resource_repository import ResourceRepository
from ..database.schema import Loan as LoanDB
from ..database.schema import LoanStatusEnum
from ..database.session import safe_commit
from ..models.loan import (
    CanBorrowResult,
    DateRange,
    Loan,
    LoanResource,
    LoanResourceAvailability,
    LoanStatistics,
    LoanStatus,
    LoanSummary,
    LoanValidationResult,
    MaxQuantityResult,
    OldestOverdue,
    OverdueFilters,
    OverdueLoan,
    OverdueStatistics,
    ResourceStockDebug,
    StockCorrection,
    SummaryPeriod,
    severity_for,
)
from ..models.person import PersonTypeName
from ..models.resource import StockStatistics
from ..observability import traced

logger = logging.getLogger(__name__)

MIN_RENEWAL_DAYS = 1
MAX_RENEWAL_DAYS = 30
DEFAULT_RENEWAL_DAYS = 15


def append_observations(existing: str | None, new: str | None) -> str | None:
    """Append a note to the loan observations, one note per line."""
    if not new or not new.strip():
        return existing
    if not existing:
        return new.strip()
    return f"{existing}\n{new.strip()}"


def days_bucket(days_overdue: int) -> str:
    if days_overdue > 30:
        return "30+"
    if days_overdue > 14:
        return "15-30"
    if days_overdue > 7:
        return "8-14"
    return "1-7"


class LoanService:
    """Business rules for loans."""

    def __init__(self, session: Session):
        self.session = session
        self.config = get_config()
        self.loans = LoanRepository(session)
        self.resources = ResourceRepository(session)
        self.people = PersonRepository(session)

    def _commit(self, operation: str) -> None:
        safe_commit(self.session, operation)

    def _get_loan_db(self, loan_id: str) -> LoanDB:
        return self.loans.get_db_object_or_raise(loan_id, for_update=True)

    def _reload(self, db_loan: LoanDB) -> Loan:
        self.session.refresh(db_loan)
        return self.loans._to_response_model(db_loan)

    # ------------------------------------------------------------------
    # Lending
    # ------------------------------------------------------------------

    @traced("loans.create")
    def create(self, data: LoanCreateSchema, loaned_by: str | None = None) -> Loan:
        """
        Lend ``quantity`` units of a resource to a person.

        Raises:
            NotFoundError: If the person or resource does not exist
            BusinessRuleError: If the person cannot borrow, the quantity is out
                of bounds or there is not enough stock
        """
        self._check_quantity(data.quantity)

        db_person = self.people.get_db_object_or_raise(data.person_id)
        if not db_person.active:
            raise BusinessRuleError(f"{db_person.full_name} is not active")

        db_resource = self.resources.lock(data.resource_id)
        if not db_resource.available:
            raise BusinessRuleError(f"Resource '{db_resource.title}' is not available for loan")
        if db_resource.available_quantity < data.quantity:
            raise BusinessRuleError(
                f"Not enough stock for '{db_resource.title}': "
                f"{db_resource.available_quantity} available, {data.quantity} requested"
            )

        eligibility = self.can_person_borrow(data.person_id)
        if not eligibility.can_borrow:
            raise BusinessRuleError(eligibility.reason or "Person cannot borrow")

        now = datetime.now()
        try:
            db_loan = self.loans.add(
                data,
                due_date=now + timedelta(days=self.config.loan_days),
                loaned_by=loaned_by,
                loan_date=now,
            )
            self.resources.increment_current_loans(data.resource_id, data.quantity, commit=False)
            self._commit("create loan")
        except Exception:
            self.session.rollback()
            raise

        logger.info(
            "Loan %s created: %d unit(s) of %s to %s",
            db_loan.id,
            data.quantity,
            data.resource_id,
            data.person_id,
        )
        return self._reload(db_loan)

    @traced("loans.return")
    def return_loan(
        self, loan_id: str, returned_by: str | None = None, observations: str | None = None
    ) -> Loan:
        """
        Return a loan and put its units back in stock.

        Active and overdue loans free their units from the loan counter; lost
        loans move their units out of the lost counter.

        Raises:
            BusinessRuleError: If the loan was already returned
        """
        db_loan = self._get_loan_db(loan_id)
        if db_loan.returned_date is not None or db_loan.status == LoanStatusEnum.RETURNED:
            raise BusinessRuleError(f"Loan {loan_id} has already been returned")

        was_lost = db_loan.status == LoanStatusEnum.LOST
        try:
            if was_lost:
                db_resource = self.resources.lock(db_loan.resource_id)
                restorable = min(db_loan.quantity, db_resource.lost_quantity)
                if restorable < db_loan.quantity:
                    logger.warning(
                        "Resource %s has only %d lost unit(s) registered; returning lost loan %s of %d",
                        db_loan.resource_id,
                        db_resource.lost_quantity,
                        loan_id,
                        db_loan.quantity,
                    )
                if restorable > 0:
                    self.resources.restore_lost(db_loan.resource_id, restorable, commit=False)
            else:
                self.resources.decrement_current_loans(
                    db_loan.resource_id, db_loan.quantity, commit=False
                )

            db_loan.returned_date = datetime.now()
            db_loan.returned_by = returned_by
            db_loan.status = LoanStatusEnum.RETURNED
            db_loan.observations = append_observations(db_loan.observations, observations)
            db_loan.updated_at = datetime.now()
            self._commit("return loan")
        except Exception:
            self.session.rollback()
            raise

        logger.info("Loan %s returned%s", loan_id, " (was lost)" if was_lost else "")
        return self._reload(db_loan)

    @traced("loans.renew")
    def renew_loan(
        self,
        loan_id: str,
        additional_days: int = DEFAULT_RENEWAL_DAYS,
        renewed_by: str | None = None,
    ) -> Loan:
        """
        Push the due date of an active or overdue loan.

        Raises:
            ValidationError: If ``additional_days`` is outside 1-30
            BusinessRuleError: If the loan is returned or lost
        """
        if not MIN_RENEWAL_DAYS <= additional_days <= MAX_RENEWAL_DAYS:
            raise ValidationError(
                f"Additional days must be between {MIN_RENEWAL_DAYS} and {MAX_RENEWAL_DAYS}"
            )

        db_loan = self._get_loan_db(loan_id)
        if db_loan.returned_date is not None or db_loan.status not in (
            LoanStatusEnum.ACTIVE,
            LoanStatusEnum.OVERDUE,
        ):
            raise BusinessRuleError(
                f"Only active or overdue loans can be renewed (status: {db_loan.status.value})"
            )

        now = datetime.now()
        db_loan.due_date = db_loan.due_date + timedelta(days=additional_days)
        db_loan.renewed_by = renewed_by
        db_loan.renewed_at = now
        db_loan.renewal_count = (db_loan.renewal_count or 0) + 1
        if db_loan.due_date > now:
            db_loan.status = LoanStatusEnum.ACTIVE
        db_loan.updated_at = now
        self._commit("renew loan")

        logger.info("Loan %s renewed until %s", loan_id, db_loan.due_date.isoformat())
        return self._reload(db_loan)

    @traced("loans.mark_as_lost")
    def mark_as_lost(
        self, loan_id: str, observations: str | None = None, user_id: str | None = None
    ) -> Loan:
        """
        Record that the loaned units will not come back.

        Raises:
            BusinessRuleError: If the loan is returned or already lost
        """
        db_loan = self._get_loan_db(loan_id)
        if db_loan.returned_date is not None or db_loan.status == LoanStatusEnum.RETURNED:
            raise BusinessRuleError(f"Loan {loan_id} has been returned and cannot be marked lost")
        if db_loan.status == LoanStatusEnum.LOST:
            raise BusinessRuleError(f"Loan {loan_id} is already marked as lost")

        try:
            self.resources.move_loaned_to_lost(db_loan.resource_id, db_loan.quantity, commit=False)
            db_loan.status = LoanStatusEnum.LOST
            db_loan.observations = append_observations(db_loan.observations, observations)
            db_loan.updated_at = datetime.now()
            self._commit("mark loan as lost")
        except Exception:
            self.session.rollback()
            raise

        logger.info("Loan %s marked as lost by %s", loan_id, user_id or "system")
        return self._reload(db_loan)

    def set_status(
        self, loan_id: str, status: LoanStatus | str, observations: str | None = None
    ) -> Loan:
        """
        Switch an outstanding loan between ``active`` and ``overdue``.

        Stock does not move. Returned and lost loans go through
        return_loan / mark_as_lost instead.
        """
        target = LoanStatus(status)
        if target not in (LoanStatus.ACTIVE, LoanStatus.OVERDUE):
            raise ValidationError(f"Use the dedicated operation to set status '{target.value}'")

        db_loan = self._get_loan_db(loan_id)
        if db_loan.returned_date is not None or db_loan.status == LoanStatusEnum.RETURNED:
            raise BusinessRuleError(f"Loan {loan_id} has been returned; its status cannot change")
        if db_loan.status == LoanStatusEnum.LOST:
            raise BusinessRuleError(f"Loan {loan_id} is lost; return it to close it")

        db_loan.status = LoanStatusEnum(target.value)
        db_loan.observations = append_observations(db_loan.observations, observations)
        db_loan.updated_at = datetime.now()
        self._commit("update loan status")
        return self._reload(db_loan)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, loan_id: str) -> Loan:
        return self.loans.get_with_relations(loan_id)

    def list_loans(
        self, search_params: LoanSearchParams, page: int = 1, page_size: int = 20
    ) -> PaginatedResponse[Loan]:
        pagination = PaginationParams(page=max(1, page), page_size=page_size)
        return self.loans.search(search_params, pagination)

    def find_active_by_person(self, person_id: str) -> list[Loan]:
        self.people.get_db_object_or_raise(person_id)
        return self.loans.find_outstanding_by_person(person_id)

    def history_by_person(self, person_id: str, limit: int | None = None) -> list[Loan]:
        self.people.get_db_object_or_raise(person_id)
        return self.loans.history_by_person(person_id, limit or self.config.history_limit)

    def history_by_resource(self, resource_id: str, limit: int | None = None) -> list[Loan]:
        self.resources.get_db_object_or_raise(resource_id)
        return self.loans.history_by_resource(resource_id, limit or self.config.history_limit)

    def loans_by_date_range(
        self,
        start: datetime,
        end: datetime,
        status: LoanStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> PaginatedResponse[Loan]:
        if start > end:
            raise ValidationError("Start date must be before end date")
        pagination = PaginationParams(page=max(1, page), page_size=page_size)
        return self.loans.find_by_date_range(start, end, status, pagination)

    def statistics(self) -> LoanStatistics:
        month_start = datetime.now().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return LoanStatistics(
            total_loans=self.loans.count_total(),
            active_loans=self.loans.count_outstanding(),
            overdue_loans=self.loans.count_overdue(),
            returned_this_month=self.loans.count_returned_since(month_start),
            most_borrowed_resources=self.loans.most_borrowed_resources(limit=5),
        )

    def summary(self, period: SummaryPeriod | str = SummaryPeriod.MONTH) -> LoanSummary:
        """
        Loan activity since the start of ``period``.

        ``week`` means the last seven days; the other periods start at the
        beginning of the current day, month or year.
        """
        try:
            period = SummaryPeriod(period)
        except ValueError as e:
            raise ValidationError(
                f"Invalid period '{period}', expected one of: today, week, month, year"
            ) from e

        now = datetime.now()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        if period == SummaryPeriod.TODAY:
            start = today
        elif period == SummaryPeriod.WEEK:
            start = now - timedelta(days=7)
        elif period == SummaryPeriod.MONTH:
            start = today.replace(day=1)
        else:
            start = today.replace(month=1, day=1)

        return LoanSummary(
            total_loans=self.loans.count_total(),
            new_loans=self.loans.count_loaned_since(start),
            returned_loans=self.loans.count_returned_since(start),
            active_loans=self.loans.count_outstanding(),
            overdue_loans=self.loans.count_overdue(now),
            period=period,
            date_range=DateRange(start=start, end=now),
        )

    # ------------------------------------------------------------------
    # Overdue follow-up
    # ------------------------------------------------------------------

    def _overdue_loans(self, now: datetime) -> list[OverdueLoan]:
        overdue = []
        for db_loan in self.loans.find_overdue_db(now):
            loan = self.loans._to_response_model(db_loan)
            days = max(0, (now - loan.due_date).days)
            overdue.append(
                OverdueLoan(
                    **loan.model_dump(exclude={"is_overdue", "days_overdue"}),
                    severity=severity_for(days),
                )
            )
        return overdue

    def overdue(self, filters: OverdueFilters | None = None) -> list[OverdueLoan]:
        """Overdue loans with severity, oldest due date first."""
        filters = filters or OverdueFilters()
        result = []
        for loan in self._overdue_loans(datetime.now()):
            person = loan.person
            if filters.person_id and loan.person_id != filters.person_id:
                continue
            if filters.resource_id and loan.resource_id != filters.resource_id:
                continue
            if filters.person_type and (person is None or person.person_type != filters.person_type):
                continue
            if filters.grade and (person is None or person.grade != filters.grade):
                continue
            if filters.min_days_overdue and loan.days_overdue < filters.min_days_overdue:
                continue
            result.append(loan)
        return result

    def overdue_statistics(self) -> OverdueStatistics:
        loans = self._overdue_loans(datetime.now())
        stats = OverdueStatistics(total_overdue=len(loans))
        if not loans:
            return stats

        grades: dict[str, int] = {}
        for loan in loans:
            days = loan.days_overdue
            stats.by_severity[severity_for(days).value] += 1
            stats.by_days_overdue[days_bucket(days)] += 1

            person_type = loan.person.person_type if loan.person else None
            if person_type == PersonTypeName.STUDENT.value:
                stats.by_person_type.students += 1
            elif person_type == PersonTypeName.TEACHER.value:
                stats.by_person_type.teachers += 1

            if loan.person and loan.person.grade:
                grades[loan.person.grade] = grades.get(loan.person.grade, 0) + 1

        stats.average_days_overdue = round(sum(loan.days_overdue for loan in loans) / len(loans), 2)
        stats.by_grade = [{"grade": g, "count": c} for g, c in sorted(grades.items())]
        oldest = max(loans, key=lambda loan: loan.days_overdue)
        stats.oldest_overdue = OldestOverdue(days_overdue=oldest.days_overdue, loan=oldest)
        return stats

    @traced("loans.update_overdue_statuses")
    def update_overdue_statuses(self) -> int:
        """Flag active loans past their due date as overdue; returns how many changed."""
        count = self.loans.flag_overdue()
        self._commit("update overdue statuses")
        if count:
            logger.info("Flagged %d loan(s) as overdue", count)
        return count

    # ------------------------------------------------------------------
    # Lending policy
    # ------------------------------------------------------------------

    def _check_quantity(self, quantity: int) -> None:
        minimum, maximum = self.config.min_loan_quantity, self.config.max_loan_quantity
        if not minimum <= quantity <= maximum:
            raise BusinessRuleError(f"Quantity must be between {minimum} and {maximum}")

    def can_person_borrow(self, person_id: str) -> CanBorrowResult:
        """
        Check the borrowing limits of a person.

        Any overdue loan blocks borrowing; otherwise the person may hold up to
        ``max_loans_per_person`` outstanding loans.
        """
        self.people.get_db_object_or_raise(person_id)
        maximum = self.config.max_loans_per_person
        active_count = self.loans.count_outstanding_by_person(person_id)
        has_overdue = self.loans.has_overdue_loans(person_id)

        reason = None
        if has_overdue:
            reason = "Person has overdue loans"
        elif active_count >= maximum:
            reason = f"Person has reached the limit of {maximum} active loans"

        return CanBorrowResult(
            can_borrow=reason is None,
            reason=reason,
            active_loans_count=active_count,
            has_overdue_loans=has_overdue,
            max_loans_allowed=maximum,
        )

    def resource_availability(self, resource_id: str) -> LoanResourceAvailability:
        db_resource = self.resources.get_db_object_or_raise(resource_id)
        return LoanResourceAvailability(
            total_quantity=db_resource.total_quantity,
            current_loans=db_resource.current_loans_count,
            available_quantity=db_resource.available_quantity,
            can_loan=db_resource.has_stock,
            resource=LoanResource(id=db_resource.id, title=db_resource.title, isbn=db_resource.isbn),
        )

    def max_quantity(self, person_id: str, resource_id: str) -> MaxQuantityResult:
        """Largest quantity the person could borrow of the resource right now."""
        eligibility = self.can_person_borrow(person_id)
        db_resource = self.resources.get_db_object_or_raise(resource_id)

        if not eligibility.can_borrow:
            return MaxQuantityResult(
                person_id=person_id,
                resource_id=resource_id,
                max_quantity=0,
                reason=eligibility.reason,
            )

        available = db_resource.available_quantity if db_resource.available else 0
        return MaxQuantityResult(
            person_id=person_id,
            resource_id=resource_id,
            max_quantity=min(self.config.max_loan_quantity, available),
            reason=None if available else "Resource has no available units",
        )

    def loan_limits(self) -> dict[str, int]:
        return self.config.loan_limits

    def validate(self, person_id: str, resource_id: str, quantity: int = 1) -> LoanValidationResult:
        """Dry run of ``create``: collect every error and warning instead of raising."""
        errors: list[str] = []
        warnings: list[str] = []

        minimum, maximum = self.config.min_loan_quantity, self.config.max_loan_quantity
        if not minimum <= quantity <= maximum:
            errors.append(f"Quantity must be between {minimum} and {maximum}")

        db_person = self.people.get_db_object(person_id)
        if db_person is None:
            errors.append("Person not found")
        else:
            if not db_person.active:
                errors.append("Person is not active")
            eligibility = self.can_person_borrow(person_id)
            if eligibility.has_overdue_loans:
                warnings.append("Person has overdue loans")
            if eligibility.active_loans_count >= eligibility.max_loans_allowed:
                errors.append(
                    f"Person has reached the limit of {eligibility.max_loans_allowed} active loans"
                )

        db_resource = self.resources.get_db_object(resource_id)
        if db_resource is None:
            errors.append("Resource not found")
        else:
            available = db_resource.available_quantity
            if not db_resource.available:
                errors.append("Resource is not available for loan")
            elif quantity > available:
                errors.append(f"Only {available} unit(s) available, {quantity} requested")
            if db_resource.available and available <= self.config.low_stock_threshold:
                warnings.append(f"Low stock: {available} unit(s) available")

        return LoanValidationResult(is_valid=not errors, errors=errors, warnings=warnings)

    def stock_statistics(self) -> StockStatistics:
        return self.resources.stock_statistics()

    # ------------------------------------------------------------------
    # Stock repair
    # ------------------------------------------------------------------

    @traced("loans.sync_resource_stock")
    def sync_resource_stock(self, resource_id: str | None = None) -> list[StockCorrection]:
        """
        Recompute ``current_loans_count`` from outstanding loans.

        Args:
            resource_id: Limit the repair to one resource; all resources when None

        Returns:
            The resources whose counter changed
        """
        if resource_id is not None:
            self.resources.get_db_object_or_raise(resource_id)
            targets = self.resources.list_db_resources([resource_id])
        else:
            targets = self.resources.list_db_resources()

        real_counts = self.loans.outstanding_quantity_by_resource(resource_id)
        corrections = []
        try:
            for db_resource in targets:
                real = real_counts.get(db_resource.id, 0)
                if db_resource.current_loans_count == real:
                    continue
                logger.warning(
                    "Resource %s loan counter out of sync: stored %d, loans say %d",
                    db_resource.id,
                    db_resource.current_loans_count,
                    real,
                )
                corrections.append(
                    StockCorrection(
                        resource_id=db_resource.id,
                        title=db_resource.title,
                        before=db_resource.current_loans_count,
                        after=max(0, real),
                    )
                )
                self.resources.sync_current_loans_count(db_resource.id, real, commit=False)
            self._commit("sync resource stock")
        except Exception:
            self.session.rollback()
            raise

        logger.info(
            "Stock sync checked %d resource(s), corrected %d", len(targets), len(corrections)
        )
        return corrections

    def debug_resource_stock(self, resource_id: str) -> ResourceStockDebug:
        db_resource = self.resources.get_db_object_or_raise(resource_id)
        active_loans = self.loans.find_outstanding_by_resource(resource_id)
        computed = sum(loan.quantity for loan in active_loans)
        return ResourceStockDebug(
            resource_id=db_resource.id,
            title=db_resource.title,
            stored_current_loans=db_resource.current_loans_count,
            computed_current_loans=computed,
            active_loans_count=len(active_loans),
            total_quantity=db_resource.total_quantity,
            available_quantity=db_resource.available_quantity,
            in_sync=db_resource.current_loans_count == computed,
            active_loans=active_loans,
        )

