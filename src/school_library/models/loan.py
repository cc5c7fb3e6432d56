"""
Loan models for the School Library backend.

These models represent lending activity:
- Loan: a resource lent to a person, with due and return dates
- LoanStatistics / LoanSummary: dashboard aggregates
- CanBorrowResult / LoanValidationResult: pre-flight checks used by the UI
  before a librarian confirms a loan
- OverdueLoan / OverdueStatistics: the overdue follow-up view
- StockCorrection / ResourceStockDebug: output of the stock repair command
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field


class LoanStatus(str, Enum):
    """Status of a loan."""

    ACTIVE = "active"
    RETURNED = "returned"
    OVERDUE = "overdue"
    LOST = "lost"


class SummaryPeriod(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class OverdueSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def severity_for(days_overdue: int) -> OverdueSeverity:
    """Classify an overdue loan: 1-7 low, 8-14 medium, 15-30 high, 30+ critical."""
    if days_overdue > 30:
        return OverdueSeverity.CRITICAL
    if days_overdue > 14:
        return OverdueSeverity.HIGH
    if days_overdue > 7:
        return OverdueSeverity.MEDIUM
    return OverdueSeverity.LOW


class LoanPerson(BaseModel):
    id: str
    full_name: str
    document_number: str | None = None
    grade: str | None = None
    person_type: str | None = None


class LoanResource(BaseModel):
    id: str
    title: str
    isbn: str | None = None


class Loan(BaseModel):
    """
    Represents a loan of ``quantity`` units of a resource to a person.

    ``is_overdue`` and ``days_overdue`` are derived from the dates at
    serialization time, independent of the stored ``status``.
    """

    id: str = Field(..., pattern=r"^loan_[A-Za-z0-9]+$")
    person_id: str
    resource_id: str
    quantity: int = Field(default=1, ge=1)

    loan_date: datetime
    due_date: datetime
    returned_date: datetime | None = None

    status: LoanStatus = Field(default=LoanStatus.ACTIVE)
    observations: str | None = None

    loaned_by: str | None = None
    returned_by: str | None = None
    renewed_by: str | None = None
    renewed_at: datetime | None = None
    renewal_count: int = Field(default=0, ge=0)

    person: LoanPerson | None = None
    resource: LoanResource | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_overdue(self) -> bool:
        """Not returned, not lost and past the due date."""
        if self.returned_date is not None or self.status == LoanStatus.LOST:
            return False
        return datetime.now() > self.due_date

    @computed_field  # type: ignore[prop-decorator]
    @property
    def days_overdue(self) -> int:
        if not self.is_overdue:
            return 0
        return max(0, (datetime.now() - self.due_date).days)

    model_config = ConfigDict(
        from_attributes=True,
        use_enum_values=True,
        populate_by_name=True,
    )


class MostBorrowedResource(BaseModel):
    resource_id: str
    title: str
    loan_count: int


class LoanStatistics(BaseModel):
    """Dashboard counters."""

    total_loans: int = 0
    active_loans: int = 0
    overdue_loans: int = 0
    returned_this_month: int = 0
    most_borrowed_resources: list[MostBorrowedResource] = []


class DateRange(BaseModel):
    start: datetime
    end: datetime


class LoanSummary(BaseModel):
    """Activity summary for a period (today, week, month, year)."""

    total_loans: int
    new_loans: int
    returned_loans: int
    active_loans: int
    overdue_loans: int
    period: SummaryPeriod
    date_range: DateRange

    model_config = ConfigDict(use_enum_values=True)


class CanBorrowResult(BaseModel):
    can_borrow: bool
    reason: str | None = None
    active_loans_count: int
    has_overdue_loans: bool
    max_loans_allowed: int


class LoanValidationResult(BaseModel):
    """Result of validating a prospective loan without creating it."""

    is_valid: bool
    errors: list[str] = []
    warnings: list[str] = []


class LoanResourceAvailability(BaseModel):
    total_quantity: int
    current_loans: int
    available_quantity: int
    can_loan: bool
    resource: LoanResource


class MaxQuantityResult(BaseModel):
    person_id: str
    resource_id: str
    max_quantity: int
    reason: str | None = None


class OverdueLoan(Loan):
    """A loan past its due date with its follow-up severity."""

    severity: OverdueSeverity

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class OverdueFilters(BaseModel):
    person_id: str | None = None
    resource_id: str | None = None
    person_type: str | None = None
    grade: str | None = None
    min_days_overdue: int | None = Field(None, ge=1)


class OverduePersonTypeCounts(BaseModel):
    students: int = 0
    teachers: int = 0


class OldestOverdue(BaseModel):
    days_overdue: int
    loan: OverdueLoan


class OverdueStatistics(BaseModel):
    total_overdue: int = 0
    average_days_overdue: float = 0.0
    by_person_type: OverduePersonTypeCounts = Field(default_factory=OverduePersonTypeCounts)
    by_severity: dict[str, int] = Field(
        default_factory=lambda: {severity.value: 0 for severity in OverdueSeverity}
    )
    by_days_overdue: dict[str, int] = Field(
        default_factory=lambda: {"1-7": 0, "8-14": 0, "15-30": 0, "30+": 0}
    )
    by_grade: list[dict[str, int | str]] = []
    oldest_overdue: OldestOverdue | None = None


class StockCorrection(BaseModel):
    """One resource whose loan counter was repaired."""

    resource_id: str
    title: str
    before: int
    after: int


class ResourceStockDebug(BaseModel):
    resource_id: str
    title: str
    stored_current_loans: int
    computed_current_loans: int
    active_loans_count: int
    total_quantity: int
    available_quantity: int
    in_sync: bool
    active_loans: list[Loan] = []
