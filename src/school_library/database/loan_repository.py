"""
Loan repository implementation for the School Library backend.

This repository holds the loan queries and aggregates:

1. **Records**: Creating loan rows and loading them with person and resource
2. **Listings**: Filtered, paginated lists and per-person/per-resource history
3. **Overdue Tracking**: Outstanding loans past their due date
4. **Aggregates**: Dashboard statistics, period summaries and the per-resource
   sums used to repair stock counters

Loan rules (limits, stock checks, state transitions) live in the loan
service, which coordinates this repository with the resource repository
inside one transaction.
"""

from datetime import datetime

from pydantic import BaseModel, Field
from sqlalchemy import and_, desc, func, or_, select, update
from sqlalchemy.orm import joinedload

from ..database.schema import Loan as LoanDB
from ..database.schema import LoanStatusEnum
from ..database.schema import Person as PersonDB
from ..database.schema import Resource as ResourceDB
from ..database.session import safe_query
from ..models.loan import Loan as LoanModel
from ..models.loan import LoanPerson, LoanResource, LoanStatus, MostBorrowedResource
from .repository import BaseRepository, PaginatedResponse, PaginationParams

#: Statuses of a loan whose units are still out of the library
OUTSTANDING_STATUSES = (LoanStatusEnum.ACTIVE, LoanStatusEnum.OVERDUE)


class LoanCreateSchema(BaseModel):
    """Schema for creating a loan."""

    person_id: str
    resource_id: str
    quantity: int = Field(default=1, ge=1)
    observations: str | None = Field(None, max_length=500)


class LoanSearchParams(BaseModel):
    """Search parameters for listing loans."""

    search: str | None = None  # Person name/document, resource title/ISBN or observations
    person_id: str | None = None
    resource_id: str | None = None
    status: LoanStatus | None = None
    is_overdue: bool | None = None


def outstanding_clause():
    """Loans not returned and not lost."""
    return and_(LoanDB.returned_date.is_(None), LoanDB.status.in_(OUTSTANDING_STATUSES))


def overdue_clause(now: datetime | None = None):
    """Outstanding loans flagged overdue or already past their due date."""
    now = now or datetime.now()
    return and_(
        outstanding_clause(),
        or_(LoanDB.status == LoanStatusEnum.OVERDUE, LoanDB.due_date < now),
    )


class LoanRepository(BaseRepository[LoanDB, LoanCreateSchema, BaseModel, LoanModel]):
    """Repository for loan records."""

    id_prefix = "loan"

    @property
    def model_class(self):
        return LoanDB

    @property
    def response_schema(self):
        return LoanModel

    def _to_response_model(self, db_obj: LoanDB) -> LoanModel:
        """Convert database loan to Pydantic model with person and resource summaries."""
        person = None
        if db_obj.person is not None:
            person = LoanPerson(
                id=db_obj.person.id,
                full_name=db_obj.person.full_name,
                document_number=db_obj.person.document_number,
                grade=db_obj.person.grade,
                person_type=db_obj.person.person_type.name if db_obj.person.person_type else None,
            )
        resource = None
        if db_obj.resource is not None:
            resource = LoanResource(
                id=db_obj.resource.id, title=db_obj.resource.title, isbn=db_obj.resource.isbn
            )
        return LoanModel(
            id=db_obj.id,
            person_id=db_obj.person_id,
            resource_id=db_obj.resource_id,
            quantity=db_obj.quantity,
            loan_date=db_obj.loan_date,
            due_date=db_obj.due_date,
            returned_date=db_obj.returned_date,
            status=LoanStatus(db_obj.status.value),
            observations=db_obj.observations,
            loaned_by=db_obj.loaned_by,
            returned_by=db_obj.returned_by,
            renewed_by=db_obj.renewed_by,
            renewed_at=db_obj.renewed_at,
            renewal_count=db_obj.renewal_count,
            person=person,
            resource=resource,
            created_at=db_obj.created_at,
            updated_at=db_obj.updated_at,
        )

    def _with_relations(self, query):
        return query.options(
            joinedload(LoanDB.person).joinedload(PersonDB.person_type),
            joinedload(LoanDB.resource),
        )

    def _list(self, query, error_msg: str) -> list[LoanModel]:
        results = safe_query(
            self.session,
            lambda s: s.execute(self._with_relations(query)).unique().scalars().all(),
            error_msg,
        )
        return [self._to_response_model(r) for r in results]

    def _scalar_count(self, *conditions, error_msg: str) -> int:
        query = select(func.count()).select_from(LoanDB)
        if conditions:
            query = query.where(and_(*conditions))
        return safe_query(self.session, lambda s: s.execute(query).scalar(), error_msg) or 0

    def add(
        self,
        data: LoanCreateSchema,
        due_date: datetime,
        loaned_by: str | None,
        loan_date: datetime | None = None,
    ) -> LoanDB:
        """
        Stage a new active loan in the session without committing.

        The caller commits after adjusting the resource stock.
        """
        db_loan = LoanDB(
            id=self._generate_id(),
            person_id=data.person_id,
            resource_id=data.resource_id,
            quantity=data.quantity,
            loan_date=loan_date or datetime.now(),
            due_date=due_date,
            status=LoanStatusEnum.ACTIVE,
            observations=data.observations,
            loaned_by=loaned_by,
            renewal_count=0,
        )
        self.session.add(db_loan)
        self.session.flush()
        return db_loan

    def get_with_relations(self, id: str) -> LoanModel:
        """Get a loan with its person and resource, raising NotFoundError when missing."""
        db_loan = self.get_db_object_or_raise(id)
        return self._to_response_model(db_loan)

    def search(
        self,
        search_params: LoanSearchParams,
        pagination: PaginationParams | None = None,
    ) -> PaginatedResponse[LoanModel]:
        """
        List loans with filters, newest loan first.

        Args:
            search_params: Free text and field filters
            pagination: Pagination parameters

        Returns:
            Paginated loans
        """
        filters = []
        now = datetime.now()

        if search_params.person_id:
            filters.append(LoanDB.person_id == search_params.person_id)
        if search_params.resource_id:
            filters.append(LoanDB.resource_id == search_params.resource_id)
        if search_params.status:
            filters.append(LoanDB.status == LoanStatusEnum(LoanStatus(search_params.status).value))
        if search_params.is_overdue is True:
            filters.append(
                and_(outstanding_clause(), LoanDB.due_date < now)
            )
        elif search_params.is_overdue is False:
            filters.append(
                or_(~outstanding_clause(), LoanDB.due_date >= now)
            )

        query = select(LoanDB)
        if search_params.search:
            term = f"%{search_params.search.strip()}%"
            query = query.join(PersonDB, LoanDB.person_id == PersonDB.id).join(
                ResourceDB, LoanDB.resource_id == ResourceDB.id
            )
            filters.append(
                or_(
                    PersonDB.first_name.ilike(term),
                    PersonDB.last_name.ilike(term),
                    PersonDB.document_number.ilike(term),
                    ResourceDB.title.ilike(term),
                    ResourceDB.isbn.ilike(term),
                    LoanDB.observations.ilike(term),
                )
            )
        if filters:
            query = query.where(and_(*filters))

        query = self._with_relations(query).order_by(desc(LoanDB.loan_date), desc(LoanDB.created_at))
        return self._paginate(query, pagination)

    def find_outstanding_by_person(self, person_id: str) -> list[LoanModel]:
        query = (
            select(LoanDB)
            .where(and_(LoanDB.person_id == person_id, outstanding_clause()))
            .order_by(LoanDB.due_date)
        )
        return self._list(query, "Failed to get active loans of person")

    def count_outstanding_by_person(self, person_id: str) -> int:
        return self._scalar_count(
            LoanDB.person_id == person_id,
            outstanding_clause(),
            error_msg="Failed to count active loans of person",
        )

    def has_overdue_loans(self, person_id: str) -> bool:
        return (
            self._scalar_count(
                LoanDB.person_id == person_id,
                overdue_clause(),
                error_msg="Failed to check overdue loans of person",
            )
            > 0
        )

    def history_by_person(self, person_id: str, limit: int = 50) -> list[LoanModel]:
        query = (
            select(LoanDB)
            .where(LoanDB.person_id == person_id)
            .order_by(desc(LoanDB.loan_date))
            .limit(limit)
        )
        return self._list(query, "Failed to get loan history of person")

    def history_by_resource(self, resource_id: str, limit: int = 50) -> list[LoanModel]:
        query = (
            select(LoanDB)
            .where(LoanDB.resource_id == resource_id)
            .order_by(desc(LoanDB.loan_date))
            .limit(limit)
        )
        return self._list(query, "Failed to get loan history of resource")

    def find_by_date_range(
        self,
        start: datetime,
        end: datetime,
        status: LoanStatus | None = None,
        pagination: PaginationParams | None = None,
    ) -> PaginatedResponse[LoanModel]:
        """Loans whose loan date falls within [start, end], newest first."""
        query = select(LoanDB).where(and_(LoanDB.loan_date >= start, LoanDB.loan_date <= end))
        if status:
            query = query.where(LoanDB.status == LoanStatusEnum(LoanStatus(status).value))
        query = self._with_relations(query).order_by(desc(LoanDB.loan_date))
        return self._paginate(query, pagination)

    def find_overdue_db(self, now: datetime | None = None) -> list[LoanDB]:
        """Outstanding loans past due (or flagged overdue), oldest due date first."""
        query = self._with_relations(
            select(LoanDB).where(overdue_clause(now)).order_by(LoanDB.due_date)
        )
        return list(
            safe_query(
                self.session,
                lambda s: s.execute(query).unique().scalars().all(),
                "Failed to get overdue loans",
            )
        )

    def flag_overdue(self, now: datetime | None = None) -> int:
        """Switch active loans past their due date to ``overdue``; returns the count."""
        now = now or datetime.now()
        statement = (
            update(LoanDB)
            .where(
                and_(
                    LoanDB.status == LoanStatusEnum.ACTIVE,
                    LoanDB.returned_date.is_(None),
                    LoanDB.due_date < now,
                )
            )
            .values(status=LoanStatusEnum.OVERDUE, updated_at=now)
            .execution_options(synchronize_session="fetch")
        )
        result = safe_query(
            self.session, lambda s: s.execute(statement), "Failed to flag overdue loans"
        )
        return result.rowcount or 0

    def count_total(self) -> int:
        return self._scalar_count(error_msg="Failed to count loans")

    def count_outstanding(self) -> int:
        return self._scalar_count(outstanding_clause(), error_msg="Failed to count active loans")

    def count_overdue(self, now: datetime | None = None) -> int:
        return self._scalar_count(overdue_clause(now), error_msg="Failed to count overdue loans")

    def count_loaned_since(self, start: datetime) -> int:
        return self._scalar_count(LoanDB.loan_date >= start, error_msg="Failed to count new loans")

    def count_returned_since(self, start: datetime) -> int:
        return self._scalar_count(
            LoanDB.returned_date >= start, error_msg="Failed to count returned loans"
        )

    def count_handled_by(self, user_id: str) -> int:
        """Loans a staff user lent, received back or renewed."""
        return self._scalar_count(
            or_(
                LoanDB.loaned_by == user_id,
                LoanDB.returned_by == user_id,
                LoanDB.renewed_by == user_id,
            ),
            error_msg="Failed to count loans handled by user",
        )

    def most_borrowed_resources(self, limit: int = 5) -> list[MostBorrowedResource]:
        loan_count = func.count(LoanDB.id).label("loan_count")
        rows = safe_query(
            self.session,
            lambda s: s.execute(
                select(ResourceDB.id, ResourceDB.title, loan_count)
                .join(LoanDB, LoanDB.resource_id == ResourceDB.id)
                .group_by(ResourceDB.id, ResourceDB.title)
                .order_by(desc(loan_count), ResourceDB.title)
                .limit(limit)
            ).all(),
            "Failed to get most borrowed resources",
        )
        return [
            MostBorrowedResource(resource_id=rid, title=title, loan_count=count)
            for rid, title, count in rows
        ]

    def outstanding_quantity_by_resource(self, resource_id: str | None = None) -> dict[str, int]:
        """Sum of unreturned, non-lost loan quantities per resource."""
        query = (
            select(LoanDB.resource_id, func.coalesce(func.sum(LoanDB.quantity), 0))
            .where(outstanding_clause())
            .group_by(LoanDB.resource_id)
        )
        if resource_id:
            query = query.where(LoanDB.resource_id == resource_id)
        rows = safe_query(
            self.session,
            lambda s: s.execute(query).all(),
            "Failed to sum outstanding loan quantities",
        )
        return {rid: int(total) for rid, total in rows}

    def find_outstanding_by_resource(self, resource_id: str) -> list[LoanModel]:
        query = (
            select(LoanDB)
            .where(and_(LoanDB.resource_id == resource_id, outstanding_clause()))
            .order_by(LoanDB.loan_date)
        )
        return self._list(query, "Failed to get active loans of resource")

    def find_for_report(
        self, start: datetime, end: datetime, search: str | None = None
    ) -> list[LoanDB]:
        """Loans of a period with their people loaded, for the per-person report."""
        query = (
            select(LoanDB)
            .join(PersonDB, LoanDB.person_id == PersonDB.id)
            .where(and_(LoanDB.loan_date >= start, LoanDB.loan_date < end))
        )
        if search:
            term = f"%{search.strip()}%"
            query = query.where(
                or_(
                    PersonDB.first_name.ilike(term),
                    PersonDB.last_name.ilike(term),
                    PersonDB.document_number.ilike(term),
                )
            )
        query = self._with_relations(query).order_by(desc(LoanDB.loan_date))
        return list(
            safe_query(
                self.session,
                lambda s: s.execute(query).unique().scalars().all(),
                "Failed to get loans for report",
            )
        )

    def dangling_loans(self) -> list[LoanDB]:
        """Loans pointing at a person or resource row that no longer exists."""
        query = (
            select(LoanDB)
            .outerjoin(PersonDB, LoanDB.person_id == PersonDB.id)
            .outerjoin(ResourceDB, LoanDB.resource_id == ResourceDB.id)
            .where(or_(PersonDB.id.is_(None), ResourceDB.id.is_(None)))
        )
        return list(
            safe_query(
                self.session,
                lambda s: s.execute(query).scalars().all(),
                "Failed to check loan references",
            )
        )

