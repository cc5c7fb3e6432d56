"""Tests for the person-loans report and status changes made from it."""

from datetime import datetime, timedelta

import pytest

from school_library.database import NotFoundError
from school_library.database.loan_repository import LoanCreateSchema
from school_library.database.repository import generate_id
from school_library.database.schema import Loan as LoanDB
from school_library.database.schema import Resource as ResourceDB
from school_library.models.loan import LoanStatus
from school_library.models.report import LoanStatusFilter, PersonStatus
from school_library.services.report_service import ReportService


@pytest.fixture
def report_service(session) -> ReportService:
    return ReportService(session)


@pytest.fixture
def lend(loan_service):
    def _lend(person, resource, quantity: int = 1):
        return loan_service.create(
            LoanCreateSchema(person_id=person.id, resource_id=resource.id, quantity=quantity)
        )

    return _lend


@pytest.fixture
def activity(lend, loan_service, make_person, make_resource):
    """Ana has one returned and one active loan; Luis only a returned one."""
    ana = make_person(first_name="ana", last_name="Torres")
    luis = make_person(first_name="Luis", last_name="Beltran", teacher=True, document_number=None)

    ana_returned = lend(ana, make_resource())
    loan_service.return_loan(ana_returned.id)
    ana_active = lend(ana, make_resource())
    luis_returned = lend(luis, make_resource())
    loan_service.return_loan(luis_returned.id)

    return {"ana": ana, "luis": luis, "ana_active": ana_active, "year": ana_active.loan_date.year}


class TestPersonLoansReport:
    def test_groups_loans_by_person(self, report_service, activity):
        report = report_service.person_loans(year=activity["year"])

        assert report.year == activity["year"]
        assert report.total_people == 2
        # Sorted by name, case-insensitive
        assert [entry.person.name for entry in report.people] == ["ana Torres", "Luis Beltran"]

        ana, luis = report.people
        assert ana.summary.total_loans == 2
        assert ana.summary.active_loans == 1
        assert ana.summary.returned_loans == 1
        assert ana.person_status == PersonStatus.NOT_UP_TO_DATE
        assert ana.person.person_type == "student"
        assert ana.person.grade == "5A"

        assert luis.summary.returned_loans == 1
        assert luis.person_status == PersonStatus.UP_TO_DATE
        assert luis.person.document_number == "Sin documento"
        assert luis.person.person_type == "teacher"

    def test_status_filter(self, report_service, activity):
        returned = report_service.person_loans(status=[LoanStatusFilter.RETURNED], year=activity["year"])
        assert returned.total_people == 2

        active = report_service.person_loans(status=[LoanStatusFilter.ACTIVE], year=activity["year"])
        assert [entry.person.id for entry in active.people] == [activity["ana"].id]

        lost = report_service.person_loans(status=[LoanStatusFilter.LOST], year=activity["year"])
        assert lost.people == []

    def test_past_due_active_loan_counts_as_overdue(self, session, report_service, activity):
        db_loan = session.get(LoanDB, activity["ana_active"].id)
        db_loan.due_date = datetime.now() - timedelta(days=2)
        session.commit()

        report = report_service.person_loans(status=[LoanStatusFilter.OVERDUE], year=activity["year"])

        assert report.total_people == 1
        assert report.people[0].summary.overdue_loans == 1
        assert report.people[0].summary.active_loans == 0

    def test_search(self, report_service, activity):
        report = report_service.person_loans(search="beltr", year=activity["year"])
        assert [entry.person.id for entry in report.people] == [activity["luis"].id]

    def test_other_year_is_empty(self, report_service, activity):
        report = report_service.person_loans(year=activity["year"] - 1)
        assert report.total_people == 0
        assert report.people == []


class TestLoanStatusUpdates:
    def test_return_from_report(self, session, report_service, lend, person, resource, admin_user):
        loan = lend(person, resource, quantity=2)

        updated = report_service.update_loan_status(
            loan.id, LoanStatus.RETURNED, observations="Devuelto en clase", user_id=admin_user.id
        )

        assert updated.status == LoanStatus.RETURNED
        assert updated.returned_by == admin_user.id
        assert session.get(ResourceDB, resource.id).current_loans_count == 0

    def test_lost_from_report(self, session, report_service, lend, person, resource):
        loan = lend(person, resource)

        updated = report_service.update_loan_status(loan.id, "lost")

        assert updated.status == LoanStatus.LOST
        assert session.get(ResourceDB, resource.id).lost_quantity == 1

    def test_overdue_from_report(self, report_service, lend, person, resource):
        loan = lend(person, resource)
        assert report_service.update_loan_status(loan.id, "overdue").status == LoanStatus.OVERDUE

    def test_missing_loan(self, report_service):
        with pytest.raises(NotFoundError):
            report_service.update_loan_status(generate_id("loan"), "returned")

    def test_bulk_update_collects_failures(
        self, report_service, lend, loan_service, make_person, resource
    ):
        first = lend(make_person(), resource)
        second = lend(make_person(), resource)
        already_returned = lend(make_person(), resource)
        loan_service.return_loan(already_returned.id)
        missing = generate_id("loan")

        result = report_service.update_multiple_loan_status(
            [first.id, already_returned.id, second.id, missing, "bogus"], LoanStatus.RETURNED
        )

        assert result.updated == 2
        assert [f.loan_id for f in result.failed] == [already_returned.id, missing, "bogus"]
        assert "already been returned" in result.failed[0].error
        assert loan_service.get(second.id).status == LoanStatus.RETURNED
