"""
Tests for resource stock accounting.

Every unit of a resource is either available, on loan, lost, damaged or in
maintenance; these tests check that the counters move together and that
available_quantity never goes negative.
"""

import pytest

from school_library.database import BusinessRuleError, NotFoundError, ValidationError
from school_library.database.repository import generate_id
from school_library.database.resource_repository import ResourceRepository, ResourceUpdateSchema
from school_library.database.schema import Resource as ResourceDB


class TestStockArithmetic:
    def test_available_quantity_is_clamped(self, session, make_resource):
        resource = make_resource(total_quantity=2)
        db_resource = session.get(ResourceDB, resource.id)

        # Inconsistent counters left behind by older data
        db_resource.current_loans_count = 2
        db_resource.damaged_quantity = 1

        assert db_resource.available_quantity == 0
        assert db_resource.has_stock is False

    def test_unavailable_resource_has_no_stock(self, resource_service, resource):
        updated = resource_service.update_availability(resource.id, False)

        assert updated.available_quantity == 3
        assert updated.has_stock is False
        assert resource_service.check_availability(resource.id).can_loan is False

    def test_stock_info(self, resource_service, resource):
        resource_service.mark_as_damaged(resource.id, 1)
        info = resource_service.stock_info(resource.id)

        assert info.total_quantity == 3
        assert info.damaged_quantity == 1
        assert info.available_quantity == 2
        assert info.has_stock is True


class TestStockMovements:
    @pytest.mark.parametrize(
        ("move", "restore", "field"),
        [
            ("mark_as_lost", "restore_lost", "lost_quantity"),
            ("mark_as_damaged", "repair_damaged", "damaged_quantity"),
            ("send_to_maintenance", "return_from_maintenance", "maintenance_quantity"),
        ],
    )
    def test_move_and_restore(self, resource_service, resource, move, restore, field):
        moved = getattr(resource_service, move)(resource.id, 2)
        assert getattr(moved, field) == 2
        assert moved.available_quantity == 1

        restored = getattr(resource_service, restore)(resource.id, 1)
        assert getattr(restored, field) == 1
        assert restored.available_quantity == 2

    def test_cannot_move_more_than_available(self, resource_service, resource):
        resource_service.send_to_maintenance(resource.id, 2)

        with pytest.raises(BusinessRuleError, match="only 1 available"):
            resource_service.mark_as_lost(resource.id, 2)

    def test_cannot_restore_more_than_registered(self, resource_service, resource):
        resource_service.mark_as_damaged(resource.id, 1)

        with pytest.raises(BusinessRuleError, match="only 1 registered"):
            resource_service.repair_damaged(resource.id, 2)

    def test_quantity_must_be_positive(self, resource_service, resource):
        with pytest.raises(BusinessRuleError):
            resource_service.mark_as_lost(resource.id, 0)

    def test_missing_resource(self, resource_service):
        with pytest.raises(NotFoundError):
            resource_service.mark_as_lost(generate_id("resource"), 1)
        with pytest.raises(ValidationError):
            resource_service.mark_as_lost("resource-1", 1)


class TestLoanCounters:
    def test_increment_requires_stock(self, session, resource):
        repo = ResourceRepository(session)
        repo.increment_current_loans(resource.id, 3)

        with pytest.raises(BusinessRuleError, match="Not enough stock"):
            repo.increment_current_loans(resource.id, 1)

    def test_increment_tracks_totals(self, session, resource):
        updated = ResourceRepository(session).increment_current_loans(resource.id, 2)

        assert updated.current_loans_count == 2
        assert updated.total_loans == 2
        assert updated.last_loan_date is not None

    def test_decrement_clamps_at_zero(self, session, resource):
        repo = ResourceRepository(session)
        repo.increment_current_loans(resource.id, 1)

        updated = repo.decrement_current_loans(resource.id, 2)

        assert updated.current_loans_count == 0
        assert updated.available_quantity == 3

    def test_sync_never_negative(self, session, resource):
        updated = ResourceRepository(session).sync_current_loans_count(resource.id, -4)
        assert updated.current_loans_count == 0

    def test_move_loaned_to_lost(self, session, resource):
        repo = ResourceRepository(session)
        repo.increment_current_loans(resource.id, 2)

        updated = repo.move_loaned_to_lost(resource.id, 1)

        assert updated.current_loans_count == 1
        assert updated.lost_quantity == 1
        assert updated.available_quantity == 1


class TestTotalQuantity:
    def test_update_total_quantity(self, resource_service, resource):
        assert resource_service.update_total_quantity(resource.id, 10).available_quantity == 10

    def test_total_quantity_at_least_one(self, resource_service, resource):
        with pytest.raises(BusinessRuleError, match="at least 1"):
            resource_service.update_total_quantity(resource.id, 0)

    def test_total_quantity_not_below_loans(self, session, resource_service, resource):
        ResourceRepository(session).increment_current_loans(resource.id, 2)

        with pytest.raises(BusinessRuleError, match="currently on loan"):
            resource_service.update_total_quantity(resource.id, 1)

    def test_update_does_not_touch_stock(self, resource_service, resource):
        updated = resource_service.update(resource.id, ResourceUpdateSchema(title="Nuevo titulo"))

        assert updated.title == "Nuevo titulo"
        assert updated.total_quantity == 3
        assert "total_quantity" not in ResourceUpdateSchema.model_fields


def test_stock_statistics(resource_service, make_resource):
    first = make_resource(total_quantity=4)
    second = make_resource(total_quantity=1)
    resource_service.mark_as_lost(first.id, 1)
    resource_service.send_to_maintenance(second.id, 1)

    stats = resource_service.stock_statistics()

    assert stats.total_resources == 2
    assert stats.resources_with_stock == 1
    assert stats.resources_without_stock == 1
    assert stats.total_units == 5
    assert stats.available_units == 3
    assert stats.lost_units == 1
    assert stats.maintenance_units == 1
