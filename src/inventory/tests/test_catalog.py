"""Tests for the clothing item catalog and its status state machine."""

import re

import pytest

from django.core.exceptions import ValidationError

from inventory.exceptions import InvalidInputError, InvalidStateError, NotFoundError
from inventory.factories import ClothingItemFactory, TransactionFactory
from inventory.models import AuditLog, ClothingItem
from inventory.services import catalog


class TestClothingItemModel:
    def test_identifiers_generated(self, clothing_type):
        item = ClothingItem.objects.create(type=clothing_type, size="M")
        assert re.fullmatch(r"CLO-[0-9A-F]{8}", item.internal_id)
        assert re.fullmatch(r"[0-9A-F]{16}", item.qr_code)

    def test_held_status_requires_holder(self, item):
        item.status = "ISSUED"
        with pytest.raises(ValidationError):
            item.full_clean()

    def test_available_cannot_have_holder(self, item, employee):
        item.current_holder = employee
        with pytest.raises(ValidationError):
            item.full_clean()

    def test_str(self, item):
        assert "CLO-ABC123" in str(item)


class TestCreateItems:
    def test_creates_available_items(self, clothing_type, admin_user):
        created = catalog.create_items(
            clothing_type, "XL", quantity=3, performed_by=admin_user
        )
        assert len(created) == 3
        assert len({i.internal_id for i in created}) == 3
        assert all(i.status == "AVAILABLE" and i.condition == "NEW" for i in created)
        assert AuditLog.objects.filter(action="CREATE").count() == 3

    @pytest.mark.parametrize("quantity", [0, 101])
    def test_quantity_bounds(self, clothing_type, quantity):
        with pytest.raises(InvalidInputError):
            catalog.create_items(clothing_type, "M", quantity=quantity)

    def test_invalid_category(self, clothing_type):
        with pytest.raises(InvalidInputError):
            catalog.create_items(clothing_type, "M", category="RENTAL")


class TestValidateTransition:
    def test_valid(self, item):
        catalog.validate_transition(item, "LOST")

    def test_noop(self, item):
        catalog.validate_transition(item, "AVAILABLE")

    def test_invalid(self, item):
        with pytest.raises(InvalidStateError, match="Allowed transitions"):
            catalog.validate_transition(item, "IN_USE")

    def test_unknown_status(self, item):
        with pytest.raises(InvalidInputError, match="not a valid status"):
            catalog.validate_transition(item, "BOGUS")

    def test_retired_is_terminal(self, item):
        item.status = "RETIRED"
        with pytest.raises(InvalidStateError, match="none"):
            catalog.validate_transition(item, "AVAILABLE")

    @pytest.mark.parametrize("target", ["AVAILABLE", "RETIRED", "ISSUED"])
    def test_lost_is_terminal(self, item, target):
        item.status = "LOST"
        with pytest.raises(InvalidStateError, match="none"):
            catalog.validate_transition(item, target)


class TestTransitionItem:
    def test_lost_clears_holder(self, admin_user):
        txn = TransactionFactory()
        item = txn.clothing_item
        catalog.transition_item(item, "LOST", performed_by=admin_user)

        item.refresh_from_db()
        assert item.status == "LOST"
        assert item.current_holder is None
        entry = AuditLog.objects.get(action="STATUS_CHANGE")
        assert entry.performed_by == admin_user
        assert {"field": "status", "old": "PENDING", "new": "LOST"} in entry.changes

    def test_in_use_keeps_holder(self, db):
        txn = TransactionFactory(clothing_item__status="ISSUED")
        item = txn.clothing_item
        catalog.transition_item(item, "IN_USE")
        item.refresh_from_db()
        assert item.status == "IN_USE"
        assert item.current_holder == txn.employee

    def test_invalid_transition_leaves_item(self, item):
        with pytest.raises(InvalidStateError):
            catalog.transition_item(item, "ISSUED")
        item.refresh_from_db()
        assert item.status == "AVAILABLE"


class TestRetireItem:
    def test_retire_available(self, item, admin_user):
        catalog.retire_item(item, "Torn", performed_by=admin_user)
        item.refresh_from_db()
        assert item.status == "RETIRED"
        assert item.condition == "RETIRED"
        assert item.retirement_reason == "Torn"
        assert item.retirement_date is not None
        assert AuditLog.objects.filter(action="RETIRE").exists()

    def test_held_item_must_be_returned_first(self, db):
        txn = TransactionFactory()
        with pytest.raises(InvalidStateError, match="Return it before"):
            catalog.retire_item(txn.clothing_item)

    def test_audit_lists_changed_fields(self, item):
        catalog.retire_item(item, "Faded")
        entry = AuditLog.objects.get(action="RETIRE")
        assert entry.changes == [
            {"field": "status", "old": "AVAILABLE", "new": "RETIRED"},
            {"field": "condition", "old": "NEW", "new": "RETIRED"},
            {"field": "retirement_reason", "old": "", "new": "Faded"},
        ]

    def test_lost_item_cannot_be_retired(self, item):
        catalog.transition_item(item, "LOST")
        with pytest.raises(InvalidStateError, match="Allowed transitions"):
            catalog.retire_item(item)
        item.refresh_from_db()
        assert item.status == "LOST"
        assert item.retirement_date is None

    def test_default_reason(self, item):
        catalog.retire_item(item)
        assert item.retirement_reason == "Retired by user"


class TestPermanentDelete:
    def test_delete_retired_item(self, item):
        catalog.retire_item(item)
        pk = item.pk
        catalog.permanently_delete_item(item)
        assert not ClothingItem.objects.filter(pk=pk).exists()
        assert AuditLog.objects.filter(
            action="PERMANENT_DELETE", entity_id=str(pk)
        ).exists()

    def test_not_retired(self, item):
        with pytest.raises(InvalidStateError, match="Retire it first"):
            catalog.permanently_delete_item(item)

    def test_referenced_by_transactions(self, warehouse_user):
        from inventory.services import issuance

        txn = TransactionFactory()
        issuance.return_single(txn.pk, warehouse_user.pk, "WORN")
        item = txn.clothing_item
        item.refresh_from_db()
        catalog.retire_item(item)

        with pytest.raises(InvalidStateError, match="1 transaction"):
            catalog.permanently_delete_item(item)
        assert ClothingItem.objects.filter(pk=item.pk).exists()


class TestPromoteConfirmedItems:
    def test_promotes_only_pending_open_items(self, warehouse_user):
        from inventory.services import issuance

        pending = TransactionFactory()
        returned = TransactionFactory()
        issuance.return_single(returned.pk, warehouse_user.pk, "GOOD")

        count = catalog.promote_confirmed_items([pending.pk, returned.pk])

        assert count == 1
        pending.clothing_item.refresh_from_db()
        returned.clothing_item.refresh_from_db()
        assert pending.clothing_item.status == "ISSUED"
        assert returned.clothing_item.status == "AVAILABLE"


class TestItemStats:
    def test_counts(self, clothing_type):
        ClothingItemFactory.create_batch(2, type=clothing_type)
        TransactionFactory()
        stats = catalog.item_stats()
        assert stats["total"] == 3
        assert stats["available"] == 2
        assert stats["pending"] == 1
        assert {"status": "PENDING", "count": 1} in stats["byStatus"]


class TestGetItem:
    def test_unknown(self, db):
        with pytest.raises(NotFoundError):
            catalog.get_item("nope")
