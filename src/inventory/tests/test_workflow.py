"""Tests for the steps around an issuance: confirmation, email, acceptance."""

from datetime import timedelta
from unittest.mock import patch

import pytest

from django.core import mail
from django.core.exceptions import PermissionDenied
from django.core.files.storage import default_storage
from django.utils import timezone

from inventory.exceptions import (
    ConfirmationRequiredError,
    ExpiredError,
    InvalidStateError,
    NotFoundError,
)
from inventory.factories import TransactionFactory
from inventory.models import AuditLog, ClothingItem, Confirmation
from inventory.services import confirmations, issuance, protocols, workflow


@pytest.fixture
def issued(employee, item, warehouse_user):
    """Issue ``item`` to ``employee`` and mint its confirmation."""
    txn = issuance.issue_single(employee.pk, item.pk, warehouse_user.pk, "NEW")
    confirmation = workflow.after_issue([txn], "SINGLE")
    return txn, confirmation


class TestItemsSnapshot:
    def test_relative_image_made_absolute(self, item):
        item.image_url = "/media/jacket.png"
        snapshot = workflow.build_items_snapshot([item])
        assert snapshot == [
            {
                "quantity": 1,
                "name": "Softshell Jacket",
                "size": "L",
                "category": "Jacket",
                "imageUrl": "https://workwear.test/media/jacket.png",
            }
        ]

    def test_no_image(self, item):
        assert workflow.build_items_snapshot([item])[0]["imageUrl"] is None

    def test_confirmation_url(self):
        assert (
            workflow.confirmation_url("abc")
            == "https://workwear.test/confirm/abc"
        )


class TestAfterIssue:
    def test_confirmation_created_and_mailed(self, issued, employee):
        txn, confirmation = issued

        assert confirmation.employee == employee
        assert confirmation.protocol_type == "SINGLE"
        assert confirmations.belongs_to(confirmation, txn.pk)
        assert confirmation.email_sent is True
        assert confirmation.email_sent_at is not None
        assert len(mail.outbox) == 1
        message = mail.outbox[0]
        assert message.to == [employee.email]
        assert confirmation.token in message.body

    def test_bulk_confirmation_covers_all(self, employee, items, warehouse_user):
        txns = issuance.issue_bulk(
            employee.pk, [i.pk for i in items], warehouse_user.pk, "NEW"
        )
        confirmation = workflow.after_issue(txns, "BULK_ISSUE")

        assert confirmation.protocol_type == "BULK_ISSUE"
        assert confirmations.transaction_ids_of(confirmation) == [
            str(t.pk) for t in txns
        ]
        assert len(confirmations.items_of(confirmation)) == 3
        assert len(mail.outbox) == 1

    def test_email_failure_recorded_issue_kept(
        self, employee, item, warehouse_user
    ):
        txn = issuance.issue_single(employee.pk, item.pk, warehouse_user.pk, "NEW")
        with patch(
            "django.core.mail.EmailMultiAlternatives.send",
            side_effect=ConnectionRefusedError("SMTP down"),
        ):
            confirmation = workflow.after_issue([txn], "SINGLE")

        assert confirmation.email_sent is False
        assert confirmation.email_error == "SMTP down"
        item.refresh_from_db()
        assert item.status == "PENDING"

    def test_queue_failure_recorded(self, employee, item, warehouse_user):
        txn = issuance.issue_single(employee.pk, item.pk, warehouse_user.pk, "NEW")
        with patch(
            "celery.app.task.Task.delay",
            side_effect=OSError("broker unavailable"),
        ):
            confirmation = workflow.after_issue([txn], "SINGLE")

        assert confirmation.email_sent is False
        assert confirmation.email_error == "broker unavailable"

    def test_development_mode_redirects(
        self, settings, employee, item, warehouse_user
    ):
        settings.EMAIL_MODE = "development"
        settings.TEST_EMAIL_ADDRESS = "qa@example.com"
        txn = issuance.issue_single(employee.pk, item.pk, warehouse_user.pk, "NEW")
        workflow.after_issue([txn], "SINGLE")

        message = mail.outbox[0]
        assert message.to == ["qa@example.com"]
        assert message.subject.startswith("[TEST]")
        assert employee.email in message.body

    def test_confirmation_failure_returns_none(
        self, employee, item, warehouse_user
    ):
        txn = issuance.issue_single(employee.pk, item.pk, warehouse_user.pk, "NEW")
        with patch(
            "inventory.services.confirmations.issue_confirmation",
            side_effect=RuntimeError("boom"),
        ):
            assert workflow.after_issue([txn], "SINGLE") is None
        assert Confirmation.objects.count() == 0
        assert mail.outbox == []

    def test_nothing_issued(self, db):
        assert workflow.after_issue([], "SINGLE") is None


class TestAcceptConfirmation:
    def test_accept_promotes_items_and_stores_protocol(self, issued, employee):
        txn, confirmation = issued

        result = workflow.accept_confirmation(
            confirmation.token, employee, ip_address="10.1.2.3", user_agent="Edge"
        )

        assert result.confirmed is True
        assert result.confirmed_by == "entra-max"
        assert result.ip_address == "10.1.2.3"
        txn.clothing_item.refresh_from_db()
        assert txn.clothing_item.status == "ISSUED"
        assert txn.clothing_item.current_holder == employee

        result.refresh_from_db()
        assert result.protocol_file_path.startswith("protocols/")
        assert default_storage.exists(result.protocol_file_path)
        with default_storage.open(result.protocol_file_path, "rb") as fh:
            assert fh.read()[:4] == b"%PDF"

        entry = AuditLog.objects.get(action="RECEIPT_CONFIRMED")
        assert entry.entity_id == str(result.pk)
        assert entry.performed_by == employee
        assert entry.ip_address == "10.1.2.3"

    def test_wrong_user_rejected(self, issued, other_employee):
        _, confirmation = issued
        with pytest.raises(PermissionDenied, match="Max Mustermann"):
            workflow.accept_confirmation(confirmation.token, other_employee)
        confirmation.refresh_from_db()
        assert confirmation.confirmed is False

    def test_unknown_token(self, employee):
        with pytest.raises(NotFoundError):
            workflow.accept_confirmation("f" * 64, employee)

    def test_expired(self, issued, employee):
        txn, confirmation = issued
        Confirmation.objects.filter(pk=confirmation.pk).update(
            expires_at=timezone.now() - timedelta(seconds=1)
        )
        with pytest.raises(ExpiredError):
            workflow.accept_confirmation(confirmation.token, employee)
        txn.clothing_item.refresh_from_db()
        assert txn.clothing_item.status == "PENDING"

    def test_accepting_twice_changes_nothing(self, issued, employee):
        _, confirmation = issued
        first = workflow.accept_confirmation(confirmation.token, employee)
        second = workflow.accept_confirmation(confirmation.token, employee)
        assert second.confirmed_at == first.confirmed_at
        assert AuditLog.objects.filter(action="RECEIPT_CONFIRMED").count() == 1

    def test_double_submit_records_once(self, issued, employee):
        _, confirmation = issued
        stale = Confirmation.objects.get(pk=confirmation.pk)
        first = workflow.accept_confirmation(confirmation.token, employee)

        # The second request read the row before the first one committed.
        with patch(
            "inventory.services.confirmations.get_by_token", return_value=stale
        ), patch("inventory.services.protocols.save_protocol") as save:
            second = workflow.accept_confirmation(confirmation.token, employee)

        assert second.confirmed_at == first.confirmed_at
        save.assert_not_called()
        assert AuditLog.objects.filter(action="RECEIPT_CONFIRMED").count() == 1

    def test_returned_item_not_promoted(self, issued, employee, warehouse_user):
        txn, confirmation = issued
        issuance.return_single(txn.pk, warehouse_user.pk, "GOOD")
        workflow.accept_confirmation(confirmation.token, employee)
        txn.clothing_item.refresh_from_db()
        assert txn.clothing_item.status == "AVAILABLE"

    def test_protocol_failure_does_not_undo_confirmation(self, issued, employee):
        _, confirmation = issued
        with patch(
            "inventory.services.protocols.save_protocol",
            side_effect=OSError("disk full"),
        ):
            result = workflow.accept_confirmation(confirmation.token, employee)
        assert result.confirmed is True
        result.refresh_from_db()
        assert result.protocol_file_path == ""


class TestResendConfirmation:
    def test_resend(self, issued):
        txn, _ = issued
        mail.outbox.clear()
        workflow.resend_confirmation(txn.pk)
        assert len(mail.outbox) == 1

    def test_no_confirmation(self, db):
        txn = TransactionFactory()
        with pytest.raises(
            NotFoundError, match="Confirmation not found for this transaction"
        ):
            workflow.resend_confirmation(txn.pk)

    def test_already_confirmed(self, issued, employee):
        txn, confirmation = issued
        workflow.accept_confirmation(confirmation.token, employee)
        with pytest.raises(InvalidStateError, match="already completed"):
            workflow.resend_confirmation(txn.pk)

    def test_expired(self, issued):
        txn, confirmation = issued
        Confirmation.objects.filter(pk=confirmation.pk).update(
            expires_at=timezone.now() - timedelta(days=1)
        )
        with pytest.raises(InvalidStateError, match="expired"):
            workflow.resend_confirmation(txn.pk)


class TestIssueToProtocolScenario:
    def test_jacket_issue_confirm_and_report(
        self, employee, item, warehouse_user
    ):
        txn = issuance.issue_single(employee.pk, item.pk, warehouse_user.pk, "NEW")
        confirmation = workflow.after_issue([txn], "SINGLE")

        with pytest.raises(ConfirmationRequiredError):
            protocols.get_transaction_protocol(txn.pk)

        workflow.accept_confirmation(confirmation.token, employee)

        document = protocols.get_transaction_protocol(txn.pk)
        assert document.filename == "issue-protocol-CLO-ABC123.pdf"
        assert document.content[:4] == b"%PDF"
        assert ClothingItem.objects.get(pk=item.pk).status == "ISSUED"
