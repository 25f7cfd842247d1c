"""Confirmation tokens: employees acknowledge receipt of issued items."""

import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction as db_transaction
from django.utils import timezone

from ..exceptions import (
    ConfirmationRequiredError,
    ExpiredError,
    NotFoundError,
)
from ..models import Confirmation, Transaction

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def _ttl() -> timedelta:
    return timedelta(days=getattr(settings, "CONFIRMATION_TTL_DAYS", 7))


def issue_confirmation(
    employee_id, protocol_type: str, items: list, transaction_ids
) -> Confirmation:
    """Mint an unconfirmed confirmation covering ``transaction_ids``.

    ``items`` is the snapshot shown to the employee and is stored verbatim.
    """
    employee = get_user_model().objects.get(pk=employee_id)
    confirmation = Confirmation.objects.create(
        token=secrets.token_hex(TOKEN_BYTES),
        employee=employee,
        protocol_type=protocol_type,
        items_json={
            "items": list(items),
            "transactionIds": [str(pk) for pk in transaction_ids],
        },
        expires_at=timezone.now() + _ttl(),
    )
    logger.info(
        "Confirmation %s created for %s (%s, %d transaction(s))",
        confirmation.pk,
        employee.email,
        protocol_type,
        len(confirmation.items_json["transactionIds"]),
    )
    return confirmation


def items_of(confirmation: Confirmation) -> list:
    data = confirmation.items_json
    # Older rows stored the bare item list
    if isinstance(data, list):
        return data
    return (data or {}).get("items", [])


def transaction_ids_of(confirmation: Confirmation) -> list[str]:
    data = confirmation.items_json
    if not isinstance(data, dict):
        return []
    return [str(pk) for pk in data.get("transactionIds", [])]


def belongs_to(confirmation: Confirmation, transaction_id) -> bool:
    """True if the confirmation was minted for ``transaction_id``."""
    return str(transaction_id) in transaction_ids_of(confirmation)


def _candidates_for(transaction):
    return Confirmation.objects.filter(employee_id=transaction.employee_id)


def find_confirmed_for_transaction(transaction):
    """Return the confirmed confirmation covering ``transaction``, if any."""
    for confirmation in _candidates_for(transaction).filter(confirmed=True):
        if belongs_to(confirmation, transaction.pk):
            return confirmation
    return None


def require_confirmed_for_transaction(transaction) -> Confirmation:
    confirmation = find_confirmed_for_transaction(transaction)
    if confirmation is None:
        employee = transaction.employee
        raise ConfirmationRequiredError(
            f"The issue protocol can only be generated after "
            f"{employee.first_name} {employee.last_name} has confirmed "
            f"receipt of the items.",
            details={"transactionId": str(transaction.pk)},
        )
    return confirmation


def find_open_for_transaction(transaction_id):
    """Latest confirmation covering ``transaction_id``, confirmed or not."""
    try:
        transaction = Transaction.objects.get(pk=transaction_id)
    except (Transaction.DoesNotExist, ValidationError):
        return None
    for confirmation in _candidates_for(transaction):
        if belongs_to(confirmation, transaction.pk):
            return confirmation
    return None


def get_by_token(token: str) -> Confirmation:
    try:
        return Confirmation.objects.select_related("employee").get(token=token)
    except Confirmation.DoesNotExist:
        raise NotFoundError("Confirmation not found.")


def record_email_outcome(confirmation_id, sent: bool, error=None) -> None:
    """Store whether the notification went out. Never raises."""
    try:
        updates = {"email_sent": sent}
        if sent:
            updates.update(email_sent_at=timezone.now(), email_error="")
        else:
            updates["email_error"] = str(error or "Failed to send email")[:2000]
        Confirmation.objects.filter(pk=confirmation_id).update(**updates)
    except Exception:
        logger.exception(
            "Could not record email outcome for confirmation %s",
            confirmation_id,
        )


def confirm(
    token: str, confirmed_by: str = "", ip_address=None, user_agent: str = ""
) -> Confirmation:
    """Mark the confirmation behind ``token`` as confirmed.

    Confirming twice is harmless: the first ``confirmed_at`` is kept and the
    row is returned unchanged.
    """
    return confirm_receipt(token, confirmed_by, ip_address, user_agent)[0]


def confirm_receipt(
    token: str, confirmed_by: str = "", ip_address=None, user_agent: str = ""
) -> tuple[Confirmation, bool]:
    """Like :func:`confirm`, also telling whether this call did the flip."""
    with db_transaction.atomic():
        try:
            confirmation = Confirmation.objects.select_for_update().get(
                token=token
            )
        except Confirmation.DoesNotExist:
            raise NotFoundError("Confirmation not found.")

        if confirmation.confirmed:
            return confirmation, False
        if confirmation.is_expired:
            logger.warning("Rejected expired confirmation %s", confirmation.pk)
            raise ExpiredError("This confirmation link has expired.")

        now = timezone.now()
        flipped = Confirmation.objects.filter(
            pk=confirmation.pk, confirmed=False
        ).update(
            confirmed=True,
            confirmed_at=now,
            confirmed_by=confirmed_by or "",
            ip_address=ip_address or None,
            user_agent=(user_agent or "")[:500],
        )
        confirmation.refresh_from_db()

    if flipped:
        logger.info("Confirmation %s confirmed by %s", confirmation.pk, confirmed_by)
    return confirmation, bool(flipped)


def store_protocol_path(confirmation_id, file_path: str) -> None:
    Confirmation.objects.filter(pk=confirmation_id).update(
        protocol_file_path=file_path
    )
