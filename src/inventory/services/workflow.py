"""What happens around an issuance: confirmation, email, acceptance.

These steps run after the issuance itself has committed. A failure here
never undoes an issuance; it is logged and, where it concerns the email,
recorded on the confirmation.
"""

import logging

from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.db import transaction as db_transaction

from ..exceptions import ExpiredError, InvalidStateError, NotFoundError
from . import audit, catalog, confirmations, protocols

logger = logging.getLogger(__name__)


def _absolute_url(url: str):
    if not url:
        return None
    if url.startswith(("http://", "https://")):
        return url
    return f"{settings.SITE_URL.rstrip('/')}/{url.lstrip('/')}"


def build_items_snapshot(items) -> list[dict]:
    """Describe ``items`` the way the employee sees them in the email."""
    return [
        {
            "quantity": 1,
            "name": item.type.name,
            "size": item.size,
            "category": item.type.category,
            "imageUrl": _absolute_url(item.image_url or item.type.image_url),
        }
        for item in items
    ]


def confirmation_url(token: str) -> str:
    return settings.CONFIRMATION_URL_TEMPLATE.format(
        site_url=settings.SITE_URL.rstrip("/"), token=token
    )


def _dispatch(confirmation) -> None:
    from ..tasks import send_confirmation_email

    try:
        send_confirmation_email.delay(
            str(confirmation.pk), confirmation_url(confirmation.token)
        )
    except Exception as exc:
        logger.exception(
            "Could not queue confirmation email for %s", confirmation.pk
        )
        confirmations.record_email_outcome(confirmation.pk, False, str(exc))


def after_issue(transactions, protocol_type: str):
    """Mint a confirmation for freshly issued ``transactions`` and email it.

    Returns the confirmation, or None if it could not be created.
    """
    transactions = list(transactions)
    if not transactions:
        return None
    employee = transactions[0].employee
    try:
        confirmation = confirmations.issue_confirmation(
            employee.pk,
            protocol_type,
            build_items_snapshot(txn.clothing_item for txn in transactions),
            [txn.pk for txn in transactions],
        )
    except Exception:
        logger.exception(
            "Could not create confirmation for %d issued item(s) of %s",
            len(transactions),
            employee.email,
        )
        return None

    _dispatch(confirmation)
    confirmation.refresh_from_db()
    return confirmation


def accept_confirmation(token: str, user, ip_address=None, user_agent: str = ""):
    """The employee confirms receipt through their link.

    Covered items still PENDING become ISSUED and the issue protocol is
    generated and stored. Accepting an already confirmed link changes
    nothing.
    """
    confirmation = confirmations.get_by_token(token)
    if not confirmation.confirmed and confirmation.is_expired:
        raise ExpiredError("This confirmation link has expired.")

    employee = confirmation.employee
    if user.pk != employee.pk:
        logger.warning(
            "User %s tried to confirm receipt for %s", user.pk, employee.pk
        )
        raise PermissionDenied(
            f"This confirmation belongs to {employee.first_name} "
            f"{employee.last_name}. Please sign in with the matching account."
        )
    if confirmation.confirmed:
        return confirmation

    transaction_ids = confirmations.transaction_ids_of(confirmation)
    with db_transaction.atomic():
        confirmation, flipped = confirmations.confirm_receipt(
            token,
            confirmed_by=user.entra_id or user.get_username(),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        if flipped:
            catalog.promote_confirmed_items(transaction_ids)
    if not flipped:
        # A concurrent submit already recorded the receipt.
        return confirmation

    audit.record(
        "Confirmation",
        confirmation.pk,
        "RECEIPT_CONFIRMED",
        [
            audit.FieldChange("confirmed", False, True),
            audit.FieldChange("transaction_ids", None, ", ".join(transaction_ids)),
        ],
        performed_by=user,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    try:
        protocols.save_protocol(confirmation)
    except Exception:
        # The stored copy is a cache; reports regenerate it on demand.
        logger.exception(
            "Could not store protocol for confirmation %s", confirmation.pk
        )
    return confirmation


def resend_confirmation(transaction_id):
    """Send the confirmation email covering ``transaction_id`` again."""
    confirmation = confirmations.find_open_for_transaction(transaction_id)
    if confirmation is None:
        raise NotFoundError("Confirmation not found for this transaction.")
    if confirmation.confirmed:
        raise InvalidStateError("Confirmation already completed.")
    if confirmation.is_expired:
        raise InvalidStateError(
            "This confirmation has expired. Issue the items again to send a new link."
        )
    _dispatch(confirmation)
    confirmation.refresh_from_db()
    logger.info("Resent confirmation %s", confirmation.pk)
    return confirmation
