"""Retrieving and storing protocol documents.

Issue protocols are only handed out once the employee has confirmed
receipt. A protocol stored at confirmation time is served from storage;
if the file is gone it is generated again.
"""

import logging
from dataclasses import dataclass

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.utils import timezone

from ..exceptions import InvalidInputError, NotFoundError
from ..models import Confirmation, Transaction
from . import confirmations, pdf

logger = logging.getLogger(__name__)

PROTOCOL_KINDS = ("issue", "return")


@dataclass(frozen=True)
class ProtocolDocument:
    filename: str
    content: bytes
    content_type: str = "application/pdf"


def _get_transaction(transaction_id) -> Transaction:
    try:
        return Transaction.objects.select_related(
            "employee", "clothing_item"
        ).get(pk=transaction_id)
    except (Transaction.DoesNotExist, ValidationError):
        raise NotFoundError(f"Transaction {transaction_id} not found.")


def _read_stored(confirmation: Confirmation):
    path = confirmation.protocol_file_path
    if not path:
        return None
    if not default_storage.exists(path):
        logger.warning(
            "Stored protocol %s for confirmation %s is missing, regenerating",
            path,
            confirmation.pk,
        )
        return None
    with default_storage.open(path, "rb") as fh:
        return fh.read()


def _date_stamp() -> str:
    return timezone.localdate().isoformat()


def get_transaction_protocol(transaction_id, kind: str = "issue") -> ProtocolDocument:
    """Return the issue or return protocol of one transaction."""
    if kind not in PROTOCOL_KINDS:
        raise InvalidInputError(
            f"Protocol type must be one of {', '.join(PROTOCOL_KINDS)}."
        )
    transaction = _get_transaction(transaction_id)
    internal_id = transaction.clothing_item.internal_id

    if kind == "return":
        return ProtocolDocument(
            filename=f"return-protocol-{internal_id}.pdf",
            content=pdf.render_return_protocol(transaction.pk),
        )

    confirmation = confirmations.require_confirmed_for_transaction(transaction)
    content = None
    # A stored bulk protocol lists other items too
    if confirmations.transaction_ids_of(confirmation) == [str(transaction.pk)]:
        content = _read_stored(confirmation)
    if content is None:
        content = pdf.render_issue_protocol(transaction.pk, confirmation)
    return ProtocolDocument(
        filename=f"issue-protocol-{internal_id}.pdf", content=content
    )


def get_bulk_issue_protocol(transaction_ids) -> ProtocolDocument:
    """Return one issue protocol for several transactions of one employee.

    Every transaction must be covered by a confirmed confirmation.
    """
    ids = [str(pk) for pk in transaction_ids or []]
    if not ids:
        raise InvalidInputError("At least one transaction id is required.")
    found = []
    for pk in ids:
        transaction = _get_transaction(pk)
        found.append(
            confirmations.require_confirmed_for_transaction(transaction)
        )

    content = None
    confirmation = found[0]
    if all(c.pk == confirmation.pk for c in found) and set(ids) == set(
        confirmations.transaction_ids_of(confirmation)
    ):
        content = _read_stored(confirmation)
    if content is None:
        content = pdf.render_bulk_issue_protocol(ids, confirmation)
    return ProtocolDocument(
        filename=f"issue-protocol-{_date_stamp()}.pdf", content=content
    )


def get_bulk_return_protocol(transaction_ids) -> ProtocolDocument:
    ids = [str(pk) for pk in transaction_ids or []]
    return ProtocolDocument(
        filename=f"return-protocol-{_date_stamp()}.pdf",
        content=pdf.render_bulk_return_protocol(ids),
    )


def save_protocol(confirmation: Confirmation) -> str:
    """Generate the issue protocol of a confirmation and store it.

    Returns the storage path, which is also recorded on the confirmation.
    """
    ids = confirmations.transaction_ids_of(confirmation)
    if not ids:
        raise InvalidInputError(
            f"Confirmation {confirmation.pk} covers no transactions."
        )
    if len(ids) == 1:
        content = pdf.render_issue_protocol(ids[0], confirmation)
    else:
        content = pdf.render_bulk_issue_protocol(ids, confirmation)

    name = (
        f"{settings.PROTOCOL_STORAGE_DIR}/"
        f"issue-{timezone.now():%Y%m%d%H%M%S}-{confirmation.pk}.pdf"
    )
    path = default_storage.save(name, ContentFile(content))
    confirmations.store_protocol_path(confirmation.pk, path)
    confirmation.protocol_file_path = path
    logger.info("Stored protocol %s for confirmation %s", path, confirmation.pk)
    return path
