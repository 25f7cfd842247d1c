"""PDF issue and return protocols."""

from weasyprint import HTML

from django.conf import settings
from django.core.exceptions import ValidationError
from django.template.loader import render_to_string
from django.utils import timezone

from ..exceptions import InvalidInputError, NotFoundError
from ..models import Transaction


def _load(transaction_ids) -> list[Transaction]:
    ids = [str(pk) for pk in transaction_ids]
    if not ids:
        raise InvalidInputError("At least one transaction id is required.")
    try:
        rows = Transaction.objects.select_related(
            "employee",
            "clothing_item",
            "clothing_item__type",
            "issued_by",
            "returned_by",
        ).filter(pk__in=ids)
        by_pk = {str(txn.pk): txn for txn in rows}
    except ValidationError:
        by_pk = {}
    missing = [pk for pk in ids if pk not in by_pk]
    if missing:
        raise NotFoundError(
            "One or more transactions not found.", details={"missing": missing}
        )
    transactions = [by_pk[pk] for pk in ids]
    if len({txn.employee_id for txn in transactions}) > 1:
        raise InvalidInputError(
            "All transactions of a protocol must belong to the same employee."
        )
    return transactions


def _render(template_name: str, context: dict) -> bytes:
    html_string = render_to_string(
        template_name,
        {
            "company_name": settings.COMPANY_NAME,
            "generated_at": timezone.now(),
            **context,
        },
    )
    return HTML(string=html_string).write_pdf()


def render_issue_protocol(transaction_id, confirmation=None) -> bytes:
    """Generate the issue protocol for one transaction.

    Args:
        transaction_id: Transaction primary key
        confirmation: Confirmation covering the transaction (optional)

    Returns:
        bytes: PDF file content
    """
    transaction = _load([transaction_id])[0]
    return _render(
        "inventory/protocol_issue.html",
        {
            "transaction": transaction,
            "employee": transaction.employee,
            "confirmation": confirmation,
        },
    )


def render_return_protocol(transaction_id) -> bytes:
    transaction = _load([transaction_id])[0]
    return _render(
        "inventory/protocol_return.html",
        {"transaction": transaction, "employee": transaction.employee},
    )


def render_bulk_issue_protocol(transaction_ids, confirmation=None) -> bytes:
    """Generate one issue protocol listing several transactions.

    All transactions must belong to the same employee.
    """
    transactions = _load(transaction_ids)
    return _render(
        "inventory/protocol_bulk_issue.html",
        {
            "transactions": transactions,
            "employee": transactions[0].employee,
            "issued_by": transactions[0].issued_by,
            "confirmation": confirmation,
        },
    )


def render_bulk_return_protocol(transaction_ids) -> bytes:
    transactions = _load(transaction_ids)
    return _render(
        "inventory/protocol_bulk_return.html",
        {
            "transactions": transactions,
            "employee": transactions[0].employee,
            "returned_by": transactions[0].returned_by,
        },
    )
