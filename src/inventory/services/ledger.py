"""Read-side queries over the transaction ledger.

READ_ONLY users only ever see transactions issued to themselves.
"""

from django.core.exceptions import ValidationError

from ..exceptions import InvalidInputError, NotFoundError
from ..models import Transaction
from .permissions import is_read_only

TRANSACTION_RELATED = (
    "employee",
    "clothing_item",
    "clothing_item__type",
    "issued_by",
    "returned_by",
)


def _base(requesting_user=None):
    qs = Transaction.objects.select_related(*TRANSACTION_RELATED)
    if requesting_user is not None and is_read_only(requesting_user):
        qs = qs.filter(employee=requesting_user)
    return qs


def _parse_bool(value):
    if value is None or isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    if lowered == "":
        return None
    raise InvalidInputError(f"'{value}' is not a boolean.")


def list_transactions(filters=None, requesting_user=None):
    """Transactions newest first, optionally filtered.

    Supported filters: ``employee``, ``item``, ``type`` and ``returned``.
    """
    filters = filters or {}
    qs = _base(requesting_user)
    try:
        if filters.get("employee"):
            qs = qs.filter(employee_id=filters["employee"])
        if filters.get("item"):
            qs = qs.filter(clothing_item_id=filters["item"])
        if filters.get("type"):
            qs = qs.filter(type=filters["type"])
        returned = _parse_bool(filters.get("returned"))
        if returned is not None:
            qs = qs.filter(returned_at__isnull=not returned)
        return list(qs.order_by("-issued_at"))
    except (ValidationError, ValueError):
        raise InvalidInputError("Invalid transaction filter.")


def pending_returns(requesting_user=None):
    """Open issues: items still with the employee."""
    return list(
        _base(requesting_user)
        .filter(type="ISSUE", returned_at__isnull=True)
        .order_by("-issued_at")
    )


def pending_issues(requesting_user=None):
    """Issues whose item still awaits the employee's confirmation."""
    return list(
        _base(requesting_user)
        .filter(type="ISSUE", clothing_item__status="PENDING")
        .order_by("-issued_at")
    )


def transaction_stats(requesting_user=None) -> dict:
    qs = _base(requesting_user)
    return {
        "total": qs.count(),
        "issued": qs.filter(type="ISSUE").count(),
        "pendingReturns": qs.filter(
            type="ISSUE", returned_at__isnull=True
        ).count(),
        "returned": qs.filter(returned_at__isnull=False).count(),
        "recentTransactions": list(qs.order_by("-issued_at")[:10]),
    }


def item_history(item_id, requesting_user=None):
    try:
        return list(
            _base(requesting_user)
            .filter(clothing_item_id=item_id)
            .order_by("-issued_at")
        )
    except ValidationError:
        raise NotFoundError(f"Clothing item {item_id} not found.")


def get_transaction(transaction_id, requesting_user=None) -> Transaction:
    try:
        return _base(requesting_user).get(pk=transaction_id)
    except (Transaction.DoesNotExist, ValidationError):
        raise NotFoundError(f"Transaction {transaction_id} not found.")
