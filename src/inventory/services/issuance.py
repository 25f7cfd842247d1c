"""Issuing clothing items to employees and taking them back.

Every public function here runs as one atomic unit: the precondition
checks are made on rows locked inside the same database transaction that
performs the mutation, and the status flip itself is a conditional update
whose row count is verified. Either the whole operation commits or nothing
changes.
"""

import functools
import logging
import uuid
from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.db import transaction as db_transaction
from django.utils import timezone

from ..exceptions import (
    AlreadyReturnedError,
    InfrastructureError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from ..models import ClothingItem, Transaction

logger = logging.getLogger(__name__)

Employee = get_user_model()

RETURN_SEPARATOR = "\n---\n"

_CONDITIONS = dict(Transaction.CONDITION_CHOICES)


@dataclass(frozen=True)
class ReturnLine:
    """One item of an individually assessed bulk return."""

    transaction_id: str
    condition_on_return: str
    notes: str = ""


def _atomic_unit(func):
    """Run ``func`` in one database transaction.

    Storage failures roll the unit back and surface as InfrastructureError;
    domain errors pass through unchanged.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            with db_transaction.atomic():
                return func(*args, **kwargs)
        except DatabaseError as exc:
            logger.exception("Storage failure in %s", func.__name__)
            raise InfrastructureError(
                "The operation could not be completed and was rolled back."
            ) from exc

    return wrapper


def _check_condition(condition: str, label: str) -> None:
    if condition not in _CONDITIONS:
        raise InvalidInputError(
            f"{label} must be one of {', '.join(_CONDITIONS)} "
            f"(got '{condition}')."
        )


def _key(value) -> str:
    """Canonical string form of a UUID primary key."""
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        return str(value)


def _check_ids(ids, label: str) -> list:
    ids = list(ids or [])
    if not ids:
        raise InvalidInputError(f"At least one {label} is required.")
    seen, duplicates = set(), []
    for value in ids:
        key = _key(value)
        if key in seen:
            duplicates.append(key)
        seen.add(key)
    if duplicates:
        raise InvalidInputError(
            f"Duplicate {label}s in request: {', '.join(duplicates)}",
            details={"duplicates": duplicates},
        )
    return ids


def _get_employee(employee_id, role: str):
    try:
        return Employee.objects.get(pk=employee_id)
    except (Employee.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"{role} {employee_id} not found.")


def _get_active_employee(employee_id):
    employee = _get_employee(employee_id, "Employee")
    if employee.status != "ACTIVE":
        raise InvalidStateError(
            f"Employee {employee.get_display_name()} is not active "
            f"(status: {employee.status})."
        )
    return employee


def _lock_items(item_ids) -> dict:
    try:
        rows = list(
            ClothingItem.objects.select_for_update().filter(pk__in=item_ids)
        )
    except ValidationError:
        # Malformed UUID
        return {}
    return {str(item.pk): item for item in rows}


def _lock_transactions(transaction_ids) -> dict:
    try:
        rows = list(
            Transaction.objects.select_for_update(of=("self",))
            .select_related("clothing_item")
            .filter(pk__in=transaction_ids)
        )
    except ValidationError:
        return {}
    return {str(txn.pk): txn for txn in rows}


def _claim_items(items, employee) -> None:
    """Flip AVAILABLE items to PENDING for ``employee``.

    The WHERE clause re-checks the status so a concurrent issuance that
    committed in between makes the row count come up short.
    """
    pks = [item.pk for item in items]
    claimed = ClothingItem.objects.filter(
        pk__in=pks, status="AVAILABLE"
    ).update(
        status="PENDING",
        current_holder=employee,
        updated_at=timezone.now(),
    )
    if claimed != len(pks):
        current = ClothingItem.objects.filter(pk__in=pks).exclude(
            current_holder=employee, status="PENDING"
        )
        ids = ", ".join(sorted(i.internal_id for i in current)) or "unknown"
        raise InvalidStateError(
            f"Items were issued concurrently and are no longer available: {ids}"
        )
    for item in items:
        item.status = "PENDING"
        item.current_holder = employee


def _release_item(txn: Transaction, condition: str) -> None:
    """Put a held item back on the shelf.

    An item marked LOST or RETIRED while out stays where it is; only the
    ledger row is closed for it.
    """
    released = ClothingItem.objects.filter(
        pk=txn.clothing_item_id, status__in=ClothingItem.HELD_STATUSES
    ).update(
        status="AVAILABLE",
        condition=condition,
        current_holder=None,
        updated_at=timezone.now(),
    )
    if not released:
        logger.info(
            "Item %s is %s; closed transaction %s without releasing it",
            txn.clothing_item.internal_id,
            txn.clothing_item.status,
            txn.pk,
        )
        return
    txn.clothing_item.status = "AVAILABLE"
    txn.clothing_item.condition = condition
    txn.clothing_item.current_holder = None


def _close_transaction(txn, returner, condition, notes) -> None:
    """Record the return on the ledger row; only an open row is updated."""
    now = timezone.now()
    closed = Transaction.objects.filter(
        pk=txn.pk, returned_at__isnull=True
    ).update(
        returned_at=now,
        returned_by=returner,
        condition_on_return=condition,
        notes=notes,
        updated_at=now,
    )
    if closed != 1:
        raise AlreadyReturnedError(
            f"Clothing item {txn.clothing_item.internal_id} was already returned."
        )
    txn.returned_at = now
    txn.returned_by = returner
    txn.condition_on_return = condition
    txn.notes = notes


def append_note(existing: str, label: str, note: str) -> str:
    """Append ``label: note`` to ``existing`` without losing earlier text."""
    if not note:
        return existing
    entry = f"{label}: {note}"
    return f"{existing}{RETURN_SEPARATOR}{entry}" if existing else entry


def _reload(transaction_ids) -> list[Transaction]:
    rows = Transaction.objects.select_related(
        "employee",
        "clothing_item",
        "clothing_item__type",
        "issued_by",
        "returned_by",
    ).filter(pk__in=transaction_ids)
    by_pk = {txn.pk: txn for txn in rows}
    return [by_pk[pk] for pk in transaction_ids]


@_atomic_unit
def issue_single(
    employee_id,
    item_id,
    issuer_id,
    condition_on_issue: str,
    notes: str = "",
) -> Transaction:
    """Issue one AVAILABLE item to an active employee.

    The item moves to PENDING until the employee confirms receipt.
    """
    _check_condition(condition_on_issue, "conditionOnIssue")
    employee = _get_active_employee(employee_id)

    locked = _lock_items([item_id]) if item_id else {}
    item = locked.get(_key(item_id))
    if item is None:
        raise NotFoundError(f"Clothing item {item_id} not found.")
    if item.status != "AVAILABLE":
        logger.warning(
            "Refused to issue %s: status is %s", item.internal_id, item.status
        )
        raise InvalidStateError(
            f"Clothing item {item.internal_id} is not available "
            f"(current status: {item.status})."
        )

    issuer = _get_employee(issuer_id, "Issuer")

    txn = Transaction.objects.create(
        employee=employee,
        clothing_item=item,
        type="ISSUE",
        issued_by=issuer,
        issued_at=timezone.now(),
        condition_on_issue=condition_on_issue,
        notes=notes or "",
    )
    _claim_items([item], employee)

    logger.info(
        "Issued clothing item %s to employee %s", item.internal_id, employee.email
    )
    return _reload([txn.pk])[0]


@_atomic_unit
def issue_bulk(
    employee_id,
    item_ids,
    issuer_id,
    condition_on_issue: str,
    notes: str = "",
) -> list[Transaction]:
    """Issue several items to one employee, all or nothing.

    Transactions are created in the order of ``item_ids``.
    """
    item_ids = _check_ids(item_ids, "clothing item id")
    _check_condition(condition_on_issue, "conditionOnIssue")
    employee = _get_active_employee(employee_id)
    issuer = _get_employee(issuer_id, "Issuer")

    locked = _lock_items(item_ids)
    if len(locked) != len(item_ids):
        missing = [str(i) for i in item_ids if _key(i) not in locked]
        raise NotFoundError(
            f"One or more clothing items not found "
            f"({len(locked)} of {len(item_ids)} found).",
            details={"missing": missing},
        )

    items = [locked[_key(i)] for i in item_ids]
    unavailable = [item for item in items if item.status != "AVAILABLE"]
    if unavailable:
        labels = [item.internal_id for item in unavailable]
        logger.warning("Refused bulk issue, unavailable: %s", labels)
        raise InvalidStateError(
            f"Some items are not available: {', '.join(labels)}",
            details={
                "unavailable": [
                    {"internalId": item.internal_id, "status": item.status}
                    for item in unavailable
                ]
            },
        )

    now = timezone.now()
    created = [
        Transaction.objects.create(
            employee=employee,
            clothing_item=item,
            type="ISSUE",
            issued_by=issuer,
            issued_at=now,
            condition_on_issue=condition_on_issue,
            notes=notes or "",
        )
        for item in items
    ]
    _claim_items(items, employee)

    logger.info(
        "Bulk issued %d items to employee %s", len(created), employee.email
    )
    return _reload([txn.pk for txn in created])


@_atomic_unit
def return_single(
    transaction_id,
    returner_id,
    condition_on_return: str,
    notes: str = "",
) -> Transaction:
    """Take back the item of one open transaction.

    Returns are accepted whether or not the issuance was confirmed.
    """
    _check_condition(condition_on_return, "conditionOnReturn")
    txn = _lock_transactions([transaction_id]).get(_key(transaction_id))
    if txn is None:
        raise NotFoundError(f"Transaction {transaction_id} not found.")
    if txn.returned_at is not None:
        raise AlreadyReturnedError(
            f"Clothing item {txn.clothing_item.internal_id} was already returned."
        )
    returner = _get_employee(returner_id, "Returner")

    _close_transaction(
        txn,
        returner,
        condition_on_return,
        append_note(txn.notes, "Return", notes),
    )
    _release_item(txn, condition_on_return)

    logger.info(
        "Returned clothing item %s from employee %s",
        txn.clothing_item.internal_id,
        txn.employee_id,
    )
    return _reload([txn.pk])[0]


def _lock_open_transactions(transaction_ids) -> list[Transaction]:
    locked = _lock_transactions(transaction_ids)
    if len(locked) != len(transaction_ids):
        missing = [str(t) for t in transaction_ids if _key(t) not in locked]
        raise NotFoundError(
            f"One or more transactions not found "
            f"({len(locked)} of {len(transaction_ids)} found).",
            details={"missing": missing},
        )
    txns = [locked[_key(t)] for t in transaction_ids]
    returned = [t for t in txns if t.returned_at is not None]
    if returned:
        labels = [t.clothing_item.internal_id for t in returned]
        raise AlreadyReturnedError(
            f"Some items are already returned: {', '.join(labels)}",
            details={"alreadyReturned": labels},
        )
    return txns


@_atomic_unit
def return_bulk_uniform(
    transaction_ids,
    returner_id,
    condition_on_return: str,
    notes: str = "",
) -> list[Transaction]:
    """Return several items with one shared condition, all or nothing."""
    transaction_ids = _check_ids(transaction_ids, "transaction id")
    _check_condition(condition_on_return, "conditionOnReturn")
    returner = _get_employee(returner_id, "Returner")
    txns = _lock_open_transactions(transaction_ids)

    for txn in txns:
        _close_transaction(
            txn,
            returner,
            condition_on_return,
            append_note(txn.notes, "Return", notes),
        )
        _release_item(txn, condition_on_return)

    logger.info("Bulk returned %d items", len(txns))
    return _reload([txn.pk for txn in txns])


@_atomic_unit
def return_bulk_individual(
    items,
    returner_id,
    general_notes: str = "",
) -> list[Transaction]:
    """Return several items, each with its own assessed condition."""
    lines = [
        line if isinstance(line, ReturnLine) else ReturnLine(**line)
        for line in (items or [])
    ]
    transaction_ids = _check_ids(
        [line.transaction_id for line in lines], "transaction id"
    )
    for line in lines:
        _check_condition(line.condition_on_return, "conditionOnReturn")
    returner = _get_employee(returner_id, "Returner")
    txns = _lock_open_transactions(transaction_ids)

    for txn, line in zip(txns, lines):
        notes = append_note(txn.notes, "Return (General)", general_notes)
        notes = append_note(notes, "Return (Item)", line.notes)
        _close_transaction(txn, returner, line.condition_on_return, notes)
        _release_item(txn, line.condition_on_return)

    logger.info(
        "Bulk returned %d items with individual condition assessment",
        len(txns),
    )
    return _reload([txn.pk for txn in txns])
