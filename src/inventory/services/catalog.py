"""Clothing item catalog: creation, status state machine, retirement."""

import logging

from django.core.exceptions import ValidationError
from django.db import transaction as db_transaction
from django.db.models import Count
from django.utils import timezone

from ..exceptions import InvalidInputError, InvalidStateError, NotFoundError
from ..models import ClothingItem, ClothingType, Transaction
from . import audit

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 100


def get_item(item_id) -> ClothingItem:
    try:
        return ClothingItem.objects.select_related("type").get(pk=item_id)
    except (ClothingItem.DoesNotExist, ValidationError):
        raise NotFoundError(f"Clothing item {item_id} not found.")


def create_items(
    clothing_type: ClothingType,
    size: str,
    category: str = "POOL",
    condition: str = "NEW",
    quantity: int = 1,
    personalized_for=None,
    purchase_date=None,
    purchase_price=None,
    image_url: str = "",
    performed_by=None,
) -> list[ClothingItem]:
    """Create ``quantity`` AVAILABLE items of one type and size."""
    if not 1 <= quantity <= MAX_BATCH_SIZE:
        raise InvalidInputError(
            f"Quantity must be between 1 and {MAX_BATCH_SIZE}."
        )
    if category not in dict(ClothingItem.CATEGORY_CHOICES):
        raise InvalidInputError(f"'{category}' is not a valid category.")
    if condition not in dict(ClothingItem.CONDITION_CHOICES):
        raise InvalidInputError(f"'{condition}' is not a valid condition.")

    items = []
    with db_transaction.atomic():
        for _ in range(quantity):
            item = ClothingItem.objects.create(
                type=clothing_type,
                size=size,
                category=category,
                condition=condition,
                status="AVAILABLE",
                personalized_for=personalized_for,
                purchase_date=purchase_date or timezone.localdate(),
                purchase_price=purchase_price,
                image_url=image_url,
            )
            items.append(item)

    for item in items:
        audit.record(
            "ClothingItem",
            item.pk,
            "CREATE",
            [
                audit.FieldChange("internal_id", None, item.internal_id),
                audit.FieldChange("type", None, clothing_type.name),
                audit.FieldChange("size", None, size),
                audit.FieldChange("status", None, item.status),
            ],
            performed_by=performed_by,
        )
    logger.info(
        "Created %d clothing item(s) of type %s", len(items), clothing_type
    )
    return items


def validate_transition(item: ClothingItem, new_status: str) -> None:
    """Raise InvalidStateError if the administrative transition is not allowed."""
    if new_status == item.status:
        return

    if new_status not in dict(ClothingItem.STATUS_CHOICES):
        raise InvalidInputError(f"'{new_status}' is not a valid status.")

    if not item.can_transition_to(new_status):
        allowed = ClothingItem.VALID_TRANSITIONS.get(item.status, [])
        raise InvalidStateError(
            f"Cannot change status of {item.internal_id} from "
            f"'{item.status}' to '{new_status}'. Allowed transitions: "
            f"{', '.join(allowed) or 'none'}."
        )


def transition_item(
    item: ClothingItem, new_status: str, performed_by=None, request=None
) -> ClothingItem:
    """Administrative status change, e.g. marking an item LOST.

    The holder is kept while the item stays in a held status and cleared
    otherwise.
    """
    validate_transition(item, new_status)
    if new_status == item.status:
        return item
    old_status = item.status
    old_holder = item.current_holder_id

    item.status = new_status
    if new_status not in ClothingItem.HELD_STATUSES:
        item.current_holder = None
    item.full_clean()
    item.save(update_fields=["status", "current_holder", "updated_at"])

    changes = [audit.FieldChange("status", old_status, new_status)]
    if old_holder != item.current_holder_id:
        changes.append(
            audit.FieldChange("current_holder", old_holder, item.current_holder_id)
        )
    audit.record(
        "ClothingItem",
        item.pk,
        "STATUS_CHANGE",
        changes,
        performed_by=performed_by,
        request=request,
    )
    logger.info(
        "Item %s status changed %s -> %s", item.internal_id, old_status, new_status
    )
    return item


def retire_item(
    item: ClothingItem, reason: str = "", performed_by=None, request=None
) -> ClothingItem:
    """Take an item out of circulation. LOST items cannot be retired."""
    if item.is_held:
        raise InvalidStateError(
            f"Item {item.internal_id} is currently issued "
            f"(status: {item.status}). Return it before retiring."
        )
    validate_transition(item, "RETIRED")
    updates = {
        "status": "RETIRED",
        "condition": "RETIRED",
        "retirement_reason": reason or "Retired by user",
    }
    changes = audit.diff_fields(item, updates)
    for field, value in updates.items():
        setattr(item, field, value)
    item.current_holder = None
    item.retirement_date = timezone.now()
    item.save(
        update_fields=[
            "status",
            "condition",
            "current_holder",
            "retirement_date",
            "retirement_reason",
            "updated_at",
        ]
    )
    audit.record(
        "ClothingItem",
        item.pk,
        "RETIRE",
        changes,
        performed_by=performed_by,
        request=request,
    )
    logger.info("Retired item %s", item.internal_id)
    return item


def permanently_delete_item(item: ClothingItem, performed_by=None, request=None):
    """Hard-delete a retired item that no transaction references."""
    if item.status != "RETIRED":
        raise InvalidStateError(
            f"Only retired items can be deleted permanently; "
            f"{item.internal_id} is {item.status}. Retire it first."
        )
    txn_count = Transaction.objects.filter(clothing_item=item).count()
    if txn_count:
        raise InvalidStateError(
            f"Item {item.internal_id} cannot be deleted because "
            f"{txn_count} transaction(s) reference it."
        )
    item_pk, internal_id = item.pk, item.internal_id
    audit.record(
        "ClothingItem",
        item_pk,
        "PERMANENT_DELETE",
        [audit.FieldChange("internal_id", internal_id, None)],
        performed_by=performed_by,
        request=request,
    )
    item.delete()
    logger.info("Permanently deleted item %s", internal_id)


def promote_confirmed_items(transaction_ids) -> int:
    """Move PENDING items of open transactions to ISSUED.

    Items that have meanwhile been returned or changed are left alone.
    Returns the number of items promoted.
    """
    item_ids = Transaction.objects.filter(
        pk__in=list(transaction_ids), returned_at__isnull=True
    ).values_list("clothing_item_id", flat=True)
    promoted = ClothingItem.objects.filter(
        pk__in=list(item_ids), status="PENDING"
    ).update(status="ISSUED", updated_at=timezone.now())
    logger.info("Promoted %d item(s) from PENDING to ISSUED", promoted)
    return promoted


def item_stats() -> dict:
    def grouped(field):
        return [
            {field: row[field], "count": row["count"]}
            for row in ClothingItem.objects.values(field)
            .annotate(count=Count("pk"))
            .order_by(field)
        ]

    by_status = grouped("status")
    counts = {row["status"]: row["count"] for row in by_status}
    return {
        "total": ClothingItem.objects.count(),
        "available": counts.get("AVAILABLE", 0),
        "pending": counts.get("PENDING", 0),
        "issued": counts.get("ISSUED", 0) + counts.get("IN_USE", 0),
        "retired": counts.get("RETIRED", 0),
        "byStatus": by_status,
        "byCategory": grouped("category"),
        "byCondition": grouped("condition"),
    }
