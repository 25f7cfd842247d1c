"""Models for workwear inventory, issuance ledger and confirmations."""

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import IntegrityError, models
from django.db import transaction as db_transaction
from django.utils import timezone

CONDITION_CHOICES = [
    ("NEW", "New"),
    ("GOOD", "Good"),
    ("WORN", "Worn"),
    ("RETIRED", "Retired"),
]


class ClothingType(models.Model):
    """A kind of garment, e.g. a softshell jacket or safety trousers."""

    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    category = models.CharField(
        max_length=100,
        help_text="Grouping shown in lists and emails (e.g. 'Jacket')",
    )
    available_sizes = models.JSONField(default=list, blank=True)
    expected_lifespan_months = models.PositiveIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(240)],
    )
    image_url = models.CharField(max_length=500, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class ClothingItem(models.Model):
    """A single physical garment tracked through its possession lifecycle."""

    CATEGORY_CHOICES = [
        ("PERSONALIZED", "Personalized"),
        ("POOL", "Pool"),
    ]

    CONDITION_CHOICES = CONDITION_CHOICES

    STATUS_CHOICES = [
        ("AVAILABLE", "Available"),
        ("PENDING", "Pending confirmation"),
        ("ISSUED", "Issued"),
        ("IN_USE", "In use"),
        ("RETURNED", "Returned"),
        ("RETIRED", "Retired"),
        ("LOST", "Lost"),
    ]

    # Statuses in which the item is with an employee
    HELD_STATUSES = ("PENDING", "ISSUED", "IN_USE")

    # Administrative transitions: from_status -> [to_statuses].
    # RETIRED and LOST are terminal; a RETIRED item can only be deleted.
    # Issue (AVAILABLE -> PENDING) and return (held -> AVAILABLE) only go
    # through the issuance service.
    VALID_TRANSITIONS = {
        "AVAILABLE": ["RETIRED", "LOST"],
        "PENDING": ["ISSUED", "LOST"],
        "ISSUED": ["IN_USE", "LOST"],
        "IN_USE": ["ISSUED", "LOST"],
        "RETURNED": ["AVAILABLE", "RETIRED", "LOST"],
        "RETIRED": [],
        "LOST": [],
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    internal_id = models.CharField(max_length=32, unique=True, blank=True)
    qr_code = models.CharField(max_length=32, unique=True, blank=True)
    type = models.ForeignKey(
        ClothingType, on_delete=models.PROTECT, related_name="items"
    )
    size = models.CharField(max_length=20)
    category = models.CharField(
        max_length=20, choices=CATEGORY_CHOICES, default="POOL"
    )
    condition = models.CharField(
        max_length=20, choices=CONDITION_CHOICES, default="NEW"
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="AVAILABLE"
    )
    current_holder = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="held_items",
    )
    personalized_for = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="personalized_items",
    )
    image_url = models.CharField(max_length=500, blank=True)
    purchase_date = models.DateField(null=True, blank=True)
    purchase_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    retirement_date = models.DateTimeField(null=True, blank=True)
    retirement_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="idx_item_status"),
            models.Index(fields=["condition"], name="idx_item_condition"),
        ]

    def __str__(self):
        return f"{self.type.name} {self.size} ({self.internal_id})"

    def save(self, *args, **kwargs):
        if not self.qr_code:
            self.qr_code = uuid.uuid4().hex[:16].upper()
        if not self.internal_id:
            self.internal_id = self._generate_internal_id()
        max_attempts = 5
        for attempt in range(max_attempts):
            try:
                with db_transaction.atomic():
                    super().save(*args, **kwargs)
                break
            except IntegrityError:
                if attempt >= max_attempts - 1 or not self._state.adding:
                    raise
                # Identifier collision, regenerate and retry
                self.internal_id = self._generate_internal_id()
                self.qr_code = uuid.uuid4().hex[:16].upper()

    def clean(self):
        super().clean()
        if self.status in self.HELD_STATUSES and not self.current_holder_id:
            raise ValidationError(
                {
                    "current_holder": (
                        f"An item with status {self.status} must have a "
                        f"current holder."
                    )
                }
            )
        if self.status not in self.HELD_STATUSES and self.current_holder_id:
            raise ValidationError(
                {
                    "current_holder": (
                        f"An item with status {self.status} cannot have a "
                        f"current holder."
                    )
                }
            )

    def can_transition_to(self, new_status):
        """Check if an administrative status transition is valid."""
        return new_status in self.VALID_TRANSITIONS.get(self.status, [])

    @property
    def is_held(self):
        return self.status in self.HELD_STATUSES

    @staticmethod
    def _generate_internal_id():
        return f"CLO-{uuid.uuid4().hex[:8].upper()}"


class Transaction(models.Model):
    """One issue cycle of an item to an employee.

    The return is recorded on the same row; once ``returned_at`` is set
    the transaction is closed for good.
    """

    TYPE_CHOICES = [
        ("ISSUE", "Issue"),
        ("RETURN", "Return"),
    ]

    CONDITION_CHOICES = CONDITION_CHOICES

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    employee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="transactions",
        help_text="The employee the item was issued to",
    )
    clothing_item = models.ForeignKey(
        ClothingItem, on_delete=models.PROTECT, related_name="transactions"
    )
    type = models.CharField(
        max_length=10, choices=TYPE_CHOICES, default="ISSUE"
    )
    issued_at = models.DateTimeField(default=timezone.now)
    issued_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="issued_transactions",
    )
    condition_on_issue = models.CharField(
        max_length=20, choices=CONDITION_CHOICES
    )
    returned_at = models.DateTimeField(null=True, blank=True)
    returned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="returned_transactions",
    )
    condition_on_return = models.CharField(
        max_length=20, choices=CONDITION_CHOICES, blank=True
    )
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-issued_at"]
        indexes = [
            models.Index(fields=["issued_at"], name="idx_txn_issued_at"),
            models.Index(fields=["returned_at"], name="idx_txn_returned_at"),
        ]

    def __str__(self):
        return f"{self.clothing_item.internal_id} - {self.get_type_display()} to {self.employee}"

    @property
    def is_returned(self):
        return self.returned_at is not None


class Confirmation(models.Model):
    """Token-gated acknowledgment of receipt by an employee.

    ``items_json`` holds ``{"items": [...], "transactionIds": [...]}``: the
    items as shown to the employee at issue time and the transactions the
    confirmation covers. It is a snapshot and is never re-derived from the
    live item records.
    """

    PROTOCOL_TYPE_CHOICES = [
        ("SINGLE", "Single issue"),
        ("BULK_ISSUE", "Bulk issue"),
        ("BULK_RETURN", "Bulk return"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    token = models.CharField(max_length=128, unique=True)
    employee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="confirmations",
    )
    protocol_type = models.CharField(
        max_length=20, choices=PROTOCOL_TYPE_CHOICES
    )
    items_json = models.JSONField(default=dict)
    confirmed = models.BooleanField(default=False)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    confirmed_by = models.CharField(
        max_length=150,
        blank=True,
        help_text="Entra ID (or username) of the person who confirmed",
    )
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True)
    expires_at = models.DateTimeField()
    protocol_file_path = models.CharField(max_length=500, blank=True)
    email_sent = models.BooleanField(default=False)
    email_sent_at = models.DateTimeField(null=True, blank=True)
    email_error = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["employee", "confirmed"],
                name="idx_confirmation_emp_conf",
            ),
        ]

    def __str__(self):
        return f"{self.get_protocol_type_display()} for {self.employee}"

    @property
    def is_expired(self):
        return timezone.now() > self.expires_at


class AuditLog(models.Model):
    """Append-only record of administrative changes."""

    entity_type = models.CharField(max_length=50)
    entity_id = models.CharField(max_length=64)
    action = models.CharField(max_length=50)
    changes = models.JSONField(default=list, blank=True)
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_entries",
    )
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True)
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-timestamp"]
        indexes = [
            models.Index(
                fields=["entity_type", "entity_id"],
                name="idx_audit_entity",
            ),
        ]

    def __str__(self):
        return f"{self.entity_type} {self.entity_id}: {self.action}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError(
                "Audit entries are immutable and cannot be modified."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Audit entries are immutable and cannot be deleted.")
