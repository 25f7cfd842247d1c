"""Admin configuration for the inventory app using django-unfold."""

from unfold.admin import ModelAdmin, TabularInline
from unfold.contrib.filters.admin import (
    ChoicesDropdownFilter,
    RelatedDropdownFilter,
)
from unfold.decorators import action, display

from django.contrib import admin, messages

from .exceptions import InventoryError
from .models import (
    AuditLog,
    ClothingItem,
    ClothingType,
    Confirmation,
    Transaction,
)
from .services import catalog, workflow


@admin.register(ClothingType)
class ClothingTypeAdmin(ModelAdmin):
    list_display = ["name", "category", "expected_lifespan_months", "is_active"]
    list_filter = ["is_active", "category"]
    search_fields = ["name", "category"]


class TransactionInline(TabularInline):
    model = Transaction
    fk_name = "clothing_item"
    extra = 0
    can_delete = False
    fields = [
        "employee",
        "issued_at",
        "condition_on_issue",
        "returned_at",
        "condition_on_return",
    ]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(ClothingItem)
class ClothingItemAdmin(ModelAdmin):
    list_display = [
        "internal_id",
        "type",
        "size",
        "display_status",
        "condition",
        "current_holder",
    ]
    list_filter = [
        ("status", ChoicesDropdownFilter),
        ("condition", ChoicesDropdownFilter),
        ("type", RelatedDropdownFilter),
        "category",
    ]
    search_fields = ["internal_id", "qr_code", "type__name"]
    readonly_fields = [
        "internal_id",
        "qr_code",
        "status",
        "current_holder",
        "retirement_date",
        "created_at",
        "updated_at",
    ]
    inlines = [TransactionInline]
    actions = ["mark_lost", "retire_items"]

    @display(
        description="Status",
        label={
            "AVAILABLE": "success",
            "PENDING": "warning",
            "ISSUED": "info",
            "IN_USE": "info",
            "RETURNED": "default",
            "RETIRED": "default",
            "LOST": "danger",
        },
    )
    def display_status(self, obj):
        return obj.status

    def _apply(self, request, queryset, func, verb):
        done = 0
        for item in queryset:
            try:
                func(item)
                done += 1
            except InventoryError as exc:
                messages.error(request, exc.message)
        if done:
            messages.success(request, f"{done} item(s) {verb}.")

    @action(description="Mark selected items as lost")
    def mark_lost(self, request, queryset):
        self._apply(
            request,
            queryset,
            lambda item: catalog.transition_item(
                item, "LOST", request.user, request
            ),
            "marked as lost",
        )

    @action(description="Retire selected items")
    def retire_items(self, request, queryset):
        self._apply(
            request,
            queryset,
            lambda item: catalog.retire_item(
                item, "Retired in admin", request.user, request
            ),
            "retired",
        )


@admin.register(Transaction)
class TransactionAdmin(ModelAdmin):
    list_display = [
        "clothing_item",
        "employee",
        "issued_at",
        "display_returned",
        "issued_by",
    ]
    list_filter = [
        ("type", ChoicesDropdownFilter),
        ("employee", RelatedDropdownFilter),
    ]
    search_fields = [
        "clothing_item__internal_id",
        "employee__email",
        "employee__last_name",
        "notes",
    ]
    date_hierarchy = "issued_at"
    readonly_fields = [
        "employee",
        "clothing_item",
        "type",
        "issued_at",
        "issued_by",
        "condition_on_issue",
        "returned_at",
        "returned_by",
        "condition_on_return",
        "notes",
    ]

    @display(description="Returned", boolean=True)
    def display_returned(self, obj):
        return obj.is_returned

    def has_add_permission(self, request):
        return False


@admin.register(Confirmation)
class ConfirmationAdmin(ModelAdmin):
    list_display = [
        "employee",
        "protocol_type",
        "display_state",
        "email_sent",
        "expires_at",
        "created_at",
    ]
    list_filter = ["confirmed", "email_sent", "protocol_type"]
    search_fields = ["employee__email", "employee__last_name", "token"]
    exclude = ["token"]
    readonly_fields = [
        "employee",
        "protocol_type",
        "items_json",
        "confirmed",
        "confirmed_at",
        "confirmed_by",
        "ip_address",
        "user_agent",
        "expires_at",
        "protocol_file_path",
        "email_sent",
        "email_sent_at",
        "email_error",
    ]
    actions = ["resend_email"]

    @display(
        description="State",
        label={
            "Confirmed": "success",
            "Pending": "warning",
            "Expired": "danger",
        },
    )
    def display_state(self, obj):
        if obj.confirmed:
            return "Confirmed"
        return "Expired" if obj.is_expired else "Pending"

    @action(description="Resend confirmation email")
    def resend_email(self, request, queryset):
        from .services.confirmations import transaction_ids_of

        for confirmation in queryset:
            ids = transaction_ids_of(confirmation)
            if not ids:
                continue
            try:
                workflow.resend_confirmation(ids[0])
            except InventoryError as exc:
                messages.error(request, f"{confirmation}: {exc.message}")
            else:
                messages.success(request, f"Resent {confirmation}.")

    def has_add_permission(self, request):
        return False


@admin.register(AuditLog)
class AuditLogAdmin(ModelAdmin):
    list_display = ["timestamp", "entity_type", "entity_id", "action", "performed_by"]
    list_filter = ["entity_type", "action"]
    search_fields = ["entity_id"]
    readonly_fields = [
        "entity_type",
        "entity_id",
        "action",
        "changes",
        "performed_by",
        "ip_address",
        "user_agent",
        "timestamp",
    ]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
