"""Admin configuration for accounts app."""

from unfold.admin import ModelAdmin
from unfold.decorators import display

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import Employee


@admin.register(Employee)
class EmployeeAdmin(UserAdmin, ModelAdmin):
    model = Employee
    list_display = [
        "display_employee",
        "email",
        "department",
        "role",
        "status",
        "is_hidden",
    ]
    list_filter = ["role", "status", "is_hidden", "department"]
    search_fields = [
        "username",
        "email",
        "first_name",
        "last_name",
        "entra_id",
    ]
    fieldsets = (
        (
            "Profile",
            {
                "classes": ["tab"],
                "fields": (
                    "username",
                    "first_name",
                    "last_name",
                    "email",
                    "department",
                    "entra_id",
                ),
            },
        ),
        (
            "Access",
            {
                "classes": ["tab"],
                "fields": (
                    "role",
                    "status",
                    "is_hidden",
                    "is_active",
                    "is_staff",
                    "is_superuser",
                ),
            },
        ),
    )

    @display(description="Employee", ordering="last_name")
    def display_employee(self, obj):
        return obj.get_display_name()
