"""Employee model for the workwear backend."""

from django.contrib.auth.models import AbstractUser
from django.db import models


class Employee(AbstractUser):
    """Employee record, also used as the login identity.

    Accounts are provisioned from Microsoft Entra ID; ``entra_id`` holds the
    directory object id so a signed-in user can be matched to the employee
    a confirmation was issued to.
    """

    ROLE_CHOICES = [
        ("ADMIN", "Administrator"),
        ("WAREHOUSE", "Warehouse"),
        ("HR", "Human Resources"),
        ("READ_ONLY", "Read only"),
    ]

    STATUS_CHOICES = [
        ("ACTIVE", "Active"),
        ("INACTIVE", "Inactive"),
        ("LEFT", "Left the company"),
    ]

    email = models.EmailField("email address", blank=False, unique=True)
    entra_id = models.CharField(
        max_length=64,
        unique=True,
        null=True,
        blank=True,
        help_text="Object id of the employee in Microsoft Entra ID",
    )
    department = models.CharField(max_length=200, blank=True, default="")
    role = models.CharField(
        max_length=20, choices=ROLE_CHOICES, default="READ_ONLY"
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="ACTIVE"
    )
    is_hidden = models.BooleanField(
        default=False,
        help_text="Hide from employee pickers (service accounts etc.)",
    )

    class Meta:
        verbose_name = "employee"
        verbose_name_plural = "employees"
        ordering = ["last_name", "first_name"]

    @property
    def is_active_employee(self):
        return self.status == "ACTIVE"

    def get_display_name(self):
        """Return the full name, falling back to the username."""
        full = self.get_full_name()
        return full if full else self.username

    def __str__(self):
        return self.get_display_name()
