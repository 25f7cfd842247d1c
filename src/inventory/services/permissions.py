"""Role checks for the four static roles."""

from django.contrib.auth import get_user_model

User = get_user_model()

ISSUING_ROLES = ("ADMIN", "WAREHOUSE", "HR")
CATALOG_ROLES = ("ADMIN", "WAREHOUSE")


def get_user_role(user: User) -> str:
    """Return one of 'ADMIN', 'WAREHOUSE', 'HR' or 'READ_ONLY'.

    Superusers are always treated as ADMIN.
    """
    if user.is_superuser:
        return "ADMIN"
    return getattr(user, "role", "READ_ONLY") or "READ_ONLY"


def can_issue(user: User) -> bool:
    """Check if the user can issue and take back items."""
    return get_user_role(user) in ISSUING_ROLES


def can_manage_catalog(user: User) -> bool:
    """Check if the user can create and retire items."""
    return get_user_role(user) in CATALOG_ROLES


def can_administer(user: User) -> bool:
    return get_user_role(user) == "ADMIN"


def is_read_only(user: User) -> bool:
    return get_user_role(user) == "READ_ONLY"
