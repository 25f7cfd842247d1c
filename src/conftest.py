"""Shared pytest fixtures for workwear tests."""

import pytest

from django.conf import settings
from django.test import Client

# Plain storages for tests (no manifest needed for static files)
settings.STORAGES["default"] = {
    "BACKEND": "django.core.files.storage.FileSystemStorage",
}
settings.STORAGES["staticfiles"] = {
    "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
}

# Run Celery tasks synchronously in tests
settings.CELERY_TASK_ALWAYS_EAGER = True
settings.CELERY_TASK_EAGER_PROPAGATES = True

# Use in-memory cache for tests (avoids Redis connection errors)
settings.CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
settings.EMAIL_MODE = "production"
settings.TEST_EMAIL_ADDRESS = ""
settings.SITE_URL = "https://workwear.test"
settings.COMPANY_NAME = "Test GmbH"


@pytest.fixture(autouse=True)
def _clear_cache():
    """Clear the in-memory cache before each test.

    Prevents rate-limit counters (django_ratelimit) from bleeding
    across tests.
    """
    from django.core.cache import cache

    cache.clear()


@pytest.fixture(autouse=True)
def _media_root(settings, tmp_path):
    """Write generated protocols to a per-test directory."""
    settings.MEDIA_ROOT = tmp_path / "media"


from inventory.factories import (  # noqa: E402
    ClothingItemFactory,
    ClothingTypeFactory,
    EmployeeFactory,
)

# --- Employee fixtures ---


@pytest.fixture
def password():
    return "testpass123!"


@pytest.fixture
def admin_user(db, password):
    return EmployeeFactory(
        username="admin",
        email="admin@example.com",
        first_name="Ada",
        last_name="Admin",
        role="ADMIN",
        password=password,
        is_staff=True,
    )


@pytest.fixture
def warehouse_user(db, password):
    return EmployeeFactory(
        username="warehouse",
        email="warehouse@example.com",
        first_name="Wes",
        last_name="Warehouse",
        role="WAREHOUSE",
        password=password,
    )


@pytest.fixture
def hr_user(db, password):
    return EmployeeFactory(
        username="hr",
        email="hr@example.com",
        first_name="Hanna",
        last_name="Resources",
        role="HR",
        password=password,
    )


@pytest.fixture
def employee(db, password):
    """An active READ_ONLY employee who receives workwear."""
    return EmployeeFactory(
        username="max",
        email="max.mustermann@example.com",
        first_name="Max",
        last_name="Mustermann",
        entra_id="entra-max",
        role="READ_ONLY",
        password=password,
    )


@pytest.fixture
def other_employee(db, password):
    return EmployeeFactory(
        username="erika",
        email="erika.musterfrau@example.com",
        first_name="Erika",
        last_name="Musterfrau",
        role="READ_ONLY",
        password=password,
    )


@pytest.fixture
def inactive_employee(db):
    return EmployeeFactory(
        username="former",
        email="former@example.com",
        first_name="Fritz",
        last_name="Former",
        status="LEFT",
    )


# --- Clients ---


def _client_for(user):
    c = Client()
    c.force_login(user)
    return c


@pytest.fixture
def anon_client():
    return Client()


@pytest.fixture
def admin_api(admin_user):
    return _client_for(admin_user)


@pytest.fixture
def warehouse_api(warehouse_user):
    return _client_for(warehouse_user)


@pytest.fixture
def hr_api(hr_user):
    return _client_for(hr_user)


@pytest.fixture
def employee_api(employee):
    return _client_for(employee)


@pytest.fixture
def other_employee_api(other_employee):
    return _client_for(other_employee)


# --- Inventory fixtures ---


@pytest.fixture
def clothing_type(db):
    return ClothingTypeFactory(
        name="Softshell Jacket",
        category="Jacket",
        available_sizes=["S", "M", "L", "XL"],
    )


@pytest.fixture
def trousers_type(db):
    return ClothingTypeFactory(
        name="Work Trousers",
        category="Trousers",
        available_sizes=["48", "50", "52"],
    )


@pytest.fixture
def item(clothing_type):
    return ClothingItemFactory(
        type=clothing_type, size="L", internal_id="CLO-ABC123"
    )


@pytest.fixture
def items(clothing_type, trousers_type):
    return [
        ClothingItemFactory(type=clothing_type, size="M"),
        ClothingItemFactory(type=trousers_type, size="50"),
        ClothingItemFactory(type=clothing_type, size="L"),
    ]
