"""Factory Boy factories for workwear test data generation."""

import secrets
from datetime import timedelta

import factory
from factory.django import DjangoModelFactory

from django.utils import timezone


class EmployeeFactory(DjangoModelFactory):
    """Factory for the Employee user model."""

    class Meta:
        model = "accounts.Employee"
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"employee{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    first_name = factory.Faker("first_name")
    last_name = factory.Faker("last_name")
    entra_id = factory.Sequence(lambda n: f"entra-{n:08d}")
    department = "Logistics"
    role = "READ_ONLY"
    status = "ACTIVE"
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        pwd = extracted or "testpass123!"
        self.set_password(pwd)
        if create:
            self.save(update_fields=["password"])


class ClothingTypeFactory(DjangoModelFactory):
    """Factory for ClothingType model."""

    class Meta:
        model = "inventory.ClothingType"

    name = factory.Sequence(lambda n: f"Softshell Jacket {n}")
    category = "Jacket"
    available_sizes = ["S", "M", "L", "XL"]
    expected_lifespan_months = 24


class ClothingItemFactory(DjangoModelFactory):
    """Factory for ClothingItem model.

    Does NOT set internal_id or qr_code; ClothingItem.save() generates them.
    """

    class Meta:
        model = "inventory.ClothingItem"

    type = factory.SubFactory(ClothingTypeFactory)
    size = "M"
    category = "POOL"
    condition = "NEW"
    status = "AVAILABLE"


class TransactionFactory(DjangoModelFactory):
    """Factory for an open ISSUE transaction.

    The item is put into PENDING with the employee as holder, matching what
    the issuance service leaves behind.
    """

    class Meta:
        model = "inventory.Transaction"

    employee = factory.SubFactory(EmployeeFactory)
    clothing_item = factory.SubFactory(
        ClothingItemFactory,
        status="PENDING",
        current_holder=factory.SelfAttribute("..employee"),
    )
    issued_by = factory.SubFactory(EmployeeFactory, role="WAREHOUSE")
    type = "ISSUE"
    condition_on_issue = "NEW"


class ConfirmationFactory(DjangoModelFactory):
    """Factory for an unconfirmed Confirmation.

    Pass ``transactions`` to cover them:
    ``ConfirmationFactory(transactions=[txn])``.
    """

    class Meta:
        model = "inventory.Confirmation"

    class Params:
        transactions = []

    employee = factory.SubFactory(EmployeeFactory)
    token = factory.LazyFunction(lambda: secrets.token_hex(32))
    protocol_type = "SINGLE"
    items_json = factory.LazyAttribute(
        lambda o: {
            "items": [
                {
                    "quantity": 1,
                    "name": t.clothing_item.type.name,
                    "size": t.clothing_item.size,
                    "category": t.clothing_item.type.category,
                    "imageUrl": None,
                }
                for t in o.transactions
            ],
            "transactionIds": [str(t.pk) for t in o.transactions],
        }
    )
    expires_at = factory.LazyFunction(lambda: timezone.now() + timedelta(days=7))
