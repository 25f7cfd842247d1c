"""Domain errors raised by the inventory services.

Each error carries the HTTP status and machine-readable code the API layer
responds with, so views never need to translate messages themselves.
"""


class InventoryError(Exception):
    """Base class for all domain errors."""

    status_code = 400
    code = "INVENTORY_ERROR"

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidInputError(InventoryError):
    status_code = 400
    code = "INVALID_INPUT"


class NotFoundError(InventoryError):
    """Employee, item, transaction or confirmation token does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class InvalidStateError(InventoryError):
    """A precondition on the current state of a record was violated."""

    status_code = 409
    code = "INVALID_STATE"


class AlreadyReturnedError(InvalidStateError):
    code = "ALREADY_RETURNED"


class ConfirmationRequiredError(InventoryError):
    """Issue protocol requested before the employee confirmed receipt."""

    status_code = 403
    code = "CONFIRMATION_REQUIRED"


class ExpiredError(InventoryError):
    status_code = 410
    code = "EXPIRED"


class AlreadyConfirmedError(InventoryError):
    """Only raised when re-confirming is explicitly disallowed."""

    status_code = 409
    code = "ALREADY_CONFIRMED"


class InfrastructureError(InventoryError):
    """Storage failure inside an atomic unit; the unit was rolled back."""

    status_code = 500
    code = "INFRASTRUCTURE_ERROR"
