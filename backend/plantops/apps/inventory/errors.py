from __future__ import annotations


class InventoryError(Exception):
    """Base for every failure the ledger reports to callers.

    ``status_code`` is the HTTP status the API layer renders it with.
    """

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidArgument(InventoryError):
    status_code = 400


class MissingWarehouse(InvalidArgument):
    def __init__(self, message: str = "Warehouse must be specified for fulfillment") -> None:
        super().__init__(message)


class Conflict(InventoryError):
    status_code = 409


class NotFound(InventoryError):
    status_code = 404


class InvalidTransition(InventoryError):
    status_code = 400


class InsufficientQuantity(InventoryError):
    status_code = 400


class NotAvailable(InventoryError):
    status_code = 400


class InternalError(InventoryError):
    status_code = 500
