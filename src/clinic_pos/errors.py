"""Domain exceptions raised by the inventory ledger and the sale engine.

Every exception keeps the identifiers and quantities involved as attributes
so callers can render a message without parsing ``str(error)``.
"""

from __future__ import annotations


class BusinessRuleViolation(Exception):
    """Raised when a requested operation violates a domain constraint."""


class MissingReferenceError(BusinessRuleViolation):
    """Raised when a referenced medicine, customer, or notification is unknown."""


class InvalidCustomerError(MissingReferenceError):
    """Raised when a sale names a customer that does not exist."""

    def __init__(self, customer_id: str) -> None:
        self.customer_id = customer_id
        super().__init__(f"Unknown customer id: {customer_id}")


class UnknownMedicineError(MissingReferenceError):
    """Raised when a sale line or stock adjustment names an unknown medicine."""

    def __init__(self, medicine_id: str) -> None:
        self.medicine_id = medicine_id
        super().__init__(f"Unknown medicine id: {medicine_id}")


class EmptySaleError(BusinessRuleViolation):
    """Raised when a sale is submitted without any line items."""

    def __init__(self) -> None:
        super().__init__("A sale must contain at least one item")


class InsufficientStockError(BusinessRuleViolation):
    """Raised when stock cannot cover a requested quantity."""

    def __init__(self, medicine_id: str, medicine_name: str, required: int, available: int) -> None:
        self.medicine_id = medicine_id
        self.medicine_name = medicine_name
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient stock for {medicine_name} ({medicine_id}): "
            f"required {required}, available {available}"
        )


__all__ = [
    "BusinessRuleViolation",
    "MissingReferenceError",
    "InvalidCustomerError",
    "UnknownMedicineError",
    "EmptySaleError",
    "InsufficientStockError",
]
