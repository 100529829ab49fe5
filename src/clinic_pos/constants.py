"""Enumerations and layout constants shared across the clinic POS modules.

The storage layer, the business layer, and the alert engine all agree on
worksheet names, column orderings, and the vocabulary used for payment
methods and notifications through this module.
"""

from __future__ import annotations

from enum import Enum
from typing import Mapping, Sequence


# Workbook layout version; bump whenever SHEET_COLUMNS changes.
EXPECTED_SCHEMA_VERSION = "1.0.0"

DEFAULT_EXPIRY_HORIZON_DAYS = 30
DEFAULT_PATIENT_ID_PREFIX = "GN"

LOW_STOCK_TITLE = "Low Stock Alert"
EXPIRY_TITLE = "Expiry Alert"

DEFAULT_CATEGORIES: tuple[str, ...] = (
    "Antibiotics",
    "Analgesics",
    "Antacids",
    "Antihistamines",
    "Antiseptics",
    "Cardiovascular",
    "Dermatology",
    "Diabetes",
    "Gastroenterology",
    "Neurology",
    "Ophthalmology",
    "Orthopedics",
    "Pediatrics",
    "Respiratory",
    "Vitamins & Supplements",
    "Others",
)


class PaymentMethod(str, Enum):
    """Enumerate the tender types accepted at the counter."""

    CASH = "Cash"
    CARD = "Card"
    UPI = "UPI"


class SaleStatus(str, Enum):
    """Lifecycle states a committed sale can carry."""

    COMPLETED = "Completed"


class NotificationType(str, Enum):
    """Severity-like category shown next to a notification."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


class AlertKind(str, Enum):
    """Structured key identifying which reconciliation rule raised an alert."""

    LOW_STOCK = "LOW_STOCK"
    EXPIRY = "EXPIRY"


class SheetName(str, Enum):
    """Enumerate the workbook sheet names managed by the data layer."""

    MEDICINES = "Medicines"
    CUSTOMERS = "Customers"
    SALES = "Sales"
    SALE_ITEMS = "SaleItems"
    NOTIFICATIONS = "Notifications"


SHEET_COLUMNS: Mapping[str, Sequence[str]] = {
    SheetName.MEDICINES.value: (
        "MedicineID",
        "Name",
        "Category",
        "Manufacturer",
        "BatchNumber",
        "ExpiryDate",
        "Quantity",
        "MinQuantity",
        "PurchasePrice",
        "SellingPrice",
        "Description",
        "CreatedAt",
    ),
    SheetName.CUSTOMERS.value: (
        "CustomerID",
        "PatientID",
        "Name",
        "Phone",
        "Email",
        "Address",
        "DateOfBirth",
        "Gender",
        "EmergencyContact",
        "MedicalHistory",
        "Allergies",
        "CreatedAt",
    ),
    SheetName.SALES.value: (
        "SaleID",
        "CreatedAt",
        "CustomerID",
        "CustomerName",
        "Subtotal",
        "TaxRate",
        "Tax",
        "ConsultationCharge",
        "Total",
        "PaymentMethod",
        "Status",
    ),
    SheetName.SALE_ITEMS.value: (
        "SaleID",
        "LineNumber",
        "MedicineID",
        "MedicineName",
        "Quantity",
        "UnitPrice",
        "LineTotal",
    ),
    SheetName.NOTIFICATIONS.value: (
        "NotificationID",
        "Title",
        "Message",
        "Type",
        "IsRead",
        "CreatedAt",
        "AlertKind",
        "MedicineID",
    ),
}


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "DEFAULT_EXPIRY_HORIZON_DAYS",
    "DEFAULT_PATIENT_ID_PREFIX",
    "DEFAULT_CATEGORIES",
    "LOW_STOCK_TITLE",
    "EXPIRY_TITLE",
    "PaymentMethod",
    "SaleStatus",
    "NotificationType",
    "AlertKind",
    "SheetName",
    "SHEET_COLUMNS",
]
