"""Data access layer for the clinic POS workbook.

This module provides low-level helpers that read from and write to the clinic
Excel workbook. Business logic belongs elsewhere.

The public API is designed around three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening, saving (atomically), and reloading the file.
3. Collection storage: every entity collection (medicines, customers, sales,
   notifications) is loaded as an ordered list of frozen dataclasses and saved
   back by fully replacing the rows of its worksheet.
"""


from __future__ import annotations

import configparser
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from openpyxl.workbook import Workbook
import openpyxl

from . import log
from .constants import (
    DEFAULT_CATEGORIES,
    DEFAULT_EXPIRY_HORIZON_DAYS,
    DEFAULT_PATIENT_ID_PREFIX,
    SheetName,
)


CONFIG_FILE_NAME = "config.ini"
MEDICINES_SHEET = SheetName.MEDICINES.value
CUSTOMERS_SHEET = SheetName.CUSTOMERS.value
SALES_SHEET = SheetName.SALES.value
SALE_ITEMS_SHEET = SheetName.SALE_ITEMS.value
NOTIFICATIONS_SHEET = SheetName.NOTIFICATIONS.value


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    clinic_name: str
    schema_version: str
    tax_rate: Decimal = Decimal("0")
    consultation_charge: Decimal = Decimal("0")
    currency: str = "INR"
    low_stock_alerts: bool = True
    expiry_alerts: bool = True
    expiry_horizon_days: int = DEFAULT_EXPIRY_HORIZON_DAYS
    categories: tuple[str, ...] = DEFAULT_CATEGORIES
    patient_id_prefix: str = DEFAULT_PATIENT_ID_PREFIX


@dataclass(frozen=True)
class MedicineRow:
    """In-memory view of a row from the ``Medicines`` sheet."""

    medicine_id: str
    name: str
    category: str
    manufacturer: str
    batch_number: str
    expiry_date: date
    quantity: int
    min_quantity: int
    purchase_price: Decimal
    selling_price: Decimal
    description: Optional[str]
    created_at_iso: str


@dataclass(frozen=True)
class CustomerRow:
    """In-memory view of a row from the ``Customers`` sheet."""

    customer_id: str
    patient_id: str
    name: str
    phone: str
    email: str
    address: str
    date_of_birth: Optional[str]
    gender: str
    emergency_contact: Optional[str]
    medical_history: Optional[str]
    allergies: Optional[str]
    created_at_iso: str


@dataclass(frozen=True)
class SaleItemRow:
    """One line of a sale, stored on the ``SaleItems`` sheet."""

    medicine_id: str
    medicine_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class SaleRow:
    """A committed sale with its ordered line items."""

    sale_id: str
    created_at_iso: str
    customer_id: str
    customer_name: str
    items: tuple[SaleItemRow, ...]
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    consultation_charge: Decimal
    total: Decimal
    payment_method: str
    status: str


@dataclass(frozen=True)
class NotificationRow:
    """In-memory view of a row from the ``Notifications`` sheet.

    ``alert_kind`` and ``medicine_id`` are only populated for alerts raised by
    the reconciliation engine; manual messages leave both as ``None``.
    """

    notification_id: str
    title: str
    message: str
    notification_type: str
    is_read: bool
    created_at_iso: str
    alert_kind: Optional[str] = None
    medicine_id: Optional[str] = None


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. Otherwise the function walks up from the current
    working directory toward the filesystem root looking for
    ``CONFIG_FILE_NAME``; the first match is authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The explicit path or the discovered configuration file.

    Raises:
        FileNotFoundError: If no parent directory contains ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Args:
        config_path (Path): Path to the configuration file, relative or
            absolute. ``~`` is expanded.

    Returns:
        configparser.ConfigParser: Parser holding the raw configuration data.
            Validation of required entries happens in :func:`parse_settings`.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")
    return parser


def _parse_decimal_option(parser: configparser.ConfigParser, section: str, option: str, default: str) -> Decimal:
    raw = parser.get(section, option, fallback=default)
    try:
        return Decimal(raw.strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid number for [{section}] {option}: {raw!r}") from exc


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    ``[System]`` is mandatory. ``[Billing]``, ``[Alerts]``, ``[Catalog]`` and
    ``[Customers]`` are optional and fall back to the clinic defaults.
    Relative ``DataFile`` entries are anchored at ``base_path`` (or the
    current working directory) and resolved.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Anchor for a relative ``DataFile``.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If a required ``[System]`` option is missing.
        ValueError: If an optional numeric or boolean option is malformed.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        clinic_name = parser.get("System", "ClinicName")
        schema_version = parser.get("System", "SchemaVersion")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    tax_rate = _parse_decimal_option(parser, "Billing", "TaxRate", "0")
    consultation_charge = _parse_decimal_option(parser, "Billing", "ConsultationCharge", "0")
    currency = parser.get("Billing", "Currency", fallback="INR").strip()

    low_stock_alerts = parser.getboolean("Alerts", "LowStockAlert", fallback=True)
    expiry_alerts = parser.getboolean("Alerts", "ExpiryAlert", fallback=True)
    expiry_horizon_days = parser.getint(
        "Alerts", "ExpiryHorizonDays", fallback=DEFAULT_EXPIRY_HORIZON_DAYS)

    categories_raw = parser.get("Catalog", "Categories", fallback="")
    categories = tuple(item.strip() for item in categories_raw.split(",") if item.strip())

    patient_id_prefix = parser.get(
        "Customers", "PatientIdPrefix", fallback=DEFAULT_PATIENT_ID_PREFIX).strip()

    return ConfigSettings(
        data_file=data_file_path,
        clinic_name=clinic_name,
        schema_version=schema_version,
        tax_rate=tax_rate,
        consultation_charge=consultation_charge,
        currency=currency,
        low_stock_alerts=low_stock_alerts,
        expiry_alerts=expiry_alerts,
        expiry_horizon_days=expiry_horizon_days,
        categories=categories or DEFAULT_CATEGORIES,
        patient_id_prefix=patient_id_prefix or DEFAULT_PATIENT_ID_PREFIX,
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open the clinic workbook and return a live ``openpyxl`` workbook.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    wb = openpyxl.load_workbook(data_file)
    return wb


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook to ``destination`` in a single replace step.

    The workbook is first serialized to a sibling temporary file which then
    replaces the destination, so readers never observe a half-written file.
    Parent directories are created on demand.

    Args:
        workbook (Workbook): Workbook instance to persist.
        destination (Path): Filesystem path that should receive the workbook.
    """

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    staging = dest.with_name(f".{dest.stem}.tmp{dest.suffix}")
    try:
        workbook.save(staging)
        staging.replace(dest)
    finally:
        if staging.exists():
            staging.unlink()


def refresh_workbook(data_file: Path) -> Workbook:
    """Reload the workbook from disk, discarding any unsaved in-memory changes."""

    return open_workbook(data_file)


def _iter_sheet_rows(workbook: Workbook, sheet_name: str) -> Iterable[Sequence[Any]]:
    sheet = workbook[sheet_name]
    for raw in sheet.iter_rows(min_row=2, values_only=True):
        # skip fully empty rows
        if any(cell is not None for cell in raw):
            yield raw


def replace_sheet_rows(workbook: Workbook, sheet_name: str, rows: Iterable[Sequence[object]]) -> None:
    """Replace every data row of ``sheet_name`` while keeping its header row.

    Args:
        workbook (Workbook): Workbook containing the sheet.
        sheet_name (str): Worksheet to rewrite.
        rows (Iterable[Sequence[object]]): Serialized rows in the worksheet
            column order.
    """

    sheet = workbook[sheet_name]
    if sheet.max_row > 1:
        sheet.delete_rows(2, sheet.max_row - 1)
    # Address cells directly; append() tracks its own cursor across deletes.
    for row_index, row in enumerate(rows, start=2):
        for column_index, value in enumerate(row, start=1):
            sheet.cell(row=row_index, column=column_index, value=value)


def load_medicines(workbook: Workbook) -> List[MedicineRow]:
    """Return every medicine in sheet order (empty list when none)."""

    return [deserialize_medicine(raw) for raw in _iter_sheet_rows(workbook, MEDICINES_SHEET)]


def save_medicines(workbook: Workbook, records: Iterable[MedicineRow]) -> None:
    """Replace the ``Medicines`` sheet with ``records``."""

    replace_sheet_rows(workbook, MEDICINES_SHEET, (serialize_medicine(r) for r in records))


def load_customers(workbook: Workbook) -> List[CustomerRow]:
    """Return every customer in sheet order (empty list when none)."""

    return [deserialize_customer(raw) for raw in _iter_sheet_rows(workbook, CUSTOMERS_SHEET)]


def save_customers(workbook: Workbook, records: Iterable[CustomerRow]) -> None:
    """Replace the ``Customers`` sheet with ``records``."""

    replace_sheet_rows(workbook, CUSTOMERS_SHEET, (serialize_customer(r) for r in records))


def load_sales(workbook: Workbook) -> List[SaleRow]:
    """Return every sale in sheet order with its items attached.

    Items are read from the ``SaleItems`` sheet, grouped by ``SaleID`` and
    ordered by ``LineNumber``. Item rows whose sale header is missing are
    ignored with a warning.
    """

    items_by_sale: Dict[str, List[tuple[int, SaleItemRow]]] = defaultdict(list)
    for raw in _iter_sheet_rows(workbook, SALE_ITEMS_SHEET):
        sale_id, line_number, item = deserialize_sale_item(raw)
        items_by_sale[sale_id].append((line_number, item))

    sales: List[SaleRow] = []
    for raw in _iter_sheet_rows(workbook, SALES_SHEET):
        sale_id = str(raw[0])
        lines = sorted(items_by_sale.pop(sale_id, []), key=lambda entry: entry[0])
        sales.append(deserialize_sale(raw, tuple(item for _, item in lines)))

    if items_by_sale:
        log.warning("Ignoring sale items for unknown sales: %s", ", ".join(sorted(items_by_sale)))
    return sales


def save_sales(workbook: Workbook, records: Iterable[SaleRow]) -> None:
    """Replace the ``Sales`` and ``SaleItems`` sheets with ``records``."""

    records = list(records)
    replace_sheet_rows(workbook, SALES_SHEET, (serialize_sale(r) for r in records))
    replace_sheet_rows(
        workbook,
        SALE_ITEMS_SHEET,
        (
            serialize_sale_item(sale.sale_id, line_number, item)
            for sale in records
            for line_number, item in enumerate(sale.items, start=1)
        ),
    )


def load_notifications(workbook: Workbook) -> List[NotificationRow]:
    """Return every notification in sheet order (empty list when none)."""

    return [deserialize_notification(raw) for raw in _iter_sheet_rows(workbook, NOTIFICATIONS_SHEET)]


def save_notifications(workbook: Workbook, records: Iterable[NotificationRow]) -> None:
    """Replace the ``Notifications`` sheet with ``records``."""

    replace_sheet_rows(workbook, NOTIFICATIONS_SHEET, (serialize_notification(r) for r in records))


def serialize_medicine(record: MedicineRow) -> list[object]:
    """Convert a medicine dataclass into the worksheet column ordering."""

    return [
        record.medicine_id,
        record.name,
        record.category,
        record.manufacturer,
        record.batch_number,
        record.expiry_date.isoformat(),
        record.quantity,
        record.min_quantity,
        record.purchase_price,
        record.selling_price,
        record.description,
        record.created_at_iso,
    ]


def serialize_customer(record: CustomerRow) -> list[object]:
    """Convert a customer dataclass into the worksheet column ordering."""

    return [
        record.customer_id,
        record.patient_id,
        record.name,
        record.phone,
        record.email,
        record.address,
        record.date_of_birth,
        record.gender,
        record.emergency_contact,
        record.medical_history,
        record.allergies,
        record.created_at_iso,
    ]


def serialize_sale(record: SaleRow) -> list[object]:
    """Convert a sale header into the ``Sales`` column ordering.

    Items are serialized separately by :func:`serialize_sale_item`.
    """

    return [
        record.sale_id,
        record.created_at_iso,
        record.customer_id,
        record.customer_name,
        record.subtotal,
        record.tax_rate,
        record.tax,
        record.consultation_charge,
        record.total,
        record.payment_method,
        record.status,
    ]


def serialize_sale_item(sale_id: str, line_number: int, item: SaleItemRow) -> list[object]:
    """Convert one sale line into the ``SaleItems`` column ordering."""

    return [
        sale_id,
        line_number,
        item.medicine_id,
        item.medicine_name,
        item.quantity,
        item.unit_price,
        item.line_total,
    ]


def serialize_notification(record: NotificationRow) -> list[object]:
    """Convert a notification dataclass into the worksheet column ordering."""

    return [
        record.notification_id,
        record.title,
        record.message,
        record.notification_type,
        record.is_read,
        record.created_at_iso,
        record.alert_kind,
        record.medicine_id,
    ]


def _to_decimal(raw: object, default: str = "0.00") -> Decimal:
    return Decimal(str(raw)) if raw is not None else Decimal(default)


def _to_int(raw: object) -> int:
    return int(raw) if raw is not None else 0


def _to_text(raw: object) -> str:
    return str(raw) if raw is not None else ""


def _to_bool(raw: object) -> bool:
    # Hand typed cells arrive as text; "FALSE" and "0" must stay false.
    if isinstance(raw, str):
        return raw.strip().lower() in {"true", "1", "yes", "y"}
    return bool(raw)


def _to_optional_text(raw: object) -> Optional[str]:
    if raw is None or raw == "":
        return None
    return str(raw)


def _to_date(raw: object) -> date:
    # Excel may hand back real datetimes when a user edits the cell by hand.
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    return date.fromisoformat(str(raw).strip()[:10])


def deserialize_medicine(raw_row: Sequence[object]) -> MedicineRow:
    """Convert a raw worksheet row into a strongly typed medicine record.

    Numeric prices become :class:`~decimal.Decimal`, stock counts become
    ``int``, and the expiry cell becomes a :class:`~datetime.date` whether it
    was stored as ISO text or as an Excel date.
    """

    (
        medicine_id,
        name,
        category,
        manufacturer,
        batch_number,
        expiry_raw,
        quantity_raw,
        min_quantity_raw,
        purchase_raw,
        selling_raw,
        description,
        created_at,
    ) = raw_row[:12]

    return MedicineRow(
        medicine_id=str(medicine_id),
        name=_to_text(name),
        category=_to_text(category),
        manufacturer=_to_text(manufacturer),
        batch_number=_to_text(batch_number),
        expiry_date=_to_date(expiry_raw),
        quantity=_to_int(quantity_raw),
        min_quantity=_to_int(min_quantity_raw),
        purchase_price=_to_decimal(purchase_raw),
        selling_price=_to_decimal(selling_raw),
        description=_to_optional_text(description),
        created_at_iso=_to_text(created_at),
    )


def deserialize_customer(raw_row: Sequence[object]) -> CustomerRow:
    """Convert a raw worksheet row into a customer record."""

    (
        customer_id,
        patient_id,
        name,
        phone,
        email,
        address,
        date_of_birth,
        gender,
        emergency_contact,
        medical_history,
        allergies,
        created_at,
    ) = raw_row[:12]

    return CustomerRow(
        customer_id=str(customer_id),
        patient_id=_to_text(patient_id),
        name=_to_text(name),
        phone=_to_text(phone),
        email=_to_text(email),
        address=_to_text(address),
        date_of_birth=_to_optional_text(date_of_birth),
        gender=_to_text(gender),
        emergency_contact=_to_optional_text(emergency_contact),
        medical_history=_to_optional_text(medical_history),
        allergies=_to_optional_text(allergies),
        created_at_iso=_to_text(created_at),
    )


def deserialize_sale(raw_row: Sequence[object], items: tuple[SaleItemRow, ...]) -> SaleRow:
    """Convert a ``Sales`` row plus its already-parsed items into a sale."""

    (
        sale_id,
        created_at,
        customer_id,
        customer_name,
        subtotal_raw,
        tax_rate_raw,
        tax_raw,
        consultation_raw,
        total_raw,
        payment_method,
        status,
    ) = raw_row[:11]

    return SaleRow(
        sale_id=str(sale_id),
        created_at_iso=_to_text(created_at),
        customer_id=_to_text(customer_id),
        customer_name=_to_text(customer_name),
        items=items,
        subtotal=_to_decimal(subtotal_raw),
        tax_rate=_to_decimal(tax_rate_raw, "0"),
        tax=_to_decimal(tax_raw),
        consultation_charge=_to_decimal(consultation_raw),
        total=_to_decimal(total_raw),
        payment_method=_to_text(payment_method),
        status=_to_text(status),
    )


def deserialize_sale_item(raw_row: Sequence[object]) -> tuple[str, int, SaleItemRow]:
    """Convert a ``SaleItems`` row into ``(sale_id, line_number, item)``."""

    sale_id, line_number, medicine_id, medicine_name, quantity_raw, unit_price_raw, line_total_raw = raw_row[:7]
    item = SaleItemRow(
        medicine_id=_to_text(medicine_id),
        medicine_name=_to_text(medicine_name),
        quantity=_to_int(quantity_raw),
        unit_price=_to_decimal(unit_price_raw),
        line_total=_to_decimal(line_total_raw),
    )
    return str(sale_id), _to_int(line_number), item


def deserialize_notification(raw_row: Sequence[object]) -> NotificationRow:
    """Convert a raw worksheet row into a notification record."""

    (
        notification_id,
        title,
        message,
        notification_type,
        is_read,
        created_at,
        alert_kind,
        medicine_id,
    ) = raw_row[:8]

    return NotificationRow(
        notification_id=str(notification_id),
        title=_to_text(title),
        message=_to_text(message),
        notification_type=_to_text(notification_type),
        is_read=_to_bool(is_read),
        created_at_iso=_to_text(created_at),
        alert_kind=_to_optional_text(alert_kind),
        medicine_id=_to_optional_text(medicine_id),
    )
