"""Business logic layer for the clinic POS.

This module hosts the sale transaction engine and the operations around it.
It consumes the data access layer for all I/O, routes every stock change
through :class:`~clinic_pos.inventory.InventoryLedger`, prices sales with
:mod:`clinic_pos.pricing`, and delegates alert derivation to
:mod:`clinic_pos.alerts`.

Each mutating operation loads the collections it needs once, computes the new
state fully in memory, and writes the affected collections back in one step.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from openpyxl.workbook import Workbook

from . import alerts, data_manager, identifiers, log, pricing
from .constants import EXPECTED_SCHEMA_VERSION, PaymentMethod, SaleStatus
from .errors import (
    BusinessRuleViolation,
    EmptySaleError,
    InsufficientStockError,
    InvalidCustomerError,
    MissingReferenceError,
    UnknownMedicineError,
)
from .inventory import InventoryLedger


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration and workbook references used by the BLL."""

    settings: data_manager.ConfigSettings
    workbook: Workbook
    _cache: Dict[str, Dict[str, Any]] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class SaleLine:
    """One requested line of a sale.

    ``unit_price`` overrides the catalog selling price when provided.
    """

    medicine_id: str
    quantity: int
    unit_price: Optional[Decimal] = None


@dataclass(frozen=True)
class SaleCommand:
    """User intent for creating a sale.

    Tax rate and consultation charge are always explicit; callers take them
    from :class:`~clinic_pos.data_manager.ConfigSettings` or a per-sale edit.
    """

    customer_id: str
    items: Sequence[SaleLine]
    tax_rate: Decimal
    consultation_charge: Decimal
    payment_method: PaymentMethod = PaymentMethod.CASH
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class AddMedicineCommand:
    """User intent for registering a new medicine."""

    name: str
    category: str
    manufacturer: str
    batch_number: str
    expiry_date: date
    quantity: int
    min_quantity: int
    purchase_price: Decimal
    selling_price: Decimal
    description: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class AddCustomerCommand:
    """User intent for registering a new customer."""

    name: str
    phone: str = ""
    email: str = ""
    address: str = ""
    date_of_birth: Optional[str] = None
    gender: str = ""
    emergency_contact: Optional[str] = None
    medical_history: Optional[str] = None
    allergies: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class RestockCommand:
    """User intent for receiving stock of an existing medicine."""

    medicine_id: str
    quantity: int


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Return ``candidate`` or the current UTC time when it is ``None``."""

    return candidate if candidate is not None else datetime.now(UTC)


def _get_cache_bucket(context: RuntimeContext, name: str) -> Dict[str, Any]:
    """Return (creating if needed) the cache bucket dedicated to ``name``."""

    bucket = context._cache.get(name)
    if bucket is None:
        log.debug("Initializing cache bucket '%s'", name)
        bucket = {}
        context._cache[name] = bucket
    return bucket


def _invalidate_cache(context: RuntimeContext, *names: str) -> None:
    """Evict cache buckets after the workbook has been written.

    Missing buckets are ignored.
    """

    if not names:
        return

    log.debug("Invalidating cache buckets: %s", ", ".join(names))

    for name in names:
        context._cache.pop(name, None)


def _ensure_collection_cache(
    context: RuntimeContext,
    name: str,
    loader: Callable[[Workbook], Iterable[Any]],
    key: str,
) -> Dict[str, Any]:
    """Populate the ``all``/``by_id`` cache for one collection on demand.

    Args:
        context (RuntimeContext): Runtime state holding workbook and caches.
        name (str): Bucket name, e.g. ``"medicines"``.
        loader (Callable): Data layer function returning the collection.
        key (str): Attribute used as the primary key in ``by_id``.

    Returns:
        dict[str, Any]: Bucket containing ``all`` records in storage order
            and a ``by_id`` lookup dictionary.
    """

    bucket = _get_cache_bucket(context, name)
    if "all" not in bucket:
        records = list(loader(context.workbook))
        bucket["all"] = records
        bucket["by_id"] = {getattr(record, key): record for record in records}
        log.debug("Populated %s cache with %d entries", name, len(records))
    return bucket


def _medicines_cache(context: RuntimeContext) -> Dict[str, Any]:
    return _ensure_collection_cache(context, "medicines", data_manager.load_medicines, "medicine_id")


def _customers_cache(context: RuntimeContext) -> Dict[str, Any]:
    return _ensure_collection_cache(context, "customers", data_manager.load_customers, "customer_id")


def _sales_cache(context: RuntimeContext) -> Dict[str, Any]:
    return _ensure_collection_cache(context, "sales", data_manager.load_sales, "sale_id")


def _notifications_cache(context: RuntimeContext) -> Dict[str, Any]:
    return _ensure_collection_cache(
        context, "notifications", data_manager.load_notifications, "notification_id")


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and a live workbook for the BLL.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer searches upward from the current
            working directory.

    Returns:
        RuntimeContext: Context bundling settings, workbook, and empty caches.

    Raises:
        FileNotFoundError: If the configuration file or workbook is missing.
        KeyError: When mandatory configuration options are missing.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    workbook = data_manager.open_workbook(settings.data_file)
    log.info("Loaded runtime context for workbook '%s'", settings.data_file)
    return RuntimeContext(settings=settings, workbook=workbook)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Refuse to operate on a workbook declared with a different layout version.

    Raises:
        RuntimeError: If the configured schema version differs from
            ``EXPECTED_SCHEMA_VERSION``.
    """
    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Workbook schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Workbook schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


def list_medicines(context: RuntimeContext) -> List[data_manager.MedicineRow]:
    """Return a copy of the cached medicine collection in storage order."""
    return list(_medicines_cache(context)["all"])


def list_customers(context: RuntimeContext) -> List[data_manager.CustomerRow]:
    """Return a copy of the cached customer collection in storage order."""
    return list(_customers_cache(context)["all"])


def list_sales(context: RuntimeContext) -> List[data_manager.SaleRow]:
    """Return a copy of the cached sales collection in commit order."""
    return list(_sales_cache(context)["all"])


def list_notifications(context: RuntimeContext, *, unread_only: bool = False) -> List[data_manager.NotificationRow]:
    """Return notifications in storage order, optionally only unread ones."""
    records = _notifications_cache(context)["all"]
    if unread_only:
        return [record for record in records if not record.is_read]
    return list(records)


def get_medicine(context: RuntimeContext, medicine_id: str) -> data_manager.MedicineRow:
    """Resolve a medicine by id.

    Raises:
        UnknownMedicineError: If ``medicine_id`` is not stored.
    """
    try:
        return _medicines_cache(context)["by_id"][medicine_id]
    except KeyError as exc:
        log.warning("Medicine lookup failed for id '%s'", medicine_id)
        raise UnknownMedicineError(medicine_id) from exc


def get_customer(context: RuntimeContext, customer_id: str) -> data_manager.CustomerRow:
    """Resolve a customer by id.

    Raises:
        InvalidCustomerError: If ``customer_id`` is not stored.
    """
    try:
        return _customers_cache(context)["by_id"][customer_id]
    except KeyError as exc:
        log.warning("Customer lookup failed for id '%s'", customer_id)
        raise InvalidCustomerError(customer_id) from exc


def get_sale(context: RuntimeContext, sale_id: str) -> data_manager.SaleRow:
    """Resolve a committed sale by id.

    Raises:
        MissingReferenceError: If ``sale_id`` is not stored.
    """
    try:
        return _sales_cache(context)["by_id"][sale_id]
    except KeyError as exc:
        log.warning("Sale lookup failed for id '%s'", sale_id)
        raise MissingReferenceError(f"Unknown sale id: {sale_id}") from exc


def get_notification(context: RuntimeContext, notification_id: str) -> data_manager.NotificationRow:
    """Resolve a notification by id.

    Raises:
        MissingReferenceError: If ``notification_id`` is not stored.
    """
    try:
        return _notifications_cache(context)["by_id"][notification_id]
    except KeyError as exc:
        log.warning("Notification lookup failed for id '%s'", notification_id)
        raise MissingReferenceError(f"Unknown notification id: {notification_id}") from exc


def aggregate_quantities(items: Iterable[SaleLine]) -> Dict[str, int]:
    """Sum requested quantities per distinct medicine, in first-seen order.

    Lines naming the same medicine are combined so availability is checked
    against what the whole sale consumes.
    """
    required: Dict[str, int] = {}
    for line in items:
        required[line.medicine_id] = required.get(line.medicine_id, 0) + int(line.quantity)
    return required


def build_sale_items(ledger: InventoryLedger, lines: Sequence[SaleLine]) -> tuple[data_manager.SaleItemRow, ...]:
    """Snapshot medicine names and prices into sale line records.

    Raises:
        UnknownMedicineError: If a line names a medicine absent from the ledger.
        ValueError: If an overriding unit price is negative.
    """
    items = []
    for line in lines:
        medicine = ledger.get_medicine(line.medicine_id)
        unit_price = (
            pricing.to_decimal(line.unit_price) if line.unit_price is not None else medicine.selling_price
        )
        require_nonnegative_money(unit_price)
        items.append(
            data_manager.SaleItemRow(
                medicine_id=medicine.medicine_id,
                medicine_name=medicine.name,
                quantity=int(line.quantity),
                unit_price=unit_price,
                line_total=pricing.to_money(pricing.line_total(line.quantity, unit_price)),
            )
        )
    return tuple(items)


def build_sale_record(
    command: SaleCommand,
    *,
    customer: data_manager.CustomerRow,
    items: tuple[data_manager.SaleItemRow, ...],
    totals: pricing.SaleTotals,
    sale_id: str,
    timestamp: datetime,
) -> data_manager.SaleRow:
    """Materialize the immutable sale record.

    The stored subtotal is the sum of the stored line totals, tax is taken
    from that subtotal, and the stored total is the sum of the stored
    components, so the record stays recomputable from its own fields.
    """
    subtotal = sum((item.line_total for item in items), Decimal("0.00"))
    tax = pricing.to_money(pricing.calculate_tax(subtotal, command.tax_rate))
    consultation_charge = pricing.to_money(totals.consultation_charge)
    return data_manager.SaleRow(
        sale_id=sale_id,
        created_at_iso=timestamp.isoformat(),
        customer_id=customer.customer_id,
        customer_name=customer.name,
        items=items,
        subtotal=subtotal,
        tax_rate=pricing.to_decimal(command.tax_rate),
        tax=tax,
        consultation_charge=consultation_charge,
        total=subtotal + tax + consultation_charge,
        payment_method=command.payment_method.value,
        status=SaleStatus.COMPLETED.value,
    )


def _commit_sale(
    context: RuntimeContext,
    *,
    medicines: Sequence[data_manager.MedicineRow],
    sales: Sequence[data_manager.SaleRow],
    previous_medicines: Sequence[data_manager.MedicineRow],
    previous_sales: Sequence[data_manager.SaleRow],
) -> None:
    """Write stock and sales together, restoring both if either write fails."""
    try:
        data_manager.save_medicines(context.workbook, medicines)
        data_manager.save_sales(context.workbook, sales)
    except Exception:
        log.error("Sale commit failed; restoring medicines and sales collections")
        data_manager.save_medicines(context.workbook, previous_medicines)
        data_manager.save_sales(context.workbook, previous_sales)
        raise
    finally:
        _invalidate_cache(context, "medicines", "sales")


def create_sale(context: RuntimeContext, command: SaleCommand) -> data_manager.SaleRow:
    """Validate a sale against stock and commit it with the stock decrement.

    The whole command is validated before anything changes: the customer must
    exist, the sale must have items, each quantity must be at least one, each
    medicine must exist, and stock must cover the combined quantity requested
    per medicine. Only then are the decrements applied to an in-memory ledger
    and the new stock and sale collections written together.

    Args:
        context (RuntimeContext): Runtime context providing workbook access and
            caches.
        command (SaleCommand): Customer, lines, tax rate, consultation charge,
            and payment method for the sale.

    Returns:
        data_manager.SaleRow: The committed sale.

    Raises:
        InvalidCustomerError: If the customer is unknown.
        EmptySaleError: If ``command.items`` is empty.
        UnknownMedicineError: If a line names an unknown medicine.
        InsufficientStockError: If stock cannot cover a medicine's combined
            quantity.
        BusinessRuleViolation: If the payment method is unsupported.
        ValueError: For a quantity below one, a negative price or charge, or a
            tax rate outside ``[0, 100]``.
    """
    customer = get_customer(context, command.customer_id)
    if not command.items:
        log.warning("Rejected empty sale for customer '%s'", command.customer_id)
        raise EmptySaleError()
    for line in command.items:
        require_positive_quantity(line.quantity)
    if not isinstance(command.payment_method, PaymentMethod):
        log.error("Unsupported payment method provided: %s", command.payment_method)
        raise BusinessRuleViolation(f"Unsupported payment method: {command.payment_method}")

    medicines = list_medicines(context)
    sales = list_sales(context)
    ledger = InventoryLedger(medicines)

    required = aggregate_quantities(command.items)
    items = build_sale_items(ledger, command.items)
    ledger.check_availability(required)
    totals = pricing.calculate_totals(
        ((item.quantity, item.unit_price) for item in items),
        tax_rate=command.tax_rate,
        consultation_charge=command.consultation_charge,
    )

    ledger.apply_adjustments({medicine_id: -quantity for medicine_id, quantity in required.items()})
    timestamp = _resolve_timestamp(command.timestamp)
    sale = build_sale_record(
        command,
        customer=customer,
        items=items,
        totals=totals,
        sale_id=identifiers.generate_record_id("S", when=timestamp),
        timestamp=timestamp,
    )
    _commit_sale(
        context,
        medicines=ledger.snapshot(),
        sales=[*sales, sale],
        previous_medicines=medicines,
        previous_sales=sales,
    )
    log.info(
        "Recorded sale '%s' for customer '%s' (%d line(s), total=%s)",
        sale.sale_id,
        customer.customer_id,
        len(sale.items),
        sale.total,
    )
    return sale


def add_medicine(context: RuntimeContext, command: AddMedicineCommand) -> data_manager.MedicineRow:
    """Validate and append a new medicine to the catalog.

    Raises:
        ValueError: For an empty name, negative stock figures, or negative
            prices.
        BusinessRuleViolation: If the category is not configured.
    """
    if not command.name.strip():
        raise ValueError("Medicine name must not be empty")
    require_nonnegative_quantity(command.quantity)
    require_nonnegative_quantity(command.min_quantity)
    purchase_price = pricing.to_decimal(command.purchase_price)
    selling_price = pricing.to_decimal(command.selling_price)
    require_nonnegative_money(purchase_price)
    require_nonnegative_money(selling_price)
    if command.category not in context.settings.categories:
        log.warning("Attempted to add medicine with unknown category '%s'", command.category)
        raise BusinessRuleViolation(f"Unknown medicine category: {command.category}")

    timestamp = _resolve_timestamp(command.timestamp)
    medicine = data_manager.MedicineRow(
        medicine_id=identifiers.generate_record_id("M", when=timestamp),
        name=command.name.strip(),
        category=command.category,
        manufacturer=command.manufacturer,
        batch_number=command.batch_number,
        expiry_date=command.expiry_date,
        quantity=int(command.quantity),
        min_quantity=int(command.min_quantity),
        purchase_price=purchase_price,
        selling_price=selling_price,
        description=command.description,
        created_at_iso=timestamp.isoformat(),
    )
    data_manager.save_medicines(context.workbook, [*list_medicines(context), medicine])
    _invalidate_cache(context, "medicines")
    log.info("Added medicine '%s' (%s) with stock %d", medicine.medicine_id, medicine.name, medicine.quantity)
    return medicine


def restock_medicine(context: RuntimeContext, command: RestockCommand) -> data_manager.MedicineRow:
    """Add received units to an existing medicine through the ledger.

    Raises:
        UnknownMedicineError: If the medicine is unknown.
        ValueError: If the quantity is not positive.
    """
    require_positive_quantity(command.quantity)
    ledger = InventoryLedger(list_medicines(context))
    new_quantity = ledger.adjust_stock(command.medicine_id, command.quantity)
    data_manager.save_medicines(context.workbook, ledger.snapshot())
    _invalidate_cache(context, "medicines")
    log.info(
        "Restocked medicine '%s' by %d (now %d)",
        command.medicine_id,
        command.quantity,
        new_quantity,
    )
    return ledger.get_medicine(command.medicine_id)


def add_customer(context: RuntimeContext, command: AddCustomerCommand) -> data_manager.CustomerRow:
    """Register a customer with a freshly allocated, unique patient id.

    Raises:
        ValueError: If the name is empty.
    """
    if not command.name.strip():
        raise ValueError("Customer name must not be empty")

    customers = list_customers(context)
    timestamp = _resolve_timestamp(command.timestamp)
    customer = data_manager.CustomerRow(
        customer_id=identifiers.generate_record_id("C", when=timestamp),
        patient_id=identifiers.generate_unique_patient_id(
            (existing.patient_id for existing in customers),
            context.settings.patient_id_prefix,
        ),
        name=command.name.strip(),
        phone=command.phone,
        email=command.email,
        address=command.address,
        date_of_birth=command.date_of_birth,
        gender=command.gender,
        emergency_contact=command.emergency_contact,
        medical_history=command.medical_history,
        allergies=command.allergies,
        created_at_iso=timestamp.isoformat(),
    )
    data_manager.save_customers(context.workbook, [*customers, customer])
    _invalidate_cache(context, "customers")
    log.info("Added customer '%s' with patient id '%s'", customer.customer_id, customer.patient_id)
    return customer


def reconcile_notifications(
    context: RuntimeContext,
    *,
    today: Optional[date] = None,
    timestamp: Optional[datetime] = None,
) -> List[data_manager.NotificationRow]:
    """Raise any missing low-stock and expiry alerts and return all notifications.

    The notification collection is written only when new alerts were added.
    Alert toggles and the expiry horizon come from the runtime settings.
    """
    existing = list_notifications(context)
    settings = context.settings
    result = alerts.reconcile(
        list_medicines(context),
        existing,
        today=today,
        timestamp=timestamp,
        horizon_days=settings.expiry_horizon_days,
        low_stock_enabled=settings.low_stock_alerts,
        expiry_enabled=settings.expiry_alerts,
    )
    if len(result) != len(existing):
        data_manager.save_notifications(context.workbook, result)
        _invalidate_cache(context, "notifications")
    return result


def mark_notification_read(context: RuntimeContext, notification_id: str) -> data_manager.NotificationRow:
    """Flag one notification as read and return the updated record.

    Raises:
        MissingReferenceError: If the notification is unknown.
    """
    target = get_notification(context, notification_id)
    updated = replace(target, is_read=True)
    records = [updated if n.notification_id == notification_id else n for n in list_notifications(context)]
    data_manager.save_notifications(context.workbook, records)
    _invalidate_cache(context, "notifications")
    log.info("Marked notification '%s' as read", notification_id)
    return updated


def mark_all_notifications_read(context: RuntimeContext) -> int:
    """Flag every unread notification as read; return how many changed."""
    records = list_notifications(context)
    unread = sum(1 for n in records if not n.is_read)
    if unread:
        data_manager.save_notifications(context.workbook, [replace(n, is_read=True) for n in records])
        _invalidate_cache(context, "notifications")
        log.info("Marked %d notification(s) as read", unread)
    return unread


def delete_notification(context: RuntimeContext, notification_id: str) -> None:
    """Remove one notification.

    Raises:
        MissingReferenceError: If the notification is unknown.
    """
    get_notification(context, notification_id)
    remaining = [n for n in list_notifications(context) if n.notification_id != notification_id]
    data_manager.save_notifications(context.workbook, remaining)
    _invalidate_cache(context, "notifications")
    log.info("Deleted notification '%s'", notification_id)


def calculate_inventory(context: RuntimeContext) -> Dict[str, int]:
    """Return current stock per medicine id, in catalog order."""
    inventory = {medicine.medicine_id: medicine.quantity for medicine in list_medicines(context)}
    log.debug("Calculated inventory balances for %d medicines", len(inventory))
    return inventory


def _sale_date(sale: data_manager.SaleRow) -> date:
    return datetime.fromisoformat(sale.created_at_iso).date()


def calculate_sales_summary(
    context: RuntimeContext,
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Aggregate revenue and stock health over sales in ``[start, end]``.

    Args:
        context (RuntimeContext): Runtime context providing workbook access and
            caches.
        start (date | None): First sale date included; unbounded when omitted.
        end (date | None): Last sale date included; unbounded when omitted.
        today (date | None): Reference date for the expiring count.

    Returns:
        dict[str, Any]: ``total_revenue``, ``sale_count``,
            ``average_sale_value``, ``medicines_sold`` (per medicine id: name,
            quantity, revenue), ``low_stock_count`` and ``expiring_count``.
    """
    sales = [
        sale
        for sale in list_sales(context)
        if (start is None or _sale_date(sale) >= start) and (end is None or _sale_date(sale) <= end)
    ]
    total_revenue = sum((sale.total for sale in sales), Decimal("0.00"))
    average = pricing.to_money(total_revenue / len(sales)) if sales else Decimal("0.00")

    medicines_sold: Dict[str, Dict[str, Any]] = {}
    for sale in sales:
        for item in sale.items:
            entry = medicines_sold.setdefault(
                item.medicine_id,
                {"name": item.medicine_name, "quantity": 0, "revenue": Decimal("0.00")},
            )
            entry["quantity"] += item.quantity
            entry["revenue"] += item.line_total

    medicines = list_medicines(context)
    today = today or date.today()
    horizon = context.settings.expiry_horizon_days
    summary = {
        "total_revenue": total_revenue,
        "sale_count": len(sales),
        "average_sale_value": average,
        "medicines_sold": medicines_sold,
        "low_stock_count": sum(1 for m in medicines if alerts.is_low_stock(m)),
        "expiring_count": sum(
            1 for m in medicines if alerts.is_expiring_soon(m, today=today, horizon_days=horizon)
        ),
    }
    log.debug(
        "Calculated sales summary: %d sale(s), revenue=%s",
        summary["sale_count"],
        summary["total_revenue"],
    )
    return summary


def require_positive_quantity(quantity: int) -> None:
    """Validate that a quantity is a whole number of at least one.

    Raises:
        ValueError: If ``quantity`` is below one or not integral.
    """
    if isinstance(quantity, bool) or int(quantity) != quantity or quantity < 1:
        log.error("Quantity validation failed: %s", quantity)
        raise ValueError("Quantity must be a whole number greater than zero")


def require_nonnegative_quantity(quantity: int) -> None:
    """Validate that a stock figure is a whole number of zero or more.

    Raises:
        ValueError: If ``quantity`` is negative or not integral.
    """
    if isinstance(quantity, bool) or int(quantity) != quantity or quantity < 0:
        log.error("Stock figure validation failed: %s", quantity)
        raise ValueError("Stock figures must be whole numbers of zero or more")


def require_nonnegative_money(amount: Decimal) -> None:
    """Validate that a monetary value is nonnegative.

    Raises:
        ValueError: If ``amount`` is less than zero.
    """
    if amount < Decimal("0"):
        log.error("Monetary value validation failed: %s", amount)
        raise ValueError("Amount must be zero or positive")


def persist_context(context: RuntimeContext) -> None:
    """Persist in-memory workbook changes to the configured data file."""
    data_manager.save_workbook(
        context.workbook,
        destination=context.settings.data_file,
    )
    log.info("Persisted workbook '%s'", context.settings.data_file)


def refresh_context(context: RuntimeContext) -> RuntimeContext:
    """Reload the workbook, discarding unsaved modifications and caches.

    Raises:
        FileNotFoundError: If the backing workbook cannot be reloaded.
    """
    workbook = data_manager.refresh_workbook(context.settings.data_file)
    log.info("Reloaded workbook '%s'", context.settings.data_file)
    return RuntimeContext(settings=context.settings, workbook=workbook)


__all__ = [
    "BusinessRuleViolation",
    "MissingReferenceError",
    "InvalidCustomerError",
    "UnknownMedicineError",
    "EmptySaleError",
    "InsufficientStockError",
    "RuntimeContext",
    "SaleLine",
    "SaleCommand",
    "AddMedicineCommand",
    "AddCustomerCommand",
    "RestockCommand",
    "load_runtime_context",
    "ensure_schema_version",
    "list_medicines",
    "list_customers",
    "list_sales",
    "list_notifications",
    "get_medicine",
    "get_customer",
    "get_sale",
    "get_notification",
    "aggregate_quantities",
    "build_sale_items",
    "build_sale_record",
    "create_sale",
    "add_medicine",
    "restock_medicine",
    "add_customer",
    "reconcile_notifications",
    "mark_notification_read",
    "mark_all_notifications_read",
    "delete_notification",
    "calculate_inventory",
    "calculate_sales_summary",
    "require_positive_quantity",
    "require_nonnegative_quantity",
    "require_nonnegative_money",
    "persist_context",
    "refresh_context",
]
