"""Command-line entry points for the clinic POS toolkit.

All orchestration in this module is limited to argparse wiring, translating
command-line arguments into the command objects consumed by the business
layer, and printing plain-text results. Business rules live in
:mod:`clinic_pos.core_logic`.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, log, pricing
from .constants import PaymentMethod


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]


def parse_decimal(raw: str) -> Decimal:
    """argparse ``type`` for monetary and percentage arguments."""
    try:
        return Decimal(raw)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"not a number: {raw!r}") from exc


def parse_date(raw: str) -> date:
    """argparse ``type`` for ISO ``YYYY-MM-DD`` dates."""
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an ISO date: {raw!r}") from exc


def parse_sale_item(raw: str) -> core_logic.SaleLine:
    """argparse ``type`` for ``MEDICINE_ID:QTY[:UNIT_PRICE]`` sale lines."""
    parts = raw.split(":")
    if len(parts) not in (2, 3) or not parts[0]:
        raise argparse.ArgumentTypeError(f"expected MEDICINE_ID:QTY[:UNIT_PRICE], got {raw!r}")
    try:
        quantity = int(parts[1])
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"quantity must be an integer in {raw!r}") from exc
    unit_price = parse_decimal(parts[2]) if len(parts) == 3 else None
    return core_logic.SaleLine(medicine_id=parts[0], quantity=quantity, unit_price=unit_price)


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="clinic-cli",
        description="Command-line tools for the Clinic POS workbook.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to ./config.ini).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands such as sales and restocks."""
    specs = {
        "add-medicine": register_add_medicine_command(subparsers),
        "add-customer": register_add_customer_command(subparsers),
        "restock": register_restock_command(subparsers),
        "sale": register_sale_command(subparsers),
        "mark-read": register_mark_read_command(subparsers),
        "delete-notification": register_delete_notification_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare reporting CLI commands such as stock and alert listings."""
    specs = {
        "stock": register_stock_command(subparsers),
        "sales-summary": register_sales_summary_command(subparsers),
        "alerts": register_alerts_command(subparsers),
        "notifications": register_notifications_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_add_medicine_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-medicine``."""
    name = "add-medicine"
    help_text = "Register a new medicine in the Medicines sheet."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--name", required=True)
        parser.add_argument("--category", required=True)
        parser.add_argument("--manufacturer", default="")
        parser.add_argument("--batch-number", default="")
        parser.add_argument("--expiry-date", type=parse_date, required=True)
        parser.add_argument("--quantity", type=int, required=True)
        parser.add_argument("--min-quantity", type=int, required=True)
        parser.add_argument("--purchase-price", type=parse_decimal, required=True)
        parser.add_argument("--selling-price", type=parse_decimal, required=True)
        parser.add_argument("--description", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_medicine)


def register_add_customer_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-customer``."""
    name = "add-customer"
    help_text = "Register a new customer and allocate a patient id."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--name", required=True)
        parser.add_argument("--phone", default="")
        parser.add_argument("--email", default="")
        parser.add_argument("--address", default="")
        parser.add_argument("--date-of-birth", default=None)
        parser.add_argument("--gender", default="")
        parser.add_argument("--emergency-contact", default=None)
        parser.add_argument("--medical-history", default=None)
        parser.add_argument("--allergies", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_customer)


def register_restock_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``restock``."""
    name = "restock"
    help_text = "Receive stock for an existing medicine."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--medicine-id", required=True)
        parser.add_argument("--quantity", type=int, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_restock)


def register_sale_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sale``."""
    name = "sale"
    help_text = "Record a sale and decrement stock."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer-id", required=True)
        parser.add_argument(
            "--item",
            dest="items",
            action="append",
            type=parse_sale_item,
            default=[],
            metavar="MEDICINE_ID:QTY[:UNIT_PRICE]",
            help="Sale line; repeat for several lines.",
        )
        parser.add_argument("--tax-rate", type=parse_decimal, default=None,
                            help="Tax percentage (defaults to [Billing] TaxRate).")
        parser.add_argument("--consultation-charge", type=parse_decimal, default=None,
                            help="Flat charge (defaults to [Billing] ConsultationCharge).")
        parser.add_argument(
            "--payment-method",
            choices=[member.value for member in PaymentMethod],
            default=PaymentMethod.CASH.value,
        )
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_sale)


def register_alerts_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``alerts``."""
    name = "alerts"
    help_text = "Raise missing low-stock and expiry alerts and list unread ones."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_alerts)


def register_mark_read_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``mark-read``."""
    name = "mark-read"
    help_text = "Mark one notification, or all of them, as read."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        target = parser.add_mutually_exclusive_group(required=True)
        target.add_argument("--notification-id")
        target.add_argument("--all", action="store_true", dest="all_notifications")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_mark_read)


def register_delete_notification_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-notification``."""
    name = "delete-notification"
    help_text = "Delete a notification."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--notification-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete_notification)


def register_stock_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``stock``."""
    name = "stock"
    help_text = "Display current stock levels."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_stock_report)


def register_sales_summary_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sales-summary``."""
    name = "sales-summary"
    help_text = "Display revenue and per-medicine sales for a date range."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--start", type=parse_date, default=None)
        parser.add_argument("--end", type=parse_date, default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_sales_summary)


def register_notifications_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``notifications``."""
    name = "notifications"
    help_text = "List stored notifications."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--unread", action="store_true", help="Only show unread notifications.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_notifications_report)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    target = Path(config_path) if config_path is not None else Path.cwd() / "config.ini"
    context = core_logic.load_runtime_context(target)
    core_logic.ensure_schema_version(context)
    return context


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def translate_add_medicine(args: argparse.Namespace) -> core_logic.AddMedicineCommand:
    """Translate CLI args into an add-medicine command object."""
    return core_logic.AddMedicineCommand(
        name=args.name,
        category=args.category,
        manufacturer=args.manufacturer,
        batch_number=args.batch_number,
        expiry_date=args.expiry_date,
        quantity=args.quantity,
        min_quantity=args.min_quantity,
        purchase_price=args.purchase_price,
        selling_price=args.selling_price,
        description=args.description,
    )


def translate_add_customer(args: argparse.Namespace) -> core_logic.AddCustomerCommand:
    """Translate CLI args into an add-customer command object."""
    return core_logic.AddCustomerCommand(
        name=args.name,
        phone=args.phone,
        email=args.email,
        address=args.address,
        date_of_birth=args.date_of_birth,
        gender=args.gender,
        emergency_contact=args.emergency_contact,
        medical_history=args.medical_history,
        allergies=args.allergies,
    )


def translate_restock(args: argparse.Namespace) -> core_logic.RestockCommand:
    """Translate CLI args into a restock command object."""
    return core_logic.RestockCommand(medicine_id=args.medicine_id, quantity=args.quantity)


def translate_sale(args: argparse.Namespace, settings) -> core_logic.SaleCommand:
    """Translate CLI args into a sale command, filling billing defaults from settings."""
    tax_rate = args.tax_rate if args.tax_rate is not None else settings.tax_rate
    consultation_charge = (
        args.consultation_charge if args.consultation_charge is not None else settings.consultation_charge
    )
    return core_logic.SaleCommand(
        customer_id=args.customer_id,
        items=tuple(args.items),
        tax_rate=tax_rate,
        consultation_charge=consultation_charge,
        payment_method=PaymentMethod(args.payment_method),
    )


def _money(context: core_logic.RuntimeContext, amount: Decimal) -> str:
    return f"{context.settings.currency} {pricing.to_money(amount)}"


def _print_new_alerts(before: int, notifications: Sequence) -> None:
    for notification in notifications[before:]:
        print(f"[{notification.notification_type}] {notification.title}: {notification.message}")


def run_add_medicine(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-medicine workflow in the BLL."""
    medicine = core_logic.add_medicine(context, translate_add_medicine(args))
    print(f"Added medicine {medicine.medicine_id} ({medicine.name})")
    return 0


def run_add_customer(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-customer workflow in the BLL."""
    customer = core_logic.add_customer(context, translate_add_customer(args))
    print(f"Added customer {customer.customer_id} (patient id {customer.patient_id})")
    return 0


def run_restock(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the restock workflow and re-evaluate alerts."""
    medicine = core_logic.restock_medicine(context, translate_restock(args))
    print(f"{medicine.name}: stock now {medicine.quantity}")
    core_logic.reconcile_notifications(context)
    return 0


def run_sale(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the sale workflow and feed the new stock to the alert engine."""
    sale = core_logic.create_sale(context, translate_sale(args, context.settings))
    print(f"Sale {sale.sale_id} for {sale.customer_name}")
    for item in sale.items:
        print(f"  {item.quantity} x {item.medicine_name} @ {item.unit_price} = {_money(context, item.line_total)}")
    print(f"  Subtotal: {_money(context, sale.subtotal)}")
    print(f"  Tax ({sale.tax_rate}%): {_money(context, sale.tax)}")
    print(f"  Consultation: {_money(context, sale.consultation_charge)}")
    print(f"  Total: {_money(context, sale.total)}")
    before = len(core_logic.list_notifications(context))
    _print_new_alerts(before, core_logic.reconcile_notifications(context))
    return 0


def run_alerts(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Reconcile alerts and print every unread notification."""
    for notification in core_logic.reconcile_notifications(context):
        if not notification.is_read:
            print(f"[{notification.notification_type}] {notification.title}: {notification.message}")
    return 0


def run_mark_read(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Mark one or all notifications as read."""
    if args.all_notifications:
        count = core_logic.mark_all_notifications_read(context)
        print(f"Marked {count} notification(s) as read")
    else:
        core_logic.mark_notification_read(context, args.notification_id)
        print(f"Marked {args.notification_id} as read")
    return 0


def run_delete_notification(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Delete a notification."""
    core_logic.delete_notification(context, args.notification_id)
    print(f"Deleted {args.notification_id}")
    return 0


def run_stock_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print stock per medicine, flagging low stock."""
    for medicine in core_logic.list_medicines(context):
        flag = " (LOW)" if medicine.quantity <= medicine.min_quantity else ""
        print(f"{medicine.medicine_id}\t{medicine.name}\t{medicine.quantity}/{medicine.min_quantity}{flag}")
    return 0


def run_sales_summary(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the sales summary for the requested range."""
    summary = core_logic.calculate_sales_summary(context, start=args.start, end=args.end)
    print(f"Sales: {summary['sale_count']}")
    print(f"Revenue: {_money(context, summary['total_revenue'])}")
    print(f"Average sale: {_money(context, summary['average_sale_value'])}")
    print(f"Low stock items: {summary['low_stock_count']}")
    print(f"Expiring soon: {summary['expiring_count']}")
    for medicine_id, entry in summary["medicines_sold"].items():
        print(f"  {medicine_id}\t{entry['name']}\t{entry['quantity']}\t{_money(context, entry['revenue'])}")
    return 0


def run_notifications_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print stored notifications."""
    for notification in core_logic.list_notifications(context, unread_only=args.unread):
        marker = " " if notification.is_read else "*"
        print(f"{marker} {notification.notification_id}\t{notification.title}\t{notification.message}")
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, core_logic.BusinessRuleViolation):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def persist_workbook(context: core_logic.RuntimeContext) -> None:
    """Persist workbook changes after successful execution."""
    try:
        core_logic.persist_context(context)
    except PermissionError as error:
        raise RuntimeError(str(error)) from error


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        exit_code = dispatch_command(context, args, command_table)
        if exit_code == 0:
            persist_workbook(context)
        return exit_code
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
