"""Shared pytest fixtures and utilities for clinic POS tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator
from unittest.mock import Mock

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

for candidate in (SRC_DIR, PROJECT_ROOT):
    candidate_str = str(candidate)
    if candidate_str not in sys.path:
        sys.path.insert(0, candidate_str)

from clinic_pos import cli, constants, core_logic, data_manager  # noqa: E402
from clinic_pos.setup_workbook import create_clinic_workbook  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION
TODAY = date(2024, 6, 1)
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "ClinicName = {clinic_name}\n"
    "SchemaVersion = {schema_version}\n\n"
    "[Billing]\n"
    "TaxRate = {tax_rate}\n"
    "ConsultationCharge = {consultation_charge}\n"
    "Currency = INR\n\n"
    "[Alerts]\n"
    "LowStockAlert = true\n"
    "ExpiryAlert = true\n"
    "ExpiryHorizonDays = 30\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    workbook_path: Path
    schema_version: str
    clinic_name: str


def make_medicine(
    medicine_id: str = "M1",
    *,
    name: str = "Paracetamol",
    quantity: int = 10,
    min_quantity: int = 5,
    selling_price: str = "10.00",
    expiry_date: date = TODAY + timedelta(days=365),
    category: str = "Analgesics",
) -> data_manager.MedicineRow:
    """Build a medicine row with sensible defaults for tests."""

    return data_manager.MedicineRow(
        medicine_id=medicine_id,
        name=name,
        category=category,
        manufacturer="Acme Pharma",
        batch_number="B-001",
        expiry_date=expiry_date,
        quantity=quantity,
        min_quantity=min_quantity,
        purchase_price=Decimal("5.00"),
        selling_price=Decimal(selling_price),
        description=None,
        created_at_iso="2024-01-01T00:00:00+00:00",
    )


def make_customer(customer_id: str = "C1", *, name: str = "Asha Rao") -> data_manager.CustomerRow:
    """Build a customer row with sensible defaults for tests."""

    return data_manager.CustomerRow(
        customer_id=customer_id,
        patient_id="GN12345601",
        name=name,
        phone="9876543210",
        email="asha@example.com",
        address="12 MG Road",
        date_of_birth=None,
        gender="F",
        emergency_contact=None,
        medical_history=None,
        allergies=None,
        created_at_iso="2024-01-01T00:00:00+00:00",
    )


def make_notification(
    notification_id: str = "N1",
    *,
    title: str = "Low Stock Alert",
    message: str = "Paracetamol is running low. Current stock: 3, Minimum required: 5",
    is_read: bool = False,
    alert_kind: str | None = None,
    medicine_id: str | None = None,
) -> data_manager.NotificationRow:
    """Build a notification row with sensible defaults for tests."""

    return data_manager.NotificationRow(
        notification_id=notification_id,
        title=title,
        message=message,
        notification_type=constants.NotificationType.WARNING.value,
        is_read=is_read,
        created_at_iso="2024-01-01T00:00:00+00:00",
        alert_kind=alert_kind,
        medicine_id=medicine_id,
    )


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture
def workbook_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that creates an initialized clinic workbook in a temp folder."""

    def _create_workbook(*, subdir: str | None = None, filename: str = "clinic.xlsx") -> Path:
        base_dir = tmp_path if subdir is None else tmp_path / subdir
        base_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = base_dir / filename
        create_clinic_workbook(workbook_path, overwrite=True)
        return workbook_path

    return _create_workbook


@pytest.fixture
def clinic_workbook_path(workbook_factory: Callable[..., Path]) -> Path:
    """Return a fresh clinic workbook ready for use in a test."""

    return workbook_factory(subdir=f"workbook_{uuid.uuid4().hex}")


@pytest.fixture
def config_factory(tmp_path: Path, workbook_factory: Callable[..., Path]) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/workbook bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        clinic_name: str = "Test Clinic",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        tax_rate: str = "0",
        consultation_charge: str = "0",
    ) -> ConfigBundle:
        bundle_name = f"bundle_{uuid.uuid4().hex}"
        bundle_dir = tmp_path / bundle_name
        bundle_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = workbook_factory(subdir=bundle_name)
        data_file_entry = workbook_path.name if make_relative else str(workbook_path)
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                data_file=data_file_entry,
                clinic_name=clinic_name,
                schema_version=schema_version,
                tax_rate=tax_rate,
                consultation_charge=consultation_charge,
            )
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            workbook_path=workbook_path,
            schema_version=schema_version,
            clinic_name=clinic_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load the runtime context for tests through the public API."""

    context = core_logic.load_runtime_context(config_file)
    core_logic.ensure_schema_version(context)
    return context


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="clinic-cli", description="Clinic CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]


# ---------------------------------------------------------------------------
# Core logic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    """Provide default configuration settings for runtime context tests."""

    return data_manager.ConfigSettings(
        data_file=tmp_path / "clinic.xlsx",
        clinic_name="Test Clinic",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
    )


@pytest.fixture
def workbook() -> Mock:
    """Return a mock workbook object for business logic tests."""

    return Mock(name="workbook")


@pytest.fixture
def context(settings: data_manager.ConfigSettings, workbook: Mock) -> core_logic.RuntimeContext:
    """Assemble a runtime context from injected settings and workbook mocks."""

    return core_logic.RuntimeContext(settings=settings, workbook=workbook)


@pytest.fixture
def set_fixed_datetime(monkeypatch: pytest.MonkeyPatch) -> Callable[[datetime], datetime]:
    """Patch ``core_logic.datetime`` to return a predetermined moment."""

    def _apply(moment: datetime) -> datetime:
        class _FixedDateTime:
            fromisoformat = staticmethod(datetime.fromisoformat)

            @staticmethod
            def now(tz=None):
                assert tz is UTC
                return moment

        monkeypatch.setattr(core_logic, "datetime", _FixedDateTime)
        return moment

    return _apply
