"""Alert reconciliation for low stock and upcoming expiry.

:func:`reconcile` compares the current medicine collection with the
notifications already raised and appends only the alerts that are missing.
Existing notifications are never edited, reordered, or removed, which makes
repeated calls with unchanged inventory a no-op.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Callable, Iterable, List, Optional, Sequence

from . import log
from .constants import (
    DEFAULT_EXPIRY_HORIZON_DAYS,
    EXPIRY_TITLE,
    LOW_STOCK_TITLE,
    AlertKind,
    NotificationType,
)
from .data_manager import MedicineRow, NotificationRow
from .identifiers import generate_record_id

# Title fragments used to recognise alerts that predate the structured key.
_LEGACY_TITLE_MARKERS = {
    AlertKind.LOW_STOCK: "Low Stock",
    AlertKind.EXPIRY: "Expiry Alert",
}


def _default_notification_id() -> str:
    return generate_record_id("N")


def days_until_expiry(medicine: MedicineRow, *, today: date) -> int:
    """Whole calendar days from ``today`` to the medicine's expiry date."""
    return (medicine.expiry_date - today).days


def is_low_stock(medicine: MedicineRow) -> bool:
    return medicine.quantity <= medicine.min_quantity


def is_expiring_soon(
    medicine: MedicineRow,
    *,
    today: date,
    horizon_days: int = DEFAULT_EXPIRY_HORIZON_DAYS,
) -> bool:
    """True when expiry is strictly in the future and within the horizon.

    Medicines that are already expired, or expire today, do not qualify.
    """
    return 0 < days_until_expiry(medicine, today=today) <= horizon_days


def matches_alert(notification: NotificationRow, kind: AlertKind, medicine: MedicineRow) -> bool:
    """Decide whether ``notification`` already covers ``kind`` for ``medicine``.

    Notifications carrying a structured key match on ``(kind, medicine_id)``.
    Notifications without one fall back to the title marker plus the medicine
    name appearing in the message.
    """
    if notification.alert_kind is not None:
        return notification.alert_kind == kind.value and notification.medicine_id == medicine.medicine_id
    return (
        _LEGACY_TITLE_MARKERS[kind] in notification.title
        and medicine.name in notification.message
    )


def has_alert(notifications: Iterable[NotificationRow], kind: AlertKind, medicine: MedicineRow) -> bool:
    return any(matches_alert(n, kind, medicine) for n in notifications)


def build_low_stock_alert(medicine: MedicineRow, *, notification_id: str, timestamp: datetime) -> NotificationRow:
    return NotificationRow(
        notification_id=notification_id,
        title=LOW_STOCK_TITLE,
        message=(
            f"{medicine.name} is running low. Current stock: {medicine.quantity}, "
            f"Minimum required: {medicine.min_quantity}"
        ),
        notification_type=NotificationType.WARNING.value,
        is_read=False,
        created_at_iso=timestamp.isoformat(),
        alert_kind=AlertKind.LOW_STOCK.value,
        medicine_id=medicine.medicine_id,
    )


def build_expiry_alert(
    medicine: MedicineRow,
    *,
    days_left: int,
    notification_id: str,
    timestamp: datetime,
) -> NotificationRow:
    return NotificationRow(
        notification_id=notification_id,
        title=EXPIRY_TITLE,
        message=(
            f"{medicine.name} will expire in {days_left} days "
            f"({medicine.expiry_date.isoformat()}). Current stock: {medicine.quantity}"
        ),
        notification_type=NotificationType.ERROR.value,
        is_read=False,
        created_at_iso=timestamp.isoformat(),
        alert_kind=AlertKind.EXPIRY.value,
        medicine_id=medicine.medicine_id,
    )


def reconcile(
    medicines: Sequence[MedicineRow],
    existing_notifications: Sequence[NotificationRow],
    *,
    today: Optional[date] = None,
    timestamp: Optional[datetime] = None,
    horizon_days: int = DEFAULT_EXPIRY_HORIZON_DAYS,
    low_stock_enabled: bool = True,
    expiry_enabled: bool = True,
    id_factory: Callable[[], str] = _default_notification_id,
) -> List[NotificationRow]:
    """Return existing notifications followed by the alerts that are missing.

    Args:
        medicines: Current inventory, evaluated in order.
        existing_notifications: Notifications raised so far, read or unread.
        today: Calendar date for expiry arithmetic. Defaults to the local date.
        timestamp: Creation time stamped on new alerts. Defaults to UTC now.
        horizon_days: Upper bound (inclusive) of the expiry window.
        low_stock_enabled: Evaluate the low-stock rule.
        expiry_enabled: Evaluate the expiry rule.
        id_factory: Produces a fresh notification id per new alert.

    Returns:
        list[NotificationRow]: ``existing_notifications`` unchanged, then new
            low-stock alerts in medicine order, then new expiry alerts.
    """
    today = today or date.today()
    timestamp = timestamp or datetime.now(UTC)
    known: List[NotificationRow] = list(existing_notifications)

    low_stock: List[NotificationRow] = []
    if low_stock_enabled:
        for medicine in medicines:
            if not is_low_stock(medicine) or has_alert(known, AlertKind.LOW_STOCK, medicine):
                continue
            alert = build_low_stock_alert(medicine, notification_id=id_factory(), timestamp=timestamp)
            low_stock.append(alert)
            known.append(alert)

    expiry: List[NotificationRow] = []
    if expiry_enabled:
        for medicine in medicines:
            if not is_expiring_soon(medicine, today=today, horizon_days=horizon_days):
                continue
            if has_alert(known, AlertKind.EXPIRY, medicine):
                continue
            alert = build_expiry_alert(
                medicine,
                days_left=days_until_expiry(medicine, today=today),
                notification_id=id_factory(),
                timestamp=timestamp,
            )
            expiry.append(alert)
            known.append(alert)

    if low_stock or expiry:
        log.info(
            "Reconciliation raised %d low-stock and %d expiry alert(s)",
            len(low_stock),
            len(expiry),
        )
    else:
        log.debug("Reconciliation found no missing alerts across %d medicines", len(medicines))

    return [*existing_notifications, *low_stock, *expiry]


__all__ = [
    "days_until_expiry",
    "is_low_stock",
    "is_expiring_soon",
    "matches_alert",
    "has_alert",
    "build_low_stock_alert",
    "build_expiry_alert",
    "reconcile",
]
