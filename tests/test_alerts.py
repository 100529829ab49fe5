"""Unit tests for low-stock and expiry alert reconciliation."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from itertools import count

import pytest

from clinic_pos import alerts, constants

from conftest import TODAY, make_medicine, make_notification

MOMENT = datetime(2024, 6, 1, 9, 30, tzinfo=UTC)


def _ids():
    counter = count(1)
    return lambda: f"N-new-{next(counter)}"


def _reconcile(medicines, existing=(), **kwargs):
    kwargs.setdefault("today", TODAY)
    kwargs.setdefault("timestamp", MOMENT)
    kwargs.setdefault("id_factory", _ids())
    return alerts.reconcile(medicines, list(existing), **kwargs)


@pytest.mark.parametrize(
    "quantity, minimum, expected",
    [(4, 5, True), (5, 5, True), (6, 5, False), (0, 0, True)],
)
def test_is_low_stock_boundaries(quantity, minimum, expected):
    """Stock at or below the minimum counts as low."""

    assert alerts.is_low_stock(make_medicine(quantity=quantity, min_quantity=minimum)) is expected


@pytest.mark.parametrize(
    "days, expected",
    [(-1, False), (0, False), (1, True), (30, True), (31, False)],
)
def test_is_expiring_soon_boundaries(days, expected):
    """Only strictly future expiry within the horizon qualifies."""

    medicine = make_medicine(expiry_date=TODAY + timedelta(days=days))

    assert alerts.is_expiring_soon(medicine, today=TODAY) is expected


def test_reconcile_raises_low_stock_alert():
    """A medicine at its minimum should produce one warning alert."""

    medicine = make_medicine("M1", name="Paracetamol", quantity=5, min_quantity=5)

    result = _reconcile([medicine])

    assert len(result) == 1
    alert = result[0]
    assert alert.title == constants.LOW_STOCK_TITLE
    assert alert.message == "Paracetamol is running low. Current stock: 5, Minimum required: 5"
    assert alert.notification_type == constants.NotificationType.WARNING.value
    assert alert.is_read is False
    assert alert.alert_kind == constants.AlertKind.LOW_STOCK.value
    assert alert.medicine_id == "M1"
    assert alert.created_at_iso == MOMENT.isoformat()


def test_reconcile_raises_expiry_alert_with_days_left():
    """Expiry alerts report the day count and the expiry date."""

    expiry = TODAY + timedelta(days=30)
    medicine = make_medicine("M1", name="Cough Syrup", quantity=50, expiry_date=expiry)

    result = _reconcile([medicine])

    assert len(result) == 1
    alert = result[0]
    assert alert.title == constants.EXPIRY_TITLE
    assert alert.message == f"Cough Syrup will expire in 30 days ({expiry.isoformat()}). Current stock: 50"
    assert alert.notification_type == constants.NotificationType.ERROR.value


def test_reconcile_skips_medicines_expiring_today_or_past():
    """Expired stock is not an 'expiring soon' alert."""

    medicines = [
        make_medicine("M1", quantity=50, expiry_date=TODAY),
        make_medicine("M2", quantity=50, expiry_date=TODAY - timedelta(days=3)),
    ]

    assert _reconcile(medicines) == []


def test_reconcile_orders_low_stock_before_expiry():
    """New low-stock alerts come first, then expiry alerts, after existing ones."""

    existing = [make_notification("N0", title="Welcome", message="hello")]
    medicines = [
        make_medicine("M1", name="Alpha", quantity=50, expiry_date=TODAY + timedelta(days=3)),
        make_medicine("M2", name="Beta", quantity=1, min_quantity=5),
    ]

    result = _reconcile(medicines, existing)

    assert [n.notification_id for n in result] == ["N0", "N-new-1", "N-new-2"]
    assert result[1].alert_kind == constants.AlertKind.LOW_STOCK.value
    assert result[1].medicine_id == "M2"
    assert result[2].alert_kind == constants.AlertKind.EXPIRY.value
    assert result[2].medicine_id == "M1"


def test_reconcile_is_idempotent():
    """Running twice with unchanged stock must not add anything the second time."""

    medicines = [make_medicine("M1", quantity=2, min_quantity=5, expiry_date=TODAY + timedelta(days=10))]

    first = _reconcile(medicines)
    second = _reconcile(medicines, first)

    assert len(first) == 2
    assert second == first


def test_reconcile_one_medicine_can_raise_both_kinds():
    """Low stock and expiry are tracked independently for a medicine."""

    medicine = make_medicine("M1", quantity=1, min_quantity=5, expiry_date=TODAY + timedelta(days=1))

    kinds = {n.alert_kind for n in _reconcile([medicine])}

    assert kinds == {constants.AlertKind.LOW_STOCK.value, constants.AlertKind.EXPIRY.value}


def test_reconcile_read_alert_still_suppresses_duplicate():
    """An alert the user already read still counts as raised."""

    medicine = make_medicine("M1", quantity=1, min_quantity=5)
    existing = [
        make_notification(
            "N1",
            is_read=True,
            alert_kind=constants.AlertKind.LOW_STOCK.value,
            medicine_id="M1",
        )
    ]

    assert _reconcile([medicine], existing) == existing


def test_reconcile_recognises_legacy_text_alerts():
    """Notifications without a structured key match on title and medicine name."""

    medicine = make_medicine("M1", name="Paracetamol", quantity=1, min_quantity=5)
    existing = [make_notification("N1", title="Low Stock Alert", message="Paracetamol is running low.")]

    assert _reconcile([medicine], existing) == existing


def test_structured_key_does_not_collide_on_similar_names():
    """A structured alert for 'Para' must not cover 'Paracetamol'."""

    medicines = [
        make_medicine("M1", name="Para", quantity=1, min_quantity=5),
        make_medicine("M2", name="Paracetamol", quantity=1, min_quantity=5),
    ]
    existing = [
        make_notification(
            "N1",
            message="Para is running low. Current stock: 1, Minimum required: 5",
            alert_kind=constants.AlertKind.LOW_STOCK.value,
            medicine_id="M1",
        )
    ]

    result = _reconcile(medicines, existing)

    assert [n.medicine_id for n in result[1:]] == ["M2"]


def test_reconcile_respects_disabled_rules():
    """Disabled rules produce no alerts."""

    medicine = make_medicine("M1", quantity=1, min_quantity=5, expiry_date=TODAY + timedelta(days=2))

    assert _reconcile([medicine], low_stock_enabled=False, expiry_enabled=False) == []
    only_expiry = _reconcile([medicine], low_stock_enabled=False)
    assert [n.alert_kind for n in only_expiry] == [constants.AlertKind.EXPIRY.value]


def test_reconcile_honours_custom_horizon():
    """The expiry window follows the configured horizon."""

    medicine = make_medicine("M1", quantity=50, expiry_date=TODAY + timedelta(days=45))

    assert _reconcile([medicine]) == []
    assert len(_reconcile([medicine], horizon_days=60)) == 1


def test_reconcile_never_mutates_existing_list():
    """The caller's notification list must not be modified."""

    existing = [make_notification("N0", title="Welcome", message="hello")]
    snapshot = list(existing)

    alerts.reconcile([make_medicine("M1", quantity=0)], existing, today=TODAY, timestamp=MOMENT)

    assert existing == snapshot
