"""In-memory inventory ledger guarding the non-negative stock invariant.

The ledger is built from the medicine collection loaded by the data layer.
All stock changes go through :meth:`InventoryLedger.adjust_stock` or
:meth:`InventoryLedger.apply_adjustments`; both refuse to drive a quantity
below zero and never apply a change partially.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Mapping

from . import log
from .data_manager import MedicineRow
from .errors import InsufficientStockError, UnknownMedicineError


class InventoryLedger:
    """Stock records keyed by medicine id, in their original order."""

    def __init__(self, medicines: Iterable[MedicineRow]) -> None:
        self._records: Dict[str, MedicineRow] = {}
        for medicine in medicines:
            if medicine.quantity < 0:
                raise ValueError(
                    f"Medicine '{medicine.medicine_id}' has negative stock: {medicine.quantity}")
            if medicine.medicine_id in self._records:
                raise ValueError(f"Duplicate medicine id '{medicine.medicine_id}' in stock records")
            self._records[medicine.medicine_id] = medicine

    def __contains__(self, medicine_id: object) -> bool:
        return medicine_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def get_medicine(self, medicine_id: str) -> MedicineRow:
        try:
            return self._records[medicine_id]
        except KeyError as exc:
            log.warning("Inventory lookup failed for medicine '%s'", medicine_id)
            raise UnknownMedicineError(medicine_id) from exc

    def get_stock(self, medicine_id: str) -> int:
        return self.get_medicine(medicine_id).quantity

    def adjust_stock(self, medicine_id: str, delta: int) -> int:
        """Apply ``delta`` to one medicine and return the new quantity.

        Raises:
            UnknownMedicineError: If ``medicine_id`` is not in the ledger.
            InsufficientStockError: If the result would be negative; the
                stored quantity is left untouched.
        """
        medicine = self.get_medicine(medicine_id)
        new_quantity = medicine.quantity + int(delta)
        if new_quantity < 0:
            log.warning(
                "Rejected stock adjustment of %s for '%s' (available=%s)",
                delta,
                medicine_id,
                medicine.quantity,
            )
            raise InsufficientStockError(medicine_id, medicine.name, -int(delta), medicine.quantity)
        self._records[medicine_id] = replace(medicine, quantity=new_quantity)
        log.debug("Stock for '%s' adjusted by %s to %s", medicine_id, delta, new_quantity)
        return new_quantity

    def check_availability(self, requirements: Mapping[str, int]) -> None:
        """Verify that every ``{medicine_id: quantity}`` requirement is covered.

        Nothing is mutated. The first medicine that cannot be covered raises.
        """
        for medicine_id, required in requirements.items():
            medicine = self.get_medicine(medicine_id)
            if medicine.quantity < required:
                log.warning(
                    "Insufficient stock for '%s': required=%s available=%s",
                    medicine_id,
                    required,
                    medicine.quantity,
                )
                raise InsufficientStockError(medicine_id, medicine.name, required, medicine.quantity)

    def apply_adjustments(self, deltas: Mapping[str, int]) -> Dict[str, int]:
        """Apply several deltas as one unit and return the new quantities.

        Every delta is validated before any is applied, so a failure leaves
        the ledger exactly as it was.
        """
        consumption = {mid: -int(delta) for mid, delta in deltas.items() if int(delta) < 0}
        for medicine_id in deltas:
            self.get_medicine(medicine_id)
        self.check_availability(consumption)
        return {medicine_id: self.adjust_stock(medicine_id, delta) for medicine_id, delta in deltas.items()}

    def snapshot(self) -> List[MedicineRow]:
        """Return the current records in their original order."""
        return list(self._records.values())


__all__ = ["InventoryLedger"]
