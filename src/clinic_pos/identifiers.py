"""Identifier generation for stored records and patients."""

from __future__ import annotations

import random
import uuid
from datetime import UTC, datetime
from typing import Iterable, Optional

from . import log
from .constants import DEFAULT_PATIENT_ID_PREFIX


def generate_record_id(prefix: str, *, when: Optional[datetime] = None) -> str:
    """Generate a sortable, collision-resistant identifier.

    Args:
        prefix (str): Short designator for the record family (``"M"`` for
            medicines, ``"S"`` for sales, and so on).
        when (datetime | None): Timestamp embedded in the identifier. Defaults
            to the current UTC time.

    Returns:
        str: Identifier formed as ``{prefix}{YYYYMMDDHHMMSSffffff}-{hex6}``.

    The timestamp keeps identifiers roughly chronological; the random suffix
    keeps several records created within the same microsecond distinct.
    """
    when = when or datetime.now(UTC)
    return f"{prefix}{when.strftime('%Y%m%d%H%M%S%f')}-{uuid.uuid4().hex[:6]}"


def generate_patient_id(
    prefix: str = DEFAULT_PATIENT_ID_PREFIX,
    *,
    when: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """Build a human-readable patient identifier such as ``GN48213307``.

    The identifier is the prefix, the last six digits of the epoch
    milliseconds, and two random digits.
    """
    when = when or datetime.now(UTC)
    rng = rng or random.Random()
    millis = str(int(when.timestamp() * 1000))[-6:]
    return f"{prefix}{millis}{rng.randrange(100):02d}"


def generate_unique_patient_id(
    existing: Iterable[str],
    prefix: str = DEFAULT_PATIENT_ID_PREFIX,
    *,
    attempts: int = 20,
    rng: Optional[random.Random] = None,
) -> str:
    """Return a patient identifier that does not clash with ``existing``.

    Raises:
        RuntimeError: If ``attempts`` candidates in a row were already taken.
    """
    taken = set(existing)
    rng = rng or random.Random()
    for _ in range(attempts):
        candidate = generate_patient_id(prefix, rng=rng)
        if candidate not in taken:
            return candidate
        log.debug("Patient id '%s' already taken, retrying", candidate)
    raise RuntimeError(f"Unable to allocate a unique patient id after {attempts} attempts")


__all__ = ["generate_record_id", "generate_patient_id", "generate_unique_patient_id"]
