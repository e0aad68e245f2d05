"""Dose State Engine - status transitions and batch validation.

This engine provides stateless, pure Python functions for:
- Validating a dose status transition
- Applying a status update to an aggregate (copy-on-write)
- Validating a whole medication batch before any schedule is computed

The engine never marks a dose Missed on its own. Overdue is a derived,
read-only signal; the caller decides when to record Missed.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime
from typing import Any, ClassVar

from .. import const
from ..exceptions import (
    DoseNotFoundError,
    InvalidDoseTransitionError,
    InvalidFrequencyError,
    InvalidMedicationError,
)
from ..models import DoseStatus, ScheduledDose, validate_frequency
from ..type_defs import MedicationData
from .aggregate_engine import AggregateEngine, ScheduleAggregate


class DoseStateEngine:
    """Dose status state machine."""

    # Re-transition to TAKEN is permitted from MISSED/SKIPPED as a correction
    VALID_TRANSITIONS: ClassVar[dict[DoseStatus, list[DoseStatus]]] = {
        DoseStatus.SCHEDULED: [DoseStatus.TAKEN, DoseStatus.MISSED, DoseStatus.SKIPPED],
        DoseStatus.MISSED: [DoseStatus.TAKEN],
        DoseStatus.SKIPPED: [DoseStatus.TAKEN],
        DoseStatus.TAKEN: [],
    }

    @staticmethod
    def can_transition(current: DoseStatus, target: DoseStatus) -> bool:
        """Validate if a status transition is allowed.

        Same-status updates are always allowed (idempotent).
        """
        if current is target:
            return True
        return target in DoseStateEngine.VALID_TRANSITIONS.get(current, [])

    @staticmethod
    def apply_status(
        dose: ScheduledDose,
        status: DoseStatus,
        now: datetime,
        taken_time: datetime | None = None,
    ) -> ScheduledDose:
        """Return a copy of `dose` with the new status.

        TAKEN stamps `taken_time` (or `now`); any other status clears the
        taken time.

        Raises:
            InvalidDoseTransitionError: If the state machine forbids the move
        """
        if not DoseStateEngine.can_transition(dose.status, status):
            raise InvalidDoseTransitionError(dose.id, dose.status.value, status.value)

        if status is DoseStatus.TAKEN:
            actual = taken_time or dose.actual_taken_time or now
        else:
            actual = None
        return replace(dose, status=status, actual_taken_time=actual)

    @staticmethod
    def update_status(
        aggregate: ScheduleAggregate,
        dose_id: str,
        status: DoseStatus,
        taken_time: datetime | None = None,
    ) -> ScheduleAggregate:
        """Apply a status update and return the new aggregate.

        The passed aggregate is not modified.

        Raises:
            DoseNotFoundError: If dose_id is not in the aggregate
            InvalidDoseTransitionError: If the state machine forbids the move
        """
        dose = aggregate.find(dose_id)
        if dose is None:
            raise DoseNotFoundError(dose_id)

        updated = DoseStateEngine.apply_status(dose, status, aggregate.now, taken_time)
        if updated == dose:
            return aggregate

        const.LOGGER.debug(
            "Dose %s (%s) %s -> %s",
            dose_id,
            dose.medication_name,
            dose.status,
            status,
        )
        return AggregateEngine.replace_dose(aggregate, updated)

    # =========================================================================
    # Batch Validation
    # =========================================================================

    @staticmethod
    def validate_medication(medication: MedicationData | dict[str, Any]) -> None:
        """Validate one medication's name and full rule list.

        Raises:
            InvalidMedicationError: Empty/missing name
            InvalidFrequencyError: Empty rule list or an inconsistent rule
        """
        medication_id = str(medication.get(const.DATA_MEDICATION_ID, ""))
        name = medication.get(const.DATA_MEDICATION_NAME)
        if not isinstance(name, str) or not name.strip():
            raise InvalidMedicationError(
                f"Medication {medication_id or '<unknown>'} has no name",
                {"medication_id": medication_id, "detail": const.ERROR_DETAIL_EMPTY_NAME},
            )

        frequencies = medication.get(const.DATA_MEDICATION_FREQUENCIES) or []
        if not frequencies:
            raise InvalidFrequencyError(
                f"Medication {name} has no frequency rules",
                {"medication_id": medication_id, "detail": const.ERROR_DETAIL_NO_FREQUENCIES},
            )
        for index, rule in enumerate(frequencies):
            try:
                validate_frequency(rule)
            except InvalidFrequencyError as err:
                raise InvalidFrequencyError(
                    f"Medication {name} rule {index}: {err}",
                    {**err.placeholders, "medication_id": medication_id, "rule_index": str(index)},
                ) from err

    @staticmethod
    def validate_medications(medications: Iterable[MedicationData]) -> None:
        """Validate an entire batch; the first failure rejects all of it."""
        for medication in medications:
            DoseStateEngine.validate_medication(medication)
