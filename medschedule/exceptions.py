"""Exceptions raised by the medschedule engines and managers.

Every error carries a `translation_key` (ERROR_* constant) so callers can map
it to user-facing text, plus optional placeholders describing the failure.
Validation errors are raised before any shared state is mutated.
"""

from __future__ import annotations

from . import const


class MedicationScheduleError(Exception):
    """Base error for all scheduling failures.

    Attributes:
        translation_key: The ERROR_* constant identifying the failure kind
        placeholders: Extra context (medication id, offending field, etc.)
    """

    translation_key: str = const.ERROR_SCHEDULING_FAILED

    def __init__(
        self,
        message: str,
        placeholders: dict[str, str] | None = None,
    ) -> None:
        """Initialize MedicationScheduleError.

        Args:
            message: Human-readable description
            placeholders: Optional dict of context values
        """
        self.placeholders = placeholders or {}
        super().__init__(message)


class InvalidMedicationError(MedicationScheduleError):
    """Raised when a medication record cannot be scheduled (e.g. empty name)."""

    translation_key = const.ERROR_INVALID_MEDICATION


class InvalidFrequencyError(MedicationScheduleError):
    """Raised when a frequency rule is empty or internally inconsistent."""

    translation_key = const.ERROR_INVALID_FREQUENCY


class DoseNotFoundError(MedicationScheduleError):
    """Raised when a status update references a dose id not in the aggregate.

    Attributes:
        dose_id: The unknown dose id
    """

    translation_key = const.ERROR_DOSE_NOT_FOUND

    def __init__(self, dose_id: str) -> None:
        """Initialize DoseNotFoundError.

        Args:
            dose_id: The dose id that was not found
        """
        self.dose_id = dose_id
        super().__init__(
            f"Dose {dose_id} is not part of the current schedule",
            {"dose_id": dose_id},
        )


class InvalidDoseTransitionError(MedicationScheduleError):
    """Raised when a dose status change is not allowed by the state machine."""

    translation_key = const.ERROR_INVALID_DOSE_TRANSITION

    def __init__(self, dose_id: str, current_status: str, target_status: str) -> None:
        """Initialize InvalidDoseTransitionError.

        Args:
            dose_id: The dose being updated
            current_status: Status the dose currently has
            target_status: Status that was requested
        """
        self.dose_id = dose_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Dose {dose_id} cannot move from {current_status} to {target_status}",
            {
                "dose_id": dose_id,
                "current_status": current_status,
                "target_status": target_status,
            },
        )


class SchedulingFailedError(MedicationScheduleError):
    """Raised when expansion fails unexpectedly (calendar arithmetic overflow)."""

    translation_key = const.ERROR_SCHEDULING_FAILED
