"""Schedule Manager - stateful facade over the scheduling engines.

Holds the current medication list and the current ScheduleAggregate. The
aggregate is immutable and replaced wholesale on every regeneration or
status update, so readers never lock; writers are serialized with a lock.

Responsibilities:
- Validate a whole medication batch before any schedule is computed
- Regenerate the aggregate for a target date (single "now" per snapshot)
- Apply dose status updates and notify listeners (fire-and-forget)
- Build notification requests for the delivery layer
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import date, datetime
import threading
from typing import Any
from zoneinfo import ZoneInfo

from .. import const
from ..config import MealTimeConfiguration, build_notification_preferences
from ..engines.aggregate_engine import AggregateEngine, ScheduleAggregate
from ..engines.dose_engine import DoseEngine
from ..engines.dose_state_engine import DoseStateEngine
from ..engines.notification_engine import NotificationEngine
from ..engines.schedule_engine import RecurrenceEngine
from ..exceptions import DoseNotFoundError
from ..models import DoseStatus, ScheduledDose
from ..type_defs import MedicationData, NotificationPreferences, NotificationRequest
from ..utils.dt_utils import dt_now_local

StatusListener = Callable[[ScheduledDose, DoseStatus], None]


class ScheduleManager:
    """Owns the current schedule snapshot for one patient."""

    def __init__(
        self,
        meal_config: MealTimeConfiguration | None = None,
        preferences: NotificationPreferences | None = None,
        clock: Callable[[], datetime] | None = None,
        tz: ZoneInfo | None = None,
    ) -> None:
        """Initialize manager.

        Args:
            meal_config: Meal times (defaults when None)
            preferences: Notification preferences (defaults when None)
            clock: Source of "now"; defaults to dt_utils.dt_now_local
            tz: Optional timezone override for the local calendar
        """
        self._meal_config = meal_config or MealTimeConfiguration()
        self._preferences = preferences or build_notification_preferences()
        self._tz = tz
        self._clock: Callable[[], datetime] = clock or (lambda: dt_now_local(tz))
        self._lock = threading.Lock()
        self._listeners: list[StatusListener] = []
        self._medications: tuple[MedicationData, ...] = ()
        self._target_date: date | None = None
        self._aggregate = AggregateEngine.aggregate((), self._clock())

    # =========================================================================
    # Read access (no locking: snapshots are immutable)
    # =========================================================================

    @property
    def aggregate(self) -> ScheduleAggregate:
        return self._aggregate

    @property
    def medications(self) -> tuple[MedicationData, ...]:
        return self._medications

    @property
    def target_date(self) -> date | None:
        return self._target_date

    @property
    def meal_config(self) -> MealTimeConfiguration:
        return self._meal_config

    @property
    def preferences(self) -> NotificationPreferences:
        return self._preferences

    # =========================================================================
    # Configuration
    # =========================================================================

    def set_meal_config(self, meal_config: MealTimeConfiguration) -> None:
        """Replace meal times; takes effect on the next regeneration."""
        self._meal_config = meal_config

    def set_preferences(self, user_input: dict[str, Any] | None) -> NotificationPreferences:
        """Validate and store notification preferences.

        Raises:
            vol.Invalid: If the preferences fail schema validation
        """
        self._preferences = build_notification_preferences(user_input)
        return self._preferences

    # =========================================================================
    # Schedule computation
    # =========================================================================

    def set_medications(
        self,
        medications: Iterable[MedicationData],
        target_date: date | None = None,
    ) -> ScheduleAggregate:
        """Validate a medication batch and regenerate the schedule.

        The batch is validated in full before anything is replaced; on
        failure the previous medications and aggregate stay in place.

        Raises:
            InvalidMedicationError: A medication has no name
            InvalidFrequencyError: A medication has no rules or a bad rule
        """
        batch = tuple(medications)
        DoseStateEngine.validate_medications(batch)
        with self._lock:
            self._medications = batch
            return self._regenerate_locked(target_date)

    def refresh(self, target_date: date | None = None) -> ScheduleAggregate:
        """Regenerate for target_date (default: today) with a fresh "now".

        Statuses of doses that survive regeneration (same deterministic id)
        are carried over.
        """
        with self._lock:
            return self._regenerate_locked(target_date)

    def _regenerate_locked(self, target_date: date | None) -> ScheduleAggregate:
        now = self._clock()
        day = target_date or now.date()
        doses, failures = DoseEngine.generate_for_medications(
            self._medications, day, self._meal_config, self._tz
        )

        previous = self._aggregate
        carried = [
            self._carry_status(dose, previous.find(dose.id)) for dose in doses
        ]

        self._aggregate = AggregateEngine.aggregate(carried, now, failures)
        self._target_date = day
        const.LOGGER.debug(
            "Schedule regenerated for %s: %d dose(s), %d failure(s)",
            day,
            len(self._aggregate),
            len(failures),
        )
        return self._aggregate

    @staticmethod
    def _carry_status(dose: ScheduledDose, previous: ScheduledDose | None) -> ScheduledDose:
        if previous is None or previous.status is DoseStatus.SCHEDULED:
            return dose
        return DoseStateEngine.apply_status(
            dose, previous.status, previous.scheduled_time, previous.actual_taken_time
        )

    # =========================================================================
    # Status updates
    # =========================================================================

    def add_status_listener(self, listener: StatusListener) -> Callable[[], None]:
        """Register a callback for dose status changes.

        Listeners receive (updated_dose, previous_status). Exceptions raised by
        a listener are logged and never reach the caller.

        Returns:
            Callable that removes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def update_status(
        self,
        dose_id: str,
        status: DoseStatus,
        taken_time: datetime | None = None,
    ) -> ScheduledDose:
        """Apply a status change to the current aggregate.

        A newly Taken dose without an explicit taken_time is stamped with the
        clock at the moment of the update, not the snapshot's "now".

        Raises:
            DoseNotFoundError: If dose_id is not in the current aggregate
            InvalidDoseTransitionError: If the state machine forbids the move
        """
        with self._lock:
            previous = self._aggregate.find(dose_id)
            if (
                status is DoseStatus.TAKEN
                and taken_time is None
                and previous is not None
                and previous.status is not DoseStatus.TAKEN
            ):
                taken_time = self._clock()
            updated_aggregate = DoseStateEngine.update_status(
                self._aggregate, dose_id, status, taken_time
            )
            self._aggregate = updated_aggregate
            updated = updated_aggregate.find(dose_id)
            listeners = list(self._listeners)

        if updated is None or previous is None:
            # update_status raises for unknown ids, so this is unreachable
            raise DoseNotFoundError(dose_id)
        if updated != previous:
            self._notify(listeners, updated, previous.status)
        return updated

    @staticmethod
    def _notify(
        listeners: list[StatusListener], dose: ScheduledDose, previous_status: DoseStatus
    ) -> None:
        for listener in listeners:
            try:
                listener(dose, previous_status)
            except Exception:  # noqa: BLE001
                const.LOGGER.exception(
                    "Status listener %s failed for dose %s", listener, dose.id
                )

    # =========================================================================
    # Notifications / forward look
    # =========================================================================

    def notification_requests(self) -> list[NotificationRequest]:
        """Reminder requests for every current medication."""
        requests: list[NotificationRequest] = []
        for medication in self._medications:
            requests.extend(
                NotificationEngine.build_requests(
                    medication, self._meal_config, self._preferences
                )
            )
        return requests

    def next_occurrences(self, after: datetime | None = None) -> dict[str, datetime]:
        """Earliest next occurrence per medication id across all its rules."""
        reference = after or self._clock()
        result: dict[str, datetime] = {}
        for medication in self._medications:
            candidates = [
                RecurrenceEngine(
                    rule,
                    self._meal_config,
                    medication.get("start_date"),
                    self._tz,
                ).get_next_occurrence(reference)
                for rule in medication["frequencies"]
            ]
            if candidates:
                result[medication["internal_id"]] = min(candidates)
        return result
