"""Aggregate Engine - grouping, ordering and metrics for generated doses.

The aggregate is an immutable snapshot: every status change or regeneration
builds a new ScheduleAggregate, so readers never need a lock. "now" is
sampled once when the snapshot is built and reused by every derived query.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import MappingProxyType

from .. import const
from ..models import DoseStatus, ScheduledDose, TimeSlot
from ..type_defs import ScheduleMetrics, SchedulingFailure


def dose_sort_key(dose: ScheduledDose) -> tuple[datetime, str, str]:
    """Ascending scheduled time, ties broken by medication id then dose id."""
    return (dose.scheduled_time, dose.medication_id, dose.id)


@dataclass(frozen=True, eq=False)
class ScheduleAggregate:
    """Immutable snapshot of one schedule computation.

    Attributes:
        now: The single reference instant for overdue/upcoming derivations
        chronological: All doses in sort-key order
        by_time_slot: Non-empty slot buckets (slot order), each sorted
        failures: Rules whose expansion failed without aborting the batch
    """

    now: datetime
    chronological: tuple[ScheduledDose, ...] = ()
    by_time_slot: Mapping[TimeSlot, tuple[ScheduledDose, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    failures: tuple[SchedulingFailure, ...] = ()

    def __len__(self) -> int:
        return len(self.chronological)

    def find(self, dose_id: str) -> ScheduledDose | None:
        for dose in self.chronological:
            if dose.id == dose_id:
                return dose
        return None

    def overdue(self) -> list[ScheduledDose]:
        """Scheduled doses whose time has passed."""
        return [dose for dose in self.chronological if dose.is_overdue(self.now)]

    def upcoming(
        self, within_hours: float = const.DEFAULT_UPCOMING_WINDOW_HOURS
    ) -> list[ScheduledDose]:
        """Scheduled doses with now <= scheduled_time <= now + within_hours."""
        horizon = self.now + timedelta(hours=within_hours)
        return [
            dose
            for dose in self.chronological
            if dose.status is DoseStatus.SCHEDULED
            and self.now <= dose.scheduled_time <= horizon
        ]

    def next_dose(self) -> ScheduledDose | None:
        """Earliest scheduled dose at or after now."""
        for dose in self.chronological:
            if dose.status is DoseStatus.SCHEDULED and dose.scheduled_time >= self.now:
                return dose
        return None

    def metrics(self) -> ScheduleMetrics:
        return ScheduleMetrics(
            total=len(self.chronological),
            taken=sum(
                1 for dose in self.chronological if dose.status is DoseStatus.TAKEN
            ),
            overdue=len(self.overdue()),
            upcoming=len(self.upcoming()),
        )


class AggregateEngine:
    """Builds ScheduleAggregate snapshots."""

    @staticmethod
    def aggregate(
        doses: Iterable[ScheduledDose],
        now: datetime,
        failures: Iterable[SchedulingFailure] = (),
    ) -> ScheduleAggregate:
        """Group doses by time slot and sort them.

        Both the chronological list and each bucket are non-decreasing in
        scheduled_time with ties broken by medication id.
        """
        chronological = tuple(sorted(doses, key=dose_sort_key))

        buckets: dict[TimeSlot, list[ScheduledDose]] = {}
        for dose in chronological:
            buckets.setdefault(dose.time_slot, []).append(dose)
        by_time_slot = {
            slot: tuple(buckets[slot]) for slot in TimeSlot if slot in buckets
        }

        return ScheduleAggregate(
            now=now,
            chronological=chronological,
            by_time_slot=MappingProxyType(by_time_slot),
            failures=tuple(failures),
        )

    @staticmethod
    def replace_dose(
        aggregate: ScheduleAggregate, updated: ScheduledDose
    ) -> ScheduleAggregate:
        """Return a new aggregate with the dose of the same id swapped out.

        The original aggregate, and its "now", are left untouched.
        """
        doses = [
            updated if dose.id == updated.id else dose
            for dose in aggregate.chronological
        ]
        return AggregateEngine.aggregate(doses, aggregate.now, aggregate.failures)
