"""Unit tests for AggregateEngine grouping, ordering and metrics."""

from datetime import timedelta

from medschedule.engines.aggregate_engine import AggregateEngine
from medschedule.engines.classifier_engine import classify_time_slot
from medschedule.engines.dose_engine import DoseEngine
from medschedule.models import DoseStatus, HourlyFrequency, TimeSlot
from tests.helpers import daily, make_dose, make_dt, make_medication

NOW = make_dt(2024, 1, 15, 12)


# =============================================================================
# Ordering
# =============================================================================


class TestSortInvariant:
    """Chronological list and slot buckets are sorted and consistent."""

    def test_generated_schedule_is_sorted(self) -> None:
        """Mixed medications sort by time, slots match the classifier."""
        medications = [
            make_medication("med-b", frequencies=[daily("20:00", "07:00")]),
            make_medication("med-a", frequencies=[HourlyFrequency(3)]),
            make_medication("med-c", frequencies=[daily("23:30", "12:00")]),
        ]
        doses, failures = DoseEngine.generate_for_medications(
            medications, NOW.date()
        )

        aggregate = AggregateEngine.aggregate(doses, NOW, failures)

        times = [d.scheduled_time for d in aggregate.chronological]
        assert times == sorted(times)
        assert len(aggregate) == len(doses)
        for slot, bucket in aggregate.by_time_slot.items():
            bucket_times = [d.scheduled_time for d in bucket]
            assert bucket_times == sorted(bucket_times)
            assert all(classify_time_slot(d.scheduled_time) is slot for d in bucket)
        assert sum(len(b) for b in aggregate.by_time_slot.values()) == len(doses)

    def test_ties_broken_by_medication_id(self) -> None:
        """Equal times order by medication id."""
        when = make_dt(2024, 1, 15, 8)
        doses = [
            make_dose("x", when, medication_id="zinc"),
            make_dose("y", when, medication_id="aspirin"),
        ]

        aggregate = AggregateEngine.aggregate(doses, NOW)

        assert [d.medication_id for d in aggregate.chronological] == ["aspirin", "zinc"]
        assert [d.medication_id for d in aggregate.by_time_slot[TimeSlot.MORNING]] == [
            "aspirin",
            "zinc",
        ]

    def test_only_non_empty_slots_in_slot_order(self) -> None:
        """Buckets follow Morning→Night order and omit empty slots."""
        doses = [
            make_dose("n", make_dt(2024, 1, 15, 22)),
            make_dose("m", make_dt(2024, 1, 15, 7)),
        ]
        aggregate = AggregateEngine.aggregate(doses, NOW)
        assert list(aggregate.by_time_slot) == [TimeSlot.MORNING, TimeSlot.NIGHT]

    def test_empty_aggregate(self) -> None:
        """No doses: empty views and zero metrics."""
        aggregate = AggregateEngine.aggregate([], NOW)
        assert aggregate.chronological == ()
        assert dict(aggregate.by_time_slot) == {}
        assert aggregate.next_dose() is None
        assert aggregate.metrics() == {"total": 0, "taken": 0, "overdue": 0, "upcoming": 0}


# =============================================================================
# Derived queries
# =============================================================================


class TestDerivedQueries:
    """overdue / upcoming / next_dose / metrics use the snapshot's now."""

    def _aggregate(self):  # type: ignore[no-untyped-def]
        doses = [
            make_dose("past", NOW - timedelta(hours=1)),
            make_dose("past-taken", NOW - timedelta(hours=2), status=DoseStatus.TAKEN),
            make_dose("soon", NOW + timedelta(minutes=20)),
            make_dose("edge", NOW + timedelta(hours=2)),
            make_dose("later", NOW + timedelta(hours=5)),
            make_dose("skipped", NOW + timedelta(hours=1), status=DoseStatus.SKIPPED),
        ]
        return AggregateEngine.aggregate(doses, NOW)

    def test_overdue(self) -> None:
        """Only still-scheduled doses in the past are overdue."""
        assert [d.id for d in self._aggregate().overdue()] == ["past"]

    def test_upcoming_default_window(self) -> None:
        """Two-hour window is inclusive at both ends."""
        assert [d.id for d in self._aggregate().upcoming()] == ["soon", "edge"]

    def test_upcoming_custom_window(self) -> None:
        """A wider window includes later doses."""
        assert [d.id for d in self._aggregate().upcoming(within_hours=6)] == [
            "soon",
            "edge",
            "later",
        ]

    def test_next_dose(self) -> None:
        """Earliest scheduled dose at or after now."""
        next_dose = self._aggregate().next_dose()
        assert next_dose is not None
        assert next_dose.id == "soon"

    def test_metrics(self) -> None:
        """Counts for total, taken, overdue and upcoming."""
        assert self._aggregate().metrics() == {
            "total": 6,
            "taken": 1,
            "overdue": 1,
            "upcoming": 2,
        }

    def test_find(self) -> None:
        """find() returns the dose or None."""
        aggregate = self._aggregate()
        found = aggregate.find("later")
        assert found is not None
        assert found.scheduled_time == NOW + timedelta(hours=5)
        assert aggregate.find("missing") is None


# =============================================================================
# Overdue derivation on the dose itself
# =============================================================================


class TestOverdueDerivation:
    """is_overdue is derived from status and time, never stored."""

    def test_scheduled_in_past_is_overdue(self) -> None:
        """Scheduled one hour ago → overdue."""
        dose = make_dose("d", NOW - timedelta(hours=1))
        assert dose.is_overdue(NOW) is True

    def test_taken_is_never_overdue(self) -> None:
        """Taken → not overdue regardless of time."""
        dose = make_dose("d", NOW - timedelta(hours=1), status=DoseStatus.TAKEN)
        assert dose.is_overdue(NOW) is False

    def test_due_soon_and_time_until_due(self) -> None:
        """Due soon is within 30 minutes ahead."""
        dose = make_dose("d", NOW + timedelta(minutes=30))
        assert dose.time_until_due(NOW) == timedelta(minutes=30)
        assert dose.is_due_soon(NOW) is True
        assert dose.is_due_soon(NOW - timedelta(minutes=1)) is False
        assert dose.is_overdue(NOW) is False
