"""Tests for the slot calendar."""

from datetime import datetime

import pytest

from shootmatch.config import settings
from shootmatch.engine import availability
from shootmatch.errors import ValidationError
from shootmatch.schemas.party_schema import BookedInterval, Photographer, TimeOff
from tests.conftest import CENTER, DAY, make_photographer


def _with_booking(photographer: Photographer, start: str, end: str, booking_id: str = "b-1",
                  cancelled: bool = False) -> Photographer:
    photographer.bookings.append(BookedInterval(
        booking_id=booking_id, date=DAY, start_time=start, end_time=end, cancelled=cancelled,
    ))
    return photographer


class TestCandidateSlots:
    def test_returns_weekday_template(self):
        p = make_photographer(slots=["08:00", "09:30"])
        assert availability.candidate_slots(p, DAY) == ["08:00", "09:30"]

    def test_unconfigured_day_is_empty(self):
        p = Photographer(id="p", base=CENTER, radius_km=5, availability={"monday": ["08:00"]})
        assert availability.candidate_slots(p, DAY) == []

    def test_sorted_and_unique(self):
        p = make_photographer(slots=["15:00", "08:00", "09:30", "08:00"])
        slots = availability.candidate_slots(p, DAY)
        assert slots == sorted(slots)
        assert len(slots) == len(set(slots))

    def test_unknown_weekday_rejected(self):
        with pytest.raises(ValueError):
            Photographer(id="p", base=CENTER, radius_km=5, availability={"funday": ["08:00"]})


class TestDayToggle:
    def test_disabling_clears_slots(self):
        p = availability.set_day_enabled(make_photographer(), "wednesday", False)
        assert availability.candidate_slots(p, DAY) == []
        assert "wednesday" in p.availability

    def test_reenabling_restores_default_template(self):
        p = make_photographer(slots=["07:00", "19:00"])
        p = availability.set_day_enabled(p, "Wednesday", False)
        p = availability.set_day_enabled(p, "Wednesday", True)
        assert availability.candidate_slots(p, DAY) == list(settings.schedule.default_day_template)

    def test_unknown_weekday(self):
        with pytest.raises(ValidationError):
            availability.set_day_enabled(make_photographer(), "someday", True)


class TestIsSlotFree:
    def test_empty_calendar(self):
        assert availability.is_slot_free(make_photographer(), DAY, "09:30", 60)

    def test_ad_hoc_start_never_free(self):
        assert not availability.is_slot_free(make_photographer(), DAY, "10:00", 60)

    def test_overlap_is_busy(self):
        p = _with_booking(make_photographer(), "09:00", "10:00")
        assert not availability.is_slot_free(p, DAY, "09:30", 60)

    def test_back_to_back_is_free(self):
        # Scenario: 14:15 + 105 min ends exactly when the next booking starts.
        p = _with_booking(make_photographer(slots=["14:15", "16:00"]), "16:00", "17:00")
        assert availability.is_slot_free(p, DAY, "14:15", 105)
        assert not availability.is_slot_free(p, DAY, "14:15", 106)

    def test_cancelled_booking_ignored(self):
        p = _with_booking(make_photographer(), "09:30", "10:30", cancelled=True)
        assert availability.is_slot_free(p, DAY, "09:30", 60)

    def test_self_exclusion(self):
        p = _with_booking(make_photographer(), "09:30", "10:30", booking_id="own")
        assert not availability.is_slot_free(p, DAY, "09:30", 60)
        assert availability.is_slot_free(p, DAY, "09:30", 60, exclude_booking_id="own")

    def test_other_day_ignored(self):
        p = make_photographer()
        p.bookings.append(BookedInterval(
            booking_id="x", date=DAY.replace(day=DAY.day + 1), start_time="09:30", end_time="10:30",
        ))
        assert availability.is_slot_free(p, DAY, "09:30", 60)

    def test_time_off_blocks(self):
        p = make_photographer(time_offs=[TimeOff(
            id="t", photographer_id="ph-1",
            start=datetime(2026, 3, 18, 9, 0), end=datetime(2026, 3, 18, 12, 0),
        )])
        assert not availability.is_slot_free(p, DAY, "11:00", 60)
        assert availability.is_slot_free(p, DAY, "13:30", 60)

    def test_time_off_touching_edge_is_free(self):
        p = make_photographer(time_offs=[TimeOff(
            id="t", photographer_id="ph-1",
            start=datetime(2026, 3, 18, 10, 30), end=datetime(2026, 3, 18, 12, 0),
        )])
        assert availability.is_slot_free(p, DAY, "09:30", 60)

    def test_unapproved_time_off_ignored(self):
        p = make_photographer(time_offs=[TimeOff(
            id="t", photographer_id="ph-1", approved=False,
            start=datetime(2026, 3, 18, 0, 0), end=datetime(2026, 3, 19, 0, 0),
        )])
        assert availability.is_slot_free(p, DAY, "09:30", 60)

    def test_crossing_midnight_is_invalid(self):
        p = make_photographer(slots=["22:00"])
        assert availability.is_slot_free(p, DAY, "22:00", 119)
        assert not availability.is_slot_free(p, DAY, "22:00", 120)

    def test_negative_duration_rejected(self):
        with pytest.raises(ValidationError):
            availability.is_slot_free(make_photographer(), DAY, "09:30", -5)


class TestAvailableSlots:
    def test_filters_busy_slots(self):
        p = _with_booking(make_photographer(), "09:00", "10:00")
        free = availability.available_slots(p, DAY, 60)
        assert "09:30" not in free
        assert free[0] == "08:00"

    def test_long_session_drops_slots_before_booking(self):
        p = _with_booking(make_photographer(), "11:00", "12:00")
        free = availability.available_slots(p, DAY, 120)
        assert "08:00" in free
        assert "09:30" not in free
        assert "11:00" not in free
        assert "13:30" in free

    def test_not_before(self):
        free = availability.available_slots(make_photographer(), DAY, 60, not_before_minutes=14 * 60)
        assert free == ["15:00", "16:30"]


class TestEndTime:
    def test_end_time(self):
        assert availability.end_time_for("14:15", 105) == "16:00"

    def test_midnight_rejected(self):
        with pytest.raises(ValidationError, match="midnight"):
            availability.end_time_for("23:00", 60)
