"""
Tests for the Schedule Expander
"""

import pytest
from dataclasses import replace
from datetime import datetime, date

from errors import MalformedScheduleError
from services.schedule_expander import ScheduleExpander
from tools.records import DoseSchedule

from tests.conftest import TODAY, at, make_medicine


@pytest.fixture
def expander():
    return ScheduleExpander()


class TestExpand:
    """Tests for single-medicine expansion"""

    @pytest.mark.unit
    def test_doses_in_clock_order(self, expander):
        medicine = make_medicine(times=("20:00", "08:00", "13:30"))
        seeds = expander.expand(medicine, TODAY)
        assert [s.scheduled_time for s in seeds] == [at(8), at(13, 30), at(20)]
        assert all(s.medicine_id == "med_1" for s in seeds)

    @pytest.mark.unit
    def test_times_are_normalized(self, expander):
        medicine = make_medicine(times=("8:00",))
        seeds = expander.expand(medicine, TODAY)
        assert seeds[0].clock_time == "08:00"

    @pytest.mark.unit
    def test_duplicate_times_give_one_dose(self, expander):
        medicine = make_medicine(times=("08:00", "8:00", "08:00"))
        assert len(expander.expand(medicine, TODAY)) == 1

    @pytest.mark.unit
    def test_malformed_entry_rejects_whole_medicine(self, expander):
        medicine = make_medicine(times=("08:00", "25:00"))
        with pytest.raises(MalformedScheduleError):
            expander.expand(medicine, TODAY)

    @pytest.mark.unit
    def test_outside_course_dates_is_empty(self, expander):
        medicine = make_medicine(start_date=date(2024, 3, 7))
        assert expander.expand(medicine, TODAY) == []
        ended = make_medicine(end_date=date(2024, 3, 5))
        assert expander.expand(ended, TODAY) == []

    @pytest.mark.unit
    def test_days_of_week_filter(self, expander):
        # TODAY is a Wednesday (weekday 2)
        weekly = replace(make_medicine(), schedule=(
            DoseSchedule(time="09:00", days_of_week=(0, 4)),
            DoseSchedule(time="10:00", days_of_week=(2,)),
        ))
        seeds = expander.expand(weekly, TODAY)
        assert [s.clock_time for s in seeds] == ["10:00"]


class TestExpandAll:
    """Tests for whole-day expansion"""

    @pytest.mark.unit
    def test_ties_follow_creation_order(self, expander):
        later = make_medicine("med_b", times=("08:00",), created_at=datetime(2024, 2, 1))
        earlier = make_medicine("med_a", times=("08:00",), created_at=datetime(2024, 1, 1))

        plan = expander.expand_all([later, earlier], TODAY)

        assert [s.medicine_id for s in plan.seeds] == ["med_a", "med_b"]

    @pytest.mark.unit
    def test_malformed_medicine_is_reported_not_raised(self, expander):
        good = make_medicine("med_good", times=("08:00",))
        bad = make_medicine("med_bad", times=("noon",))

        plan = expander.expand_all([good, bad], TODAY)

        assert [s.medicine_id for s in plan.seeds] == ["med_good"]
        assert plan.rejected == ("med_bad",)

    @pytest.mark.unit
    def test_deterministic(self, expander):
        medicines = [
            make_medicine("med_1", times=("08:00", "20:00")),
            make_medicine("med_2", times=("12:00",), created_at=None),
        ]
        assert expander.expand_all(medicines, TODAY) == expander.expand_all(medicines, TODAY)
