"""
Tests for the Reminder Engine
Reconciliation of local notifications with the dose schedule
"""

import pytest
from datetime import timedelta

from actions.reminder_engine import ReminderReconciler, ReminderState, build_payload, dose_key
from tools.notification_service import NotificationState

from tests.conftest import TODAY, at, make_medicine


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def reminders(memory_services):
    return memory_services.reminders


async def setup_patient(services, patient_id="pat_1", medicine_id="med_1", times=("08:00", "20:00"), now=None, **kwargs):
    await services.patient_service.create_patient("Asha", patient_id=patient_id, now=now or at(7))
    return await services.medication_service.add_medicine(
        patient_id, "Metformin", "500mg",
        schedule=[{"time": t} for t in times],
        medicine_id=medicine_id,
        now=now or at(7),
        **kwargs
    )


# =============================================================================
# Payloads
# =============================================================================

class TestBuildPayload:

    @pytest.mark.unit
    def test_critical_medicine_gets_high_priority(self):
        payload = build_payload(make_medicine(is_critical=True), at(8), "due")
        assert payload["title"] == "Important Medicine Reminder"
        assert payload["priority"] == "high"
        assert payload["body"].startswith("Time to take Metformin (500mg)")

    @pytest.mark.unit
    def test_snoozed_payload(self):
        payload = build_payload(make_medicine(), at(8), "snoozed")
        assert payload["snoozed"] is True
        assert payload["priority"] == "normal"
        assert payload["clock_time"] == "08:00"

    @pytest.mark.unit
    def test_dose_key_is_minute_precise(self):
        assert dose_key("med_1", at(8).replace(second=59)) == "med_1@2024-03-06T08:00"


# =============================================================================
# Resync
# =============================================================================

class TestResync:

    @pytest.mark.asyncio
    async def test_one_reminder_per_pending_future_dose(self, memory_services, reminders, notification_sink):
        await setup_patient(memory_services)

        result = await reminders.resync("pat_1", at(9))

        scheduled = reminders.scheduled("pat_1")
        # 08:00 today is overdue by 09:00
        assert result.scheduled == 13
        assert len(scheduled) == 13
        assert scheduled[0].target_time == at(20)
        assert len({r.key for r in scheduled}) == 13
        assert len(notification_sink.pending()) == 13

    @pytest.mark.asyncio
    async def test_resync_is_repeatable(self, memory_services, reminders, notification_sink):
        await setup_patient(memory_services)

        first = await reminders.resync("pat_1", at(9))
        second = await reminders.resync("pat_1", at(9))

        assert second.cancelled == first.scheduled
        assert second.scheduled == first.scheduled
        assert len(notification_sink.pending()) == second.scheduled

    @pytest.mark.asyncio
    async def test_resync_leaves_other_patients_alone(self, memory_services, reminders):
        await setup_patient(memory_services, "pat_1", "med_1")
        await setup_patient(memory_services, "pat_2", "med_2")

        before = [r.handle for r in reminders.scheduled("pat_2")]
        await reminders.resync("pat_1", at(9))

        assert [r.handle for r in reminders.scheduled("pat_2")] == before

    @pytest.mark.asyncio
    async def test_course_end_limits_lookahead(self, memory_services, reminders):
        await setup_patient(memory_services, end_date=TODAY + timedelta(days=1))
        assert len(reminders.scheduled("pat_1")) == 4

    @pytest.mark.asyncio
    async def test_deleting_medicine_cancels_its_reminders(self, memory_services, reminders, notification_sink):
        await setup_patient(memory_services)

        await memory_services.medication_service.delete_medicine("med_1", now=at(7, 30))

        assert reminders.scheduled("pat_1") == []
        assert notification_sink.pending() == []

    @pytest.mark.asyncio
    async def test_reset_clears_everything(self, memory_services, reminders, notification_sink):
        await setup_patient(memory_services)
        notification_sink.schedule(at(12), {"title": "untracked"})

        await reminders.reset()

        assert reminders.scheduled() == []
        assert notification_sink.pending() == []


# =============================================================================
# Dose events
# =============================================================================

class TestDoseEvents:

    @pytest.mark.asyncio
    async def test_taken_before_reminder_fires_cancels_it(self, memory_services, reminders, notification_sink):
        await setup_patient(memory_services)
        evening = next(r for r in reminders.scheduled("pat_1") if r.target_time == at(20))

        await memory_services.medication_service.log_dose_taken("pat_1", "med_1", at(20), now=at(19, 59))
        fired = notification_sink.fire_due(at(20, 1))

        assert notification_sink.get(evening.handle).state == NotificationState.CANCELLED
        assert all(n.payload["scheduled_time"] != at(20).isoformat() for n in fired)
        assert reminders.state_of("med_1", at(20)) == ReminderState.RESOLVED

    @pytest.mark.asyncio
    async def test_on_dose_resolved_reports_cancellation(self, memory_services, reminders):
        await setup_patient(memory_services)

        assert reminders.on_dose_resolved("med_1", at(20)) is True
        assert reminders.on_dose_resolved("med_1", at(20)) is False
        assert reminders.on_dose_resolved("med_unknown", at(20)) is False

    @pytest.mark.asyncio
    async def test_fired_reminder_is_not_cancelled(self, memory_services, reminders, notification_sink):
        await setup_patient(memory_services)

        delivered = notification_sink.fire_due(at(8))
        reminder = reminders.mark_fired(delivered[0].handle)

        assert reminder.state == ReminderState.FIRED
        assert reminders.on_dose_resolved("med_1", at(8)) is False
        assert reminders.mark_fired("ntf_unknown") is None

    @pytest.mark.asyncio
    async def test_snooze_schedules_one_off_reminder(self, memory_services, reminders, notification_sink):
        await setup_patient(memory_services)

        await memory_services.medication_service.log_dose_snoozed("pat_1", "med_1", at(8), now=at(8, 5))

        snoozes = reminders.snoozed("pat_1")
        assert len(snoozes) == 1
        assert snoozes[0].target_time == at(8, 20)
        assert snoozes[0].payload["snoozed"] is True

        # Snoozing again replaces the pending one-off
        await memory_services.medication_service.log_dose_snoozed("pat_1", "med_1", at(8), now=at(8, 20))
        snoozes = reminders.snoozed("pat_1")
        assert len(snoozes) == 1
        assert snoozes[0].target_time == at(8, 35)

    @pytest.mark.asyncio
    async def test_taking_snoozed_dose_cancels_snooze(self, memory_services, reminders, notification_sink):
        await setup_patient(memory_services)
        await memory_services.medication_service.log_dose_snoozed("pat_1", "med_1", at(8), now=at(8, 5))
        handle = reminders.snoozed("pat_1")[0].handle

        await memory_services.medication_service.log_dose_taken("pat_1", "med_1", at(8), now=at(8, 10))

        assert reminders.snoozed("pat_1") == []
        assert notification_sink.get(handle).state == NotificationState.CANCELLED

    @pytest.mark.asyncio
    async def test_snooze_survives_resync(self, memory_services, reminders):
        await setup_patient(memory_services)
        await memory_services.medication_service.log_dose_snoozed("pat_1", "med_1", at(8), now=at(8, 5))

        await reminders.resync("pat_1", at(8, 6))

        assert len(reminders.snoozed("pat_1")) == 1


# =============================================================================
# Resync invariant
# =============================================================================

def pending_targets(notification_sink, day=TODAY):
    return sorted(n.target_time for n in notification_sink.pending() if n.target_time.date() == day)


class TestResyncInvariant:

    @pytest.mark.asyncio
    async def test_dose_skipped_in_advance_keeps_its_reminder(self, memory_services, reminders, notification_sink):
        await setup_patient(memory_services)

        await memory_services.medication_service.log_dose_skipped("pat_1", "med_1", at(20), now=at(8, 10))

        # 20:00 today plus two doses on each of the next six days
        assert len(notification_sink.pending()) == 13
        assert pending_targets(notification_sink) == [at(20)]
        assert reminders.state_of("med_1", at(20)) == ReminderState.SCHEDULED

    @pytest.mark.asyncio
    async def test_snoozed_future_dose_has_only_the_snooze(self, memory_services, reminders, notification_sink):
        await setup_patient(memory_services)

        await memory_services.medication_service.log_dose_snoozed("pat_1", "med_1", at(20), now=at(19, 55))

        assert pending_targets(notification_sink) == [at(20, 10)]
        assert len(notification_sink.pending()) == 13

    @pytest.mark.asyncio
    async def test_past_days_are_forgotten(self, memory_services, reminders, notification_sink):
        await setup_patient(memory_services)
        delivered = notification_sink.fire_due(at(8))
        reminders.mark_fired(delivered[0].handle)
        tomorrow = TODAY + timedelta(days=1)

        await reminders.resync("pat_1", at(9, day=tomorrow))

        assert all(r.scheduled_time.date() >= tomorrow for r in reminders._reminders.values())
        assert reminders.state_of("med_1", at(8)) == ReminderState.UNSCHEDULED
        assert pending_targets(notification_sink) == []

    @pytest.mark.asyncio
    async def test_zero_lookahead_is_respected(self, memory_services, notification_sink):
        await setup_patient(memory_services)
        reconciler = ReminderReconciler(
            memory_services.schedule_service, notification_sink, lookahead_days=0, snooze_minutes=0
        )

        result = await reconciler.resync("pat_1", at(9))
        snooze = reconciler.snooze(make_medicine(), at(8), at(9))

        assert result.scheduled == 0
        assert reconciler.scheduled("pat_1") == []
        assert snooze.target_time == at(9)
