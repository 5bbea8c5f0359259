from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from clinicflow.core.exceptions import (
    ClinicNotSetError,
    InvalidScheduleError,
    NotFoundError,
    PermissionDeniedError,
    ProfessionalNotQualifiedError,
    SlotUnavailableError,
)
from clinicflow.core.session import SchedulerSession
from clinicflow.models.status import CanonicalStatus
from clinicflow.services.availability_engine import AvailabilityReason
from clinicflow.services.identifier_reconciler import ALL_PROFESSIONALS
from tests.conftest import ANA_ID, ANA_PROFILE_ID, BRUNO_ID, BRUNO_PROFILE_ID, CLINIC_ID, OTHER_CLINIC_ID

TZ = ZoneInfo("America/Sao_Paulo")
UNKNOWN_ID = "99999999-9999-4999-8999-999999999999"


def booking(start, end, professional_id=ANA_ID, **extra):
    data = {
        'professional_id': professional_id,
        'client_id': 'client-1',
        'start': f"2024-01-08T{start}:00",
        'end': f"2024-01-08T{end}:00",
    }
    data.update(extra)
    return data


def stored_appointment(db, professional_id, start, end, status="agendado", clinic_id=CLINIC_ID, **extra):
    return db.insert(
        "appointments",
        clinic_id=clinic_id,
        professional_id=professional_id,
        client_id="client-legacy",
        start_time=datetime.fromisoformat(f"2024-01-08T{start}").replace(tzinfo=TZ),
        end_time=datetime.fromisoformat(f"2024-01-08T{end}").replace(tzinfo=TZ),
        status=status,
        **extra
    )


class TestAddAppointment:
    def test_creates_appointment_with_canonical_status(self, service, admin_session, db):
        appointment = service.add_appointment(admin_session, booking("10:00", "10:30", status="Agendado"))

        assert appointment.professional_id == ANA_ID
        assert appointment.status == CanonicalStatus.PENDING
        assert appointment.start == datetime(2024, 1, 8, 10, 0, tzinfo=TZ)

        row = db.rows("appointments")[0]
        assert row['professional_id'] == ANA_ID
        assert row['status'] == "pending"
        assert row['clinic_id'] == CLINIC_ID

    def test_rejects_double_booking(self, service, admin_session):
        service.add_appointment(admin_session, booking("10:00", "10:30"))

        with pytest.raises(SlotUnavailableError) as error:
            service.add_appointment(admin_session, booking("10:15", "10:45"))
        assert error.value.reason == AvailabilityReason.APPOINTMENT_CONFLICT

        service.add_appointment(admin_session, booking("10:30", "11:00"))

    def test_rejects_break(self, service, admin_session):
        with pytest.raises(SlotUnavailableError) as error:
            service.add_appointment(admin_session, booking("12:15", "12:45"))
        assert error.value.reason == AvailabilityReason.OVERLAPS_BREAK

    def test_profile_reference_is_resolved_before_booking(self, service, admin_session, db):
        appointment = service.add_appointment(admin_session, booking("10:00", "10:30", professional_id=ANA_PROFILE_ID))
        assert appointment.professional_id == ANA_ID
        assert db.rows("appointments")[0]['professional_id'] == ANA_ID

    def test_unassigned_appointment_is_stored_without_professional(self, service, admin_session, db):
        appointment = service.add_appointment(admin_session, booking("21:00", "21:30", professional_id=None))
        assert appointment.professional_id == ALL_PROFESSIONALS
        assert db.rows("appointments")[0]['professional_id'] is None

    def test_all_sentinel_is_stored_without_professional(self, service, admin_session, db):
        appointment = service.add_appointment(admin_session, booking("10:00", "10:30", professional_id=ALL_PROFESSIONALS))
        assert appointment.professional_id == ALL_PROFESSIONALS
        assert db.rows("appointments")[0]['professional_id'] is None

    def test_unknown_professional_is_rejected(self, service, admin_session, db):
        with pytest.raises(NotFoundError):
            service.add_appointment(admin_session, booking("10:00", "10:30", professional_id=UNKNOWN_ID))
        assert db.rows("appointments") == []

    def test_cancelled_appointment_frees_the_slot(self, service, admin_session, db):
        stored_appointment(db, ANA_ID, "10:00", "10:30", status="cancelado")
        service.add_appointment(admin_session, booking("10:00", "10:30"))

    def test_legacy_profile_reference_still_blocks(self, service, admin_session, db):
        stored_appointment(db, ANA_PROFILE_ID, "10:00", "10:30", status="Confirmado")
        with pytest.raises(SlotUnavailableError):
            service.add_appointment(admin_session, booking("10:00", "10:30"))

    def test_requires_clinic(self, service):
        session = SchedulerSession(user_id="user-x", role="admin")
        with pytest.raises(ClinicNotSetError):
            service.add_appointment(session, booking("10:00", "10:30"))

    def test_professional_cannot_create(self, service, ana_session):
        with pytest.raises(PermissionDeniedError):
            service.add_appointment(ana_session, booking("10:00", "10:30"))


class TestListAppointments:
    def test_references_are_reconciled(self, service, admin_session, db):
        linked = stored_appointment(db, ANA_PROFILE_ID, "09:00", "09:30", status="Confirmado")
        by_name = stored_appointment(db, BRUNO_PROFILE_ID, "10:00", "10:30")
        unassigned = stored_appointment(db, None, "11:00", "11:30")
        orphan = stored_appointment(db, "55555555-5555-4555-8555-555555555555", "14:00", "14:30")

        appointments = {a.id: a for a in service.list_appointments(admin_session)}

        assert appointments[linked].professional_id == ANA_ID
        assert appointments[linked].status == CanonicalStatus.CONFIRMED
        assert appointments[linked].raw_professional_ref == ANA_PROFILE_ID
        assert appointments[by_name].professional_id == BRUNO_ID
        assert appointments[unassigned].professional_id == ALL_PROFESSIONALS
        assert appointments[orphan].unresolved_professional
        assert appointments[orphan].professional_id == BRUNO_ID

    def test_filters(self, service, admin_session, db):
        stored_appointment(db, ANA_ID, "09:00", "09:30", status="finalizado")
        active = stored_appointment(db, ANA_ID, "10:00", "10:30")
        stored_appointment(db, BRUNO_ID, "10:00", "10:30")

        assert len(service.list_appointments(admin_session, professional_id=ANA_ID)) == 2
        assert [a.id for a in service.list_appointments(admin_session, ANA_ID, active_only=True)] == [active]
        assert len(service.list_appointments(admin_session, professional_id=ALL_PROFESSIONALS)) == 3

    def test_other_clinic_is_invisible(self, service, admin_session, db):
        stored_appointment(db, ANA_ID, "09:00", "09:30", clinic_id=OTHER_CLINIC_ID)
        assert service.list_appointments(admin_session) == []

    def test_malformed_row_is_skipped(self, service, admin_session, db):
        db.insert("appointments", professional_id=ANA_ID, start_time="quando puder", end_time=None)
        stored_appointment(db, ANA_ID, "10:00", "10:30")
        assert len(service.list_appointments(admin_session)) == 1


class TestUpdateAppointment:
    def test_reschedule_overlapping_itself(self, service, admin_session):
        appointment = service.add_appointment(admin_session, booking("10:00", "10:30"))

        moved = service.update_appointment(
            admin_session, appointment.id, {'start': "2024-01-08T10:15:00", 'end': "2024-01-08T10:45:00"}
        )
        assert moved.start == datetime(2024, 1, 8, 10, 15, tzinfo=TZ)
        assert moved.end == datetime(2024, 1, 8, 10, 45, tzinfo=TZ)

    def test_reschedule_into_conflict(self, service, admin_session):
        service.add_appointment(admin_session, booking("10:00", "10:30"))
        second = service.add_appointment(admin_session, booking("11:00", "11:30"))

        with pytest.raises(SlotUnavailableError):
            service.update_appointment(
                admin_session, second.id, {'start': "2024-01-08T10:00:00", 'end': "2024-01-08T10:30:00"}
            )

    def test_move_to_unqualified_professional(self, service, admin_session, db):
        db.insert("professional_services", professional_id=BRUNO_ID, service_id="svc-ortho")
        appointment = service.add_appointment(admin_session, booking("10:00", "10:30", service_id="svc-physio"))

        with pytest.raises(ProfessionalNotQualifiedError):
            service.update_appointment(admin_session, appointment.id, {'professional_id': BRUNO_ID})

    def test_move_to_qualified_professional(self, service, admin_session, db):
        db.insert("professional_services", professional_id=BRUNO_ID, service_id="svc-physio")
        appointment = service.add_appointment(admin_session, booking("10:00", "10:30", service_id="svc-physio"))

        moved = service.update_appointment(admin_session, appointment.id, {'professional_id': BRUNO_ID})
        assert moved.professional_id == BRUNO_ID
        assert db.rows("appointments")[0]['professional_id'] == BRUNO_ID

    def test_unknown_appointment(self, service, admin_session):
        with pytest.raises(NotFoundError):
            service.update_appointment(admin_session, "missing", {'notes': "x"})

    def test_professional_cannot_touch_other_agenda(self, service, admin_session, ana_session):
        appointment = service.add_appointment(admin_session, booking("10:00", "10:30", professional_id=BRUNO_ID))
        with pytest.raises(PermissionDeniedError):
            service.update_appointment(ana_session, appointment.id, {'notes': "x"})

    def test_professional_cannot_take_over_other_agenda(self, service, admin_session, ana_session, db):
        appointment = service.add_appointment(admin_session, booking("10:00", "10:30", professional_id=BRUNO_ID))
        with pytest.raises(PermissionDeniedError):
            service.update_appointment(ana_session, appointment.id, {'professional_id': ANA_ID})
        assert db.rows("appointments")[0]['professional_id'] == BRUNO_ID

    def test_move_to_unknown_professional_is_rejected(self, service, admin_session, db):
        appointment = service.add_appointment(admin_session, booking("10:00", "10:30"))
        with pytest.raises(NotFoundError):
            service.update_appointment(admin_session, appointment.id, {'professional_id': UNKNOWN_ID})
        assert db.rows("appointments")[0]['professional_id'] == ANA_ID

    def test_dirty_reference_stays_flagged_after_update(self, service, admin_session, db):
        appointment_id = stored_appointment(db, UNKNOWN_ID, "14:00", "14:30")

        updated = service.update_appointment(admin_session, appointment_id, {'notes': "Retorno"})
        assert updated.unresolved_professional
        assert db.rows("appointments")[0]['professional_id'] == UNKNOWN_ID

        confirmed = service.update_status(admin_session, appointment_id, "confirmado")
        assert confirmed.unresolved_professional


class TestStatus:
    def test_update_status_normalizes(self, service, admin_session, db):
        appointment = service.add_appointment(admin_session, booking("10:00", "10:30"))
        updated = service.update_status(admin_session, appointment.id, "Finalizado")
        assert updated.status == CanonicalStatus.COMPLETED
        assert db.rows("appointments")[0]['status'] == "completed"

    def test_cancel_keeps_row_and_frees_slot(self, service, admin_session, db):
        appointment = service.add_appointment(admin_session, booking("10:00", "10:30"))
        cancelled = service.cancel_appointment(admin_session, appointment.id)

        assert cancelled.status == CanonicalStatus.CANCELLED
        assert len(db.rows("appointments")) == 1
        service.add_appointment(admin_session, booking("10:00", "10:30"))

    def test_professional_updates_own_status(self, service, admin_session, ana_session):
        appointment = service.add_appointment(admin_session, booking("10:00", "10:30"))
        updated = service.update_status(ana_session, appointment.id, "em atendimento")
        assert updated.status == CanonicalStatus.IN_PROGRESS

    def test_remove_appointment(self, service, admin_session, db):
        appointment = service.add_appointment(admin_session, booking("10:00", "10:30"))
        service.remove_appointment(admin_session, appointment.id)
        assert db.rows("appointments") == []

        with pytest.raises(NotFoundError):
            service.remove_appointment(admin_session, appointment.id)


class TestRecurring:
    def test_weekly_series_skips_unavailable_dates(self, service, admin_session):
        service.add_time_off(admin_session, {
            'professional_id': ANA_ID, 'start_date': "2024-01-15", 'end_date': "2024-01-15",
        })

        result = service.book_recurring(admin_session, booking("10:00", "10:30"), "weekly", 3)

        assert len(result['created']) == 2
        assert result['skipped'] == ["2024-01-15T10:00:00-03:00"]

    def test_monthly_series(self, service, admin_session):
        result = service.book_recurring(admin_session, booking("10:00", "10:30"), "monthly", 3)
        assert len(result['created']) == 3
        starts = sorted(a.start for a in service.list_appointments(admin_session, ANA_ID))
        assert [s.date() for s in starts] == [date(2024, 1, 8), date(2024, 2, 8), date(2024, 3, 8)]

    def test_invalid_frequency(self, service, admin_session):
        with pytest.raises(InvalidScheduleError):
            service.book_recurring(admin_session, booking("10:00", "10:30"), "daily", 3)

    def test_invalid_occurrences(self, service, admin_session):
        with pytest.raises(InvalidScheduleError):
            service.book_recurring(admin_session, booking("10:00", "10:30"), "weekly", 0)


class TestBlocksAndTimeOffs:
    def test_block_lifecycle(self, service, admin_session):
        block = service.add_block(admin_session, {
            'professional_id': ANA_ID,
            'start': "2024-01-08T14:00:00",
            'end': "2024-01-08T15:00:00",
            'reason': "Reunião",
        })

        with pytest.raises(SlotUnavailableError) as error:
            service.add_appointment(admin_session, booking("14:30", "15:00"))
        assert error.value.reason == AvailabilityReason.BLOCK_CONFLICT

        service.remove_block(admin_session, block.id)
        service.add_appointment(admin_session, booking("14:30", "15:00"))

    def test_block_over_appointment_is_rejected(self, service, admin_session):
        service.add_appointment(admin_session, booking("10:00", "10:30"))
        with pytest.raises(SlotUnavailableError):
            service.add_block(admin_session, {
                'professional_id': ANA_ID, 'start': "2024-01-08T10:00:00", 'end': "2024-01-08T11:00:00",
            })

    def test_block_needs_professional(self, service, admin_session):
        with pytest.raises(InvalidScheduleError):
            service.add_block(admin_session, {'start': "2024-01-08T10:00:00", 'end': "2024-01-08T11:00:00"})

    def test_professional_blocks_only_own_agenda(self, service, ana_session):
        service.add_block(ana_session, {
            'professional_id': ANA_ID, 'start': "2024-01-08T16:00:00", 'end': "2024-01-08T17:00:00",
        })
        with pytest.raises(PermissionDeniedError):
            service.add_block(ana_session, {
                'professional_id': BRUNO_ID, 'start': "2024-01-08T16:00:00", 'end': "2024-01-08T17:00:00",
            })

    def test_time_off_lifecycle(self, service, admin_session):
        time_off = service.add_time_off(admin_session, {
            'professional_id': ANA_ID, 'start_date': "2024-01-08", 'end_date': "2024-01-09", 'notes': "Férias",
        })
        assert time_off.start_date == date(2024, 1, 8)

        with pytest.raises(SlotUnavailableError) as error:
            service.add_appointment(admin_session, booking("10:00", "10:30"))
        assert error.value.reason == AvailabilityReason.TIME_OFF_CONFLICT

        service.remove_time_off(admin_session, time_off.id)
        service.add_appointment(admin_session, booking("10:00", "10:30"))

    def test_time_off_with_inverted_dates(self, service, admin_session):
        with pytest.raises(InvalidScheduleError):
            service.add_time_off(admin_session, {
                'professional_id': ANA_ID, 'start_date': "2024-01-10", 'end_date': "2024-01-08",
            })

    def test_remove_unknown_block(self, service, admin_session):
        with pytest.raises(NotFoundError):
            service.remove_block(admin_session, "missing")


class TestWorkScheduleAndSlots:
    def test_set_work_schedule(self, service, admin_session):
        professional = service.set_work_schedule(admin_session, BRUNO_ID, {
            'days': [1, 3], 'start': "08:00", 'end': "12:00",
        })
        assert professional.work_schedule.days == [1, 3]

        with pytest.raises(SlotUnavailableError) as error:
            service.add_appointment(admin_session, {
                'professional_id': BRUNO_ID, 'start': "2024-01-09T08:00:00", 'end': "2024-01-09T08:30:00",
            })
        assert error.value.reason == AvailabilityReason.OUTSIDE_WORK_DAYS

    def test_clear_work_schedule(self, service, admin_session):
        professional = service.set_work_schedule(admin_session, ANA_ID, None)
        assert professional.work_schedule is None
        service.add_appointment(admin_session, booking("12:15", "12:45"))

    def test_invalid_work_schedule(self, service, admin_session):
        with pytest.raises(InvalidScheduleError):
            service.set_work_schedule(admin_session, ANA_ID, {'days': [1], 'start': "18:00", 'end': "09:00"})

    def test_unknown_professional(self, service, admin_session):
        with pytest.raises(NotFoundError):
            service.set_work_schedule(admin_session, "missing", None)

    def test_malformed_stored_schedule_is_ignored(self, service, admin_session, db):
        db.tables["professionals"][ANA_ID]['work_schedule'] = '{"days": [1], "start": "nove"}'
        service.add_appointment(admin_session, booking("12:15", "12:45"))

    def test_check_availability_by_profile_reference(self, service, receptionist_session):
        result = service.check_availability(
            receptionist_session, "2024-01-13T10:00:00", "2024-01-13T10:30:00", ANA_PROFILE_ID
        )
        assert not result.available
        assert result.reason == AvailabilityReason.OUTSIDE_WORK_DAYS

    def test_find_free_slots(self, service, receptionist_session, admin_session):
        service.add_appointment(admin_session, booking("10:00", "10:30"))
        now = datetime(2024, 1, 7, 12, 0, tzinfo=TZ)

        intervals = service.find_free_slots(receptionist_session, ANA_ID, date(2024, 1, 8), 30, now=now)
        assert intervals == [
            {'start': '09:00', 'end': '10:00'},
            {'start': '10:30', 'end': '12:00'},
            {'start': '13:00', 'end': '18:00'},
        ]

    def test_find_free_slots_with_business_hours(self, service, receptionist_session):
        now = datetime(2024, 1, 7, 12, 0, tzinfo=TZ)
        intervals = service.find_free_slots(receptionist_session, BRUNO_ID, date(2024, 1, 13), 60, now=now)
        assert intervals == [{'start': '08:00', 'end': '19:00'}]

    def test_find_free_slots_unknown_professional(self, service, receptionist_session):
        with pytest.raises(NotFoundError):
            service.find_free_slots(receptionist_session, "missing", date(2024, 1, 8), 30)
