import pytest

from meditrack.core.store import PredicateFailed, RecordConflict, RecordStore
from meditrack.models.appointment import Appointment, AppointmentStatus
from meditrack.models.feedback import Feedback
from meditrack.services.booking_service import BookingService


@pytest.fixture
def store(db):
    return RecordStore(db)


@pytest.fixture
def appointment(db, clock, patient, doctor):
    return BookingService(db, clock).request_appointment(
        patient, doctor.id, "2025-06-10", "09:00", "headache"
    )


class TestConditionalUpdate:

    def test_applies_patch_when_predicate_holds(self, store, appointment, doctor):
        updated = store.conditional_update(
            Appointment,
            appointment.id,
            {"status": AppointmentStatus.PENDING, "claimed_doctor_id": None},
            {"status": AppointmentStatus.CONFIRMED, "claimed_doctor_id": doctor.id},
        )

        assert updated.status == AppointmentStatus.CONFIRMED
        assert updated.claimed_doctor_id == doctor.id

    def test_predicate_mismatch_leaves_record_untouched(self, store, appointment, doctor):
        with pytest.raises(PredicateFailed):
            store.conditional_update(
                Appointment,
                appointment.id,
                {"status": AppointmentStatus.CONFIRMED},
                {"status": AppointmentStatus.IN_PROGRESS, "claimed_doctor_id": doctor.id},
            )

        stored = store.get(Appointment, appointment.id, refresh=True)
        assert stored.status == AppointmentStatus.PENDING
        assert stored.claimed_doctor_id is None

    def test_unknown_record(self, store):
        with pytest.raises(PredicateFailed):
            store.conditional_update(Appointment, "missing", {}, {"health_concern": "x"})

    def test_list_predicate_matches_any_value(self, store, appointment):
        updated = store.conditional_update(
            Appointment,
            appointment.id,
            {"status": [AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED]},
            {"health_concern": "migraine"},
        )
        assert updated.health_concern == "migraine"


class TestCreateAndQuery:

    def test_duplicate_insert_raises_conflict(self, store, clock, appointment, patient, doctor):
        def feedback():
            return Feedback(
                appointment_id=appointment.id,
                patient_id=patient.id,
                doctor_id=doctor.id,
                rating=5,
                created_at=clock(),
            )

        store.create(feedback())
        with pytest.raises(RecordConflict):
            store.create(feedback())

        assert len(store.query(Feedback, {"appointment_id": appointment.id})) == 1

    def test_query_filters_and_orders(self, store, db, clock, patient, other_patient, doctor):
        booking = BookingService(db, clock)
        first = booking.request_appointment(patient, doctor.id, "2025-06-10", "09:00", "a")
        clock.advance(minutes=1)
        second = booking.request_appointment(patient, doctor.id, "2025-06-10", "09:30", "b")
        booking.request_appointment(other_patient, doctor.id, "2025-06-10", "10:00", "c")

        found = store.query(
            Appointment,
            {"patient_id": patient.id},
            order_by=[Appointment.created_at.desc()],
        )
        assert [a.id for a in found] == [second.id, first.id]

        assert len(store.query(Appointment, {"claimed_doctor_id": None}, limit=2)) == 2
