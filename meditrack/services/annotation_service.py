from typing import Any, Iterable, List, Optional
import logging

from sqlalchemy.orm import Session

from ..core.clock import Clock, utcnow
from ..core.config import settings
from ..core.exceptions import (
    AlreadyExists, CommentTooLong, InvalidMedicine, InvalidRating,
    NotCompleted, NotFound, NotOwner
)
from ..core.store import RecordConflict, RecordStore
from ..models.appointment import Appointment, AppointmentStatus
from ..models.feedback import Feedback
from ..models.prescription import Prescription
from ..models.user import User

logger = logging.getLogger(__name__)

MEDICINE_FIELDS = ("name", "dosage", "frequency")


def _field(medicine: Any, name: str):
    if isinstance(medicine, dict):
        return medicine.get(name)
    return getattr(medicine, name, None)


def normalize_medicines(medicines: Optional[Iterable[Any]]) -> List[dict]:
    """Validate medicine entries and return them as ordered plain dicts."""
    entries = list(medicines or [])
    if not entries:
        raise InvalidMedicine("Add at least one medicine")

    normalized = []
    for medicine in entries:
        values = {name: _field(medicine, name) for name in MEDICINE_FIELDS}
        if any(not isinstance(v, str) or not v.strip() for v in values.values()):
            raise InvalidMedicine()
        normalized.append({name: value.strip() for name, value in values.items()})
    return normalized


def validate_rating(rating: Any) -> int:
    # bool is an int subclass; True is not a rating
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise InvalidRating()
    if not 1 <= rating <= 5:
        raise InvalidRating()
    return rating


class ClinicalAnnotationService:
    """Prescriptions and feedback on completed appointments.

    Both are append-only: created once, never updated or deleted.
    """

    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.store = RecordStore(db)
        self.clock = clock

    def attach_prescription(self, appointment_id: str, doctor: User, medicines) -> Prescription:
        appointment = self._completed_appointment(appointment_id)
        if appointment.claimed_doctor_id != doctor.id:
            raise NotOwner("Only the doctor who handled this appointment can prescribe")

        entries = normalize_medicines(medicines)

        if self.store.query(Prescription, {"appointment_id": appointment_id}, limit=1):
            raise AlreadyExists("A prescription has already been added to this appointment")

        prescription = Prescription(
            appointment_id=appointment_id,
            doctor_id=doctor.id,
            medicines=entries,
            created_at=self.clock(),
        )
        try:
            self.store.create(prescription)
        except RecordConflict:
            raise AlreadyExists("A prescription has already been added to this appointment")

        logger.info(
            f"Prescription {prescription.id} with {len(entries)} medicine(s) "
            f"added to appointment {appointment_id}"
        )
        return prescription

    def attach_feedback(
        self,
        appointment_id: str,
        patient: User,
        rating: Any,
        comment: Optional[str] = None,
    ) -> Feedback:
        appointment = self._completed_appointment(appointment_id)
        if appointment.patient_id != patient.id:
            raise NotOwner("Only the patient of this appointment can leave feedback")

        rating = validate_rating(rating)
        if comment is not None and len(comment) > settings.COMMENT_MAX_LENGTH:
            raise CommentTooLong(
                f"Comment must be {settings.COMMENT_MAX_LENGTH} characters or less"
            )

        existing = self.store.query(
            Feedback,
            {"appointment_id": appointment_id, "patient_id": patient.id},
            limit=1,
        )
        if existing:
            raise AlreadyExists("Feedback has already been submitted for this appointment")

        feedback = Feedback(
            appointment_id=appointment_id,
            patient_id=patient.id,
            doctor_id=appointment.claimed_doctor_id,
            rating=rating,
            comment=comment or None,
            created_at=self.clock(),
        )
        try:
            self.store.create(feedback)
        except RecordConflict:
            raise AlreadyExists("Feedback has already been submitted for this appointment")

        logger.info(f"Feedback {feedback.id} ({rating}/5) added to appointment {appointment_id}")
        return feedback

    def get_prescription(self, appointment_id: str, caller: User) -> Prescription:
        self._participant_appointment(appointment_id, caller)
        found = self.store.query(Prescription, {"appointment_id": appointment_id}, limit=1)
        if not found:
            raise NotFound("No prescription for this appointment")
        return found[0]

    def get_feedback(self, appointment_id: str, caller: User) -> Feedback:
        appointment = self._participant_appointment(appointment_id, caller)
        found = self.store.query(
            Feedback,
            {"appointment_id": appointment_id, "patient_id": appointment.patient_id},
            limit=1,
        )
        if not found:
            raise NotFound("No feedback for this appointment")
        return found[0]

    def _load(self, appointment_id: str) -> Appointment:
        appointment = self.store.get(Appointment, appointment_id, refresh=True)
        if appointment is None:
            raise NotFound()
        return appointment

    def _completed_appointment(self, appointment_id: str) -> Appointment:
        appointment = self._load(appointment_id)
        if appointment.status != AppointmentStatus.COMPLETED:
            raise NotCompleted()
        return appointment

    def _participant_appointment(self, appointment_id: str, caller: User) -> Appointment:
        appointment = self._load(appointment_id)
        if caller.id not in (appointment.patient_id, appointment.claimed_doctor_id):
            raise NotOwner()
        return appointment
