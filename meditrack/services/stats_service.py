"""Read-side projections for dashboards. Nothing here writes or caches."""
from collections import Counter
from typing import List

from sqlalchemy.orm import Session

from ..core.security import UserRole
from ..core.store import RecordStore
from ..models.appointment import Appointment, AppointmentStatus
from ..models.feedback import Feedback
from ..models.user import User
from ..schemas.appointment import AppointmentResponse
from ..schemas.stats import (
    AppointmentStats, Dashboard, DoctorRating, RecentFeedback
)

RECENT_LIMIT = 5


class StatsService:
    def __init__(self, db: Session):
        self.db = db
        self.store = RecordStore(db)

    def appointment_stats(self, identity_id: str, role: UserRole) -> AppointmentStats:
        """Count the identity's appointments by status."""
        appointments = self._appointments_for(identity_id, role)
        counts = Counter(appointment.status for appointment in appointments)
        return AppointmentStats(
            total=len(appointments),
            pending=counts[AppointmentStatus.PENDING],
            confirmed=counts[AppointmentStatus.CONFIRMED],
            in_progress=counts[AppointmentStatus.IN_PROGRESS],
            completed=counts[AppointmentStatus.COMPLETED],
        )

    def doctor_rating(self, doctor_id: str) -> DoctorRating:
        """Mean rating over all feedback for a doctor; 0 when unrated."""
        ratings = [feedback.rating for feedback in self.store.query(Feedback, {"doctor_id": doctor_id})]
        if not ratings:
            return DoctorRating(average=0.0, count=0)
        return DoctorRating(average=sum(ratings) / len(ratings), count=len(ratings))

    def recent_feedback(self, doctor_id: str, limit: int = RECENT_LIMIT) -> List[RecentFeedback]:
        """Newest feedback for a doctor, labelled with the booked patient name."""
        feedbacks = self.store.query(
            Feedback,
            {"doctor_id": doctor_id},
            order_by=(Feedback.created_at.desc(),),
            limit=limit,
        )
        appointment_ids = [feedback.appointment_id for feedback in feedbacks]
        names = {}
        if appointment_ids:
            for appointment in self.store.query(Appointment, {"id": appointment_ids}):
                names[appointment.id] = appointment.patient_name

        return [
            RecentFeedback(
                id=feedback.id,
                appointment_id=feedback.appointment_id,
                patient_name=names.get(feedback.appointment_id, "Unknown Patient"),
                rating=feedback.rating,
                comment=feedback.comment,
                created_at=feedback.created_at,
            )
            for feedback in feedbacks
        ]

    def dashboard(self, identity: User) -> Dashboard:
        role = UserRole(identity.role)
        appointments = self._appointments_for(identity.id, role)
        return Dashboard(
            role=role,
            stats=self.appointment_stats(identity.id, role),
            recent_appointments=[
                AppointmentResponse.from_appointment(appointment)
                for appointment in appointments[:RECENT_LIMIT]
            ],
            rating=self.doctor_rating(identity.id) if role == UserRole.DOCTOR else None,
        )

    def _appointments_for(self, identity_id: str, role: UserRole) -> List[Appointment]:
        column = "patient_id" if role == UserRole.PATIENT else "claimed_doctor_id"
        return self.store.query(
            Appointment,
            {column: identity_id},
            order_by=(Appointment.created_at.desc(),),
        )
