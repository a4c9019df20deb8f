"""
Appointment lifecycle.

``pending -> confirmed -> in-progress -> completed``, no branches and no
reverse edges. Every transition is a single conditional write keyed on the
status the caller observed, so a losing concurrent writer is rejected
instead of overwriting the winner.
"""
from typing import List
import logging

from sqlalchemy.orm import Session

from ..core.clock import Clock, utcnow
from ..core.exceptions import AlreadyClaimed, InvalidTransition, NotFound, NotOwner
from ..core.security import UserRole
from ..core.store import PredicateFailed, RecordStore
from ..models.appointment import Appointment, AppointmentStatus
from ..models.user import User

logger = logging.getLogger(__name__)

# Transitions a claimed doctor may request through ``advance``
ADVANCES = {
    AppointmentStatus.CONFIRMED: AppointmentStatus.IN_PROGRESS,
    AppointmentStatus.IN_PROGRESS: AppointmentStatus.COMPLETED,
}


class AppointmentService:
    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.store = RecordStore(db)
        self.clock = clock

    def load(self, appointment_id: str) -> Appointment:
        appointment = self.store.get(Appointment, appointment_id, refresh=True)
        if appointment is None:
            raise NotFound()
        return appointment

    def get_appointment(self, appointment_id: str, caller: User) -> Appointment:
        """Fetch an appointment the caller is allowed to see.

        Patients see their own appointments. Doctors see the ones they
        claimed and any that are still pending.
        """
        appointment = self.load(appointment_id)
        if caller.id in (appointment.patient_id, appointment.claimed_doctor_id):
            return appointment
        if caller.role == UserRole.DOCTOR and appointment.status == AppointmentStatus.PENDING:
            return appointment
        raise NotOwner()

    def list_pending(self) -> List[Appointment]:
        """Unclaimed requests, newest first."""
        return self.store.query(
            Appointment,
            {"status": AppointmentStatus.PENDING},
            order_by=(Appointment.created_at.desc(),),
        )

    def list_for(self, caller: User) -> List[Appointment]:
        """The caller's own appointments, newest first."""
        column = "patient_id" if caller.role == UserRole.PATIENT else "claimed_doctor_id"
        return self.store.query(
            Appointment,
            {column: caller.id},
            order_by=(Appointment.created_at.desc(),),
        )

    def claim(self, appointment_id: str, doctor: User) -> Appointment:
        """Make ``doctor`` the single owner of a pending appointment."""
        if doctor.role != UserRole.DOCTOR:
            raise NotOwner("Only doctors can accept appointments")

        appointment = self.load(appointment_id)
        if appointment.status != AppointmentStatus.PENDING:
            raise AlreadyClaimed()

        doctor_id, doctor_name = doctor.id, doctor.display_name
        try:
            appointment = self.store.conditional_update(
                Appointment,
                appointment_id,
                predicate={
                    "status": AppointmentStatus.PENDING,
                    "claimed_doctor_id": None,
                },
                patch={
                    "status": AppointmentStatus.CONFIRMED,
                    "claimed_doctor_id": doctor_id,
                    "claimed_doctor_name": doctor_name,
                    "updated_at": self.clock(),
                },
            )
        except PredicateFailed:
            logger.warning(f"Doctor {doctor_id} lost the claim on appointment {appointment_id}")
            raise AlreadyClaimed()

        logger.info(f"Appointment {appointment_id} claimed by doctor {doctor_id}")
        return appointment

    def advance(self, appointment_id: str, caller: User) -> Appointment:
        """Move a claimed appointment one step forward."""
        appointment = self.load(appointment_id)
        source = appointment.status

        if appointment.claimed_doctor_id is None:
            if caller.role == UserRole.DOCTOR:
                raise InvalidTransition("Appointment must be accepted before it can progress")
            raise NotOwner()
        if appointment.claimed_doctor_id != caller.id:
            raise NotOwner("Only the doctor who accepted this appointment can update it")

        target = ADVANCES.get(source)
        if target is None:
            raise InvalidTransition(f"Cannot advance appointment from status {source.value}")

        try:
            appointment = self.store.conditional_update(
                Appointment,
                appointment_id,
                predicate={"status": source, "claimed_doctor_id": caller.id},
                patch={"status": target, "updated_at": self.clock()},
            )
        except PredicateFailed:
            raise InvalidTransition(f"Appointment is no longer {source.value}")

        logger.info(f"Appointment {appointment_id} moved {source.value} -> {target.value}")
        return appointment
