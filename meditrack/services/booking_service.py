"""
Booking admission: validates an appointment request and creates the
``pending`` record.

The per-patient daily cap spans several records, so it is kept in a
``daily_booking_counters`` row per (patient, day). The row is incremented with
a bound check in the same transaction that inserts the appointment; two
concurrent requests can never both pass the check at ``count = limit - 1``.
"""
from datetime import date
from typing import List, Optional
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..core.clock import Clock, utcnow
from ..core.config import settings
from ..core.exceptions import (
    DailyLimitExceeded, InvalidDate, InvalidInput, InvalidSlot, NotOwner
)
from ..core.security import UserRole
from ..core.store import RecordConflict, RecordStore
from ..models.appointment import Appointment, AppointmentStatus, DailyBookingCounter
from ..models.user import User

logger = logging.getLogger(__name__)


def available_slots() -> List[str]:
    """Half-hour slots from the first to the last clinic hour, both included."""
    first = settings.SLOT_START_HOUR * 60
    last = settings.SLOT_END_HOUR * 60
    return [
        f"{minutes // 60:02d}:{minutes % 60:02d}"
        for minutes in range(first, last + 1, settings.SLOT_MINUTES)
    ]


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class BookingService:
    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.store = RecordStore(db)
        self.clock = clock

    def request_appointment(
        self,
        patient: User,
        preferred_doctor_id: Optional[str],
        date_value: Optional[str],
        time: Optional[str],
        health_concern: Optional[str],
    ) -> Appointment:
        """Validate a booking request and create the appointment as ``pending``."""
        if patient.role != UserRole.PATIENT:
            raise NotOwner("Only patients can book appointments")

        if any(_blank(v) for v in (preferred_doctor_id, date_value, time, health_concern)):
            raise InvalidInput("Please fill in all fields")

        if len(health_concern) > settings.HEALTH_CONCERN_MAX_LENGTH:
            raise InvalidInput(
                f"Health concern must be {settings.HEALTH_CONCERN_MAX_LENGTH} characters or less"
            )

        appointment_date = self._parse_date(date_value)
        doctor = self.store.get(User, preferred_doctor_id)
        if doctor is None or doctor.role != UserRole.DOCTOR or not doctor.is_active:
            raise InvalidInput("Selected doctor is not available")

        now = self.clock()
        if appointment_date < now.date():
            raise InvalidDate()

        if time not in available_slots():
            raise InvalidSlot()

        booking_day = now.date()
        self._ensure_counter(patient.id, booking_day)

        # The counter increment and the insert commit or roll back together
        with self.store.guard():
            if not self._increment_counter(patient.id, booking_day):
                logger.warning(
                    f"Patient {patient.id} hit the daily booking limit for {booking_day}"
                )
                raise DailyLimitExceeded(
                    f"You cannot book more than {settings.DAILY_BOOKING_LIMIT} "
                    "appointments on the same day"
                )

            appointment = Appointment(
                patient_id=patient.id,
                patient_name=patient.display_name,
                preferred_doctor_id=doctor.id,
                preferred_doctor_name=doctor.display_name,
                date=appointment_date,
                time=time,
                health_concern=health_concern.strip(),
                status=AppointmentStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            self.db.add(appointment)
            self.db.commit()
            self.db.refresh(appointment)

        logger.info(
            f"Appointment {appointment.id} requested by patient {patient.id} "
            f"for {appointment.date} {appointment.time}"
        )
        return appointment

    @staticmethod
    def _parse_date(value: str) -> date:
        try:
            return date.fromisoformat(value.strip())
        except (TypeError, ValueError):
            raise InvalidInput("Date must be in YYYY-MM-DD format")

    def _ensure_counter(self, patient_id: str, day: date) -> None:
        if self.store.get(DailyBookingCounter, (patient_id, day)) is not None:
            return
        try:
            self.store.create(DailyBookingCounter(patient_id=patient_id, day=day, count=0))
        except RecordConflict:
            # Created by a concurrent request
            pass

    def _increment_counter(self, patient_id: str, day: date) -> bool:
        result = self.db.execute(
            update(DailyBookingCounter)
            .where(
                DailyBookingCounter.patient_id == patient_id,
                DailyBookingCounter.day == day,
                DailyBookingCounter.count < settings.DAILY_BOOKING_LIMIT,
            )
            .values(count=DailyBookingCounter.count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
