from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Text, Enum as SQLEnum
import enum

from ..core.database import Base
from .user import new_id

class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

# Linear lifecycle; the position of a status is its rank
STATUS_ORDER = (
    AppointmentStatus.PENDING,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.IN_PROGRESS,
    AppointmentStatus.COMPLETED,
)

def next_status(current: AppointmentStatus):
    """Return the successor of ``current``, or None for the terminal state."""
    index = STATUS_ORDER.index(AppointmentStatus(current))
    if index + 1 < len(STATUS_ORDER):
        return STATUS_ORDER[index + 1]
    return None

class Appointment(Base):
    __tablename__ = "appointments"
    
    id = Column(String(36), primary_key=True, default=new_id)
    
    # Patient, with a display-name snapshot taken at booking time
    patient_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    patient_name = Column(String(100), nullable=False)
    
    # Set exactly once, by the claim
    claimed_doctor_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    claimed_doctor_name = Column(String(100), nullable=True)
    
    # Non-binding hint from the patient
    preferred_doctor_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    preferred_doctor_name = Column(String(100), nullable=True)
    
    # Appointment details
    date = Column(Date, nullable=False, index=True)
    time = Column(String(5), nullable=False)
    health_concern = Column(Text, nullable=False)
    status = Column(
        SQLEnum(AppointmentStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=AppointmentStatus.PENDING,
        index=True,
    )
    
    # Tracking
    created_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False)
    
    def __repr__(self):
        return f"<Appointment(id={self.id}, patient_id={self.patient_id}, status='{self.status}', date='{self.date}')>"

class DailyBookingCounter(Base):
    """Appointments a patient has created on one calendar day."""
    __tablename__ = "daily_booking_counters"
    
    patient_id = Column(String(36), ForeignKey("users.id"), primary_key=True)
    day = Column(Date, primary_key=True)
    count = Column(Integer, nullable=False, default=0)
    
    def __repr__(self):
        return f"<DailyBookingCounter(patient_id={self.patient_id}, day='{self.day}', count={self.count})>"
