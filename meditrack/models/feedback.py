from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, UniqueConstraint

from ..core.database import Base
from .user import new_id

class Feedback(Base):
    __tablename__ = "feedback"
    __table_args__ = (
        UniqueConstraint("appointment_id", "patient_id", name="uq_feedback_appointment_patient"),
    )
    
    id = Column(String(36), primary_key=True, default=new_id)
    appointment_id = Column(String(36), ForeignKey("appointments.id"), nullable=False, index=True)
    patient_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    doctor_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    
    rating = Column(Integer, nullable=False)
    comment = Column(String(150), nullable=True)
    
    created_at = Column(DateTime, nullable=False, index=True)
    
    def __repr__(self):
        return f"<Feedback(id={self.id}, appointment_id={self.appointment_id}, rating={self.rating})>"
