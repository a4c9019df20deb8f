from sqlalchemy import Column, String, ForeignKey, DateTime, JSON

from ..core.database import Base
from .user import new_id

class Prescription(Base):
    __tablename__ = "prescriptions"
    
    id = Column(String(36), primary_key=True, default=new_id)
    # One prescription per appointment
    appointment_id = Column(String(36), ForeignKey("appointments.id"), nullable=False, unique=True)
    doctor_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    
    # Ordered list of {"name", "dosage", "frequency"}
    medicines = Column(JSON, nullable=False)
    
    created_at = Column(DateTime, nullable=False)
    
    def __repr__(self):
        return f"<Prescription(id={self.id}, appointment_id={self.appointment_id}, medicines={len(self.medicines or [])})>"
