from pydantic import BaseModel
from typing import Optional
from datetime import date as Date, datetime

from ..models.appointment import AppointmentStatus, next_status

class AppointmentCreate(BaseModel):
    # Checked by the admission controller so errors keep their order
    preferred_doctor_id: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    health_concern: Optional[str] = None

class AppointmentResponse(BaseModel):
    id: str
    patient_id: str
    patient_name: str
    claimed_doctor_id: Optional[str] = None
    claimed_doctor_name: Optional[str] = None
    preferred_doctor_id: Optional[str] = None
    preferred_doctor_name: Optional[str] = None
    date: Date
    time: str
    health_concern: str
    status: AppointmentStatus
    next_status: Optional[AppointmentStatus] = None
    created_at: datetime
    updated_at: datetime
    
    class Config:
        from_attributes = True
    
    @classmethod
    def from_appointment(cls, appointment) -> "AppointmentResponse":
        response = cls.model_validate(appointment)
        response.next_status = next_status(appointment.status)
        return response
