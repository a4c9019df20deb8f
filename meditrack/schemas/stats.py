from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

from ..core.security import UserRole
from .appointment import AppointmentResponse

class AppointmentStats(BaseModel):
    total: int = 0
    pending: int = 0
    confirmed: int = 0
    in_progress: int = 0
    completed: int = 0

class DoctorRating(BaseModel):
    average: float = 0.0
    count: int = 0

class RecentFeedback(BaseModel):
    id: str
    appointment_id: str
    patient_name: str
    rating: int
    comment: Optional[str] = None
    created_at: datetime

class Dashboard(BaseModel):
    role: UserRole
    stats: AppointmentStats
    recent_appointments: List[AppointmentResponse]
    rating: Optional[DoctorRating] = None
