from pydantic import BaseModel
from typing import Any, List, Optional
from datetime import datetime

class MedicineItem(BaseModel):
    name: Optional[str] = None
    dosage: Optional[str] = None
    frequency: Optional[str] = None

class PrescriptionCreate(BaseModel):
    medicines: List[MedicineItem] = []

class PrescriptionResponse(BaseModel):
    id: str
    appointment_id: str
    doctor_id: str
    medicines: List[MedicineItem]
    created_at: datetime
    
    class Config:
        from_attributes = True

class FeedbackCreate(BaseModel):
    # Passed through uncoerced; the annotation service decides what is a rating
    rating: Any = None
    comment: Optional[str] = None

class FeedbackResponse(BaseModel):
    id: str
    appointment_id: str
    patient_id: str
    doctor_id: str
    rating: int
    comment: Optional[str] = None
    created_at: datetime
    
    class Config:
        from_attributes = True
