from fastapi import APIRouter, Depends, status
from typing import List

from ...api.deps import (
    get_current_user, get_doctor_user, get_patient_user,
    get_booking_service, get_appointment_service, get_annotation_service
)
from ...models.user import User
from ...schemas.appointment import AppointmentCreate, AppointmentResponse
from ...schemas.annotation import (
    FeedbackCreate, FeedbackResponse, PrescriptionCreate, PrescriptionResponse
)
from ...services.annotation_service import ClinicalAnnotationService
from ...services.appointment_service import AppointmentService
from ...services.booking_service import BookingService, available_slots

router = APIRouter(prefix="/appointments", tags=["Appointments"])

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def request_appointment(
    payload: AppointmentCreate,
    patient: User = Depends(get_patient_user),
    booking: BookingService = Depends(get_booking_service)
):
    """Book a new appointment request (patients only)."""
    appointment = booking.request_appointment(
        patient,
        payload.preferred_doctor_id,
        payload.date,
        payload.time,
        payload.health_concern,
    )
    return AppointmentResponse.from_appointment(appointment)

@router.get("", response_model=List[AppointmentResponse])
def list_my_appointments(
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Patients get their bookings, doctors the appointments they accepted."""
    return [AppointmentResponse.from_appointment(a) for a in service.list_for(current_user)]

@router.get("/slots", response_model=List[str])
def list_slots():
    """Bookable time slots."""
    return available_slots()

@router.get("/pending", response_model=List[AppointmentResponse])
def list_pending_appointments(
    _: User = Depends(get_doctor_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Requests waiting for a doctor to accept them."""
    return [AppointmentResponse.from_appointment(a) for a in service.list_pending()]

@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = service.get_appointment(appointment_id, current_user)
    return AppointmentResponse.from_appointment(appointment)

@router.post("/{appointment_id}/claim", response_model=AppointmentResponse)
def claim_appointment(
    appointment_id: str,
    doctor: User = Depends(get_doctor_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Accept a pending appointment. Only one doctor can win."""
    return AppointmentResponse.from_appointment(service.claim(appointment_id, doctor))

@router.post("/{appointment_id}/advance", response_model=AppointmentResponse)
def advance_appointment(
    appointment_id: str,
    doctor: User = Depends(get_doctor_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Start or complete an accepted appointment."""
    return AppointmentResponse.from_appointment(service.advance(appointment_id, doctor))

@router.post(
    "/{appointment_id}/prescription",
    response_model=PrescriptionResponse,
    status_code=status.HTTP_201_CREATED
)
def attach_prescription(
    appointment_id: str,
    payload: PrescriptionCreate,
    doctor: User = Depends(get_doctor_user),
    service: ClinicalAnnotationService = Depends(get_annotation_service)
):
    prescription = service.attach_prescription(appointment_id, doctor, payload.medicines)
    return PrescriptionResponse.model_validate(prescription)

@router.get("/{appointment_id}/prescription", response_model=PrescriptionResponse)
def get_prescription(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    service: ClinicalAnnotationService = Depends(get_annotation_service)
):
    return PrescriptionResponse.model_validate(
        service.get_prescription(appointment_id, current_user)
    )

@router.post(
    "/{appointment_id}/feedback",
    response_model=FeedbackResponse,
    status_code=status.HTTP_201_CREATED
)
def attach_feedback(
    appointment_id: str,
    payload: FeedbackCreate,
    patient: User = Depends(get_patient_user),
    service: ClinicalAnnotationService = Depends(get_annotation_service)
):
    feedback = service.attach_feedback(appointment_id, patient, payload.rating, payload.comment)
    return FeedbackResponse.model_validate(feedback)

@router.get("/{appointment_id}/feedback", response_model=FeedbackResponse)
def get_feedback(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    service: ClinicalAnnotationService = Depends(get_annotation_service)
):
    return FeedbackResponse.model_validate(
        service.get_feedback(appointment_id, current_user)
    )
