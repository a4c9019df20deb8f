from fastapi import APIRouter, Depends, Query
from typing import List

from ...api.deps import get_current_user, get_stats_service
from ...models.user import User
from ...schemas.stats import Dashboard, DoctorRating, RecentFeedback
from ...services.stats_service import StatsService

router = APIRouter(prefix="/stats", tags=["Statistics"])

@router.get("/me", response_model=Dashboard)
def my_dashboard(
    current_user: User = Depends(get_current_user),
    stats: StatsService = Depends(get_stats_service)
):
    """Appointment counts, recent appointments and, for doctors, their rating."""
    return stats.dashboard(current_user)

@router.get("/doctors/{doctor_id}/rating", response_model=DoctorRating)
def doctor_rating(
    doctor_id: str,
    _: User = Depends(get_current_user),
    stats: StatsService = Depends(get_stats_service)
):
    return stats.doctor_rating(doctor_id)

@router.get("/doctors/{doctor_id}/feedback", response_model=List[RecentFeedback])
def doctor_recent_feedback(
    doctor_id: str,
    limit: int = Query(5, ge=1, le=50),
    _: User = Depends(get_current_user),
    stats: StatsService = Depends(get_stats_service)
):
    """Latest feedback for a doctor with the patient's booked name."""
    return stats.recent_feedback(doctor_id, limit=limit)
