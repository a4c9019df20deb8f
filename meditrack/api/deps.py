from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
import logging

import redis

from ..core.clock import Clock, get_clock
from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.exceptions import RateLimited
from ..core.store import RecordStore
from ..core.security import (
    security, verify_token, AuthenticationError,
    AuthorizationError, UserRole, TokenPayload
)
from ..models.user import User
from ..services.annotation_service import ClinicalAnnotationService
from ..services.appointment_service import AppointmentService
from ..services.booking_service import BookingService
from ..services.stats_service import StatsService

logger = logging.getLogger(__name__)

async def get_current_user_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    token_payload = verify_token(credentials.credentials)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    # Check if token is access token
    if token_payload.token_type != "access":
        raise AuthenticationError("Invalid token type")

    return token_payload

def get_current_user(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the bearer token to the caller's identity."""
    if not token_payload.sub:
        raise AuthenticationError("Invalid token payload")

    user = RecordStore(db).get(User, token_payload.sub)
    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    return user

# Role-based access control dependencies
def require_role(*allowed_roles: UserRole):
    """Create a dependency that requires specific user roles."""
    def role_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if current_user.role not in allowed_roles:
            raise AuthorizationError(
                f"Access denied. Required roles: {[role.value for role in allowed_roles]}"
            )
        return current_user

    return role_checker

get_doctor_user = require_role(UserRole.DOCTOR)
get_patient_user = require_role(UserRole.PATIENT)

# Service dependencies
def get_booking_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock)
) -> BookingService:
    return BookingService(db, clock)

def get_appointment_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock)
) -> AppointmentService:
    return AppointmentService(db, clock)

def get_annotation_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock)
) -> ClinicalAnnotationService:
    return ClinicalAnnotationService(db, clock)

def get_stats_service(db: Session = Depends(get_db)) -> StatsService:
    return StatsService(db)

# Rate limiting dependency
def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Per-IP hourly request budget for authentication endpoints."""
    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{request.url.path}:{client_ip}"

    try:
        current_requests = redis_client.incr(key)
        if current_requests == 1:
            redis_client.expire(key, 3600)
    except redis.RedisError as exc:
        # Fail open: authentication must keep working without Redis
        logger.warning(f"Rate limiter unavailable: {exc}")
        return

    if current_requests > settings.RATE_LIMIT_PER_HOUR:
        raise RateLimited()
