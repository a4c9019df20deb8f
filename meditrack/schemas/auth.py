from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime

from ..core.config import settings
from ..core.security import UserRole

class UserRegister(BaseModel):
    email: str
    password: str
    display_name: str
    role: UserRole
    
    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value or value.startswith("@"):
            raise ValueError("Invalid email address")
        return value
    
    @field_validator("password")
    @classmethod
    def password_length(cls, value: str) -> str:
        if len(value) < settings.MIN_PASSWORD_LENGTH:
            raise ValueError(
                f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters"
            )
        return value
    
    @field_validator("display_name")
    @classmethod
    def display_name_present(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value

class UserLogin(BaseModel):
    email: str
    password: str

class UserResponse(BaseModel):
    id: str
    email: str
    display_name: str
    role: UserRole
    is_active: bool
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class DoctorResponse(BaseModel):
    id: str
    display_name: str
    email: str
    
    class Config:
        from_attributes = True

class ProfileUpdate(BaseModel):
    display_name: str
    
    @field_validator("display_name")
    @classmethod
    def display_name_present(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse

class RefreshTokenRequest(BaseModel):
    refresh_token: str

class ChangePassword(BaseModel):
    current_password: str
    new_password: str
    
    @field_validator("new_password")
    @classmethod
    def password_length(cls, value: str) -> str:
        if len(value) < settings.MIN_PASSWORD_LENGTH:
            raise ValueError(
                f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters"
            )
        return value
