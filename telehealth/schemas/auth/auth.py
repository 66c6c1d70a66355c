# telehealth/schemas/auth/auth.py
from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator, model_validator
from typing import Any, Dict, Literal, Optional
from datetime import datetime
import re

from ..users.user import DoctorProfile, PatientProfile, UserResponse

__all__ = ["RegisterRequest", "LoginRequest", "LoginResponse", "RefreshRequest"]

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    role: Literal["patient", "doctor"] = "patient"
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, description="Phone number with country code")
    avatar: Optional[str] = Field(None, max_length=255)
    profile: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_name(cls, v):
        if not re.match(r"^[a-zA-Z\s\-']+$", v):
            raise ValueError('Name can only contain letters, spaces, apostrophes and hyphens')
        return v.strip()

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        if v is None:
            return v
        phone_clean = re.sub(r'[^\d+]', '', v)
        if not re.match(r'^\+\d{1,4}\d{6,14}$', phone_clean):
            raise ValueError('Invalid phone number format. Must include country code (e.g., +1234567890)')
        return phone_clean

    @model_validator(mode='after')
    def validate_profile(self):
        # Role decides which profile shape is accepted
        try:
            if self.role == "doctor":
                self.profile = DoctorProfile(**self.profile).model_dump()
            else:
                self.profile = PatientProfile(**self.profile).model_dump(exclude_none=True)
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ValueError(f"Invalid {self.role} profile: {fields}")
        return self

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: Optional[datetime] = None
    user: UserResponse

class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)
