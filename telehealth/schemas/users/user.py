# telehealth/schemas/users/user.py
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

__all__ = ["PatientProfile", "DoctorProfile", "UserResponse"]

class PatientProfile(BaseModel):
    dob: Optional[str] = Field(None, description="Date of birth in YYYY-MM-DD format")
    blood_group: Optional[str] = Field(None, max_length=5)

class DoctorProfile(BaseModel):
    specialty: str = Field(..., min_length=2, max_length=100)
    qualifications: List[str] = Field(..., min_length=1)
    experience: int = Field(..., ge=0, le=80)
    bio: str = Field(..., min_length=1, max_length=2000)
    license_number: str = Field(..., min_length=1, max_length=50)
    hospital_affiliation: Optional[str] = Field(None, max_length=200)

class UserResponse(BaseModel):
    id: str
    email: str
    role: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    avatar: Optional[str] = None
    profile: Dict[str, Any] = {}
    created_at: datetime

    @classmethod
    def from_dto(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            role=user.role,
            first_name=user.first_name,
            last_name=user.last_name,
            phone=user.phone,
            avatar=user.avatar,
            profile=user.profile or {},
            created_at=user.created_at,
        )
