# telehealth/schemas/doctors/doctor.py
from pydantic import BaseModel
from typing import List, Optional

__all__ = ["DoctorResponse", "TimeSlotResponse", "DoctorSlotsResponse"]

class DoctorResponse(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    avatar: Optional[str] = None
    specialty: Optional[str] = None
    qualifications: List[str] = []
    experience: Optional[int] = None
    bio: Optional[str] = None
    license_number: Optional[str] = None
    hospital_affiliation: Optional[str] = None
    average_rating: Optional[float] = None
    review_count: int = 0

    @classmethod
    def from_dto(cls, d) -> "DoctorResponse":
        profile = d.profile or {}
        return cls(
            id=d.id,
            first_name=d.first_name,
            last_name=d.last_name,
            email=d.email,
            avatar=d.avatar,
            specialty=profile.get("specialty"),
            qualifications=profile.get("qualifications") or [],
            experience=profile.get("experience"),
            bio=profile.get("bio"),
            license_number=profile.get("license_number"),
            hospital_affiliation=profile.get("hospital_affiliation"),
            average_rating=d.average_rating,
            review_count=d.review_count,
        )

class TimeSlotResponse(BaseModel):
    start_time: str
    end_time: str
    is_available: bool

class DoctorSlotsResponse(BaseModel):
    doctor_id: str
    date: str
    slots: List[TimeSlotResponse]
