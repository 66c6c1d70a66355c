# telehealth/schemas/appointments/appointment.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Literal, Optional
from datetime import datetime, date
import re

__all__ = [
    "PaymentSchema",
    "AppointmentCreate",
    "AppointmentUpdate",
    "AppointmentResponse",
    "BookingRequest",
    "CompleteRequest",
    "VideoLinkResponse",
    "PatientDashboardResponse",
    "DoctorScheduleResponse",
]

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

AppointmentStatus = Literal["scheduled", "completed", "cancelled", "no-show"]
AppointmentType = Literal["in-person", "video"]
PaymentStatus = Literal["pending", "paid", "refunded"]

def _check_time(v: str) -> str:
    if not TIME_PATTERN.match(v):
        raise ValueError("Invalid time format. Use HH:MM")
    return v

class PaymentSchema(BaseModel):
    amount: float = Field(..., ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    status: PaymentStatus = "pending"

    @classmethod
    def from_dto(cls, payment) -> "PaymentSchema":
        return cls(amount=payment.amount, currency=payment.currency, status=payment.status)

class AppointmentBase(BaseModel):
    patient_id: str
    doctor_id: str
    appointment_date: date
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    appointment_type: AppointmentType
    reason: str = Field(..., min_length=5, max_length=500)
    notes: Optional[str] = Field(None, max_length=1000)
    payment: PaymentSchema

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, v):
        return _check_time(v)

class AppointmentCreate(AppointmentBase):
    status: AppointmentStatus = "scheduled"
    meeting_link: Optional[str] = None

class AppointmentUpdate(BaseModel):
    """Only status, notes and payment status change after creation."""
    model_config = ConfigDict(extra='forbid')

    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = Field(None, max_length=1000)
    payment_status: Optional[PaymentStatus] = None

class AppointmentResponse(AppointmentBase):
    id: str
    status: AppointmentStatus
    meeting_link: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_dto(cls, a) -> "AppointmentResponse":
        return cls(
            id=a.id,
            patient_id=a.patient_id,
            doctor_id=a.doctor_id,
            appointment_date=a.appointment_date,
            start_time=a.start_time,
            end_time=a.end_time,
            status=a.status,
            appointment_type=a.appointment_type,
            reason=a.reason,
            notes=a.notes,
            meeting_link=a.meeting_link,
            payment=PaymentSchema.from_dto(a.payment),
            created_at=a.created_at,
        )

class BookingRequest(BaseModel):
    doctor_id: str
    appointment_date: date
    time: Optional[str] = None
    appointment_type: str = "video"
    # Left loose here; the booking workflow reports field errors itself
    reason: str = ""
    notes: Optional[str] = None
    agree_to_terms: bool = False

class CompleteRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)

class VideoLinkResponse(BaseModel):
    appointment_id: str
    meeting_link: str

class PatientDashboardResponse(BaseModel):
    upcoming: List[AppointmentResponse]
    past: List[AppointmentResponse]
    completed_count: int
    next_appointment: Optional[AppointmentResponse] = None

class DoctorScheduleResponse(BaseModel):
    today: List[AppointmentResponse]
    upcoming: List[AppointmentResponse]
