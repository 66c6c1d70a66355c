# telehealth/db/models/health/appointment.py
from typing import Optional
from sqlalchemy import Index, text
from sqlmodel import SQLModel, Field
from datetime import datetime, date
import uuid

ACTIVE_SLOT_CLAUSE = "status != 'cancelled'"

class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    # One non-cancelled appointment per doctor slot
    __table_args__ = (
        Index(
            "ux_appointments_active_slot",
            "doctor_id",
            "appointment_date",
            "start_time",
            unique=True,
            sqlite_where=text(ACTIVE_SLOT_CLAUSE),
            postgresql_where=text(ACTIVE_SLOT_CLAUSE),
        ),
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    patient_id: str = Field(foreign_key="users.id", index=True)
    doctor_id: str = Field(foreign_key="users.id", index=True)
    appointment_date: date
    start_time: str = Field(max_length=5)  # HH:MM
    end_time: str = Field(max_length=5)
    status: str = Field(default="scheduled", max_length=20)
    appointment_type: str = Field(default="video", max_length=20)
    reason: str = Field(max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)
    meeting_link: Optional[str] = Field(default=None, max_length=255)
    payment_amount: float = Field(default=0.0)
    payment_currency: str = Field(default="USD", max_length=3)
    payment_status: str = Field(default="pending", max_length=20)
    created_at: datetime = Field(default_factory=datetime.utcnow)
