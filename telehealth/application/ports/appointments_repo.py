from dataclasses import dataclass, field, replace
from typing import List, Optional, Dict, Any
from datetime import datetime, date


STATUS_SCHEDULED = "scheduled"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_NO_SHOW = "no-show"
APPOINTMENT_STATUSES = (STATUS_SCHEDULED, STATUS_COMPLETED, STATUS_CANCELLED, STATUS_NO_SHOW)

TYPE_VIDEO = "video"
TYPE_IN_PERSON = "in-person"
APPOINTMENT_TYPES = (TYPE_VIDEO, TYPE_IN_PERSON)

PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_REFUNDED = "refunded"
PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_PAID, PAYMENT_REFUNDED)


@dataclass(frozen=True)
class PaymentDto:
    amount: float
    currency: str
    status: str = PAYMENT_PENDING


@dataclass
class AppointmentDraft:
    patient_id: str
    doctor_id: str
    appointment_date: date
    start_time: str
    end_time: str
    appointment_type: str
    reason: str
    payment: PaymentDto
    status: str = STATUS_SCHEDULED
    notes: Optional[str] = None
    meeting_link: Optional[str] = None


@dataclass
class AppointmentDto:
    id: str
    patient_id: str
    doctor_id: str
    appointment_date: date
    start_time: str
    end_time: str
    status: str
    appointment_type: str
    reason: str
    payment: PaymentDto
    created_at: datetime
    notes: Optional[str] = None
    meeting_link: Optional[str] = None

    @property
    def starts_at(self) -> datetime:
        hour, minute = (int(part) for part in self.start_time.split(":"))
        return datetime(self.appointment_date.year, self.appointment_date.month, self.appointment_date.day, hour, minute)

    def involves(self, user_id: str) -> bool:
        return user_id in (self.patient_id, self.doctor_id)

    def with_changes(self, **changes: Any) -> "AppointmentDto":
        return replace(self, **changes)


class AppointmentsRepository:
    """Appointment store port.

    ``list`` filters on a participant (patient or doctor id) and status,
    ``create`` raises ``SlotConflictError`` when a non-cancelled appointment
    already holds the doctor's slot, ``update``/``delete`` report a missing
    record with ``None``/``False``. Failures of the backing store surface as
    ``StoreOperationError``.
    """

    def list(self, participant_id: Optional[str] = None, status: Optional[str] = None) -> List[AppointmentDto]:
        ...

    def get(self, appointment_id: str) -> Optional[AppointmentDto]:
        ...

    def create(self, draft: AppointmentDraft) -> AppointmentDto:
        ...

    def update(self, appointment_id: str, patch: Dict[str, Any]) -> Optional[AppointmentDto]:
        ...

    def delete(self, appointment_id: str) -> bool:
        ...
