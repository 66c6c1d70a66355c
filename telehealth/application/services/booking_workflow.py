"""Two-step booking workflow.

``SELECTING_SLOT`` -> ``CONFIRMING_DETAILS`` -> ``SUBMITTED``. Each instance
books at most one appointment for the session's patient with one doctor.
Failed validations and failed store calls leave the state where it was.
"""
import asyncio
import logging
import uuid
from concurrent.futures import Executor
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..ports.appointments_repo import (
    AppointmentsRepository,
    AppointmentDraft,
    AppointmentDto,
    PaymentDto,
    APPOINTMENT_TYPES,
    TYPE_VIDEO,
    PAYMENT_PENDING,
    STATUS_SCHEDULED,
)
from ..ports.audit_logger import AuditLogger
from ..ports.user_repo import UserDto, ROLE_PATIENT
from .auth_service import AuthSession
from .availability_service import AvailabilityService, TimeSlot
from ...exceptions import (
    APIException,
    BookingValidationError,
    PermissionDeniedError,
    StoreOperationError,
    StoreTimeoutError,
    WorkflowStateError,
)

logger = logging.getLogger(__name__)


class BookingState(str, Enum):
    SELECTING_SLOT = "selecting_slot"
    CONFIRMING_DETAILS = "confirming_details"
    SUBMITTED = "submitted"


@dataclass(frozen=True)
class Pricing:
    consultation_fee: float
    video_platform_fee: float
    currency: str = "USD"

    def quote(self, appointment_type: str) -> PaymentDto:
        amount = self.consultation_fee
        if appointment_type == TYPE_VIDEO:
            amount += self.video_platform_fee
        return PaymentDto(amount=amount, currency=self.currency, status=PAYMENT_PENDING)


class BookingDetails(BaseModel):
    reason: str = Field(..., min_length=5, max_length=500)
    notes: Optional[str] = Field(None, max_length=1000)
    agree_to_terms: bool = False

    @field_validator("reason", mode="before")
    @classmethod
    def strip_reason(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("agree_to_terms")
    @classmethod
    def terms_accepted(cls, v):
        if v is not True:
            raise ValueError("You must agree to the terms and conditions")
        return v


FIELD_MESSAGES = {
    "reason": {
        "string_too_short": "Please provide a reason for your visit",
        "missing": "Please provide a reason for your visit",
        "string_too_long": "Reason is too long",
    },
    "notes": {
        "string_too_long": "Notes are too long",
    },
}


def field_errors(exc: ValidationError) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err.get("loc") else "__all__"
        message = FIELD_MESSAGES.get(field, {}).get(err["type"])
        if message is None:
            message = err["msg"].removeprefix("Value error, ")
        errors.setdefault(field, message)
    return errors


async def call_store(fn: Callable[..., Any], *args: Any, timeout: float, executor: Optional[Executor] = None) -> Any:
    """Run a blocking store call off the event loop, bounded by ``timeout`` seconds.

    Calls sharing one single-worker ``executor`` run strictly one after another,
    including a call that already timed out and is still finishing.
    """
    loop = asyncio.get_running_loop()
    try:
        return await asyncio.wait_for(loop.run_in_executor(executor, fn, *args), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Appointment store call {getattr(fn, '__name__', fn)} timed out after {timeout}s")
        raise StoreTimeoutError()
    except APIException:
        raise
    except Exception as e:
        logger.error(f"Appointment store call failed: {e}")
        raise StoreOperationError() from e


class BookingWorkflow:
    def __init__(
        self,
        session: AuthSession,
        doctor: UserDto,
        store: AppointmentsRepository,
        availability: AvailabilityService,
        pricing: Pricing,
        timeout: float = 10.0,
        audit: Optional[AuditLogger] = None,
        meeting_base_url: str = "",
        executor: Optional[Executor] = None,
    ):
        if session.role != ROLE_PATIENT:
            raise PermissionDeniedError("Only patients can book appointments")
        self.session = session
        self.doctor = doctor
        self.store = store
        self.availability = availability
        self.pricing = pricing
        self.timeout = timeout
        self.audit = audit
        self.meeting_base_url = meeting_base_url
        self.executor = executor

        self.state = BookingState.SELECTING_SLOT
        self.appointment_date: Optional[date] = None
        self.appointment_type: str = TYPE_VIDEO
        self.slots: List[TimeSlot] = []
        self.selected_slot: Optional[TimeSlot] = None
        self.appointment: Optional[AppointmentDto] = None

    # Step 1

    async def load_slots(self, day: date) -> List[TimeSlot]:
        self._require(BookingState.SELECTING_SLOT)
        slots = await self._call_store(self.availability.get_slots, self.doctor.id, day)
        if day != self.appointment_date:
            self.selected_slot = None
        self.appointment_date = day
        self.slots = slots
        return slots

    def select_slot(self, start_time: str, appointment_type: Optional[str] = None) -> TimeSlot:
        self._require(BookingState.SELECTING_SLOT)
        if appointment_type is not None and appointment_type not in APPOINTMENT_TYPES:
            raise BookingValidationError({"type": f"Appointment type must be one of: {list(APPOINTMENT_TYPES)}"})
        slot = next((s for s in self.slots if s.start_time == start_time), None)
        if slot is None:
            raise BookingValidationError({"time": "Please select a time slot"})
        if not slot.is_available:
            raise BookingValidationError({"time": "This time slot is already booked"})
        self.selected_slot = slot
        if appointment_type is not None:
            self.appointment_type = appointment_type
        return slot

    def continue_to_details(self) -> BookingState:
        self._require(BookingState.SELECTING_SLOT)
        if self.appointment_date is None:
            raise BookingValidationError({"date": "Please select a date"})
        if self.selected_slot is None:
            raise BookingValidationError({"time": "Please select a time slot"})
        self.state = BookingState.CONFIRMING_DETAILS
        return self.state

    # Step 2

    def back(self) -> BookingState:
        self._require(BookingState.CONFIRMING_DETAILS)
        self.state = BookingState.SELECTING_SLOT
        return self.state

    def quote(self) -> PaymentDto:
        return self.pricing.quote(self.appointment_type)

    async def submit(self, reason: str, notes: Optional[str] = None, agree_to_terms: bool = False) -> AppointmentDto:
        self._require(BookingState.CONFIRMING_DETAILS)
        try:
            details = BookingDetails(reason=reason, notes=notes, agree_to_terms=agree_to_terms)
        except ValidationError as e:
            raise BookingValidationError(field_errors(e))

        draft = AppointmentDraft(
            patient_id=self.session.user_id,
            doctor_id=self.doctor.id,
            appointment_date=self.appointment_date,
            start_time=self.selected_slot.start_time,
            end_time=self.selected_slot.end_time,
            appointment_type=self.appointment_type,
            reason=details.reason,
            notes=details.notes or None,
            status=STATUS_SCHEDULED,
            payment=self.quote(),
            meeting_link=self._meeting_link() if self.appointment_type == TYPE_VIDEO else None,
        )
        try:
            appointment = await self._call_store(self.store.create, draft)
        except APIException:
            self._audit("book", None, success=False)
            raise
        self.appointment = appointment
        self.state = BookingState.SUBMITTED
        self._audit("book", appointment.id, success=True)
        logger.info(f"Booked appointment {appointment.id} with doctor {self.doctor.id} at {draft.appointment_date} {draft.start_time}")
        return appointment

    # Helpers

    def _require(self, state: BookingState) -> None:
        if self.state != state:
            raise WorkflowStateError(f"Booking is {self.state.value}, expected {state.value}")

    async def _call_store(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await call_store(fn, *args, timeout=self.timeout, executor=self.executor)

    def _meeting_link(self) -> str:
        room = uuid.uuid4().hex
        if self.meeting_base_url:
            return f"{self.meeting_base_url.rstrip('/')}/{room}"
        return room

    def _audit(self, action: str, appointment_id: Optional[str], success: bool) -> None:
        if self.audit is not None:
            self.audit.log(
                action,
                user_id=self.session.user_id,
                appointment_id=appointment_id,
                success=success,
                details={"doctor_id": self.doctor.id, "type": self.appointment_type},
            )
