from typing import List, Optional
from concurrent.futures import ThreadPoolExecutor
from fastapi import APIRouter, Depends, Query
import logging

from ..core.config import Settings, get_settings
from ..exceptions import PermissionDeniedError
from ..schemas.appointments.appointment import (
    AppointmentCreate,
    AppointmentUpdate,
    AppointmentResponse,
    BookingRequest,
    CompleteRequest,
    VideoLinkResponse,
)
from ..schemas.common.common import MessageResponse
from ..application.ports.appointments_repo import AppointmentDraft, PaymentDto
from ..application.ports.user_repo import ROLE_ADMIN, ROLE_DOCTOR
from ..application.services.auth_service import AuthSession
from ..application.services.appointments_service import AppointmentsService
from ..application.services.availability_service import AvailabilityService
from ..application.services.booking_workflow import BookingWorkflow, Pricing, call_store
from ..application.services.doctors_service import DoctorsService
from ..infrastructure.persistence.sqlalchemy.repositories.appointments_repository_sql import SqlAppointmentsRepository
from .deps import (
    audit_logger,
    get_current_session,
    get_appointments_repo,
    get_appointments_service,
    get_availability_service,
    get_doctors_service,
    get_pricing,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


@router.get("/", response_model=List[AppointmentResponse])
def list_appointments(
    user_id: Optional[str] = Query(None, description="Matches either the patient or the doctor"),
    status: Optional[str] = Query(None),
    current: AuthSession = Depends(get_current_session),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    if current.role != ROLE_ADMIN:
        if user_id is not None and user_id != current.user_id:
            raise PermissionDeniedError("You can only list your own appointments")
        user_id = current.user_id
    return [AppointmentResponse.from_dto(a) for a in appt_service.list(user_id=user_id, status=status)]


@router.post("/", response_model=AppointmentResponse, status_code=201)
def create_appointment(
    payload: AppointmentCreate,
    current: AuthSession = Depends(get_current_session),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    if current.role != ROLE_ADMIN and current.user_id != payload.patient_id:
        raise PermissionDeniedError("You can only create appointments for yourself")
    draft = AppointmentDraft(
        patient_id=payload.patient_id,
        doctor_id=payload.doctor_id,
        appointment_date=payload.appointment_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        appointment_type=payload.appointment_type,
        reason=payload.reason,
        notes=payload.notes,
        status=payload.status,
        meeting_link=payload.meeting_link,
        payment=PaymentDto(amount=payload.payment.amount, currency=payload.payment.currency, status=payload.payment.status),
    )
    return AppointmentResponse.from_dto(appt_service.create(draft, actor_id=current.user_id))


@router.post("/book", response_model=AppointmentResponse, status_code=201)
async def book_appointment(
    payload: BookingRequest,
    current: AuthSession = Depends(get_current_session),
    repo: SqlAppointmentsRepository = Depends(get_appointments_repo),
    availability: AvailabilityService = Depends(get_availability_service),
    doctors_service: DoctorsService = Depends(get_doctors_service),
    pricing: Pricing = Depends(get_pricing),
    settings: Settings = Depends(get_settings),
):
    # The workflow's database calls run one at a time on this worker
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="booking-store")
    try:
        doctor = await call_store(
            doctors_service.get_doctor, payload.doctor_id,
            timeout=settings.STORE_TIMEOUT_SECONDS, executor=executor,
        )
        workflow = BookingWorkflow(
            session=current,
            doctor=doctor,
            store=repo,
            availability=availability,
            pricing=pricing,
            timeout=settings.STORE_TIMEOUT_SECONDS,
            audit=audit_logger,
            meeting_base_url=settings.VIDEO_MEETING_BASE_URL,
            executor=executor,
        )
        await workflow.load_slots(payload.appointment_date)
        if payload.time:
            workflow.select_slot(payload.time, payload.appointment_type)
        workflow.continue_to_details()
        appt = await workflow.submit(payload.reason, payload.notes, payload.agree_to_terms)
    finally:
        executor.shutdown(wait=False)
    return AppointmentResponse.from_dto(appt)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: str,
    current: AuthSession = Depends(get_current_session),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    return AppointmentResponse.from_dto(appt_service.get_for_user(appointment_id, current.user_id, current.role))


@router.put("/{appointment_id}", response_model=AppointmentResponse)
def update_appointment(
    appointment_id: str,
    patch: AppointmentUpdate,
    current: AuthSession = Depends(get_current_session),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    updated = appt_service.update(
        appointment_id, patch.model_dump(exclude_unset=True), actor_id=current.user_id, role=current.role
    )
    return AppointmentResponse.from_dto(updated)


@router.delete("/{appointment_id}", response_model=MessageResponse)
def delete_appointment(
    appointment_id: str,
    current: AuthSession = Depends(get_current_session),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    appt_service.get_for_user(appointment_id, current.user_id, current.role)
    appt_service.delete(appointment_id, actor_id=current.user_id)
    return MessageResponse(message="Appointment deleted successfully")


@router.put("/{appointment_id}/cancel", response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: str,
    current: AuthSession = Depends(get_current_session),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    return AppointmentResponse.from_dto(appt_service.cancel(appointment_id, current.user_id, current.role))


@router.put("/{appointment_id}/complete", response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: str,
    payload: Optional[CompleteRequest] = None,
    current: AuthSession = Depends(get_current_session),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    if current.role != ROLE_DOCTOR:
        raise PermissionDeniedError("Only doctors can complete appointments")
    notes = payload.notes if payload else None
    return AppointmentResponse.from_dto(appt_service.complete(appointment_id, current.user_id, notes=notes))


@router.put("/{appointment_id}/no-show", response_model=AppointmentResponse)
def mark_no_show(
    appointment_id: str,
    current: AuthSession = Depends(get_current_session),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    if current.role != ROLE_DOCTOR:
        raise PermissionDeniedError("Only doctors can mark a no-show")
    return AppointmentResponse.from_dto(appt_service.mark_no_show(appointment_id, current.user_id))


@router.get("/{appointment_id}/video", response_model=VideoLinkResponse)
def get_video_link(
    appointment_id: str,
    current: AuthSession = Depends(get_current_session),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    link = appt_service.video_link(appointment_id, current.user_id)
    return VideoLinkResponse(appointment_id=appointment_id, meeting_link=link)
