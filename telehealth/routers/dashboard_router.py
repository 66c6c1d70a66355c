from fastapi import APIRouter, Depends
import logging

from ..exceptions import PermissionDeniedError
from ..schemas.appointments.appointment import (
    AppointmentResponse,
    PatientDashboardResponse,
    DoctorScheduleResponse,
)
from ..application.ports.user_repo import ROLE_PATIENT, ROLE_DOCTOR
from ..application.services.auth_service import AuthSession
from ..application.services.appointments_service import AppointmentsService
from .deps import get_current_session, get_appointments_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/patient", response_model=PatientDashboardResponse)
def patient_dashboard(
    current: AuthSession = Depends(get_current_session),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    if current.role != ROLE_PATIENT:
        raise PermissionDeniedError("Patient dashboard is only available to patients")
    board = appt_service.patient_dashboard(current.user_id)
    return PatientDashboardResponse(
        upcoming=[AppointmentResponse.from_dto(a) for a in board.upcoming],
        past=[AppointmentResponse.from_dto(a) for a in board.past],
        completed_count=board.completed_count,
        next_appointment=AppointmentResponse.from_dto(board.next_appointment) if board.next_appointment else None,
    )


@router.get("/doctor", response_model=DoctorScheduleResponse)
def doctor_dashboard(
    current: AuthSession = Depends(get_current_session),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    if current.role != ROLE_DOCTOR:
        raise PermissionDeniedError("Doctor dashboard is only available to doctors")
    schedule = appt_service.doctor_schedule(current.user_id)
    return DoctorScheduleResponse(
        today=[AppointmentResponse.from_dto(a) for a in schedule.today],
        upcoming=[AppointmentResponse.from_dto(a) for a in schedule.upcoming],
    )
