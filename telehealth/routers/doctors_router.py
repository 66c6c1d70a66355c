from typing import List, Optional
from datetime import date
from fastapi import APIRouter, Depends, Query
import logging

from ..schemas.doctors.doctor import DoctorResponse, DoctorSlotsResponse, TimeSlotResponse
from ..application.services.auth_service import AuthSession
from ..application.services.availability_service import AvailabilityService
from ..application.services.doctors_service import DoctorsService
from .deps import get_current_session, get_doctors_service, get_availability_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/doctors", tags=["Doctors"])


@router.get("/", response_model=List[DoctorResponse])
def get_doctors(
    search: Optional[str] = Query(None, description="Match on first name, last name or specialty"),
    specialty: Optional[str] = Query(None),
    current: AuthSession = Depends(get_current_session),
    doctors_service: DoctorsService = Depends(get_doctors_service),
):
    return [DoctorResponse.from_dto(d) for d in doctors_service.list_doctors(search=search, specialty=specialty)]


@router.get("/specialties", response_model=List[str])
def get_specialties(
    current: AuthSession = Depends(get_current_session),
    doctors_service: DoctorsService = Depends(get_doctors_service),
):
    return doctors_service.specialties()


@router.get("/{doctor_id}", response_model=DoctorResponse)
def get_doctor(
    doctor_id: str,
    current: AuthSession = Depends(get_current_session),
    doctors_service: DoctorsService = Depends(get_doctors_service),
):
    return DoctorResponse.from_dto(doctors_service.get_doctor(doctor_id))


@router.get("/{doctor_id}/slots", response_model=DoctorSlotsResponse)
def get_doctor_slots(
    doctor_id: str,
    day: date = Query(..., alias="date", description="YYYY-MM-DD"),
    current: AuthSession = Depends(get_current_session),
    doctors_service: DoctorsService = Depends(get_doctors_service),
    availability: AvailabilityService = Depends(get_availability_service),
):
    doctor = doctors_service.get_doctor(doctor_id)
    slots = availability.get_slots(doctor.id, day)
    return DoctorSlotsResponse(
        doctor_id=doctor.id,
        date=day.isoformat(),
        slots=[TimeSlotResponse(start_time=s.start_time, end_time=s.end_time, is_available=s.is_available) for s in slots],
    )
