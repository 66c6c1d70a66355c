from dataclasses import dataclass
from typing import List, Optional

from ..ports.user_repo import UserRepository, UserDto, ROLE_DOCTOR
from ...exceptions import NotFoundError


@dataclass
class DoctorsService:
    user_repo: UserRepository

    def list_doctors(self, search: Optional[str] = None, specialty: Optional[str] = None) -> List[UserDto]:
        """Doctors matching ``search`` (name or specialty, case-insensitive) and ``specialty`` (exact)."""
        doctors = self.user_repo.list_by_role(ROLE_DOCTOR)
        if search:
            term = search.strip().lower()
            doctors = [
                d for d in doctors
                if term in d.first_name.lower()
                or term in d.last_name.lower()
                or term in (d.specialty or "").lower()
            ]
        if specialty:
            doctors = [d for d in doctors if d.specialty == specialty]
        return doctors

    def specialties(self) -> List[str]:
        return sorted({d.specialty for d in self.user_repo.list_by_role(ROLE_DOCTOR) if d.specialty})

    def get_doctor(self, doctor_id: str) -> UserDto:
        doctor = self.user_repo.get_by_id(doctor_id)
        if not doctor or not doctor.is_doctor or not doctor.is_active:
            raise NotFoundError("Doctor not found")
        return doctor
