from dataclasses import dataclass
from typing import List, Optional, Dict, Any
from datetime import datetime, date
import logging

from ..ports.appointments_repo import (
    AppointmentsRepository,
    AppointmentDto,
    AppointmentDraft,
    APPOINTMENT_STATUSES,
    PAYMENT_STATUSES,
    STATUS_SCHEDULED,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
    STATUS_NO_SHOW,
    TYPE_VIDEO,
)
from ..ports.audit_logger import AuditLogger
from ..ports.user_repo import ROLE_ADMIN
from ...exceptions import APIException, NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)

# Appointments leave "scheduled" once and never come back
ALLOWED_TRANSITIONS = {
    STATUS_SCHEDULED: {STATUS_COMPLETED, STATUS_CANCELLED, STATUS_NO_SHOW},
}
PATCHABLE_FIELDS = ("status", "notes", "payment_status")


@dataclass
class PatientDashboard:
    upcoming: List[AppointmentDto]
    past: List[AppointmentDto]

    @property
    def completed_count(self) -> int:
        return sum(1 for a in self.past if a.status == STATUS_COMPLETED)

    @property
    def next_appointment(self) -> Optional[AppointmentDto]:
        return self.upcoming[0] if self.upcoming else None


@dataclass
class DoctorSchedule:
    today: List[AppointmentDto]
    upcoming: List[AppointmentDto]


@dataclass
class AppointmentsService:
    repo: AppointmentsRepository
    audit: Optional[AuditLogger] = None

    def list(self, user_id: Optional[str] = None, status: Optional[str] = None) -> List[AppointmentDto]:
        if status is not None and status not in APPOINTMENT_STATUSES:
            raise APIException(status_code=400, detail=f"Invalid status. Must be one of: {list(APPOINTMENT_STATUSES)}")
        return self.repo.list(participant_id=user_id, status=status)

    def get(self, appointment_id: str) -> AppointmentDto:
        appt = self.repo.get(appointment_id)
        if not appt:
            raise NotFoundError("Appointment not found")
        return appt

    def get_for_user(self, appointment_id: str, user_id: str, role: Optional[str] = None) -> AppointmentDto:
        appt = self.get(appointment_id)
        if role != ROLE_ADMIN and not appt.involves(user_id):
            raise NotFoundError("Appointment not found")
        return appt

    def create(self, draft: AppointmentDraft, actor_id: Optional[str] = None) -> AppointmentDto:
        appt = self.repo.create(draft)
        self._audit("create", actor_id, appt.id)
        return appt

    def update(self, appointment_id: str, patch: Dict[str, Any], actor_id: str, role: str) -> AppointmentDto:
        """Apply a partial update on behalf of ``actor_id``.

        Admins and the appointment's doctor may change any patchable field.
        Patients may only cancel.
        """
        unknown = [k for k in patch if k not in PATCHABLE_FIELDS]
        if unknown:
            raise APIException(status_code=400, detail=f"Fields cannot be changed: {unknown}")
        current = self.get_for_user(appointment_id, actor_id, role)
        if not patch:
            return current
        if role != ROLE_ADMIN and actor_id != current.doctor_id:
            if set(patch) != {"status"} or patch["status"] != STATUS_CANCELLED:
                raise PermissionDeniedError("Patients can only cancel their appointments")
        return self._apply(current, patch, actor_id)

    def delete(self, appointment_id: str, actor_id: Optional[str] = None) -> None:
        if not self.repo.delete(appointment_id):
            raise NotFoundError("Appointment not found")
        self._audit("delete", actor_id, appointment_id)

    def cancel(self, appointment_id: str, user_id: str, role: Optional[str] = None) -> AppointmentDto:
        appt = self.get_for_user(appointment_id, user_id, role)
        if appt.status == STATUS_CANCELLED:
            raise APIException(status_code=400, detail="Appointment is already cancelled")
        if appt.status == STATUS_COMPLETED:
            raise APIException(status_code=400, detail="Cannot cancel completed appointment")
        return self._apply(appt, {"status": STATUS_CANCELLED}, user_id)

    def complete(self, appointment_id: str, doctor_id: str, notes: Optional[str] = None) -> AppointmentDto:
        appt = self._for_doctor(appointment_id, doctor_id)
        patch: Dict[str, Any] = {"status": STATUS_COMPLETED}
        if notes is not None:
            patch["notes"] = notes
        return self._apply(appt, patch, doctor_id)

    def mark_no_show(self, appointment_id: str, doctor_id: str) -> AppointmentDto:
        appt = self._for_doctor(appointment_id, doctor_id)
        return self._apply(appt, {"status": STATUS_NO_SHOW}, doctor_id)

    def video_link(self, appointment_id: str, user_id: str) -> str:
        appt = self.get_for_user(appointment_id, user_id)
        if appt.appointment_type != TYPE_VIDEO:
            raise APIException(status_code=400, detail="Appointment is not a video consultation")
        if appt.status != STATUS_SCHEDULED or not appt.meeting_link:
            raise APIException(status_code=400, detail="Video consultation is not available for this appointment")
        return appt.meeting_link

    def patient_dashboard(self, patient_id: str, now: Optional[datetime] = None) -> PatientDashboard:
        now = now or datetime.now()
        mine = [a for a in self.repo.list(participant_id=patient_id) if a.patient_id == patient_id]
        upcoming = [a for a in mine if a.starts_at > now and a.status != STATUS_CANCELLED]
        upcoming_ids = {a.id for a in upcoming}
        past = [a for a in mine if a.id not in upcoming_ids]
        upcoming.sort(key=lambda a: a.starts_at)
        past.sort(key=lambda a: a.starts_at, reverse=True)
        return PatientDashboard(upcoming=upcoming, past=past)

    def doctor_schedule(self, doctor_id: str, today: Optional[date] = None) -> DoctorSchedule:
        today = today or date.today()
        active = [
            a for a in self.repo.list(participant_id=doctor_id)
            if a.doctor_id == doctor_id and a.status != STATUS_CANCELLED
        ]
        todays = sorted((a for a in active if a.appointment_date == today), key=lambda a: a.start_time)
        upcoming = sorted((a for a in active if a.appointment_date > today), key=lambda a: a.starts_at)
        return DoctorSchedule(today=todays, upcoming=upcoming)

    def _for_doctor(self, appointment_id: str, doctor_id: str) -> AppointmentDto:
        appt = self.get(appointment_id)
        if appt.doctor_id != doctor_id:
            raise PermissionDeniedError("Only the appointment's doctor can do this")
        return appt

    def _apply(self, current: AppointmentDto, patch: Dict[str, Any], actor_id: Optional[str]) -> AppointmentDto:
        if "status" in patch and patch["status"] != current.status:
            self._check_transition(current.status, patch["status"])
        if "payment_status" in patch and patch["payment_status"] not in PAYMENT_STATUSES:
            raise APIException(status_code=400, detail=f"Invalid payment status. Must be one of: {list(PAYMENT_STATUSES)}")
        updated = self.repo.update(current.id, patch)
        if not updated:
            raise NotFoundError("Appointment not found")
        self._audit("update", actor_id, current.id, details={"fields": sorted(patch)})
        return updated

    def _check_transition(self, current: str, target: str) -> None:
        if target not in APPOINTMENT_STATUSES:
            raise APIException(status_code=400, detail=f"Invalid status. Must be one of: {list(APPOINTMENT_STATUSES)}")
        if target not in ALLOWED_TRANSITIONS.get(current, set()):
            raise APIException(status_code=400, detail=f"Cannot change status from {current} to {target}")

    def _audit(self, action: str, actor_id: Optional[str], appointment_id: str, details: Optional[Dict[str, Any]] = None) -> None:
        if self.audit is not None:
            self.audit.log(action, user_id=actor_id, appointment_id=appointment_id, details=details)
