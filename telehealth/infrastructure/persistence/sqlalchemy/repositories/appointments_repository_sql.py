from typing import List, Optional, Dict, Any
import logging
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from .....db.models import Appointment
from .....application.ports.appointments_repo import (
    AppointmentsRepository,
    AppointmentDto,
    AppointmentDraft,
    PaymentDto,
    STATUS_CANCELLED,
)
from .....exceptions import SlotConflictError, StoreOperationError

logger = logging.getLogger(__name__)


class SqlAppointmentsRepository(AppointmentsRepository):
    def __init__(self, session: Session):
        self.session = session

    def _appt_to_dto(self, a: Appointment) -> AppointmentDto:
        return AppointmentDto(
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
            payment=PaymentDto(amount=a.payment_amount, currency=a.payment_currency, status=a.payment_status),
            created_at=a.created_at,
        )

    def _find_conflict(self, doctor_id: str, appointment_date, start_time: str) -> bool:
        existing = self.session.exec(
            select(Appointment)
            .where(Appointment.doctor_id == doctor_id)
            .where(Appointment.appointment_date == appointment_date)
            .where(Appointment.start_time == start_time)
            .where(Appointment.status != STATUS_CANCELLED)
        ).first()
        return existing is not None

    def list(self, participant_id: Optional[str] = None, status: Optional[str] = None) -> List[AppointmentDto]:
        query = select(Appointment)
        if participant_id:
            query = query.where(or_(Appointment.patient_id == participant_id, Appointment.doctor_id == participant_id))
        if status:
            query = query.where(Appointment.status == status)
        try:
            rows = self.session.exec(
                query.order_by(Appointment.appointment_date, Appointment.start_time)
            ).all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing appointments: {e}")
            raise StoreOperationError() from e
        return [self._appt_to_dto(r) for r in rows]

    def get(self, appointment_id: str) -> Optional[AppointmentDto]:
        try:
            a = self.session.get(Appointment, appointment_id)
        except SQLAlchemyError as e:
            logger.error(f"Error getting appointment {appointment_id}: {e}")
            raise StoreOperationError() from e
        return self._appt_to_dto(a) if a else None

    def create(self, draft: AppointmentDraft) -> AppointmentDto:
        if draft.status != STATUS_CANCELLED and self._find_conflict(draft.doctor_id, draft.appointment_date, draft.start_time):
            raise SlotConflictError()
        appt = Appointment(
            patient_id=draft.patient_id,
            doctor_id=draft.doctor_id,
            appointment_date=draft.appointment_date,
            start_time=draft.start_time,
            end_time=draft.end_time,
            status=draft.status,
            appointment_type=draft.appointment_type,
            reason=draft.reason,
            notes=draft.notes,
            meeting_link=draft.meeting_link,
            payment_amount=draft.payment.amount,
            payment_currency=draft.payment.currency,
            payment_status=draft.payment.status,
        )
        try:
            self.session.add(appt)
            self.session.commit()
        except IntegrityError as e:
            # Lost the race for the slot against a concurrent booking
            self.session.rollback()
            logger.warning(f"Slot conflict creating appointment for doctor {draft.doctor_id}: {e}")
            raise SlotConflictError() from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error creating appointment: {e}")
            raise StoreOperationError() from e
        self.session.refresh(appt)
        return self._appt_to_dto(appt)

    def update(self, appointment_id: str, patch: Dict[str, Any]) -> Optional[AppointmentDto]:
        a = self.session.get(Appointment, appointment_id)
        if not a:
            return None
        for key, value in patch.items():
            if hasattr(a, key):
                setattr(a, key, value)
        try:
            self.session.add(a)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error updating appointment {appointment_id}: {e}")
            raise StoreOperationError() from e
        self.session.refresh(a)
        return self._appt_to_dto(a)

    def delete(self, appointment_id: str) -> bool:
        a = self.session.get(Appointment, appointment_id)
        if not a:
            return False
        try:
            self.session.delete(a)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error deleting appointment {appointment_id}: {e}")
            raise StoreOperationError() from e
        return True
