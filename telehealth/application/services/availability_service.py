"""Time-slot generation and availability.

A doctor's day is cut into fixed-size slots over a working window. A slot is
taken when a non-cancelled appointment of that doctor and date starts at
exactly the slot's start time. Overlap between appointments of different
lengths is not considered: a slot next to a booked one stays available.
"""
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Iterable, List

from ..ports.appointments_repo import AppointmentsRepository, AppointmentDto, STATUS_CANCELLED

TIME_FORMAT = "%H:%M"


@dataclass(frozen=True)
class TimeSlot:
    start_time: str
    end_time: str
    is_available: bool = True


def generate_time_slots(day: date, start_hour: int, end_hour: int, interval_minutes: int) -> List[TimeSlot]:
    """Return the slots of ``day`` from ``start_hour`` to ``end_hour``.

    Slots start every ``interval_minutes`` while the start lies before the
    end of the window, so a window of N hours yields ceil(N * 60 / interval)
    slots. Each slot lasts exactly ``interval_minutes``; the last one may run
    past ``end_hour`` when the interval does not divide the window. An empty
    or inverted window yields no slots.
    """
    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be positive")
    if end_hour <= start_hour:
        return []

    window_start = datetime.combine(day, datetime.min.time())
    step = timedelta(minutes=interval_minutes)
    slots = []
    minute = start_hour * 60
    while minute < end_hour * 60:
        starts = window_start + timedelta(minutes=minute)
        slots.append(TimeSlot(
            start_time=starts.strftime(TIME_FORMAT),
            end_time=(starts + step).strftime(TIME_FORMAT),
        ))
        minute += interval_minutes
    return slots


def apply_availability(slots: Iterable[TimeSlot], appointments: Iterable[AppointmentDto]) -> List[TimeSlot]:
    """Mark slots whose start time is held by a non-cancelled appointment.

    ``appointments`` must already be restricted to one doctor and date.
    Returns new slots; the input is left untouched.
    """
    booked = {a.start_time for a in appointments if a.status != STATUS_CANCELLED}
    return [replace(slot, is_available=slot.start_time not in booked) for slot in slots]


class AvailabilityService:
    def __init__(self, repo: AppointmentsRepository, start_hour: int, end_hour: int, interval_minutes: int):
        self.repo = repo
        self.start_hour = start_hour
        self.end_hour = end_hour
        self.interval_minutes = interval_minutes

    @classmethod
    def from_settings(cls, repo: AppointmentsRepository, settings) -> "AvailabilityService":
        return cls(
            repo,
            start_hour=settings.SLOT_START_HOUR,
            end_hour=settings.SLOT_END_HOUR,
            interval_minutes=settings.SLOT_INTERVAL_MINUTES,
        )

    def booked_on(self, doctor_id: str, day: date) -> List[AppointmentDto]:
        return [
            a for a in self.repo.list(participant_id=doctor_id)
            if a.doctor_id == doctor_id and a.appointment_date == day and a.status != STATUS_CANCELLED
        ]

    def get_slots(self, doctor_id: str, day: date) -> List[TimeSlot]:
        slots = generate_time_slots(day, self.start_hour, self.end_hour, self.interval_minutes)
        return apply_availability(slots, self.booked_on(doctor_id, day))
