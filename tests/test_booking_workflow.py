import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime

import pytest

from telehealth.application.ports.appointments_repo import AppointmentDto, PaymentDto
from telehealth.application.ports.user_repo import UserDto
from telehealth.application.services.auth_service import AuthSession
from telehealth.application.services.availability_service import AvailabilityService
from telehealth.application.services.booking_workflow import BookingState, BookingWorkflow, Pricing, call_store
from telehealth.exceptions import (
    BookingValidationError,
    NotFoundError,
    PermissionDeniedError,
    SlotConflictError,
    StoreOperationError,
    StoreTimeoutError,
    WorkflowStateError,
)

DAY = date(2024, 1, 10)
MEET_URL = "https://meet.example.com/room"


def make_user(user_id: str, role: str) -> UserDto:
    return UserDto(
        id=user_id,
        email=f"{user_id}@example.com",
        role=role,
        first_name="Test",
        last_name=user_id,
        profile={"specialty": "Cardiology"} if role == "doctor" else {},
        is_active=True,
        created_at=datetime(2024, 1, 1),
    )


class FakeStore:
    def __init__(self, appts=None):
        self.appts = list(appts or [])
        self.created = []
        self.fail_with = None
        self.delay = 0.0
        self.threads = []

    def list(self, participant_id=None, status=None):
        self.threads.append(threading.current_thread().name)
        return [a for a in self.appts if participant_id is None or a.involves(participant_id)]

    def create(self, draft):
        self.threads.append(threading.current_thread().name)
        if self.delay:
            time.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        self.created.append(draft)
        appt = AppointmentDto(
            id=f"appt-{len(self.created)}",
            patient_id=draft.patient_id,
            doctor_id=draft.doctor_id,
            appointment_date=draft.appointment_date,
            start_time=draft.start_time,
            end_time=draft.end_time,
            status=draft.status,
            appointment_type=draft.appointment_type,
            reason=draft.reason,
            payment=draft.payment,
            created_at=datetime.utcnow(),
            notes=draft.notes,
            meeting_link=draft.meeting_link,
        )
        self.appts.append(appt)
        return appt


class FakeAudit:
    def __init__(self):
        self.entries = []

    def log(self, action, user_id=None, appointment_id=None, success=True, details=None):
        self.entries.append((action, user_id, appointment_id, success))


def booked_at(start_time: str) -> AppointmentDto:
    return AppointmentDto(
        id="existing",
        patient_id="someone-else",
        doctor_id="doc-1",
        appointment_date=DAY,
        start_time=start_time,
        end_time="09:30",
        status="scheduled",
        appointment_type="in-person",
        reason="Existing visit",
        payment=PaymentDto(amount=150.0, currency="USD"),
        created_at=datetime(2024, 1, 1),
    )


def make_workflow(store=None, role="patient", timeout=5.0, audit=None, executor=None):
    store = store if store is not None else FakeStore([booked_at("09:00")])
    session = AuthSession(user=make_user("pat-1", role), access_token="token")
    return BookingWorkflow(
        session=session,
        doctor=make_user("doc-1", "doctor"),
        store=store,
        availability=AvailabilityService(store, start_hour=9, end_hour=17, interval_minutes=30),
        pricing=Pricing(consultation_fee=150.0, video_platform_fee=5.0, currency="USD"),
        timeout=timeout,
        audit=audit,
        meeting_base_url=MEET_URL,
        executor=executor,
    )


async def to_details(wf, start_time="10:00", appointment_type="video"):
    await wf.load_slots(DAY)
    wf.select_slot(start_time, appointment_type)
    wf.continue_to_details()


@pytest.mark.asyncio
async def test_load_slots_marks_booked_start():
    wf = make_workflow()
    slots = await wf.load_slots(DAY)
    assert len(slots) == 16
    assert slots[0].start_time == "09:00" and not slots[0].is_available
    assert all(s.is_available for s in slots[1:])


@pytest.mark.asyncio
async def test_booked_slot_cannot_be_selected():
    wf = make_workflow()
    await wf.load_slots(DAY)
    with pytest.raises(BookingValidationError) as exc:
        wf.select_slot("09:00")
    assert "time" in exc.value.errors
    assert wf.selected_slot is None
    assert wf.state == BookingState.SELECTING_SLOT


@pytest.mark.asyncio
async def test_unknown_type_is_rejected():
    wf = make_workflow()
    await wf.load_slots(DAY)
    with pytest.raises(BookingValidationError) as exc:
        wf.select_slot("10:00", "phone")
    assert "type" in exc.value.errors


def test_continue_requires_a_date():
    wf = make_workflow()
    with pytest.raises(BookingValidationError) as exc:
        wf.continue_to_details()
    assert exc.value.errors == {"date": "Please select a date"}
    assert wf.state == BookingState.SELECTING_SLOT


@pytest.mark.asyncio
async def test_continue_requires_a_slot():
    wf = make_workflow()
    await wf.load_slots(DAY)
    with pytest.raises(BookingValidationError) as exc:
        wf.continue_to_details()
    assert exc.value.errors == {"time": "Please select a time slot"}
    assert wf.state == BookingState.SELECTING_SLOT


@pytest.mark.asyncio
async def test_short_reason_blocks_submit_without_store_call():
    store = FakeStore()
    wf = make_workflow(store)
    await to_details(wf)
    with pytest.raises(BookingValidationError) as exc:
        await wf.submit("abcd", agree_to_terms=True)
    assert exc.value.errors == {"reason": "Please provide a reason for your visit"}
    assert store.created == []
    assert wf.state == BookingState.CONFIRMING_DETAILS


@pytest.mark.asyncio
async def test_reason_is_trimmed_before_length_check():
    store = FakeStore()
    wf = make_workflow(store)
    await to_details(wf)
    with pytest.raises(BookingValidationError):
        await wf.submit("   abcd   ", agree_to_terms=True)
    assert store.created == []


@pytest.mark.asyncio
async def test_terms_must_be_accepted():
    store = FakeStore()
    wf = make_workflow(store)
    await to_details(wf)
    with pytest.raises(BookingValidationError) as exc:
        await wf.submit("Persistent headache", agree_to_terms=False)
    assert "agree_to_terms" in exc.value.errors
    assert store.created == []


@pytest.mark.asyncio
async def test_submit_video_booking():
    store = FakeStore()
    audit = FakeAudit()
    wf = make_workflow(store, audit=audit)
    await to_details(wf, "10:00", "video")
    appt = await wf.submit("abcde", notes="", agree_to_terms=True)

    assert len(store.created) == 1
    draft = store.created[0]
    assert draft.patient_id == "pat-1"
    assert draft.doctor_id == "doc-1"
    assert (draft.start_time, draft.end_time) == ("10:00", "10:30")
    assert draft.status == "scheduled"
    assert draft.notes is None
    assert draft.payment == PaymentDto(amount=155.0, currency="USD", status="pending")
    assert draft.meeting_link.startswith(MEET_URL + "/")
    assert appt.id == "appt-1"
    assert wf.state == BookingState.SUBMITTED
    assert audit.entries == [("book", "pat-1", "appt-1", True)]


@pytest.mark.asyncio
async def test_in_person_quote_has_no_platform_fee():
    store = FakeStore()
    wf = make_workflow(store)
    await to_details(wf, "11:30", "in-person")
    assert wf.quote().amount == 150.0
    await wf.submit("Knee pain after run", agree_to_terms=True)
    assert store.created[0].payment.amount == 150.0
    assert store.created[0].meeting_link is None


@pytest.mark.asyncio
async def test_back_keeps_selection():
    wf = make_workflow()
    await to_details(wf, "14:00", "in-person")
    assert wf.back() == BookingState.SELECTING_SLOT
    assert wf.selected_slot.start_time == "14:00"
    assert wf.appointment_type == "in-person"
    assert wf.continue_to_details() == BookingState.CONFIRMING_DETAILS


@pytest.mark.asyncio
async def test_changing_day_clears_selection():
    wf = make_workflow()
    await wf.load_slots(DAY)
    wf.select_slot("10:00")
    await wf.load_slots(date(2024, 1, 11))
    assert wf.selected_slot is None


@pytest.mark.asyncio
async def test_store_failure_keeps_state_and_allows_retry():
    store = FakeStore()
    audit = FakeAudit()
    wf = make_workflow(store, audit=audit)
    await to_details(wf)
    store.fail_with = RuntimeError("connection reset")
    with pytest.raises(StoreOperationError) as exc:
        await wf.submit("Follow-up visit", agree_to_terms=True)
    assert exc.value.status_code == 503
    assert wf.state == BookingState.CONFIRMING_DETAILS
    assert audit.entries[-1][3] is False

    store.fail_with = None
    appt = await wf.submit("Follow-up visit", agree_to_terms=True)
    assert appt.reason == "Follow-up visit"
    assert wf.state == BookingState.SUBMITTED


@pytest.mark.asyncio
async def test_store_timeout_keeps_state():
    store = FakeStore()
    wf = make_workflow(store, timeout=0.05)
    await to_details(wf)
    store.delay = 0.5
    with pytest.raises(StoreTimeoutError) as exc:
        await wf.submit("Follow-up visit", agree_to_terms=True)
    assert exc.value.status_code == 504
    assert wf.state == BookingState.CONFIRMING_DETAILS


@pytest.mark.asyncio
async def test_slot_conflict_is_reported_as_is():
    store = FakeStore()
    wf = make_workflow(store)
    await to_details(wf)
    store.fail_with = SlotConflictError()
    with pytest.raises(SlotConflictError):
        await wf.submit("Follow-up visit", agree_to_terms=True)
    assert wf.state == BookingState.CONFIRMING_DETAILS


@pytest.mark.asyncio
async def test_submitted_workflow_is_terminal():
    wf = make_workflow(FakeStore())
    await to_details(wf)
    await wf.submit("Follow-up visit", agree_to_terms=True)
    with pytest.raises(WorkflowStateError):
        await wf.submit("Follow-up visit", agree_to_terms=True)
    with pytest.raises(WorkflowStateError):
        wf.back()
    with pytest.raises(WorkflowStateError):
        await wf.load_slots(DAY)


def test_only_patients_can_book():
    with pytest.raises(PermissionDeniedError):
        make_workflow(role="doctor")


@pytest.mark.asyncio
async def test_rejected_slot_keeps_previous_type():
    wf = make_workflow()
    await wf.load_slots(DAY)
    with pytest.raises(BookingValidationError):
        wf.select_slot("09:00", "in-person")
    assert wf.appointment_type == "video"
    with pytest.raises(BookingValidationError):
        wf.select_slot("08:00", "in-person")
    assert wf.appointment_type == "video"
    wf.select_slot("09:30", "in-person")
    assert wf.appointment_type == "in-person"


@pytest.mark.asyncio
async def test_store_calls_share_one_worker_thread():
    store = FakeStore()
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="booking-store")
    try:
        wf = make_workflow(store, executor=executor)
        await to_details(wf)
        await wf.submit("Follow-up visit", agree_to_terms=True)
    finally:
        executor.shutdown(wait=True)
    assert len(store.threads) == 2
    assert len(set(store.threads)) == 1
    assert store.threads[0].startswith("booking-store")


@pytest.mark.asyncio
async def test_call_store_maps_errors():
    def missing(_):
        raise NotFoundError("Doctor not found")

    def broken(_):
        raise RuntimeError("db down")

    def slow(_):
        time.sleep(0.5)

    with pytest.raises(NotFoundError):
        await call_store(missing, "doc-1", timeout=1.0)
    with pytest.raises(StoreOperationError):
        await call_store(broken, "doc-1", timeout=1.0)
    with pytest.raises(StoreTimeoutError):
        await call_store(slow, "doc-1", timeout=0.05)
    assert await call_store(lambda x: x.upper(), "doc-1", timeout=1.0) == "DOC-1"
