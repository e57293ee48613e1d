"""Tests for booking admission."""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import date, datetime, time

import pytest
from sqlalchemy import func, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from clinicbook.core.errors import Conflict, Forbidden, InvalidArgument, NotFound
from clinicbook.core.security import Principal
from clinicbook.modules.bookings.admission import BookingAdmission
from clinicbook.modules.bookings.lifecycle import BookingLifecycle
from clinicbook.modules.bookings.locks import SlotLocks, lock_key
from clinicbook.modules.bookings.models import Booking
from clinicbook.modules.bookings.repository import BookingRepository
from clinicbook.modules.directory.views import ClinicStaff, IndependentDoctor
from clinicbook.modules.notifications.models import Notification
from clinicbook.modules.notifications.service import SessionScopedNotifier

MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)


def clock():
    return datetime(2030, 1, 1, 8, 0)


class ExplodingNotifier:
    async def notify(self, user_id, title, message):
        raise RuntimeError("notification backend down")


class RecordingLocks(SlotLocks):
    def __init__(self):
        super().__init__()
        self.keys = []

    @asynccontextmanager
    async def hold(self, session, ref, day):
        async with super().hold(session, ref, day):
            self.keys.append(lock_key(ref, day))
            yield


def admission(session, **kwargs):
    kwargs.setdefault("clock", clock)
    kwargs.setdefault("slot_minutes", 30)
    return BookingAdmission(session, **kwargs)


async def confirmed_count(session_factory, doctor_id, day):
    async with session_factory() as s:
        res = await s.execute(
            select(func.count()).select_from(Booking).where(
                Booking.doctor_id == doctor_id, Booking.booking_date == day, Booking.status == "confirmed"
            )
        )
        return res.scalar_one()


class TestAdmit:
    @pytest.mark.asyncio
    async def test_books_a_free_slot_and_notifies_the_doctor(self, session, session_factory, directory):
        patient = uuid.uuid4()
        booking = await admission(session).create_booking(patient, IndependentDoctor(directory.doctor_id), MONDAY, "10:00")

        assert booking.status == "confirmed"
        assert booking.patient_user_id == patient
        assert booking.doctor_id == directory.doctor_id and booking.staff_id is None
        assert (booking.booking_from, booking.booking_to) == (time(10, 0), time(10, 30))

        async with session_factory() as s:
            rows = (await s.execute(select(Notification).where(Notification.user_id == directory.doctor_user))).scalars().all()
        assert [(n.title, n.message) for n in rows] == [
            ("New Booking", "New booking on 2030-01-07 from 10:00 to 10:30")
        ]

    @pytest.mark.asyncio
    async def test_books_a_staff_doctor(self, session, directory):
        booking = await admission(session).create_booking(uuid.uuid4(), ClinicStaff(directory.staff_id), TUESDAY, "15:30")
        assert booking.staff_id == directory.staff_id and booking.doctor_id is None
        assert booking.booking_to == time(16, 0)

    @pytest.mark.asyncio
    async def test_touching_slots_are_both_admitted(self, session, directory):
        ref = IndependentDoctor(directory.doctor_id)
        await admission(session).create_booking(uuid.uuid4(), ref, MONDAY, "10:00")
        await admission(session).create_booking(uuid.uuid4(), ref, MONDAY, "10:30")
        await admission(session).create_booking(uuid.uuid4(), ref, MONDAY, "09:30")

    @pytest.mark.asyncio
    async def test_holds_the_practitioner_date_lock(self, session, directory):
        locks = RecordingLocks()
        await admission(session, locks=locks).create_booking(uuid.uuid4(), IndependentDoctor(directory.doctor_id), MONDAY, "10:00")
        assert locks.keys == [f"booking:doctor:{directory.doctor_id}:2030-01-07"]


class TestRejections:
    @pytest.mark.asyncio
    async def test_malformed_time(self, session, directory):
        with pytest.raises(InvalidArgument) as exc:
            await admission(session).create_booking(uuid.uuid4(), IndependentDoctor(directory.doctor_id), MONDAY, "9:00")
        assert exc.value.message == "booking_from must be HH:mm"

    @pytest.mark.asyncio
    async def test_missing_practitioner_reference(self, session, directory):
        with pytest.raises(InvalidArgument):
            await admission(session).create_booking(uuid.uuid4(), None, MONDAY, "10:00")

    @pytest.mark.asyncio
    async def test_start_in_the_past(self, session, directory):
        late_clock = lambda: datetime(2030, 1, 7, 10, 1)
        with pytest.raises(InvalidArgument) as exc:
            await admission(session, clock=late_clock).create_booking(
                uuid.uuid4(), IndependentDoctor(directory.doctor_id), MONDAY, "10:00"
            )
        assert exc.value.message == "Invalid booking time"

    @pytest.mark.asyncio
    async def test_slot_crossing_midnight(self, session, directory):
        with pytest.raises(InvalidArgument) as exc:
            await admission(session).create_booking(uuid.uuid4(), IndependentDoctor(directory.night_id), MONDAY, "23:50")
        assert exc.value.message == "Invalid booking time"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("start", ["08:30", "08:45", "11:45", "12:00"])
    async def test_outside_working_hours(self, session, directory, start):
        with pytest.raises(InvalidArgument) as exc:
            await admission(session).create_booking(uuid.uuid4(), IndependentDoctor(directory.doctor_id), MONDAY, start)
        assert exc.value.message == "Invalid booking time"

    @pytest.mark.asyncio
    async def test_non_working_day(self, session, directory):
        with pytest.raises(InvalidArgument) as exc:
            await admission(session).create_booking(uuid.uuid4(), IndependentDoctor(directory.doctor_id), TUESDAY, "10:00")
        assert exc.value.message == "Doctor does not work on this day"

    @pytest.mark.asyncio
    async def test_unverified_or_unknown_practitioner(self, session, directory):
        for ref in (
            IndependentDoctor(directory.unverified_id),
            IndependentDoctor(uuid.uuid4()),
            ClinicStaff(directory.nurse_id),
        ):
            with pytest.raises(NotFound) as exc:
                await admission(session).create_booking(uuid.uuid4(), ref, MONDAY, "10:00")
            assert exc.value.message == "Doctor not available"

    @pytest.mark.asyncio
    async def test_clinic_owner_must_be_booked_through_the_clinic(self, session, directory):
        with pytest.raises(Forbidden) as exc:
            await admission(session).create_booking(uuid.uuid4(), IndependentDoctor(directory.owner_id), MONDAY, "10:00")
        assert exc.value.message == "This doctor owns a clinic. Please book through clinic staff."


class TestConflicts:
    @pytest.mark.asyncio
    async def test_same_and_overlapping_starts_conflict(self, session, session_factory, directory):
        ref = IndependentDoctor(directory.doctor_id)
        await admission(session).create_booking(uuid.uuid4(), ref, MONDAY, "10:00")

        for start in ("10:00", "10:15", "09:45"):
            with pytest.raises(Conflict) as exc:
                await admission(session).create_booking(uuid.uuid4(), ref, MONDAY, start)
            assert exc.value.message == "This time slot is already booked"

        assert await confirmed_count(session_factory, directory.doctor_id, MONDAY) == 1

    @pytest.mark.asyncio
    async def test_failed_admission_expires_loaded_instances(self, session, directory):
        ref = IndependentDoctor(directory.doctor_id)
        first = await admission(session).create_booking(uuid.uuid4(), ref, MONDAY, "10:00")
        first_id = first.id

        with pytest.raises(Conflict):
            await admission(session).create_booking(uuid.uuid4(), ref, MONDAY, "10:00")

        assert inspect(first).expired
        assert (await BookingRepository(session).get(first_id)).status == "confirmed"

    @pytest.mark.asyncio
    async def test_cancelled_booking_frees_the_slot(self, session, directory):
        ref = IndependentDoctor(directory.doctor_id)
        patient = uuid.uuid4()
        first = await admission(session).create_booking(patient, ref, MONDAY, "10:00")
        await BookingLifecycle(session).cancel_booking(first.id, Principal(user_id=patient, role="patient"))

        again = await admission(session).create_booking(uuid.uuid4(), ref, MONDAY, "10:00")
        assert again.status == "confirmed"

    @pytest.mark.asyncio
    async def test_concurrent_overlapping_requests_admit_exactly_one(self, session_factory, directory):
        ref = IndependentDoctor(directory.doctor_id)

        async def attempt(start):
            async with session_factory() as s:
                return await admission(s).create_booking(uuid.uuid4(), ref, MONDAY, start)

        results = await asyncio.gather(attempt("10:00"), attempt("10:15"), return_exceptions=True)

        admitted = [r for r in results if isinstance(r, Booking)]
        rejected = [r for r in results if isinstance(r, Conflict)]
        assert len(admitted) == 1
        assert len(rejected) == 1
        assert await confirmed_count(session_factory, directory.doctor_id, MONDAY) == 1


class TestNotifierFailure:
    @pytest.mark.asyncio
    async def test_booking_survives_a_failing_notifier(self, session, session_factory, directory, caplog):
        with caplog.at_level(logging.ERROR):
            booking = await admission(session, notifier=ExplodingNotifier()).create_booking(
                uuid.uuid4(), IndependentDoctor(directory.doctor_id), MONDAY, "10:00"
            )

        assert booking.status == "confirmed"
        assert "Failed to notify user" in caplog.text
        async with session_factory() as s:
            stored = await BookingRepository(s).get(booking.id)
        assert stored is not None and stored.status == "confirmed"

    @pytest.mark.asyncio
    async def test_storage_outage_while_notifying_does_not_reach_the_caller(self, session, session_factory, directory, tmp_path, caplog):
        dead = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'notifications.db'}")
        notifier = SessionScopedNotifier(async_sessionmaker(dead, expire_on_commit=False, class_=AsyncSession))
        try:
            with caplog.at_level(logging.ERROR):
                booking = await admission(session, notifier=notifier).create_booking(
                    uuid.uuid4(), IndependentDoctor(directory.doctor_id), MONDAY, "10:00"
                )
        finally:
            await dead.dispose()

        # the request session was not rolled back, so nothing is expired
        assert not inspect(booking).expired
        assert booking.status == "confirmed"
        assert "Failed to notify user" in caplog.text
        async with session_factory() as s:
            stored = await BookingRepository(s).get(booking.id)
        assert stored.status == "confirmed"

    @pytest.mark.asyncio
    async def test_default_notifier_leaves_the_session_alone(self, session, directory):
        booking = await admission(session).create_booking(uuid.uuid4(), IndependentDoctor(directory.doctor_id), MONDAY, "10:00")
        assert not inspect(booking).expired
        assert booking not in session.new and booking not in session.dirty


class TestPendingPolicy:
    @pytest.mark.asyncio
    async def test_pending_bookings_do_not_block_until_confirmed(self, session, directory):
        ref = IndependentDoctor(directory.doctor_id)
        doctor = Principal(user_id=directory.doctor_user, role="doctor")
        first = await admission(session, requires_confirmation=True).create_booking(uuid.uuid4(), ref, MONDAY, "10:00")
        second = await admission(session, requires_confirmation=True).create_booking(uuid.uuid4(), ref, MONDAY, "10:00")
        assert first.status == "pending" and second.status == "pending"

        second_id = second.id

        lifecycle = BookingLifecycle(session)
        confirmed = await lifecycle.confirm_booking(first.id, doctor)
        assert confirmed.status == "confirmed"

        with pytest.raises(Conflict):
            await lifecycle.confirm_booking(second_id, doctor)
        assert inspect(second).expired
        assert (await BookingRepository(session).get(second_id)).status == "pending"
