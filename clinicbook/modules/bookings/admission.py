"""Booking admission: validate a requested slot and insert it without double-booking."""
import uuid
import logging
from datetime import date, datetime, time
from typing import Callable
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from clinicbook.core.config import settings
from clinicbook.core.errors import InvalidArgument, NotFound, Forbidden, Conflict
from clinicbook.modules.bookings.locks import SlotLocks, slot_locks
from clinicbook.modules.bookings.models import Booking
from clinicbook.modules.bookings.repository import BookingRepository
from clinicbook.modules.directory.repository import DirectoryRepository
from clinicbook.modules.directory.views import PractitionerRef, PractitionerView, IndependentDoctor, ClinicStaff
from clinicbook.modules.notifications.service import NotificationSink, notifier_for
from clinicbook.modules.scheduling.slots import parse_hhmm, format_hhmm, end_of_slot, overlaps

log = logging.getLogger(__name__)

def _now() -> datetime:
    # naive wall clock in the clinic timezone, comparable with date + time-of-day
    return datetime.now(ZoneInfo(settings.TIMEZONE)).replace(tzinfo=None)

async def assert_slot_free(repo: BookingRepository, ref: PractitionerRef, day: date, start: time, end: time) -> None:
    """Raise Conflict if a confirmed booking overlaps [start, end). Call under SlotLocks.hold."""
    for b in await repo.find_confirmed(ref, day):
        if overlaps(start, end, b.booking_from, b.booking_to):
            raise Conflict("This time slot is already booked")

class BookingAdmission:
    def __init__(
        self,
        session: AsyncSession,
        *,
        notifier: NotificationSink | None = None,
        clock: Callable[[], datetime] | None = None,
        locks: SlotLocks | None = None,
        slot_minutes: int | None = None,
        requires_confirmation: bool | None = None,
    ):
        self.session = session
        self.bookings = BookingRepository(session)
        self.directory = DirectoryRepository(session)
        self.notifier = notifier or notifier_for(session)
        self.clock = clock or _now
        self.locks = locks or slot_locks
        self.slot_minutes = slot_minutes or settings.BOOKING_SLOT_MINUTES
        if requires_confirmation is None:
            requires_confirmation = settings.BOOKING_REQUIRES_CONFIRMATION
        self.initial_status = "pending" if requires_confirmation else "confirmed"

    async def create_booking(self, patient_id: uuid.UUID, ref: PractitionerRef, booking_date: date, booking_from: str) -> Booking:
        """Admit one booking or raise.

        A failure inside the locked block rolls the session back, which expires
        every instance the caller has loaded through it.
        """
        if not isinstance(ref, (IndependentDoctor, ClinicStaff)):
            raise InvalidArgument("Provide exactly one of doctor_id or staff_id")

        start = parse_hhmm(booking_from)
        if datetime.combine(booking_date, start) < self.clock():
            raise InvalidArgument("Invalid booking time")
        end = end_of_slot(booking_date, start, self.slot_minutes)
        if end is None:
            raise InvalidArgument("Invalid booking time")

        view = await self.directory.resolve(ref)
        if view is None or not view.verified:
            raise NotFound("Doctor not available")
        if isinstance(ref, IndependentDoctor) and view.owns_approved_clinic:
            raise Forbidden("This doctor owns a clinic. Please book through clinic staff.")
        if not view.works_on(booking_date):
            raise InvalidArgument("Doctor does not work on this day")
        if not view.covers(start, end):
            raise InvalidArgument("Invalid booking time")

        try:
            async with self.locks.hold(self.session, ref, booking_date):
                await assert_slot_free(self.bookings, ref, booking_date, start, end)
                booking = await self.bookings.insert(
                    patient_user_id=patient_id,
                    doctor_id=ref.doctor_id if isinstance(ref, IndependentDoctor) else None,
                    staff_id=ref.staff_id if isinstance(ref, ClinicStaff) else None,
                    booking_date=booking_date,
                    booking_from=start,
                    booking_to=end,
                    status=self.initial_status,
                )
                await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        log.info(
            "Booking %s admitted for %s %s on %s %s-%s (%s)",
            booking.id, ref.kind, ref.id, booking_date, format_hhmm(start), format_hhmm(end), booking.status,
        )
        await self._notify_practitioner(view, booking)
        return booking

    async def _notify_practitioner(self, view: PractitionerView, booking: Booking) -> None:
        message = (
            f"New booking on {booking.booking_date.isoformat()} "
            f"from {format_hhmm(booking.booking_from)} to {format_hhmm(booking.booking_to)}"
        )
        try:
            await self.notifier.notify(view.user_id, "New Booking", message)
        except Exception:
            # booking is already committed at this point
            log.exception("Failed to notify user %s about booking %s", view.user_id, booking.id)
