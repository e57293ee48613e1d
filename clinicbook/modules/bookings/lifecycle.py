import uuid
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from clinicbook.core.errors import NotFound, Forbidden, Conflict
from clinicbook.core.security import Principal
from clinicbook.modules.bookings.admission import assert_slot_free
from clinicbook.modules.bookings.locks import SlotLocks, slot_locks
from clinicbook.modules.bookings.models import Booking
from clinicbook.modules.bookings.repository import BookingRepository
from clinicbook.modules.directory.repository import DirectoryRepository
from clinicbook.modules.directory.views import IndependentDoctor, ClinicStaff, PractitionerRef
from clinicbook.modules.notifications.service import NotificationSink, notifier_for

log = logging.getLogger(__name__)

VALID_NEXT = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"cancelled"},
    "cancelled": set(),
}

def booking_ref(b: Booking) -> PractitionerRef:
    if b.doctor_id is not None:
        return IndependentDoctor(b.doctor_id)
    return ClinicStaff(b.staff_id)

class BookingLifecycle:
    def __init__(self, session: AsyncSession, *, notifier: NotificationSink | None = None, locks: SlotLocks | None = None):
        self.session = session
        self.bookings = BookingRepository(session)
        self.directory = DirectoryRepository(session)
        self.notifier = notifier or notifier_for(session)
        self.locks = locks or slot_locks

    async def _load(self, booking_id: uuid.UUID) -> Booking:
        obj = await self.bookings.get(booking_id)
        if not obj:
            raise NotFound("Booking not found")
        return obj

    async def _authorize(self, booking: Booking, actor: Principal) -> str:
        """Return how the actor relates to the booking: patient, practitioner or clinic."""
        if actor.role == "patient":
            if booking.patient_user_id == actor.user_id:
                return "patient"
            raise Forbidden("Access denied")

        if actor.role == "doctor" and booking.doctor_id is not None:
            doctor = await self.directory.find_doctor_by_user(actor.user_id)
            if doctor and doctor.id == booking.doctor_id:
                return "practitioner"
        if actor.role == "staff" and booking.staff_id is not None:
            staff = await self.directory.find_staff_doctor_by_user(actor.user_id)
            if staff and staff.id == booking.staff_id:
                return "practitioner"
        if booking.staff_id is not None and actor.role in ("doctor", "staff"):
            if await self.directory.owns_clinic_of_staff(actor.user_id, booking.staff_id):
                return "clinic"
        raise Forbidden("Access denied")

    async def _transition(self, booking: Booking, nxt: str) -> None:
        prev = booking.status
        if nxt not in VALID_NEXT.get(prev, set()):
            raise Conflict(f"Cannot move booking from {prev} to {nxt}")
        # compare-and-set on the previous status
        if not await self.bookings.transition(booking, prev, nxt):
            await self.session.rollback()
            raise Conflict(f"Booking is no longer {prev}")

    async def cancel_booking(self, booking_id: uuid.UUID, actor: Principal) -> Booking:
        booking = await self._load(booking_id)
        if booking.status == "cancelled":
            raise Conflict("Booking already cancelled")
        via = await self._authorize(booking, actor)

        await self._transition(booking, "cancelled")
        await self.session.commit()
        log.info("Booking %s cancelled by %s %s (%s)", booking.id, actor.role, actor.user_id, via)

        message = "Your booking has been cancelled by the clinic." if via == "clinic" else "Your booking has been cancelled."
        await self._notify(booking.patient_user_id, "Booking Cancelled", message, booking)
        return booking

    async def confirm_booking(self, booking_id: uuid.UUID, actor: Principal) -> Booking:
        # a Conflict here rolls the session back and expires what it had loaded
        booking = await self._load(booking_id)
        if booking.status != "pending":
            raise Conflict(f"Booking is {booking.status}, only pending bookings can be confirmed")
        via = await self._authorize(booking, actor)
        if via == "patient":
            raise Forbidden("Patients cannot confirm bookings")

        ref = booking_ref(booking)
        try:
            async with self.locks.hold(self.session, ref, booking.booking_date):
                await assert_slot_free(self.bookings, ref, booking.booking_date, booking.booking_from, booking.booking_to)
                await self._transition(booking, "confirmed")
                await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        log.info("Booking %s confirmed by %s %s", booking.id, actor.role, actor.user_id)
        await self._notify(booking.patient_user_id, "Booking Confirmed", "Your booking has been confirmed.", booking)
        return booking

    async def _notify(self, user_id: uuid.UUID, title: str, message: str, booking: Booking) -> None:
        try:
            await self.notifier.notify(user_id, title, message)
        except Exception:
            log.exception("Failed to notify user %s about booking %s", user_id, booking.id)
