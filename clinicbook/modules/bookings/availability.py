from datetime import date
from sqlalchemy.ext.asyncio import AsyncSession
from clinicbook.core.config import settings
from clinicbook.core.errors import NotFound
from clinicbook.modules.bookings.repository import BookingRepository
from clinicbook.modules.directory.repository import DirectoryRepository
from clinicbook.modules.directory.views import PractitionerRef
from clinicbook.modules.scheduling.slots import Slot, generate_slots

class AvailabilityResolver:
    def __init__(self, session: AsyncSession, *, slot_minutes: int | None = None):
        self.session = session
        self.bookings = BookingRepository(session)
        self.directory = DirectoryRepository(session)
        self.slot_minutes = slot_minutes or settings.BOOKING_SLOT_MINUTES

    async def get_available_slots(self, ref: PractitionerRef, booking_date: date) -> list[Slot]:
        view = await self.directory.resolve(ref)
        if view is None or not view.verified:
            raise NotFound("Doctor not available")

        # a day off is an empty answer, not an error
        if not view.works_on(booking_date):
            return []

        slots = generate_slots(view.work_from, view.work_to, self.slot_minutes)
        taken = await self.bookings.find_confirmed(ref, booking_date)
        return [
            s for s in slots
            if not any(s.overlaps(b.booking_from, b.booking_to) for b in taken)
        ]
