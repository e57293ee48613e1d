from datetime import date
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from clinicbook.core.errors import Forbidden
from clinicbook.core.security import Principal
from clinicbook.modules.bookings.models import Booking
from clinicbook.modules.bookings.repository import BookingRepository
from clinicbook.modules.directory.repository import DirectoryRepository
from clinicbook.modules.directory.views import IndependentDoctor, ClinicStaff

class BookingListing:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.bookings = BookingRepository(session)
        self.directory = DirectoryRepository(session)

    async def list_for_actor(self, actor: Principal, day: date | None = None) -> Sequence[Booking]:
        if actor.role == "patient":
            return await self.bookings.list_for_patient(actor.user_id, day)
        if actor.role == "doctor":
            doctor = await self.directory.find_doctor_by_user(actor.user_id)
            return await self.bookings.list_for_practitioner(IndependentDoctor(doctor.id), day) if doctor else []
        if actor.role == "staff":
            staff = await self.directory.find_staff_doctor_by_user(actor.user_id)
            return await self.bookings.list_for_practitioner(ClinicStaff(staff.id), day) if staff else []
        raise Forbidden("Access denied")

    async def list_for_clinic(self, actor: Principal, day: date | None = None) -> Sequence[Booking]:
        clinic = await self.directory.find_owned_clinic(actor.user_id)
        if not clinic:
            raise Forbidden("You do not own an approved clinic")
        staff_ids = await self.directory.staff_ids_for_clinic(clinic.id)
        # the owner's own doctor record books under the clinic too
        doctor = await self.directory.find_doctor_by_user(actor.user_id)
        return await self.bookings.list_for_clinic(staff_ids, doctor.id if doctor else None, day)
