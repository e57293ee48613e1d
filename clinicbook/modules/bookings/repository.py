import uuid
from datetime import date
from typing import Sequence
from sqlalchemy import select, update, or_, func
from sqlalchemy.orm import with_expression
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.ext.asyncio import AsyncSession
from clinicbook.modules.bookings.models import Booking
from clinicbook.modules.directory.models import Doctor, Staff, Clinic
from clinicbook.modules.directory.views import PractitionerRef, IndependentDoctor

def _belongs_to(ref: PractitionerRef):
    if isinstance(ref, IndependentDoctor):
        return Booking.doctor_id == ref.doctor_id
    return Booking.staff_id == ref.staff_id

class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(self, **data) -> Booking:
        obj = Booking(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, booking_id: uuid.UUID) -> Booking | None:
        res = await self.session.execute(select(Booking).where(Booking.id == booking_id))
        return res.scalar_one_or_none()

    async def find_confirmed(self, ref: PractitionerRef, day: date) -> Sequence[Booking]:
        q = select(Booking).where(
            _belongs_to(ref),
            Booking.booking_date == day,
            Booking.status == "confirmed",
        ).order_by(Booking.booking_from.asc())
        res = await self.session.execute(q)
        return res.scalars().all()

    async def transition(self, obj: Booking, prev: str, nxt: str) -> bool:
        # UPDATE ... WHERE status = prev; zero rows means someone else moved it first
        res = await self.session.execute(
            update(Booking)
            .where(Booking.id == obj.id, Booking.status == prev)
            .values(status=nxt)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            return False
        set_committed_value(obj, "status", nxt)
        return True

    # listings
    async def list_where(self, *conditions, day: date | None = None) -> Sequence[Booking]:
        cond = list(conditions)
        if day:
            cond.append(Booking.booking_date == day)
        q = (
            select(Booking)
            .outerjoin(Doctor, Doctor.id == Booking.doctor_id)
            .outerjoin(Staff, Staff.id == Booking.staff_id)
            .outerjoin(Clinic, Clinic.id == Staff.clinic_id)
            .where(*cond)
            .options(
                with_expression(Booking.doctor_name, func.coalesce(Doctor.full_name, Staff.full_name)),
                with_expression(Booking.clinic_name, Clinic.name),
            )
            .order_by(Booking.booking_date.asc(), Booking.booking_from.asc())
            .execution_options(populate_existing=True)
        )
        res = await self.session.execute(q)
        return res.scalars().all()

    async def list_for_patient(self, patient_user_id: uuid.UUID, day: date | None = None) -> Sequence[Booking]:
        return await self.list_where(Booking.patient_user_id == patient_user_id, day=day)

    async def list_for_practitioner(self, ref: PractitionerRef, day: date | None = None) -> Sequence[Booking]:
        return await self.list_where(_belongs_to(ref), day=day)

    async def list_for_clinic(self, staff_ids: Sequence[uuid.UUID], owner_doctor_id: uuid.UUID | None, day: date | None = None) -> Sequence[Booking]:
        scope = []
        if staff_ids:
            scope.append(Booking.staff_id.in_(staff_ids))
        if owner_doctor_id:
            scope.append(Booking.doctor_id == owner_doctor_id)
        if not scope:
            return []
        return await self.list_where(or_(*scope), day=day)
