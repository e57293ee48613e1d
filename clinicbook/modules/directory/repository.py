import uuid
from typing import Sequence
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession
from clinicbook.modules.directory.models import Doctor, Clinic, Staff
from clinicbook.modules.directory.views import PractitionerView, PractitionerRef, IndependentDoctor, ClinicStaff
from clinicbook.modules.scheduling.slots import parse_work_days

class DirectoryRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_doctor(self, doctor_id: uuid.UUID) -> PractitionerView | None:
        q = (
            select(Doctor, Clinic.id)
            .outerjoin(Clinic, and_(Clinic.owner_user_id == Doctor.user_id, Clinic.status == "approved"))
            .where(Doctor.id == doctor_id)
        )
        res = await self.session.execute(q)
        row = res.first()
        if row is None:
            return None
        doctor, clinic_id = row
        return PractitionerView(
            ref=IndependentDoctor(doctor.id),
            user_id=doctor.user_id,
            full_name=doctor.full_name,
            verified=doctor.is_verified,
            work_days=parse_work_days(doctor.work_days),
            work_from=doctor.work_from,
            work_to=doctor.work_to,
            clinic_id=clinic_id,
            owns_approved_clinic=clinic_id is not None,
        )

    async def find_staff_doctor(self, staff_id: uuid.UUID) -> PractitionerView | None:
        q = select(Staff).where(Staff.id == staff_id, Staff.role_title == "doctor")
        res = await self.session.execute(q)
        staff = res.scalar_one_or_none()
        if staff is None:
            return None
        return PractitionerView(
            ref=ClinicStaff(staff.id),
            user_id=staff.user_id,
            full_name=staff.full_name,
            verified=staff.is_verified,
            work_days=parse_work_days(staff.work_days),
            work_from=staff.work_from,
            work_to=staff.work_to,
            clinic_id=staff.clinic_id,
        )

    async def resolve(self, ref: PractitionerRef) -> PractitionerView | None:
        if isinstance(ref, IndependentDoctor):
            return await self.find_doctor(ref.doctor_id)
        return await self.find_staff_doctor(ref.staff_id)

    # lookups by owning user, used for authorization
    async def find_doctor_by_user(self, user_id: uuid.UUID) -> Doctor | None:
        res = await self.session.execute(select(Doctor).where(Doctor.user_id == user_id))
        return res.scalar_one_or_none()

    async def find_staff_doctor_by_user(self, user_id: uuid.UUID) -> Staff | None:
        res = await self.session.execute(select(Staff).where(Staff.user_id == user_id, Staff.role_title == "doctor"))
        return res.scalar_one_or_none()

    async def find_owned_clinic(self, owner_user_id: uuid.UUID) -> Clinic | None:
        res = await self.session.execute(
            select(Clinic).where(Clinic.owner_user_id == owner_user_id, Clinic.status == "approved")
        )
        return res.scalars().first()

    async def staff_ids_for_clinic(self, clinic_id: uuid.UUID) -> Sequence[uuid.UUID]:
        res = await self.session.execute(select(Staff.id).where(Staff.clinic_id == clinic_id))
        return res.scalars().all()

    async def owns_clinic_of_staff(self, owner_user_id: uuid.UUID, staff_id: uuid.UUID) -> bool:
        q = (
            select(Staff.id)
            .join(Clinic, Clinic.id == Staff.clinic_id)
            .where(Staff.id == staff_id, Clinic.owner_user_id == owner_user_id, Clinic.status == "approved")
        )
        res = await self.session.execute(q)
        return res.first() is not None
