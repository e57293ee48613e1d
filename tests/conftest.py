"""Shared fixtures: a throwaway SQLite database, a seeded directory and an HTTP client."""

import os

# keep the module-level engine off PostgreSQL; tests build their own engine
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

import uuid
from datetime import time
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from clinicbook.core.base import Base
from clinicbook.core.config import settings
from clinicbook.core.db import get_session, import_models
from clinicbook.modules.bookings.models import Booking
from clinicbook.modules.directory.models import Clinic, Doctor, Staff


@pytest_asyncio.fixture
async def engine(tmp_path):
    import_models()
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'clinicbook.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest_asyncio.fixture
async def directory(session_factory):
    """Seed the practitioner directory.

    - ``doctor``: verified independent doctor, Mon and Wed 09:00-12:00
    - ``unverified``: independent doctor awaiting verification
    - ``owner``: verified doctor who owns the approved clinic
    - ``night``: verified doctor working 20:00-23:59 every day
    - ``staff``: verified staff doctor of the clinic, Tue 14:00-16:00
    - ``nurse``: clinic staff who is not a doctor
    """
    d = SimpleNamespace(
        doctor_user=uuid.uuid4(),
        owner_user=uuid.uuid4(),
        staff_user=uuid.uuid4(),
        nurse_user=uuid.uuid4(),
    )
    every_day = "mon,tue,wed,thu,fri,sat,sun"
    async with session_factory() as s:
        doctor = Doctor(user_id=d.doctor_user, full_name="Dr. Ada Lovelace", specialty="Cardiology",
                        is_verified=True, work_days="mon,wed", work_from=time(9, 0), work_to=time(12, 0))
        unverified = Doctor(user_id=uuid.uuid4(), full_name="Dr. Pending", is_verified=False,
                            work_days=every_day, work_from=time(9, 0), work_to=time(17, 0))
        owner = Doctor(user_id=d.owner_user, full_name="Dr. Owner", is_verified=True,
                       work_days=every_day, work_from=time(9, 0), work_to=time(17, 0))
        night = Doctor(user_id=uuid.uuid4(), full_name="Dr. Night", is_verified=True,
                       work_days=every_day, work_from=time(20, 0), work_to=time(23, 59))
        clinic = Clinic(owner_user_id=d.owner_user, name="Harbour Clinic", status="approved")
        s.add_all([doctor, unverified, owner, night, clinic])
        await s.flush()

        staff = Staff(user_id=d.staff_user, clinic_id=clinic.id, full_name="Dr. Grace Hopper",
                      role_title="doctor", is_verified=True, work_days="tue",
                      work_from=time(14, 0), work_to=time(16, 0))
        nurse = Staff(user_id=d.nurse_user, clinic_id=clinic.id, full_name="Nurse Joy",
                      role_title="nurse", is_verified=True, work_days=every_day,
                      work_from=time(8, 0), work_to=time(18, 0))
        s.add_all([staff, nurse])
        await s.commit()

    d.doctor_id = doctor.id
    d.unverified_id = unverified.id
    d.owner_id = owner.id
    d.night_id = night.id
    d.clinic_id = clinic.id
    d.staff_id = staff.id
    d.nurse_id = nurse.id
    return d


@pytest.fixture
def add_booking(session_factory):
    """Insert a booking row directly, bypassing admission."""
    async def _add(day, start, end, *, doctor_id=None, staff_id=None, status="confirmed", patient=None):
        async with session_factory() as s:
            b = Booking(
                patient_user_id=patient or uuid.uuid4(),
                doctor_id=doctor_id,
                staff_id=staff_id,
                booking_date=day,
                booking_from=start,
                booking_to=end,
                status=status,
            )
            s.add(b)
            await s.commit()
            return b
    return _add


def make_token(user_id: uuid.UUID, role: str) -> str:
    return jwt.encode({"sub": str(user_id), "role": role}, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


@pytest.fixture
def auth():
    def _headers(user_id: uuid.UUID, role: str) -> dict:
        return {"Authorization": f"Bearer {make_token(user_id, role)}"}
    return _headers


@pytest_asyncio.fixture
async def client(session_factory):
    from clinicbook.main import app

    async def _session():
        async with session_factory() as s:
            yield s

    previous = app.state.session_factory
    app.dependency_overrides[get_session] = _session
    app.state.session_factory = session_factory
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
    app.state.session_factory = previous
