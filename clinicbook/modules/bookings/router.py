import uuid
from datetime import date
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinicbook.core.db import get_session
from clinicbook.core.security import Principal, require_roles
from clinicbook.modules.bookings.admission import BookingAdmission
from clinicbook.modules.bookings.availability import AvailabilityResolver
from clinicbook.modules.bookings.lifecycle import BookingLifecycle
from clinicbook.modules.bookings.listing import BookingListing
from clinicbook.modules.bookings.schemas import BookingCreate, BookingOut
from clinicbook.modules.directory.views import practitioner_ref

router = APIRouter()

def admission(session: AsyncSession = Depends(get_session)) -> BookingAdmission:
    return BookingAdmission(session)

def resolver(session: AsyncSession = Depends(get_session)) -> AvailabilityResolver:
    return AvailabilityResolver(session)

def lifecycle(session: AsyncSession = Depends(get_session)) -> BookingLifecycle:
    return BookingLifecycle(session)

def listing(session: AsyncSession = Depends(get_session)) -> BookingListing:
    return BookingListing(session)

def _envelope(rows) -> dict:
    return {
        "status": "success",
        "results": len(rows),
        "bookings": [BookingOut.model_validate(r).model_dump(mode="json") for r in rows],
    }

@router.post("/book", status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    principal: Principal = Depends(require_roles("patient")),
    service: BookingAdmission = Depends(admission),
):
    ref = practitioner_ref(payload.doctor_id, payload.staff_id)
    booking = await service.create_booking(principal.user_id, ref, payload.booking_date, payload.booking_from)
    return {"status": "success", "booking_id": str(booking.id), "booking_status": booking.status}

@router.get("/book/slots")
async def available_slots(
    booking_date: date,
    doctor_id: uuid.UUID | None = None,
    staff_id: uuid.UUID | None = None,
    service: AvailabilityResolver = Depends(resolver),
):
    ref = practitioner_ref(doctor_id, staff_id)
    slots = await service.get_available_slots(ref, booking_date)
    return {"status": "success", "results": len(slots), "slots": [s.as_dict() for s in slots]}

@router.get("/book/my-bookings")
async def my_bookings(
    day: date | None = Query(default=None, alias="date"),
    principal: Principal = Depends(require_roles("patient", "doctor", "staff")),
    service: BookingListing = Depends(listing),
):
    return _envelope(await service.list_for_actor(principal, day))

@router.get("/book/clinic-bookings")
async def clinic_bookings(
    day: date | None = Query(default=None, alias="date"),
    principal: Principal = Depends(require_roles("doctor")),
    service: BookingListing = Depends(listing),
):
    return _envelope(await service.list_for_clinic(principal, day))

@router.patch("/book/{booking_id}/cancel")
async def cancel_booking(
    booking_id: uuid.UUID,
    principal: Principal = Depends(require_roles("patient", "doctor", "staff")),
    service: BookingLifecycle = Depends(lifecycle),
):
    await service.cancel_booking(booking_id, principal)
    return {"status": "success", "message": "Booking cancelled successfully"}

@router.patch("/book/{booking_id}/confirm")
async def confirm_booking(
    booking_id: uuid.UUID,
    principal: Principal = Depends(require_roles("doctor", "staff")),
    service: BookingLifecycle = Depends(lifecycle),
):
    booking = await service.confirm_booking(booking_id, principal)
    return {"status": "success", "booking_status": booking.status}
