import uuid
from datetime import date, time
from pydantic import BaseModel, ConfigDict, field_serializer

class BookingCreate(BaseModel):
    doctor_id: uuid.UUID | None = None
    staff_id: uuid.UUID | None = None
    booking_date: date
    booking_from: str  # HH:mm, validated by the admission engine

class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    patient_user_id: uuid.UUID
    doctor_id: uuid.UUID | None
    staff_id: uuid.UUID | None
    booking_date: date
    booking_from: time
    booking_to: time
    status: str
    doctor_name: str | None = None
    clinic_name: str | None = None

    @field_serializer("booking_from", "booking_to")
    def _hhmm(self, t: time) -> str:
        return t.strftime("%H:%M")
