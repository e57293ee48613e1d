import uuid
from datetime import date, time
from sqlalchemy.orm import Mapped, mapped_column, query_expression
from sqlalchemy import String, Date, Time, ForeignKey, CheckConstraint, Index
from clinicbook.core.base import Base, TimestampedMixin

class Booking(Base, TimestampedMixin):
    __table_args__ = (
        # exactly one practitioner kind per booking
        CheckConstraint("(doctor_id IS NULL) <> (staff_id IS NULL)", name="ck_booking_one_practitioner"),
        Index("ix_booking_date_status", "booking_date", "status"),
    )

    patient_user_id: Mapped[uuid.UUID] = mapped_column(index=True)
    doctor_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("doctor.id"), nullable=True, index=True)
    staff_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("staff.id"), nullable=True, index=True)

    booking_date: Mapped[date] = mapped_column(Date)
    booking_from: Mapped[time] = mapped_column(Time)
    booking_to: Mapped[time] = mapped_column(Time)

    status: Mapped[str] = mapped_column(String(16), default="confirmed")  # pending | confirmed | cancelled

    # filled in by listing queries only
    doctor_name: Mapped[str | None] = query_expression()
    clinic_name: Mapped[str | None] = query_expression()
