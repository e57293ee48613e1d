import uuid
from datetime import time
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Time, ForeignKey
from clinicbook.core.base import Base, TimestampedMixin

# work_days is a comma separated list of weekday codes, e.g. "mon,wed,fri"

class Doctor(Base, TimestampedMixin):
    user_id: Mapped[uuid.UUID] = mapped_column(unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(160), index=True)
    specialty: Mapped[str | None] = mapped_column(String(120), nullable=True)
    is_verified: Mapped[bool] = mapped_column(default=False)

    work_days: Mapped[str] = mapped_column(String(64), default="")
    work_from: Mapped[time] = mapped_column(Time)
    work_to: Mapped[time] = mapped_column(Time)

class Clinic(Base, TimestampedMixin):
    owner_user_id: Mapped[uuid.UUID] = mapped_column(index=True)
    name: Mapped[str] = mapped_column(String(160), index=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="pending")  # pending | approved | rejected

class Staff(Base, TimestampedMixin):
    user_id: Mapped[uuid.UUID] = mapped_column(unique=True, index=True)
    clinic_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("clinic.id"), index=True)
    full_name: Mapped[str] = mapped_column(String(160))
    role_title: Mapped[str] = mapped_column(String(48), default="doctor")  # doctor | nurse | reception | ...
    is_verified: Mapped[bool] = mapped_column(default=False)

    work_days: Mapped[str] = mapped_column(String(64), default="")
    work_from: Mapped[time] = mapped_column(Time)
    work_to: Mapped[time] = mapped_column(Time)
