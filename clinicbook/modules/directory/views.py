"""Practitioner references and the read model shared by both practitioner kinds."""
import uuid
from dataclasses import dataclass
from datetime import date, time

from clinicbook.core.errors import InvalidArgument
from clinicbook.modules.scheduling.slots import weekday_code


@dataclass(frozen=True)
class IndependentDoctor:
    doctor_id: uuid.UUID

    kind = "doctor"

    @property
    def id(self) -> uuid.UUID:
        return self.doctor_id


@dataclass(frozen=True)
class ClinicStaff:
    staff_id: uuid.UUID

    kind = "staff"

    @property
    def id(self) -> uuid.UUID:
        return self.staff_id


PractitionerRef = IndependentDoctor | ClinicStaff


def practitioner_ref(doctor_id: uuid.UUID | None, staff_id: uuid.UUID | None) -> PractitionerRef:
    if (doctor_id is None) == (staff_id is None):
        raise InvalidArgument("Provide exactly one of doctor_id or staff_id")
    if doctor_id is not None:
        return IndependentDoctor(doctor_id)
    return ClinicStaff(staff_id)


@dataclass(frozen=True)
class PractitionerView:
    ref: PractitionerRef
    user_id: uuid.UUID
    full_name: str
    verified: bool
    work_days: frozenset[str]
    work_from: time
    work_to: time
    clinic_id: uuid.UUID | None = None
    # only meaningful for independent doctors
    owns_approved_clinic: bool = False

    def works_on(self, day: date) -> bool:
        return weekday_code(day) in self.work_days

    def covers(self, start: time, end: time) -> bool:
        return self.work_from <= start and end <= self.work_to
