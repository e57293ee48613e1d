
import asyncio
import json
import os
import sys
import uuid
from datetime import time
from sqlalchemy.future import select

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from clinicbook.core.db import SessionLocal, init_models
from clinicbook.modules.directory.models import Doctor, Clinic, Staff

DEFAULT_DAYS = "mon,tue,wed,thu,fri"

def _hhmm(value: str | None, fallback: str) -> time:
    h, m = (value or fallback).split(":")
    return time(int(h), int(m))

async def seed_staff(db, clinic: Clinic, staff_data: list[dict]):
    """
    Creates the staff members of a clinic that do not exist yet.
    """
    for member in staff_data:
        user_id = uuid.UUID(member["user_id"])
        res = await db.execute(select(Staff).where(Staff.user_id == user_id))
        if res.scalars().first():
            print(f"    - Staff '{member['full_name']}' already exists. Skipping.")
            continue
        db.add(Staff(
            user_id=user_id,
            clinic_id=clinic.id,
            full_name=member["full_name"],
            role_title=member.get("role_title", "doctor"),
            is_verified=member.get("is_verified", True),
            work_days=member.get("work_days", DEFAULT_DAYS),
            work_from=_hhmm(member.get("work_from"), "09:00"),
            work_to=_hhmm(member.get("work_to"), "17:00"),
        ))
        print(f"    - Created staff '{member['full_name']}'")

async def main(path: str):
    """
    Loads doctors, clinics and clinic staff from a JSON file:
    {"doctors": [...], "clinics": [{..., "staff": [...]}]}
    """
    print("Starting directory seed...")
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    await init_models()

    async with SessionLocal() as db:
        for doc_data in data.get("doctors", []):
            user_id = uuid.UUID(doc_data["user_id"])
            res = await db.execute(select(Doctor).where(Doctor.user_id == user_id))
            if res.scalars().first():
                print(f"  - Doctor '{doc_data['full_name']}' already exists. Skipping.")
                continue
            db.add(Doctor(
                user_id=user_id,
                full_name=doc_data["full_name"],
                specialty=doc_data.get("specialty"),
                is_verified=doc_data.get("is_verified", True),
                work_days=doc_data.get("work_days", DEFAULT_DAYS),
                work_from=_hhmm(doc_data.get("work_from"), "09:00"),
                work_to=_hhmm(doc_data.get("work_to"), "17:00"),
            ))
            print(f"  - Created doctor '{doc_data['full_name']}'")

        for clinic_data in data.get("clinics", []):
            print(f"Processing clinic: {clinic_data['name']}")
            res = await db.execute(select(Clinic).where(Clinic.name == clinic_data["name"]))
            clinic = res.scalars().first()
            if not clinic:
                clinic = Clinic(
                    owner_user_id=uuid.UUID(clinic_data["owner_user_id"]),
                    name=clinic_data["name"],
                    address=clinic_data.get("address"),
                    status=clinic_data.get("status", "approved"),
                )
                db.add(clinic)
                await db.flush()
                print(f"  - Created clinic with ID: {clinic.id}")
            await seed_staff(db, clinic, clinic_data.get("staff", []))

        print("\nCommitting all changes to the database...")
        await db.commit()
        print("Directory seed complete!")

if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("usage: python scripts/seed_directory.py <directory.json>")
        sys.exit(2)
    asyncio.run(main(sys.argv[1]))
