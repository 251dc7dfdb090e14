#!/usr/bin/env python3
"""
Seed script to create demo accounts for local development
Run with: python seed_test_users.py
"""

from dotenv import load_dotenv

load_dotenv()

from sqlmodel import Session, select

from auth import get_password_hash
from database import engine, create_db_and_tables
from models import User, Profile, Doctor, UserRole

# Password for all demo accounts
TEST_PASSWORD = "Test@1234"

DEMO_PATIENTS = [
    {"email": "patient@test.com", "full_name": "John Patient", "allergies": ["None"]},
    {"email": "patient2@test.com", "full_name": "Mary Johnson", "allergies": ["Penicillin"]},
]

DEMO_DOCTORS = [
    {
        "email": "doctor@test.com",
        "full_name": "Sarah Smith",
        "license_number": "MD-100001",
        "specialties": ["General Practice"],
        "years_experience": 12,
        "clinic_name": "Downtown Family Clinic",
        "consultation_fee": 50.0,
    },
    {
        "email": "cardio@test.com",
        "full_name": "Rajesh Kumar",
        "license_number": "MD-100002",
        "specialties": ["Cardiology", "Internal Medicine"],
        "years_experience": 18,
        "clinic_name": "Heart Care Center",
        "consultation_fee": 120.0,
    },
    {
        "email": "derma@test.com",
        "full_name": "Emily Chen",
        "license_number": "MD-100003",
        "specialties": ["Dermatology"],
        "years_experience": 7,
        "clinic_name": "Clear Skin Clinic",
        "consultation_fee": 80.0,
    },
]


def _ensure_account(session: Session, email: str, full_name: str, role: UserRole, **profile_fields) -> tuple:
    """Returns (profile, created)"""
    existing = session.exec(select(Profile).where(Profile.email == email)).first()
    if existing:
        return existing, False

    user = User(email=email, password_hash=get_password_hash(TEST_PASSWORD))
    session.add(user)
    session.flush()

    profile = Profile(user_id=user.id, email=email, full_name=full_name, role=role.value, **profile_fields)
    session.add(profile)
    session.flush()
    return profile, True


def seed_test_users():
    create_db_and_tables()

    with Session(engine) as session:
        print("\n🌱 Seeding demo accounts...\n")

        for patient in DEMO_PATIENTS:
            _, created = _ensure_account(
                session, patient["email"], patient["full_name"], UserRole.PATIENT, allergies=patient["allergies"]
            )
            print(f"{'✅ Created' if created else '⏭️  Exists'}: {patient['full_name']} ({patient['email']})")

        for doctor in DEMO_DOCTORS:
            fields = dict(doctor)
            email, full_name = fields.pop("email"), fields.pop("full_name")
            profile, created = _ensure_account(session, email, full_name, UserRole.DOCTOR)
            if created:
                # Demo doctors skip the operator check so the directory is not empty
                session.add(Doctor(profile_id=profile.id, verified=True, **fields))
            print(f"{'✅ Created' if created else '⏭️  Exists'}: Dr. {full_name} ({email})")

        session.commit()

        print(f"\n🔑 Password for all demo accounts: {TEST_PASSWORD}\n")


if __name__ == "__main__":
    seed_test_users()
