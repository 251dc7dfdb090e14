"""Doctor directory search, self-service edits and operator verification"""

import pytest

from conftest import OPERATOR_KEY, verify_doctor
from models import Doctor, Profile, User, UserRole


def add_doctor(db_session, index, verified=True, years=0, name=None, specialties=None, clinic=None):
    user = User(email=f"doc{index}@example.com", password_hash="x")
    db_session.add(user)
    db_session.flush()
    profile = Profile(
        user_id=user.id,
        email=user.email,
        full_name=name or f"Doctor {index}",
        role=UserRole.DOCTOR.value,
    )
    db_session.add(profile)
    db_session.flush()
    record = Doctor(
        profile_id=profile.id,
        license_number=f"LIC-{index}",
        specialties=specialties or ["General Practice"],
        years_experience=years,
        clinic_name=clinic,
        verified=verified,
    )
    db_session.add(record)
    db_session.commit()
    return record


def own_record(client, doctor):
    response = client.get("/api/doctors/profile", headers=doctor["headers"])
    assert response.status_code == 200
    return response.json()


class TestSearch:

    def test_only_verified_doctors_listed(self, client, db_session):
        add_doctor(db_session, 1, verified=True)
        add_doctor(db_session, 2, verified=False)

        names = [d["profile"]["full_name"] for d in client.get("/api/doctors/search").json()]
        assert names == ["Doctor 1"]

    def test_ordered_by_experience(self, client, db_session):
        add_doctor(db_session, 1, years=3)
        add_doctor(db_session, 2, years=20)
        add_doctor(db_session, 3, years=10)

        years = [d["years_experience"] for d in client.get("/api/doctors/search").json()]
        assert years == [20, 10, 3]

    def test_query_matches_name_specialty_or_clinic(self, client, db_session):
        add_doctor(db_session, 1, name="Alice Heart", specialties=["Cardiology"])
        add_doctor(db_session, 2, name="Bob Skin", specialties=["Dermatology"])
        add_doctor(db_session, 3, name="Carol Kid", specialties=["Pediatrics"], clinic="Sunrise Clinic")

        def search(q):
            return {d["profile"]["full_name"] for d in client.get("/api/doctors/search", params={"q": q}).json()}

        assert search("CARDIO") == {"Alice Heart"}
        assert search("bob") == {"Bob Skin"}
        assert search("sunrise") == {"Carol Kid"}
        assert search("neurology") == set()

    def test_wildcards_are_literal(self, client, db_session):
        add_doctor(db_session, 1, name="Dana Field", clinic="North_Side Clinic")
        add_doctor(db_session, 2, name="Evan Moss", clinic="100% Care")
        add_doctor(db_session, 3, name="Fay Holt")

        def search(q):
            return {d["profile"]["full_name"] for d in client.get("/api/doctors/search", params={"q": q}).json()}

        assert search("_") == {"Dana Field"}
        assert search("%") == {"Evan Moss"}
        assert search("h_lt") == set()

    def test_result_limits(self, client, db_session):
        for i in range(55):
            add_doctor(db_session, i, specialties=["Cardiology"])

        assert len(client.get("/api/doctors/search").json()) == 50
        assert len(client.get("/api/doctors/search", params={"q": "cardio"}).json()) == 20


class TestVerification:

    def test_operator_verifies_doctor(self, client, doctor):
        record = own_record(client, doctor)
        assert client.get("/api/doctors/search").json() == []

        verify_doctor(client, record["id"])
        listed = client.get("/api/doctors/search").json()
        assert [d["profile_id"] for d in listed] == [doctor["profile"]["id"]]

        response = client.put(
            f"/api/admin/doctors/{record['id']}/unverify",
            headers={"X-Operator-Key": OPERATOR_KEY},
        )
        assert response.status_code == 200
        assert client.get("/api/doctors/search").json() == []

    @pytest.mark.parametrize("key", [None, "wrong-key"])
    def test_operator_key_required(self, client, doctor, key):
        record = own_record(client, doctor)
        headers = {"X-Operator-Key": key} if key else {}
        response = client.put(f"/api/admin/doctors/{record['id']}/verify", headers=headers)
        assert response.status_code == 403

    def test_unknown_doctor(self, client):
        response = client.put("/api/admin/doctors/999/verify", headers={"X-Operator-Key": OPERATOR_KEY})
        assert response.status_code == 404


class TestSelfService:

    def test_doctor_updates_credentials(self, client, doctor):
        response = client.put("/api/doctors/profile", headers=doctor["headers"], json={
            "license_number": "MD-12345",
            "specialties": ["Cardiology"],
            "years_experience": 12,
        })
        assert response.status_code == 200
        body = response.json()
        assert body["license_number"] == "MD-12345"
        assert body["verified"] is False

        again = client.put("/api/doctors/profile", headers=doctor["headers"], json={"license_number": "MD-99999"})
        assert again.status_code == 400

    @pytest.mark.parametrize("field", ["license_number", "specialties", "years_experience"])
    def test_null_required_field_rejected(self, client, doctor, field):
        response = client.put("/api/doctors/profile", headers=doctor["headers"], json={field: None})
        assert response.status_code == 422

    def test_patient_has_no_doctor_profile(self, client, patient):
        assert client.get("/api/doctors/profile", headers=patient["headers"]).status_code == 403
