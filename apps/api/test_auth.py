"""Registration, login, profile editing and account deletion"""

from sqlmodel import select

from conftest import STRONG_PASSWORD, FakeRedis, verify_doctor
from models import ChatSession, Doctor, Notification, Profile, User
from utils.cache import CacheKeys, DirectoryCache, RedisCache


class TestRegistration:

    def test_patient_gets_profile_with_default_role(self, client):
        response = client.post("/api/auth/register", json={
            "email": "new.patient@example.com",
            "password": STRONG_PASSWORD,
            "full_name": "New Patient",
        })
        assert response.status_code == 201
        body = response.json()
        assert body["profile"]["role"] == "patient"
        assert body["profile"]["email"] == "new.patient@example.com"
        assert body["access_token"] and body["refresh_token"]

    def test_doctor_gets_placeholder_unverified_record(self, client, db_session, doctor):
        record = db_session.exec(
            select(Doctor).where(Doctor.profile_id == doctor["profile"]["id"])
        ).one()
        assert record.license_number == f"TEMP_{doctor['profile']['id']}"
        assert record.verified is False
        assert record.languages == ["English"]

    def test_weak_password_rejected(self, client):
        response = client.post("/api/auth/register", json={
            "email": "weak@example.com",
            "password": "password",
            "full_name": "Weak",
        })
        assert response.status_code == 400

    def test_duplicate_email_rejected(self, client, patient):
        response = client.post("/api/auth/register", json={
            "email": "pat.smith@example.com",
            "password": STRONG_PASSWORD,
            "full_name": "Someone Else",
        })
        assert response.status_code == 400


class TestLogin:

    def test_login_and_me(self, client, patient):
        response = client.post("/api/auth/login", json={
            "email": "pat.smith@example.com",
            "password": STRONG_PASSWORD,
        })
        assert response.status_code == 200
        headers = {"Authorization": f"Bearer {response.json()['access_token']}"}

        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.json()["full_name"] == "Pat Smith"

    def test_wrong_password(self, client, patient):
        response = client.post("/api/auth/login", json={
            "email": "pat.smith@example.com",
            "password": "Wr0ng!Password",
        })
        assert response.status_code == 401

    def test_refresh_token_cannot_be_used_as_access(self, client, patient):
        headers = {"Authorization": f"Bearer {patient['tokens']['refresh_token']}"}
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_refresh_issues_new_tokens(self, client, patient):
        response = client.post("/api/auth/refresh", json={"refresh_token": patient["tokens"]["refresh_token"]})
        assert response.status_code == 200
        assert response.json()["profile"]["id"] == patient["profile"]["id"]

    def test_missing_token(self, client):
        assert client.get("/api/auth/me").status_code in (401, 403)


class TestProfile:

    def test_update_profile_ignores_role(self, client, patient):
        response = client.put("/api/profiles/me", headers=patient["headers"], json={
            "phone": "+15551234567",
            "allergies": ["penicillin"],
            "role": "doctor",
        })
        assert response.status_code == 200
        body = response.json()
        assert body["phone"] == "+15551234567"
        assert body["allergies"] == ["penicillin"]
        assert body["role"] == "patient"

    def test_invalid_gender_rejected(self, client, patient):
        response = client.put("/api/profiles/me", headers=patient["headers"], json={"gender": "unknown"})
        assert response.status_code == 422

    def test_null_full_name_rejected(self, client, patient):
        response = client.put("/api/profiles/me", headers=patient["headers"], json={"full_name": None})
        assert response.status_code == 422

        me = client.get("/api/profiles/me", headers=patient["headers"]).json()
        assert me["full_name"] == "Pat Smith"

    def test_null_optional_field_clears_it(self, client, patient):
        client.put("/api/profiles/me", headers=patient["headers"], json={"phone": "+15551234567"})
        response = client.put("/api/profiles/me", headers=patient["headers"], json={"phone": None})
        assert response.status_code == 200
        assert response.json()["phone"] is None


class TestAccountDeletion:

    def test_delete_account_cascades(self, client, db_session, patient, doctor):
        client.post("/api/notifications/test", headers=patient["headers"])
        client.post("/api/chat/sessions", headers=patient["headers"], json={})
        client.post(
            "/api/patients/doctor-requests",
            headers=patient["headers"],
            json={"doctor_id": doctor["profile"]["id"]},
        )

        response = client.delete("/api/auth/account", headers=patient["headers"])
        assert response.status_code == 204

        profile_id = patient["profile"]["id"]
        assert db_session.exec(select(User).where(User.email == "pat.smith@example.com")).first() is None
        assert db_session.get(Profile, profile_id) is None
        assert db_session.exec(select(Notification).where(Notification.user_id == profile_id)).all() == []
        assert db_session.exec(select(ChatSession).where(ChatSession.patient_id == profile_id)).all() == []
        assert client.get("/api/auth/me", headers=patient["headers"]).status_code == 401

    def test_deleted_doctor_leaves_cached_directory(self, client, db_session, services, doctor):
        fake_redis = FakeRedis()
        services.directory_cache = DirectoryCache(RedisCache(None, client=fake_redis))
        record = db_session.exec(select(Doctor).where(Doctor.profile_id == doctor["profile"]["id"])).one()
        verify_doctor(client, record.id)

        listed = client.get("/api/doctors/search").json()
        assert [d["profile_id"] for d in listed] == [doctor["profile"]["id"]]
        assert CacheKeys.DOCTOR_LIST in fake_redis.store

        assert client.delete("/api/auth/account", headers=doctor["headers"]).status_code == 204

        assert CacheKeys.DOCTOR_LIST not in fake_redis.store
        assert client.get("/api/doctors/search").json() == []

    def test_patient_deletion_keeps_cached_directory(self, client, services, patient):
        fake_redis = FakeRedis()
        services.directory_cache = DirectoryCache(RedisCache(None, client=fake_redis))
        client.get("/api/doctors/search")

        assert client.delete("/api/auth/account", headers=patient["headers"]).status_code == 204
        assert CacheKeys.DOCTOR_LIST in fake_redis.store
