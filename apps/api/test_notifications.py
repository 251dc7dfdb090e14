"""Notification inbox: listing, unread counts and read marking"""

from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException

from models import Notification, NotificationType
from utils.notification_service import create_notification, render_request_declined


def seed(db_session, profile_id, count, read=False):
    start = datetime(2024, 1, 1, 9, 0)
    for i in range(count):
        db_session.add(Notification(
            user_id=profile_id,
            type=NotificationType.SYSTEM.value,
            title=f"Notice {i}",
            message="hello",
            read=read,
            created_at=start + timedelta(minutes=i),
        ))
    db_session.commit()


class TestInbox:

    def test_newest_first_with_default_limit(self, client, db_session, patient):
        seed(db_session, patient["profile"]["id"], 25)

        notes = client.get("/api/notifications", headers=patient["headers"]).json()
        assert len(notes) == 20
        assert notes[0]["title"] == "Notice 24"
        assert notes[-1]["title"] == "Notice 5"

        few = client.get("/api/notifications", headers=patient["headers"], params={"limit": 3}).json()
        assert [n["title"] for n in few] == ["Notice 24", "Notice 23", "Notice 22"]

    def test_only_own_notifications_listed(self, client, db_session, patient, doctor):
        seed(db_session, doctor["profile"]["id"], 2)
        assert client.get("/api/notifications", headers=patient["headers"]).json() == []

    def test_unread_count(self, client, db_session, patient):
        seed(db_session, patient["profile"]["id"], 3)
        seed(db_session, patient["profile"]["id"], 2, read=True)

        response = client.get("/api/notifications/unread-count", headers=patient["headers"])
        assert response.json() == {"unread": 3}


class TestMarkingRead:

    def test_mark_one(self, client, db_session, patient):
        seed(db_session, patient["profile"]["id"], 2)
        target = client.get("/api/notifications", headers=patient["headers"]).json()[0]

        response = client.patch(f"/api/notifications/{target['id']}/read", headers=patient["headers"])
        assert response.status_code == 200
        assert response.json()["read"] is True
        assert client.get("/api/notifications/unread-count", headers=patient["headers"]).json()["unread"] == 1

    def test_cannot_mark_someone_elses(self, client, db_session, patient, doctor):
        seed(db_session, doctor["profile"]["id"], 1)
        theirs = client.get("/api/notifications", headers=doctor["headers"]).json()[0]

        response = client.patch(f"/api/notifications/{theirs['id']}/read", headers=patient["headers"])
        assert response.status_code == 404
        assert client.get("/api/notifications/unread-count", headers=doctor["headers"]).json()["unread"] == 1

    def test_read_all_touches_only_callers_rows(self, client, db_session, patient, doctor):
        seed(db_session, patient["profile"]["id"], 4)
        seed(db_session, doctor["profile"]["id"], 2)

        response = client.post("/api/notifications/read-all", headers=patient["headers"])
        assert response.json() == {"updated": 4}
        assert client.get("/api/notifications/unread-count", headers=patient["headers"]).json()["unread"] == 0
        assert client.get("/api/notifications/unread-count", headers=doctor["headers"]).json()["unread"] == 2

    def test_read_all_counts_only_unread_rows(self, client, db_session, patient):
        seed(db_session, patient["profile"]["id"], 3, read=True)
        seed(db_session, patient["profile"]["id"], 2)

        response = client.post("/api/notifications/read-all", headers=patient["headers"])
        assert response.json() == {"updated": 2}

        notes = client.get("/api/notifications", headers=patient["headers"]).json()
        assert len(notes) == 5
        assert all(n["read"] for n in notes)

        again = client.post("/api/notifications/read-all", headers=patient["headers"])
        assert again.json() == {"updated": 0}


class TestDispatch:

    def test_test_endpoint_creates_system_notification(self, client, services, patient):
        response = client.post("/api/notifications/test", headers=patient["headers"])
        assert response.status_code == 200
        body = response.json()
        assert body["type"] == "system"
        assert body["title"] == "Test Notification"
        assert body["read"] is False

        assert services.realtime.published[-1]["profile_id"] == patient["profile"]["id"]
        assert services.realtime.published[-1]["record"]["id"] == body["id"]

    def test_unknown_target_rejected(self, db_session):
        with pytest.raises(HTTPException) as exc:
            create_notification(db_session, 12345, NotificationType.SYSTEM, "Hi", "there")
        assert exc.value.status_code == 404

    def test_declined_message_includes_reason(self):
        assert render_request_declined("Sarah Johnson") == "Dr. Sarah Johnson has declined your request."
        assert render_request_declined("Sarah Johnson", "Fully booked").endswith("Reason: Fully booked")
