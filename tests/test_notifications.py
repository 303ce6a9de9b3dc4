import pytest
from starlette.websockets import WebSocketDisconnect

from app.models.notifications import Notification
from conftest import auth_headers, make_user


def send(client, headers, path="/api/notifications/broadcast", **body):
    body.setdefault("title", "Holiday")
    body.setdefault("message", "Campus closed on Friday")
    return client.post(path, json=body, headers=headers)


class TestSending:

    def test_broadcast_reaches_active_students_only(self, client, db, admin_headers, student):
        make_user(db, "inactive@example.com", is_active=False)
        response = send(client, admin_headers)
        assert response.status_code == 201
        assert response.json()["data"] == {"count": 1}
        assert [n.user_id for n in db.query(Notification).all()] == [student.id]

    def test_batch_send(self, client, db, admin_headers, batch, student):
        make_user(db, "elsewhere@example.com")
        response = send(client, admin_headers, "/api/notifications/batches", batch_ids=[batch.id])
        assert response.json()["data"] == {"count": 1}
        notification = db.query(Notification).one()
        assert notification.data == {"batch_ids": [batch.id]}

    def test_batch_send_needs_ids(self, client, admin_headers):
        response = send(client, admin_headers, "/api/notifications/batches", batch_ids=[])
        assert response.status_code == 400
        assert response.json()["message"] == "Batch IDs are required"

    def test_batch_without_students(self, client, admin_headers, batch):
        response = send(client, admin_headers, "/api/notifications/batches", batch_ids=[batch.id])
        assert response.status_code == 404
        assert response.json()["message"] == "No students found in the specified batches"

    def test_direct_notification_to_unknown_user(self, client, admin_headers):
        response = send(client, admin_headers, "/api/notifications", user_id=999)
        assert response.status_code == 404

    def test_students_cannot_send(self, client, student_headers):
        assert send(client, student_headers).status_code == 403


class TestInbox:

    def test_inbox_includes_global_notifications(self, client, db, student, student_headers):
        other = make_user(db, "other@example.com")
        db.add_all([
            Notification(user_id=student.id, title="Mine", message="m"),
            Notification(user_id=None, title="Everyone", message="e"),
            Notification(user_id=other.id, title="Theirs", message="t"),
        ])
        db.commit()
        body = client.get("/api/notifications", headers=student_headers).json()
        assert sorted(n["title"] for n in body["data"]) == ["Everyone", "Mine"]
        assert body["meta"]["unread"] == 2

    def test_mark_read(self, client, db, student, student_headers):
        notification = Notification(user_id=student.id, title="Mine", message="m")
        db.add(notification)
        db.commit()
        response = client.patch(f"/api/notifications/{notification.id}/read", headers=student_headers)
        assert response.json()["data"]["is_read"] is True

    def test_cannot_read_someone_elses(self, client, db, student_headers):
        other = make_user(db, "other@example.com")
        notification = Notification(user_id=other.id, title="Theirs", message="t")
        db.add(notification)
        db.commit()
        response = client.patch(f"/api/notifications/{notification.id}/read", headers=student_headers)
        assert response.status_code == 404

    def test_read_all(self, client, db, student, student_headers):
        db.add_all([Notification(user_id=student.id, title=f"N{i}", message="m") for i in range(3)])
        db.commit()
        response = client.patch("/api/notifications/read-all", headers=student_headers)
        assert response.json()["data"] == {"updated": 3}
        assert client.get("/api/notifications", headers=student_headers).json()["meta"]["unread"] == 0


def test_staff_can_filter_all_notifications(client, db, teacher, student):
    db.add_all([
        Notification(user_id=student.id, title="Unread", message="m"),
        Notification(user_id=student.id, title="Read", message="m", is_read=True),
    ])
    db.commit()
    body = client.get("/api/notifications/all", params={"is_read": False}, headers=auth_headers(teacher)).json()
    assert [n["title"] for n in body["data"]] == ["Unread"]


class TestRealtime:

    def test_socket_rejects_bad_token(self, client):
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect("/ws/notifications?token=nope") as ws:
                ws.receive_text()
        assert exc.value.code == 4001

    def test_socket_greets_and_marks_read(self, client, db, student):
        notification = Notification(user_id=student.id, title="Mine", message="m")
        db.add(notification)
        db.commit()
        token = auth_headers(student)["Authorization"].split()[1]
        with client.websocket_connect(f"/ws/notifications?token={token}") as ws:
            assert ws.receive_json() == {"type": "connected", "unread": 1}
            ws.send_text("ping")
            assert ws.receive_text() == "pong"
            ws.send_json({"type": "mark_read", "notification_id": notification.id})
            assert ws.receive_json() == {"type": "marked_read", "notification_id": notification.id, "unread": 0}
