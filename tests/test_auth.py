from datetime import timedelta

from app.models.user import User, UserRole
from app.services.auth_service import GENERIC_RESET_MESSAGE, auth_service
from conftest import PASSWORD, auth_headers, make_user


class TestLogin:

    def test_login_returns_token_and_stamps_last_login(self, client, db, student):
        response = client.post("/api/auth/login", json={"email": "Student@Example.com", "password": PASSWORD})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["token_type"] == "bearer"
        assert data["user"]["role"] == "STUDENT"
        assert auth_service.verify_token(data["token"]).user_id == student.id
        db.expire_all()
        assert db.get(User, student.id).last_login is not None

    def test_wrong_password(self, client, student):
        response = client.post("/api/auth/login", json={"email": student.email, "password": "nope"})
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Invalid credentials or inactive account"}

    def test_inactive_account(self, client, db):
        make_user(db, "gone@example.com", is_active=False)
        response = client.post("/api/auth/login", json={"email": "gone@example.com", "password": PASSWORD})
        assert response.status_code == 401

    def test_malformed_body_is_a_validation_error(self, client):
        response = client.post("/api/auth/login", json={"email": "not-an-email"})
        assert response.status_code == 400
        assert response.json()["success"] is False


class TestBearerAuth:

    def test_missing_token(self, client):
        response = client.get("/api/auth/profile")
        assert response.status_code == 401
        assert response.json()["message"] == "Access token required"

    def test_garbage_token(self, client):
        response = client.get("/api/auth/profile", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid token"

    def test_expired_token(self, client, student):
        token = auth_service.create_access_token(student, expires_delta=timedelta(minutes=-1))
        response = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_disabled_user(self, client, db):
        user = make_user(db, "later-disabled@example.com")
        headers = auth_headers(user)
        user.is_active = False
        db.commit()
        response = client.get("/api/auth/profile", headers=headers)
        assert response.json()["message"] == "Invalid or inactive user"

    def test_role_gate(self, client, student_headers):
        response = client.get("/api/admin/dashboard", headers=student_headers)
        assert response.status_code == 403
        assert response.json()["message"] == "Insufficient permissions"

    def test_teacher_is_not_admin(self, client, teacher):
        assert client.get("/api/admin/dashboard", headers=auth_headers(teacher)).status_code == 403
        assert client.get("/api/question-bank", headers=auth_headers(teacher)).status_code == 200


class TestPasswords:

    def test_change_password(self, client, student, student_headers):
        response = client.post(
            "/api/auth/change-password",
            json={"current_password": PASSWORD, "new_password": "n3w-secret"},
            headers=student_headers
        )
        assert response.status_code == 200
        login = client.post("/api/auth/login", json={"email": student.email, "password": "n3w-secret"})
        assert login.status_code == 200

    def test_change_password_requires_current(self, client, student_headers):
        response = client.post(
            "/api/auth/change-password",
            json={"current_password": "wrong", "new_password": "n3w-secret"},
            headers=student_headers
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Current password is incorrect"

    def test_forgot_password_does_not_reveal_accounts(self, client, student):
        known = client.post("/api/auth/forgot-password", json={"email": student.email}).json()
        unknown = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"}).json()
        assert known == unknown == {"success": True, "message": GENERIC_RESET_MESSAGE}

    def test_reset_with_otp(self, client, db, student):
        client.post("/api/auth/forgot-password", json={"email": student.email})
        db.expire_all()
        otp = db.get(User, student.id).reset_otp
        assert len(otp) == 6

        assert client.post("/api/auth/verify-otp", json={"email": student.email, "otp": otp}).status_code == 200
        response = client.post(
            "/api/auth/reset-password", json={"email": student.email, "otp": otp, "new_password": "fresh-pass"}
        )
        assert response.status_code == 200
        db.expire_all()
        assert db.get(User, student.id).reset_otp is None
        assert client.post("/api/auth/login", json={"email": student.email, "password": "fresh-pass"}).status_code == 200

    def test_wrong_otp(self, client, student):
        client.post("/api/auth/forgot-password", json={"email": student.email})
        response = client.post("/api/auth/verify-otp", json={"email": student.email, "otp": "abcdef"})
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid or expired OTP"


def test_admin_bootstrap_is_idempotent(db):
    from app.init_admin import create_admin
    create_admin()
    create_admin()
    admins = db.query(User).filter(User.role == UserRole.ADMIN).all()
    assert [a.email for a in admins] == ["admin@example.com"]
