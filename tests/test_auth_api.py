import pytest
from fastapi.testclient import TestClient

from stockbook.main import app
from stockbook.services import auth_service

AUTH = "/api/v1/auth"
ADMIN_PASSWORD = "admin-pass"
STAFF_PASSWORD = "staff-pass"


def _sign_in(username: str, password: str) -> TestClient:
    client = TestClient(app)
    client.post(f"{AUTH}/login", json={"username": username, "password": password})
    return client


def _login_status(username: str, password: str) -> int:
    return TestClient(app).post(f"{AUTH}/login", json={"username": username, "password": password}).status_code


class TestChangePassword:
    def test_changes_password_and_keeps_current_session(self, staff_client):
        resp = staff_client.post(
            f"{AUTH}/change-password",
            json={"current_password": STAFF_PASSWORD, "new_password": "new-staff-pass", "confirm_password": "new-staff-pass"},
        )
        assert resp.status_code == 200
        assert staff_client.get(f"{AUTH}/me").json()["username"] == "staff"
        assert _login_status("staff", STAFF_PASSWORD) == 401
        assert _login_status("staff", "new-staff-pass") == 200

    def test_other_sessions_are_signed_out(self, staff_client):
        other = _sign_in("staff", STAFF_PASSWORD)
        assert other.get(f"{AUTH}/me").status_code == 200

        staff_client.post(
            f"{AUTH}/change-password",
            json={"current_password": STAFF_PASSWORD, "new_password": "new-staff-pass", "confirm_password": "new-staff-pass"},
        )
        assert other.get(f"{AUTH}/me").status_code == 401

    def test_wrong_current_password(self, staff_client):
        resp = staff_client.post(
            f"{AUTH}/change-password",
            json={"current_password": "nope", "new_password": "new-staff-pass", "confirm_password": "new-staff-pass"},
        )
        assert resp.status_code == 401
        assert _login_status("staff", STAFF_PASSWORD) == 200

    def test_confirmation_must_match(self, staff_client):
        resp = staff_client.post(
            f"{AUTH}/change-password",
            json={"current_password": STAFF_PASSWORD, "new_password": "new-staff-pass", "confirm_password": "other-pass"},
        )
        assert resp.status_code == 422

    def test_new_password_too_short(self, staff_client):
        resp = staff_client.post(
            f"{AUTH}/change-password",
            json={"current_password": STAFF_PASSWORD, "new_password": "short", "confirm_password": "short"},
        )
        assert resp.status_code == 422

    def test_requires_login(self, anon_client):
        resp = anon_client.post(
            f"{AUTH}/change-password",
            json={"current_password": "x", "new_password": "new-staff-pass", "confirm_password": "new-staff-pass"},
        )
        assert resp.status_code == 401


class TestResetPassword:
    def test_admin_resets_and_user_is_signed_out(self, client, staff_client, staff_user):
        resp = client.post(f"{AUTH}/users/{staff_user.id}/reset-password", json={"new_password": "reset-pass-1"})
        assert resp.status_code == 200
        assert resp.json()["username"] == "staff"

        assert staff_client.get(f"{AUTH}/me").status_code == 401
        assert _login_status("staff", STAFF_PASSWORD) == 401
        assert _login_status("staff", "reset-pass-1") == 200

    def test_unknown_user(self, client):
        assert client.post(f"{AUTH}/users/missing/reset-password", json={"new_password": "reset-pass-1"}).status_code == 404

    def test_short_password_rejected(self, client, staff_user):
        resp = client.post(f"{AUTH}/users/{staff_user.id}/reset-password", json={"new_password": "short"})
        assert resp.status_code == 422

    def test_staff_cannot_reset(self, staff_client, admin_user):
        resp = staff_client.post(f"{AUTH}/users/{admin_user.id}/reset-password", json={"new_password": "reset-pass-1"})
        assert resp.status_code == 403
        assert _login_status("admin", ADMIN_PASSWORD) == 200


class TestDeleteUser:
    def test_admin_deletes_user(self, client, staff_user):
        assert client.delete(f"{AUTH}/users/{staff_user.id}").status_code == 200
        assert [u["username"] for u in client.get(f"{AUTH}/users").json()] == ["admin"]
        assert _login_status("staff", STAFF_PASSWORD) == 401

    def test_cannot_delete_yourself(self, client, admin_user):
        assert client.delete(f"{AUTH}/users/{admin_user.id}").status_code == 403

    def test_unknown_user(self, client):
        assert client.delete(f"{AUTH}/users/missing").status_code == 404

    def test_staff_cannot_delete(self, staff_client, admin_user):
        assert staff_client.delete(f"{AUTH}/users/{admin_user.id}").status_code == 403

    def test_last_admin_is_kept(self, db, admin_user, staff_user):
        with pytest.raises(PermissionError):
            auth_service.delete_user(db, admin_user.id, staff_user)
        assert auth_service.get_user_by_id(db, admin_user.id) is not None
