import pytest
from fastapi.testclient import TestClient

from needflow.core.security import create_access_token
from needflow.db.session import get_db
from needflow.main import app
from needflow.models.settings import SystemSetting
from needflow.services.settings_service import NotificationSettings


@pytest.fixture()
def client(SessionLocal, sql_people):
    def override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _auth(username):
    return {"Authorization": f"Bearer {create_access_token({'sub': username})}"}


def test_admin_creates_user_who_can_log_in(client):
    res = client.post(
        "/api/v1/auth/users",
        json={
            "username": "moussa",
            "password": "s3cret-pass",
            "email": "moussa@example.com",
            "full_name": "Moussa Traore",
            "department": "IT",
            "role": "validator",
        },
        headers=_auth("admin"),
    )
    assert res.status_code == 201
    assert res.json()["data"]["role"] == "validator"
    assert "hashed_password" not in res.json()["data"]

    res = client.post("/api/v1/auth/login", data={"username": "moussa", "password": "s3cret-pass"})
    assert res.status_code == 200
    token = res.json()["data"]["access_token"]

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}).json()["data"]
    assert me["username"] == "moussa"
    assert me["department"] == "IT"

    res = client.post("/api/v1/auth/login", data={"username": "moussa", "password": "wrong"})
    assert res.status_code == 401
    assert res.json()["error"]["code"] == "http_error"


def test_non_admin_cannot_create_users(client):
    res = client.post(
        "/api/v1/auth/users",
        json={"username": "x", "password": "y"},
        headers=_auth("amina"),
    )
    assert res.status_code == 403


def test_smtp_password_is_stored_encrypted_and_masked(client, db):
    res = client.put(
        "/api/v1/settings/general",
        json={"settings": {"smtp_password": "hunter2", "notification_email_enabled": "true", "unknown": "x"}},
        headers=_auth("admin"),
    )
    assert res.json()["data"]["updated"] == ["notification_email_enabled", "smtp_password"]

    settings = client.get("/api/v1/settings/general", headers=_auth("admin")).json()["data"]
    assert settings["smtp_password"] == "********"
    assert settings["notification_email_enabled"] == "true"
    assert settings["smtp_host"] == "localhost"

    stored = {s.key: s.value for s in db.query(SystemSetting).all()}
    assert stored["smtp_password"].startswith("enc:")
    assert "hunter2" not in stored["smtp_password"]
    assert stored["notification_email_enabled"] == "true"
    assert NotificationSettings.get_value(db, "smtp_password") == "hunter2"
