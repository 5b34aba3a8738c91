from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from whatsapp_agent.config import settings
from whatsapp_agent.database import get_db
from whatsapp_agent.main import app
from whatsapp_agent.models import User
from whatsapp_agent.services.classifier_service import MessageKind, MessageRole
from whatsapp_agent.services.message_service import save_message, save_reset_marker

TOKEN = "admin-secret"
HEADERS = {"X-Admin-Token": TOKEN}


@pytest.fixture
def client(session_factory, monkeypatch):
    monkeypatch.setattr(settings, "admin_token", TOKEN)

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAdminAuth:
    def test_missing_token(self, client):
        response = client.get("/admin/users/+15550001111")
        assert response.status_code == 401

    def test_wrong_token(self, client):
        response = client.get("/admin/users/+15550001111", headers={"X-Admin-Token": "nope"})
        assert response.status_code == 401

    def test_token_not_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "admin_token", None)
        response = client.get("/admin/users/+15550001111", headers=HEADERS)
        assert response.status_code == 500


class TestUsers:
    def test_get_user(self, client, make_user):
        make_user(name="Alice")

        response = client.get("/admin/users/+15550001111", headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["phone"] == "+15550001111"
        assert body["name"] == "Alice"
        assert body["is_banned"] is False

    def test_unknown_user(self, client):
        response = client.get("/admin/users/+15559999999", headers=HEADERS)
        assert response.status_code == 404

    def test_ban_and_unban(self, client, make_user, db_session):
        make_user()

        banned = client.post("/admin/users/+15550001111/ban", headers=HEADERS)
        assert banned.status_code == 200
        assert banned.json()["is_banned"] is True
        db_session.expire_all()
        assert db_session.query(User).one().is_banned is True

        unbanned = client.post("/admin/users/+15550001111/unban", headers=HEADERS)
        assert unbanned.json()["is_banned"] is False

    def test_ban_unknown_user(self, client):
        response = client.post("/admin/users/+15559999999/ban", headers=HEADERS)
        assert response.status_code == 404


class TestWindow:
    def test_window_starts_after_reset(self, client, make_user, db_session):
        user = make_user()
        save_message(db_session, user.id, MessageRole.USER, MessageKind.TEXT, "old")
        save_reset_marker(db_session, user.id, "clear")
        save_message(db_session, user.id, MessageRole.USER, MessageKind.TEXT, "new")
        save_message(db_session, user.id, MessageRole.ASSISTANT, MessageKind.TEXT, "reply")

        response = client.get("/admin/users/+15550001111/window", headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 2
        assert [m["content"] for m in body["messages"]] == ["new", "reply"]


class TestAlertsTest:
    @patch("whatsapp_agent.routers.admin.send_alert", new_callable=AsyncMock, return_value=True)
    def test_alert_sent(self, mock_send, client):
        response = client.post("/admin/alerts/test", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["success"] is True
        mock_send.assert_awaited_once()

    @patch("whatsapp_agent.routers.admin.send_alert", new_callable=AsyncMock, return_value=False)
    def test_alert_not_configured(self, mock_send, client):
        response = client.post("/admin/alerts/test", headers=HEADERS)

        assert response.json()["success"] is False
