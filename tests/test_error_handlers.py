from unittest.mock import patch

from fastapi.testclient import TestClient

from whatsapp_relay.errors import StorageError
from whatsapp_relay.main import create_app


def _client_with_failing_route(services, exc, environment="test"):
    services.settings.environment = environment
    app = create_app(services=services)

    @app.get("/boom")
    def boom():
        raise exc

    return TestClient(app, raise_server_exceptions=False)


class TestNotFound:
    def test_unknown_route(self, client):
        response = client.get("/does/not/exist")

        assert response.status_code == 404
        assert response.json() == {"success": False, "status": 404, "message": "Route /does/not/exist not found"}


class TestApiErrors:
    def test_operational_error_keeps_message(self, services):
        client = _client_with_failing_route(services, StorageError("Database error occurred"), "production")

        response = client.get("/boom")

        assert response.status_code == 500
        assert response.json() == {"success": False, "status": 500, "message": "Database error occurred"}

    @patch("whatsapp_relay.error_handlers.alert_error")
    def test_unexpected_error_hidden_in_production(self, mock_alert, services):
        client = _client_with_failing_route(services, KeyError("secret detail"), "production")

        response = client.get("/boom")

        assert response.status_code == 500
        assert response.json() == {"success": False, "status": 500, "message": "Internal server error"}
        mock_alert.assert_called_once()

    @patch("whatsapp_relay.error_handlers.alert_error")
    def test_development_adds_stack(self, mock_alert, services):
        client = _client_with_failing_route(services, RuntimeError("kaput"), "development")

        response = client.get("/boom")

        body = response.json()
        assert response.status_code == 500
        assert body["message"] == "kaput"
        assert "RuntimeError" in body["stack"]

    def test_no_stack_outside_development(self, services):
        client = _client_with_failing_route(services, StorageError("Database error occurred"), "test")

        assert "stack" not in client.get("/boom").json()


class TestValidation:
    def test_body_validation_is_400(self, client):
        response = client.post("/internal/whatsapp/markAsRead", json={"messageId": "wamid.1"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert "phoneNumberId" in body["message"]
