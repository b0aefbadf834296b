"""
Basic tests for the Casedesk application.
"""

import json

import pytest

from casedesk import create_app
from casedesk.config.settings import Config, DevelopmentConfig, ProductionConfig, TestingConfig
from casedesk.utils.logging_config import LogSettings


def test_app_creation(app, services):
    """Test that the app is created successfully."""
    assert app is not None
    assert app.config["TESTING"] is True
    assert app.extensions["casedesk"] is services


def test_health_endpoint(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "healthy"
    assert body["store"] == "memory"


def test_health_endpoint_unhealthy(client, store, monkeypatch):
    monkeypatch.setattr(store, "ping", lambda: False)

    response = client.get("/health")

    assert response.status_code == 503
    assert response.get_json()["status"] == "unhealthy"


def test_security_and_correlation_headers(client):
    response = client.get("/health", headers={"X-Correlation-ID": "abc123"})

    assert response.headers["X-Correlation-ID"] == "abc123"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_unknown_route_is_json(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.get_json()["error"] == "NOT_FOUND"


def test_oversized_body_rejected(client):
    response = client.post(
        "/api/clients/create", data="x" * (1024 * 1024 + 1), content_type="application/json"
    )

    assert response.status_code == 413


def test_client_error_is_appended_to_log(client, app, tmp_path):
    log_file = tmp_path / "logs" / "error.log"
    app.config["CLIENT_ERROR_LOG"] = str(log_file)

    for message in ("first failure", "second failure"):
        response = client.post(
            "/api/logs/client-error",
            json={"code": "UI_CRASH", "message": message, "stack": "Error: boom", "url": "/intake"},
            headers={"User-Agent": "pytest-browser"},
        )
        assert response.status_code == 200
        assert response.get_json() == {"success": True}

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    entry = json.loads(lines[0])
    assert entry["type"] == "CLIENT_ERROR"
    assert entry["code"] == "UI_CRASH"
    assert entry["message"] == "first failure"
    assert entry["userAgent"] == "pytest-browser"
    assert entry["timestamp"]


def test_client_error_log_write_failure(client, app, tmp_path):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("", encoding="utf-8")
    app.config["CLIENT_ERROR_LOG"] = str(blocker / "error.log")

    response = client.post("/api/logs/client-error", json={"message": "boom"})

    assert response.status_code == 500
    assert response.get_json()["success"] is False


class TestConfig:
    def test_testing_config_is_valid(self):
        assert TestingConfig.validate_config() is True

    def test_firestore_requires_credentials(self):
        class MissingCredentials(Config):
            STORE_BACKEND = "firestore"
            USE_EMULATOR = False
            FIREBASE_PROJECT_ID = ""
            FIREBASE_CLIENT_EMAIL = ""
            FIREBASE_PRIVATE_KEY = ""

        with pytest.raises(ValueError, match="FIREBASE_PROJECT_ID"):
            MissingCredentials.validate_config()

    def test_emulator_needs_no_credentials(self):
        class Emulated(Config):
            STORE_BACKEND = "firestore"
            USE_EMULATOR = True
            FIREBASE_PROJECT_ID = ""
            CONTACT_SYNC_ENABLED = False

        assert Emulated.validate_config() is True
        assert Emulated.get_firebase_config() == {"project_id": Emulated.EMULATOR_PROJECT_ID}
        assert "FIRESTORE_EMULATOR_HOST" in Emulated.get_emulator_config()

    def test_production_rejects_signature_bypass(self):
        class LeakyProduction(ProductionConfig):
            SECRET_KEY = "a-real-secret"
            STORE_BACKEND = "firestore"
            USE_EMULATOR = True
            CONTACT_SYNC_ENABLED = False
            WEBHOOK_SIGNATURE_BYPASS = True

        with pytest.raises(ValueError, match="WEBHOOK_SIGNATURE_BYPASS"):
            LeakyProduction.validate_config()

    def test_production_rejects_memory_store(self):
        class MemoryProduction(ProductionConfig):
            SECRET_KEY = "a-real-secret"
            STORE_BACKEND = "memory"
            CONTACT_SYNC_ENABLED = False
            WEBHOOK_SIGNATURE_BYPASS = False

        with pytest.raises(ValueError, match="in-memory"):
            MemoryProduction.validate_config()

    def test_memory_backend_starts_without_firebase_credentials(self):
        class LocalDev(DevelopmentConfig):
            STORE_BACKEND = "memory"
            USE_EMULATOR = False
            FIREBASE_PROJECT_ID = ""
            FIREBASE_CLIENT_EMAIL = ""
            FIREBASE_PRIVATE_KEY = ""
            CONTACT_SYNC_ENABLED = False
            LOG_FILE = ""
            LOG_ENABLE_CONSOLE = False

        app = create_app(LocalDev)

        assert app.extensions["casedesk"].store.backend == "memory"
        assert app.extensions["casedesk"].identity.token_verifier._app is None
        assert app.test_client().get("/health").status_code == 200

    def test_invalid_config_stops_app_creation(self, services):
        class Broken(TestingConfig):
            STORE_BACKEND = "sqlite"

        with pytest.raises(ValueError):
            create_app(Broken, services=services)


class TestLogSettings:
    def test_from_app_reads_flask_config(self, app):
        settings = LogSettings.from_app(app)

        assert settings.file == ""
        assert settings.console is False

    def test_from_env_with_overrides(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        monkeypatch.setenv("LOG_ENABLE_CONSOLE", "false")

        settings = LogSettings.from_env(level="DEBUG")

        assert settings.json is True
        assert settings.console is False
        assert settings.level == "DEBUG"
