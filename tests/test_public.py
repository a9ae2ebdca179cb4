"""Diagnostic endpoints and the JSON error envelope."""
import logging
from unittest.mock import patch

from devispro.config import DEFAULT_JWT_SECRET, settings
from devispro.main import warn_insecure_defaults


def test_health(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.json()["database"] == "ok"


def test_diagnostic(client):
    body = client.get("/api/test").json()
    assert body["success"] is True
    assert body["database"] == "sqlite"
    assert body["stripe_configured"] is True


def test_malformed_json_body_uses_error_envelope(client):
    res = client.post("/api/login", content=b"{pas du json", headers={"Content-Type": "application/json"})
    assert res.status_code == 400
    assert res.json()["success"] is False


def test_default_jwt_secret_is_reported(caplog):
    with caplog.at_level(logging.WARNING, logger="devispro.main"):
        warn_insecure_defaults()
        assert "JWT_SECRET_KEY" not in caplog.text

        with patch.object(settings, "JWT_SECRET_KEY", DEFAULT_JWT_SECRET):
            warn_insecure_defaults()
    assert "JWT_SECRET_KEY" in caplog.text
