"""Tests for authentication, error rendering, health and logging setup."""

import logging
from datetime import timedelta
from types import SimpleNamespace

from api_helpers import HYGIENIST_USER
from app.auth import create_access_token
from app.config import get_settings
from app.logging_config import LOG_FORMAT, get_logger, log_job_event, setup_logging
from app.rate_limit import get_client_ip, is_trusted_proxy, parse_networks


class TestAuth:
    def test_expired_token(self, client):
        token = create_access_token(HYGIENIST_USER, get_settings(), expires_delta=timedelta(seconds=-5))

        response = client.get("/applications", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized", "message": "Invalid or expired token"}

    def test_garbage_token(self, client):
        response = client.get("/invitations", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    def test_valid_token(self, client, hygienist_headers):
        response = client.get("/applications", headers=hygienist_headers)

        assert response.status_code == 200
        assert response.json() == {"applications": [], "total": 0}


class TestServiceRoutes:
    def test_root(self, client):
        assert client.get("/").json()["status"] == "ok"

    def test_health_memory_backend(self, client):
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["storage"] == "connected"
        assert data["backend"] == "memory"


class TestLogging:
    def test_setup_is_idempotent(self):
        logger = setup_logging("DEBUG")
        setup_logging("DEBUG")

        marked = [h for h in logger.handlers if getattr(h, "_dentipal_handler", False)]
        assert len(marked) == 1
        assert marked[0].formatter._fmt == LOG_FORMAT
        assert logger.level == logging.DEBUG

    def test_invalid_level_falls_back_to_info(self):
        assert setup_logging("LOUD").level == logging.INFO

    def test_loggers_namespaced(self):
        assert get_logger("api.jobs").name == "dentipal.api.jobs"
        assert get_logger("dentipal.api.jobs").name == "dentipal.api.jobs"

    def test_job_event_format(self, caplog):
        with caplog.at_level(logging.INFO, logger="dentipal.events"):
            log_job_event("job_created", "job-1", "user-1", type="temporary", role="dental_hygienist")

        assert "job_created | job=job-1 | actor=user-1 | type=temporary, role=dental_hygienist" in caplog.text


class TestClientIp:
    def _request(self, peer, forwarded=None):
        headers = {"x-forwarded-for": forwarded} if forwarded else {}
        return SimpleNamespace(client=SimpleNamespace(host=peer), headers=headers)

    def test_invalid_cidrs_are_dropped(self):
        networks = parse_networks(["10.0.0.0/8", "not-a-network"])

        assert len(networks) == 1
        assert is_trusted_proxy("10.1.2.3", networks)
        assert not is_trusted_proxy("garbage", networks)

    def test_forwarded_header_honoured_behind_trusted_proxy(self):
        assert get_client_ip(self._request("10.0.0.5", "203.0.113.9, 10.0.0.5")) == "203.0.113.9"

    def test_forwarded_header_ignored_from_untrusted_peer(self):
        assert get_client_ip(self._request("198.51.100.7", "203.0.113.9")) == "198.51.100.7"

    def test_empty_forwarded_header_falls_back_to_peer(self):
        assert get_client_ip(self._request("127.0.0.1", " ")) == "127.0.0.1"
