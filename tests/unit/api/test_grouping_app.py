"""Tests for the application factory and settings."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient


class TestSettings:
    def test_defaults(self):
        from api.settings import Settings

        with patch.dict("os.environ", {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.grouping_store == "memory"
        assert settings.uses_pocketbase is False
        assert settings.allowed_origins == ["http://localhost:3000", "http://localhost:5173"]

    def test_pocketbase_store(self):
        from api.settings import Settings

        with patch.dict("os.environ", {"GROUPING_STORE": "PocketBase"}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.grouping_store == "pocketbase"
        assert settings.uses_pocketbase is True

    def test_invalid_store_rejected(self):
        from pydantic import ValidationError

        from api.settings import Settings

        with patch.dict("os.environ", {"GROUPING_STORE": "redis"}, clear=True):
            with pytest.raises(ValidationError):
                Settings(_env_file=None)

    def test_allowed_origins_parsing(self):
        from api.settings import Settings

        with patch.dict("os.environ", {"ALLOWED_ORIGINS": "https://a.example, https://b.example,"}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.allowed_origins == ["https://a.example", "https://b.example"]


class TestCreateApp:
    @pytest.fixture
    def client(self):
        from api.main import create_app

        with patch("api.main.authenticate_pb") as mock_auth:
            with TestClient(create_app()) as client:
                yield client, mock_auth

    def test_health(self, client):
        test_client, _ = client
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "grouping-api"}

    def test_memory_store_skips_pocketbase_auth(self, client):
        _, mock_auth = client
        mock_auth.assert_not_called()

    def test_grouping_routes_registered(self, client):
        test_client, _ = client
        paths = {route.path for route in test_client.app.routes}

        assert "/api/grouping/{camp_id}/run" in paths
        assert "/api/grouping/{camp_id}/finalize" in paths
