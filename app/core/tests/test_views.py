"""
Tests for the health check endpoint.
"""

from unittest.mock import patch

import pytest
from django.db import OperationalError


@pytest.mark.django_db
class TestHealthCheck:
    def test_healthy(self, client):
        response = client.get("/health/")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "connected", "cache": "connected"}

    def test_database_down_is_unhealthy(self, client):
        with patch("core.views.connection.cursor", side_effect=OperationalError("no route to host")):
            response = client.get("/health/")

        assert response.status_code == 503
        assert response.json()["database"] == "disconnected"

    def test_cache_down_is_reported_but_healthy(self, client):
        with patch("core.views.cache.set", side_effect=ConnectionError("redis down")):
            response = client.get("/health/")

        assert response.status_code == 200
        assert response.json()["cache"] == "disconnected"
