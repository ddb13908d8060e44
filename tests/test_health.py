"""Test health check endpoint."""

from datetime import datetime

from fastapi.testclient import TestClient

from insight_assistant.main import app

client = TestClient(app)


def test_health_check():
    """Test that /health returns 200 with status ok and a timestamp."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert datetime.fromisoformat(data["timestamp"]).tzinfo is not None
