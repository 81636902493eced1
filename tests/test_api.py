"""
Tests for the analytics HTTP API.
"""

import json
import logging
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from training_analytics.api.main import DEFAULT_CORS_ORIGINS, app, cache_backend, cors_origins, create_model_cache
from training_analytics.config import CORS_ORIGINS_ENV_VAR, DATABASE_URL_ENV_VAR
from training_analytics.database import SQLModelCache
from training_analytics.model_cache import InMemoryModelCache


FIXTURES = Path(__file__).parent / "fixtures"
AS_OF = "2024-03-16T12:00:00Z"


# Fixtures

@pytest.fixture
def client():
    """Test client for the API app."""
    return TestClient(app)


@pytest.fixture
def history():
    """Request body fields carrying both fixture sources."""
    return {
        "local_records": json.loads((FIXTURES / "local_sessions.json").read_text()),
        "remote_records": json.loads((FIXTURES / "remote_sessions.json").read_text()),
        "as_of": AS_OF,
    }


# Test Cases


def test_health(client):
    """Test the health endpoint."""
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["service"] == "training-analytics-api"
    assert body["model_cache"] in {"memory", "database"}


def test_root(client):
    """Test the root endpoint."""
    assert client.get("/").json()["name"] == "Training Analytics API"


def test_full_snapshot(client, history):
    """Test a snapshot with every view."""
    response = client.post("/api/analytics", json={**history, "user_id": "athlete-1"})

    assert response.status_code == 200
    body = response.json()
    snapshot = body["snapshot"]
    assert snapshot["session_count"] == 6
    assert snapshot["acwr"]["status"] in {"low", "maintenance", "optimal", "building", "overreaching", "danger"}
    assert snapshot["fitness_fatigue"] is not None
    assert snapshot["personal_stats"]["total_workouts"] == 6
    assert len(snapshot["recovery_profiles"]) == 10
    assert body["warnings"] == []


def test_partial_snapshot(client, history):
    """Test that only requested views are returned."""
    response = client.post("/api/analytics", json={**history, "views": ["acwr"]})

    snapshot = response.json()["snapshot"]
    assert snapshot["acwr"] is not None
    assert snapshot["recovery_profiles"] is None
    assert snapshot["hierarchical_model"] is None


def test_short_history_warns(client):
    """Test that a short history returns empty models and a warning."""
    body = {
        "sessions": [
            {
                "id": "s1",
                "end_time": "2024-03-04T18:00:00Z",
                "sets": [{"exercise_id": "squat", "actual_weight": 100, "actual_reps": 5}],
            }
        ]
    }

    response = client.post("/api/analytics", json=body)

    assert response.status_code == 200
    assert response.json()["snapshot"]["acwr"] is None
    assert len(response.json()["warnings"]) == 1


def test_recovery_endpoint(client, history):
    """Test recovery profiles are sorted and summarized."""
    response = client.post("/api/analytics/recovery", json=history)

    assert response.status_code == 200
    body = response.json()
    scores = [p["readiness_score"] for p in body["profiles"]]
    assert scores == sorted(scores)
    assert body["overall_readiness"] == scores[0]


def test_efficiency_endpoint_limit(client, history):
    """Test the leaderboard limit."""
    response = client.post("/api/analytics/efficiency", json={**history, "limit": 2})

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    assert body["insights"][0]["avg_sfr"] >= body["insights"][1]["avg_sfr"]


def test_predict_endpoint(client, history):
    """Test next-set fatigue prediction."""
    response = client.post(
        "/api/analytics/predict",
        json={**history, "exercise_id": "bench_press", "sets_completed_today": 2},
    )

    assert response.status_code == 200
    body = response.json()
    prediction = body["prediction"]
    assert body["fitted_sessions"] == 6
    assert prediction["lower"] <= prediction["expected_fatigue"] <= prediction["upper"]
    assert 0.3 <= prediction["confidence"] <= 1.0


def test_predict_requires_enough_history(client):
    """Test that prediction without a fittable model is rejected."""
    body = {
        "sessions": [{"id": "s1", "end_time": "2024-03-04T18:00:00Z", "total_volume_load": 1000}],
        "exercise_id": "squat",
    }

    response = client.post("/api/analytics/predict", json=body)

    assert response.status_code == 422
    assert "valid sessions" in response.json()["message"]


def test_request_without_history_is_invalid(client):
    """Test that at least one history source is required."""
    assert client.post("/api/analytics", json={"user_id": "athlete-1"}).status_code == 422


def test_unknown_view_is_invalid(client, history):
    """Test that view names are validated."""
    assert client.post("/api/analytics", json={**history, "views": ["vo2max"]}).status_code == 422


def test_malformed_records_are_skipped(client, history):
    """Test that malformed source records do not fail the request."""
    history["local_records"] = history["local_records"] + [
        {"id": "session_bad", "sets": 7},
        {"id": "session_worse", "sets": [{"exerciseId": "squat", "exerciseName": 5}]},
    ]

    response = client.post("/api/analytics", json={**history, "views": ["acwr"]})

    assert response.status_code == 200
    assert response.json()["snapshot"]["session_count"] == 6


# Application wiring


def test_model_cache_defaults_to_memory(monkeypatch):
    """Test the in-process cache when no database is configured."""
    monkeypatch.delenv(DATABASE_URL_ENV_VAR, raising=False)

    cache = create_model_cache()

    assert isinstance(cache, InMemoryModelCache)
    assert cache_backend(cache) == "memory"


def test_model_cache_uses_configured_database(monkeypatch, tmp_path):
    """Test that the database URL environment variable selects the SQL cache."""
    db_path = tmp_path / "models.db"
    monkeypatch.setenv(DATABASE_URL_ENV_VAR, f"sqlite:///{db_path}")

    cache = create_model_cache()

    assert isinstance(cache, SQLModelCache)
    assert cache_backend(cache) == "database"
    assert db_path.exists()


def test_unusable_database_falls_back_to_memory(caplog):
    """Test that a bad database URL degrades to the in-memory cache."""
    with caplog.at_level(logging.WARNING):
        cache = create_model_cache("notadriver://nowhere")

    assert isinstance(cache, InMemoryModelCache)
    assert "caching in memory" in caplog.text


def test_cors_origins_from_environment(monkeypatch):
    """Test comma-separated CORS origins and the local default."""
    monkeypatch.setenv(CORS_ORIGINS_ENV_VAR, "https://coach.example.com, https://app.example.com,")
    assert cors_origins() == ["https://coach.example.com", "https://app.example.com"]

    monkeypatch.delenv(CORS_ORIGINS_ENV_VAR)
    assert cors_origins() == DEFAULT_CORS_ORIGINS
