"""
Unit tests for the recommendation API
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from embedrec.config import RecommenderConfig
from embedrec.models.recommender import Recommender
from embedrec.serving import app as app_module
from embedrec.serving.app import app


@pytest.fixture
def trained_model(movie_ratings):
    model = Recommender(RecommenderConfig(epoch=2, embedding_size=8, batch_size=8))
    asyncio.run(model.fit(movie_ratings))
    return model


@pytest.fixture
def client(trained_model, monkeypatch):
    monkeypatch.setattr(app_module, "model", trained_model)
    return TestClient(app)


class TestRecommendationAPI:
    """Test cases for the recommendation API"""

    def test_health_endpoint(self, client):
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["model_loaded"] is True
        assert data["num_users"] == 5
        assert data["num_entities"] == 9

    def test_recommend(self, client, trained_model):
        response = client.post("/recommend", json={"user_id": "alice_123", "top_k": 3})
        assert response.status_code == 200

        data = response.json()
        assert data["user_id"] == "alice_123"
        assert data["recommendations"] == asyncio.run(trained_model.get_entities("alice_123", 3))

    def test_recommend_integer_user(self, client):
        response = client.post("/recommend", json={"user_id": 101, "top_k": 2})
        assert response.status_code == 200
        assert response.json()["user_id"] == 101

    def test_recommend_unknown_user(self, client):
        response = client.post("/recommend", json={"user_id": "nobody"})
        assert response.status_code == 404

    def test_recommend_invalid_top_k(self, client):
        response = client.post("/recommend", json={"user_id": "alice_123", "top_k": 0})
        assert response.status_code == 422

    def test_audience(self, client):
        response = client.post("/audience", json={"entity_id": "the_godfather_1972", "top_k": 2})
        assert response.status_code == 200
        assert len(response.json()["users"]) == 2

    def test_audience_unknown_entity(self, client):
        response = client.post("/audience", json={"entity_id": "nothing"})
        assert response.status_code == 404

    def test_add_interactions_grows_model(self, client):
        response = client.post(
            "/interactions",
            json={"interactions": [{"user": "new_user", "entity": "new_movie", "rating": 4.5}]},
        )
        assert response.status_code == 200

        data = response.json()
        assert data["trained"] == 1
        assert len(data["epoch_losses"]) == 2
        assert data["num_users"] == 6
        assert data["num_entities"] == 10

        response = client.post("/recommend", json={"user_id": "new_user", "top_k": 1})
        assert response.status_code == 200


class TestStartup:
    def test_starts_empty_without_saved_model(self, tmp_path, monkeypatch):
        monkeypatch.setattr(app_module, "MODEL_PATH", str(tmp_path / "missing.json"))
        monkeypatch.setattr(app_module, "model", None)

        with TestClient(app) as client:
            data = client.get("/health").json()

        assert data["model_loaded"] is False
        assert data["num_users"] == 0

    def test_loads_saved_model(self, tmp_path, monkeypatch, trained_model):
        path = tmp_path / "model.json"
        asyncio.run(trained_model.save(path))
        monkeypatch.setattr(app_module, "MODEL_PATH", str(path))
        monkeypatch.setattr(app_module, "model", None)

        with TestClient(app) as client:
            response = client.post("/recommend", json={"user_id": "bob_moviefan", "top_k": 4})

        assert response.status_code == 200
        assert response.json()["recommendations"] == asyncio.run(trained_model.get_entities("bob_moviefan", 4))
