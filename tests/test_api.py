from __future__ import annotations

from typing import Any

from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.errors import RecommendError
from app.main import register_routes
from app.models import Content, UserPreferences
from app.services.recommender import RecommendationService
from conftest import make_content


class DummyRecommendationService(RecommendationService):
    """Minimal service stub for route testing."""

    def __init__(self, items: list[Content] | None = None, *, fail: bool = False) -> None:
        # Deliberately skip super().__init__ to avoid touching external systems.
        self.items = items or []
        self.fail = fail
        self.last_prefs: UserPreferences | None = None
        self.refresh_result = True

    async def recommend(self, prefs: UserPreferences) -> list[Content]:  # type: ignore[override]
        self.last_prefs = prefs
        if self.fail:
            raise RecommendError("Unable to build recommendations")
        return self.items

    async def refresh(self, *, force: bool = False) -> bool:  # type: ignore[override]
        return self.refresh_result

    def status(self) -> dict[str, Any]:  # type: ignore[override]
        return {"items": len(self.items), "stale": False}


def _client(service: DummyRecommendationService) -> TestClient:
    app = FastAPI()
    register_routes(app)
    app.state.recommendation_service = service
    return TestClient(app)


def test_recommendations_return_content_list() -> None:
    service = DummyRecommendationService([make_content("Heat", genres=["Crime"])])

    with _client(service) as client:
        response = client.post(
            "/recommendations",
            json={"favorite_genres": ["Crime"], "minimum_rating": 7.0, "content_type": "movies"},
        )

    assert response.status_code == 200
    assert response.json() == [
        {
            "title": "Heat",
            "year": "2024",
            "rating": 7.5,
            "genres": ["Crime"],
            "description": "About Heat",
            "availability": ["Netflix"],
            "media_type": "movie",
            "genre": ["Crime"],
            "where_to_watch": ["Netflix"],
        }
    ]
    assert service.last_prefs is not None
    assert service.last_prefs.content_type == "movies"


def test_recommendations_accept_camel_case_body() -> None:
    service = DummyRecommendationService()

    with _client(service) as client:
        response = client.post(
            "/recommendations",
            json={"favoriteGenres": ["Drama"], "minimumRating": 5},
        )

    assert response.status_code == 200
    assert response.json() == []
    assert service.last_prefs is not None
    assert service.last_prefs.favorite_genres == ["Drama"]


def test_invalid_body_is_rejected() -> None:
    with _client(DummyRecommendationService()) as client:
        missing = client.post("/recommendations", json={"favorite_genres": ["Drama"]})
        garbage = client.post(
            "/recommendations",
            content=b"not json",
            headers={"content-type": "application/json"},
        )
        wrong_shape = client.post("/recommendations", json=["Drama"])

    assert missing.status_code == 400
    assert garbage.status_code == 400
    assert wrong_shape.status_code == 400


def test_local_fault_maps_to_generic_server_error() -> None:
    with _client(DummyRecommendationService(fail=True)) as client:
        response = client.post(
            "/recommendations",
            json={"favorite_genres": ["Drama"], "minimum_rating": 5},
        )

    assert response.status_code == 500
    assert response.json() == {"message": "Unable to build recommendations"}


def test_status_and_health_endpoints() -> None:
    with _client(DummyRecommendationService([make_content("Heat")])) as client:
        health = client.get("/healthz")
        status = client.get("/api/catalog/status")

    assert health.json() == {"status": "ok"}
    assert status.json() == {"items": 1, "stale": False}


def test_refresh_endpoint_reports_empty_aggregation() -> None:
    service = DummyRecommendationService()
    service.refresh_result = False

    with _client(service) as client:
        response = client.post("/api/catalog/refresh")

    assert response.status_code == 503
    assert response.json()["message"] == "Catalog refresh produced no content"
