"""Entry point for the FastAPI-powered recommendation service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import timedelta
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .config import settings
from .database import Database
from .errors import RecommendError
from .models import UserPreferences
from .services.aggregator import CatalogAggregator
from .services.blob_store import SqlBlobStore
from .services.cache import CatalogCache
from .services.recommender import RecommendationService
from .services.rotation import RotationStore
from .services.snapshot import SnapshotStore
from .services.tmdb import TMDBClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(_: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_api_url),
            timeout=httpx.Timeout(settings.http_timeout_seconds, connect=5.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    snapshots = SnapshotStore(
        SqlBlobStore(database.session_factory),
        key=settings.snapshot_key,
        retries=settings.snapshot_retries,
        backoff_base=settings.snapshot_backoff_base,
    )
    cache = CatalogCache(
        RotationStore(max_users=settings.rotation_max_users),
        stale_after=timedelta(seconds=settings.stale_after_seconds),
        persist=snapshots.save_quietly,
    )
    aggregator = CatalogAggregator(settings, TMDBClient(settings, tmdb_http_client))
    recommendation_service = RecommendationService(
        settings, aggregator, cache, snapshots
    )

    app.state.recommendation_service = recommendation_service
    app.state.database = database
    await recommendation_service.start()

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await recommendation_service.stop()
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Rotating movie and TV recommendations backed by TMDB",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_recommendation_service(app: FastAPI) -> RecommendationService:
    service = getattr(app.state, "recommendation_service", None)
    if not isinstance(service, RecommendationService):
        raise RuntimeError("Recommendation service not initialised")
    return service


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.exception_handler(RecommendError)
    async def _recommend_error_handler(_: Request, exc: RecommendError) -> JSONResponse:
        logger.error("Recommendation failed: %s", exc, exc_info=exc.__cause__ or exc)
        return JSONResponse(status_code=500, content={"message": str(exc)})

    @fastapi_app.exception_handler(Exception)
    async def _unhandled_error_handler(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(status_code=500, content={"message": "Internal server error"})

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.post("/recommendations")
    async def recommendations_endpoint(request: Request) -> JSONResponse:
        try:
            payload = await request.json()
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid payload") from exc
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Invalid payload")
        try:
            prefs = UserPreferences.model_validate(payload)
        except ValidationError as exc:
            raise HTTPException(
                status_code=400, detail=exc.errors(include_url=False)
            ) from exc

        service = get_recommendation_service(fastapi_app)
        items = await service.recommend(prefs)
        return JSONResponse([item.to_payload() for item in items])

    @fastapi_app.get("/api/catalog/status")
    async def catalog_status_endpoint() -> dict[str, Any]:
        service = get_recommendation_service(fastapi_app)
        return service.status()

    @fastapi_app.post("/api/catalog/refresh")
    async def catalog_refresh_endpoint() -> JSONResponse:
        service = get_recommendation_service(fastapi_app)
        refreshed = await service.refresh(force=True)
        if not refreshed:
            return JSONResponse(
                status_code=503,
                content={
                    "message": "Catalog refresh produced no content",
                    "status": service.status(),
                },
            )
        return JSONResponse(service.status())


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
