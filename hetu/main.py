import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .db import init_db
from .errors import register_error_handlers
from .observability.logging import bind_request_id, setup_logging
from .observability.metrics import metrics_endpoint, request_metrics_middleware
from .observability.sentry import init_sentry
from .routers import admin_songs, auth, autocomplete, revalidate, songs, status, uploads


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


def _split_env(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def create_app() -> FastAPI:
    tags_metadata = [
        {"name": "status", "description": "Service and database health"},
        {"name": "songs", "description": "Public music library"},
        {"name": "admin", "description": "Song curation"},
        {"name": "uploads", "description": "Cover and score uploads"},
        {"name": "auth", "description": "Sessions, CSRF tokens and profiles"},
        {"name": "cache", "description": "Response cache control"},
    ]
    app = FastAPI(title="Hetu Music API", version="0.1.0", openapi_tags=tags_metadata, lifespan=lifespan)
    register_error_handlers(app)
    setup_logging()
    init_sentry(app)

    # CORS from environment configuration
    origins = os.getenv("CORS_ALLOW_ORIGINS", "*")
    allow_credentials = os.getenv("CORS_ALLOW_CREDENTIALS", "1") in ("1", "true", "TRUE")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_split_env(origins),
        allow_credentials=allow_credentials,
        allow_methods=_split_env(os.getenv("CORS_ALLOW_METHODS", "*")),
        allow_headers=_split_env(os.getenv("CORS_ALLOW_HEADERS", "*")),
    )
    # Metrics middleware
    app.middleware("http")(request_metrics_middleware)

    # Request ID binder
    @app.middleware("http")
    async def add_request_id(request, call_next):
        rid = request.headers.get("X-Request-Id")
        bind_request_id(rid)
        response = await call_next(request)
        if rid:
            response.headers["X-Request-Id"] = rid
        return response

    app.include_router(status.router)
    app.include_router(songs.router)
    app.include_router(admin_songs.router)
    app.include_router(uploads.router)
    app.include_router(autocomplete.router)
    app.include_router(auth.router)
    app.include_router(revalidate.router)
    # Prometheus metrics
    app.add_api_route("/metrics", metrics_endpoint, include_in_schema=False)

    return app


app = create_app()
