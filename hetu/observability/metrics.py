import time
from typing import Callable

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.requests import Request
from starlette.responses import Response


REQUEST_COUNTER = Counter(
    "api_requests_total",
    "HTTP requests total",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "api_request_duration_seconds",
    "HTTP request latency",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)

CSRF_REJECTIONS = Counter(
    "csrf_rejections_total",
    "Requests rejected for a missing or mismatched CSRF token",
)

AUTH_FAILURES = Counter(
    "auth_failures_total",
    "Requests rejected for a missing or expired session",
)

SONG_CONFLICTS = Counter(
    "song_update_conflicts_total",
    "Song updates rejected by the optimistic lock",
)

UPLOAD_COUNTER = Counter(
    "uploads_total",
    "Files forwarded to object storage",
    ["kind", "status"],
)


def increment_csrf_rejection() -> None:
    CSRF_REJECTIONS.inc()


def increment_auth_failure() -> None:
    AUTH_FAILURES.inc()


def increment_song_conflict() -> None:
    SONG_CONFLICTS.inc()


def record_upload(kind: str, ok: bool) -> None:
    UPLOAD_COUNTER.labels(kind, "success" if ok else "failure").inc()


async def metrics_endpoint(_: Request) -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


async def request_metrics_middleware(request: Request, call_next: Callable):
    start = time.time()
    response = await call_next(request)
    elapsed = time.time() - start
    path = request.url.path
    # avoid high cardinality by trimming numeric ids
    if path.count("/") > 2:
        parts = path.split("/")
        parts = [p if not p.isdigit() else ":id" for p in parts]
        path = "/".join(parts)
    REQUEST_COUNTER.labels(request.method, path, str(response.status_code)).inc()
    REQUEST_LATENCY.observe(elapsed)
    return response
