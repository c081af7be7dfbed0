import time
import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter

logger = structlog.get_logger()

REQ_COUNTER = Counter("http_requests_total", "Total HTTP Requests", ["method", "path", "status"])
REQ_LATENCY = Histogram("http_request_latency_seconds", "Request latency", ["method", "path"])
STREAM_OUTCOMES = Counter(
    "chat_streams_total",
    "Chat requests by provider and terminal state",
    ["provider", "outcome"],
)
STREAM_EVENTS = Counter("chat_stream_events_total", "Events relayed to callers", ["provider", "kind"])


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            # for streamed responses this measures time to headers, not to the last frame
            latency = time.perf_counter() - start
            path = request.url.path
            method = request.method
            REQ_COUNTER.labels(method, path, status).inc()
            REQ_LATENCY.labels(method, path).observe(latency)


metrics_router = APIRouter()


@metrics_router.get("/metrics", include_in_schema=False)
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
