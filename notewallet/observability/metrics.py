from __future__ import annotations
import time
from fastapi import Response, Request
from prometheus_client import (
    Counter, Histogram, CollectorRegistry,
    CONTENT_TYPE_LATEST, generate_latest
)

REGISTRY = CollectorRegistry(auto_describe=True)
UNMATCHED_PATH = "unmatched"

# ---------- Metric definitions ----------
HTTP_REQS = Counter("http_requests_total", "HTTP requests", ["method", "path", "status"], registry=REGISTRY)
HTTP_LATENCY = Histogram("http_request_duration_seconds", "HTTP request latency", ["method", "path"], registry=REGISTRY)

OTP_ISSUED   = Counter("otp_issued_total",   "One-time codes issued",       ["purpose"], registry=REGISTRY)
OTP_VERIFIED = Counter("otp_verify_total",   "One-time code verifications", ["purpose", "outcome"], registry=REGISTRY)
MAIL_FAILED  = Counter("mail_failed_total",  "Outbound mail failures",      ["purpose"], registry=REGISTRY)
NOTES_CREATED = Counter("notes_created_total", "Notes created", registry=REGISTRY)
NOTES_DELETED = Counter("notes_deleted_total", "Notes deleted", registry=REGISTRY)


# ---------- /metrics endpoint ----------
async def metrics_endpoint(request: Request):
    if not request.app.state.settings.METRICS_ENABLED:
        return Response(status_code=404)
    data = generate_latest(REGISTRY)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


# ---------- HTTP middleware for latency/counters ----------
class MetricsHTTPMiddleware:
    """Counts and times requests, labelled by route template.

    Labelling by the raw path would create one series per note id or
    stray URL, so requests that match no route share ``"unmatched"``.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)
        method = scope["method"]
        status = 500
        t0 = time.perf_counter()

        async def send_wrapper(message):
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            # the router stores the matched route in scope
            path = getattr(scope.get("route"), "path_format", None) or UNMATCHED_PATH
            HTTP_REQS.labels(method=method, path=path, status=status).inc()
            HTTP_LATENCY.labels(method=method, path=path).observe(time.perf_counter() - t0)
