"""
Request timing middleware.

Measures every request, echoes ``X-Request-ID`` (incoming value or a fresh
12-char id) and ``X-Request-Duration-Ms``, and writes one access-log line
per API call: WARNING when slow, ERROR on 5xx, DEBUG otherwise.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

# Probes hit these every few seconds
_SKIP_LOG = frozenset({"/api/v1/health", "/api/v1/health/ready", "/api/v1/health/live"})

SLOW_THRESHOLD_MS = 1000


def _access_level(status_code, duration_ms):
    if status_code >= 500:
        return logging.ERROR, "Server error"
    if duration_ms > SLOW_THRESHOLD_MS:
        return logging.WARNING, "Slow request"
    return logging.DEBUG, "Request"


def init_request_timing(app: Flask):
    """Register before/after hooks for request timing."""

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _log_request(response):
        start = getattr(g, "request_start", None)
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        response.headers["X-Request-ID"] = g.request_id

        if request.path in _SKIP_LOG or not request.path.startswith("/api/"):
            return response

        level, label = _access_level(response.status_code, duration_ms)
        logger.log(level, "%s: %s %s %d (%.0fms)", label, request.method, request.path,
                   response.status_code, duration_ms,
                   extra={
                       "method": request.method,
                       "path": request.path,
                       "status": response.status_code,
                       "duration_ms": duration_ms,
                       "remote_addr": request.remote_addr,
                   })
        return response
