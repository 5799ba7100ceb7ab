"""Main entry point for the QubeSec Operator."""

from __future__ import annotations

import logging
from typing import Any

import kopf

from . import handlers  # noqa: F401
from . import health
from . import logging as structured_logging
from .constants import MAX_WORKERS, METRICS_PORT
from .tracing import initialize_tracing

_server: Any = None


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    global _server

    # Set up structured JSON logging
    structured_logging.setup_structured_logging()
    initialize_tracing()

    # Configure persistence
    # Use AnnotationsProgressStorage to avoid conflicts with status updates
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = logging.WARNING
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = MAX_WORKERS

    # Back off 1s, 2s, 4s ... up to 60s on API errors
    settings.networking.error_backoffs = [1, 2, 4, 8, 16, 32, 60]

    # Start metrics HTTP server with health check endpoints
    _server = health.start_health_server(METRICS_PORT)
    health.mark_ready()


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    """Stop serving readiness and the metrics server."""
    health.mark_not_ready()
    if _server is not None:
        _server.shutdown()
