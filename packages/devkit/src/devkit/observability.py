from __future__ import annotations

import logging
import sys

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider

_configured = False
_logging_configured = False

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_otel(service_name: str) -> None:
    global _configured
    if _configured:
        return
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    trace.set_tracer_provider(provider)
    _configured = True


def configure_logging(level: str = "INFO") -> None:
    """Send log records to stderr so stdout stays reserved for command output."""
    global _logging_configured
    if _logging_configured:
        return
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(level=resolved, format=_LOG_FORMAT, stream=sys.stderr)
    # request lines from httpx would echo every admin call at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _logging_configured = True
