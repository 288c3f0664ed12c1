"""Logging and tracing setup for the helpdesk API and the seed command."""

from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from app.core.config import Settings

APP_LOGGER = "app"

_TRACER_INITIALISED = False


def _otlp_headers(header_string: str | None) -> dict[str, str]:
    """Parse ``key=value`` pairs separated by commas, skipping malformed items."""

    pairs = (item.split("=", 1) for item in (header_string or "").split(",") if "=" in item)
    return {key.strip(): value.strip() for key, value in pairs if key.strip()}


def _logger_levels(settings: Settings, level: int) -> dict[str, dict[str, Any]]:
    # The ticket, account and auth modules all log under ``app``.
    return {
        APP_LOGGER: {"level": level},
        "sqlalchemy.engine": {"level": logging.INFO if settings.database_echo else logging.WARNING},
        "passlib": {"level": logging.ERROR},
        "uvicorn.access": {"level": logging.WARNING if settings.environment == "test" else level},
    }


def configure_logging(settings: Settings) -> logging.Logger:
    """Route helpdesk, database and auth library logs through one stream handler.

    SQL statements are only logged when ``database_echo`` is set, and passlib's
    bcrypt version warnings are silenced. Returns the ``app`` logger.
    """

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "helpdesk": {
                    "format": settings.log_format,
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "helpdesk",
                    "level": level,
                }
            },
            "loggers": _logger_levels(settings, level),
            "root": {
                "handlers": ["console"],
                "level": level,
            },
        }
    )

    logger = logging.getLogger(APP_LOGGER)
    logger.debug("Logging configured for %s (%s)", settings.app_name, settings.environment)
    return logger


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Install an OTLP tracer provider for the helpdesk service when enabled."""

    global _TRACER_INITIALISED

    if _TRACER_INITIALISED or not settings.otel_enabled:
        return None

    resource = Resource(
        attributes={
            "service.name": settings.otel_service_name,
            "deployment.environment": settings.environment,
        }
    )
    provider = TracerProvider(resource=resource)

    exporter_kwargs: dict[str, object] = {}
    if settings.otel_exporter_otlp_endpoint:
        exporter_kwargs["endpoint"] = settings.otel_exporter_otlp_endpoint
    headers = _otlp_headers(settings.otel_exporter_otlp_headers)
    if headers:
        exporter_kwargs["headers"] = headers

    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**exporter_kwargs)))

    trace.set_tracer_provider(provider)
    _TRACER_INITIALISED = True
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    if provider is None:
        return

    global _TRACER_INITIALISED
    provider.shutdown()
    _TRACER_INITIALISED = False
