"""OpenTelemetry tracing setup shared by the API and the worker.

Tracing is only enabled when ``OTEL_EXPORTER_OTLP_ENDPOINT`` is set.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.aiohttp_client import AioHttpClientInstrumentor
from opentelemetry.instrumentation.openai import OpenAIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)

ATTR_CATEGORY = "servicenow_ninja.category"

# Commands that are connection housekeeping rather than application work
REDIS_INFRA_COMMANDS = frozenset(
    {"PING", "SELECT", "INFO", "CLIENT", "HELLO", "SCAN", "MULTI", "EXEC", "DISCARD"}
)


def _redis_request_hook(span: trace.Span, instance: Any, args: tuple, kwargs: dict) -> None:
    """Tag Redis spans with the command and the key prefix (never the key itself)."""
    if not span or not span.is_recording():
        return

    span.set_attribute(ATTR_CATEGORY, "redis")

    if args:
        cmd = args[0]
        command = (cmd.decode("utf-8", errors="replace") if isinstance(cmd, bytes) else str(cmd))
        command = command.upper()
    else:
        command = "UNKNOWN"
    span.set_attribute("redis.command", command)
    span.set_attribute("redis.is_infrastructure", command in REDIS_INFRA_COMMANDS)

    if len(args) > 1 and isinstance(args[1], (str, bytes)):
        key = args[1] if isinstance(args[1], str) else args[1].decode("utf-8", errors="replace")
        # ninja:page:<id> -> ninja:page
        prefix = ":".join(key.split(":")[:2])
        span.set_attribute("redis.key_prefix", prefix[:50])


def setup_tracing(service_name: str, service_version: str = "0.1.0") -> bool:
    """Initialize OpenTelemetry tracing if an OTLP endpoint is configured.

    Returns True if tracing was enabled, False otherwise.
    """
    otlp_endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not otlp_endpoint:
        logger.info(
            f"OpenTelemetry tracing disabled for {service_name} (no OTEL_EXPORTER_OTLP_ENDPOINT)"
        )
        return False

    resource = Resource.create({"service.name": service_name, "service.version": service_version})
    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(
        endpoint=otlp_endpoint,
        headers=os.environ.get("OTEL_EXPORTER_OTLP_HEADERS"),
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    RedisInstrumentor().instrument(request_hook=_redis_request_hook)
    AioHttpClientInstrumentor().instrument()
    OpenAIInstrumentor().instrument()

    logger.info(f"OpenTelemetry tracing initialized for {service_name}")
    return True
