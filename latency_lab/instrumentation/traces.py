"""
Tracing utilities for transport latency benchmarking.

Wraps OpenTelemetry so that benchmark phases and individual trials can be
exported as spans. Each Tracer owns its own TracerProvider; nothing is
installed globally.
"""

import os
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.trace import Status, StatusCode


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class TracingConfig:
    """Configuration for tracing setup."""

    def __init__(
        self,
        service_name: Optional[str] = None,
        enable_console_export: Optional[bool] = None,
        exporters: Optional[list[SpanExporter]] = None,
    ):
        self.service_name = service_name or os.getenv(
            "LATENCY_LAB_SERVICE_NAME", "transport-latency-lab"
        )
        if enable_console_export is None:
            enable_console_export = _env_flag("LATENCY_LAB_TRACE_CONSOLE", False)
        self.enable_console_export = enable_console_export
        self.exporters = list(exporters or [])


class Tracer:
    """OpenTelemetry tracer for benchmark runs."""

    def __init__(self, config: Optional[TracingConfig] = None):
        self.config = config or TracingConfig()
        self._provider: Optional[TracerProvider] = None
        self._otel_tracer = None
        self._initialized = False

    def initialize(self) -> "Tracer":
        """Initialize the tracer provider and span processors."""
        if self._initialized:
            return self

        resource = Resource.create({"service.name": self.config.service_name})
        self._provider = TracerProvider(resource=resource)

        if self.config.enable_console_export:
            self._provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
        for exporter in self.config.exporters:
            self._provider.add_span_processor(SimpleSpanProcessor(exporter))

        self._otel_tracer = self._provider.get_tracer(self.config.service_name)
        self._initialized = True
        return self

    def shutdown(self) -> None:
        """Flush and shut down the tracer provider."""
        if self._provider is not None:
            self._provider.shutdown()
            self._provider = None
            self._otel_tracer = None
            self._initialized = False

    @contextmanager
    def span(
        self,
        name: str,
        attributes: Optional[dict] = None,
    ) -> Iterator[Any]:
        """Create a traced span.

        Usage:
            with tracer.span("arm", {"arm.name": "rpc"}) as span:
                span.set_attribute("arm.mean_ms", 12.5)
        """
        if not self._initialized:
            self.initialize()

        span_obj = self._otel_tracer.start_span(name, attributes=attributes or None)
        try:
            yield span_obj
        except BaseException as e:
            span_obj.set_status(Status(StatusCode.ERROR, str(e)))
            span_obj.record_exception(e)
            raise
        finally:
            span_obj.end()
