"""OpenTelemetry wiring for the payments and ledger apps."""

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from learnpay.common.config import settings

tracer = trace.get_tracer("learnpay")


def setup_tracing(service_name: str) -> None:
    """Register a tracer provider; spans are exported only when an OTLP endpoint is configured."""

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    if settings.otel_exporter_otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)))
    trace.set_tracer_provider(provider)


def instrument_app(app: FastAPI) -> None:
    # /health and /metrics are polled constantly; keep them out of traces.
    FastAPIInstrumentor.instrument_app(app, excluded_urls="health,metrics")


def tag_ledger_span(user_id: str, order_id: str) -> None:
    """Attach ledger identifiers to the active span."""

    span = trace.get_current_span()
    span.set_attribute("learnpay.user_id", user_id)
    span.set_attribute("learnpay.order_id", order_id)
