from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from dealerhub.core.config import settings
from dealerhub.core.db import engine

# resolves through the global provider, so spans are no-ops until setup runs
tracer = trace.get_tracer("dealerhub")


def setup_telemetry(app) -> None:
    if not settings.telemetry_enabled:
        return

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "service.version": app.version,
            "deployment.environment": settings.env,
        }
    )
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{settings.otlp_endpoint}/v1/traces")))
    trace.set_tracer_provider(provider)

    # health checks would drown the interesting traces
    FastAPIInstrumentor.instrument_app(app, excluded_urls="v1/health")
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


def record_webhook_result(span, result) -> None:
    """Copy an HttpResult onto the current webhook span."""
    span.set_attribute("http.status_code", result.status_code or 0)
    span.set_attribute("webhook.ok", result.ok)
    if result.error_code:
        span.set_attribute("webhook.error_code", result.error_code)
        span.set_attribute("webhook.retryable", result.retryable)
