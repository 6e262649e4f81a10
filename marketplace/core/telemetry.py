from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from sqlalchemy.ext.asyncio import AsyncEngine

from marketplace.core.config import Settings, settings as default_settings


def setup_telemetry(app, cfg: Settings = default_settings) -> TracerProvider:
    """Export request spans over OTLP/HTTP. Health checks are not traced."""
    resource = Resource.create({
        "service.name": cfg.service_name,
        "service.version": app.version,
        "deployment.environment": cfg.env,
    })
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{cfg.otlp_endpoint}/v1/traces")))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider, excluded_urls="api/health")
    return provider


def instrument_engine(engine: AsyncEngine) -> None:
    # the instrumentor hooks the sync engine underneath the async facade
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine, tracer_provider=trace.get_tracer_provider())
