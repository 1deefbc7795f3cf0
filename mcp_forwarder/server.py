import logging
from contextlib import asynccontextmanager
from typing import Optional, Sequence

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from mcp_forwarder.config import ForwarderConfig
from mcp_forwarder.health.routes import router as health_router
from mcp_forwarder.services import ForwarderServices
from mcp_forwarder.session.resolver import LAST_EVENT_ID_HEADER, SESSION_HEADER
from mcp_forwarder.sse.routes import router as sse_router
from mcp_forwarder.unary.routes import router as unary_router
from mcp_forwarder.utils.request_logging import log_requests
from mcp_forwarder.vars import OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME

logger = logging.getLogger("uvicorn.error")

CORS_ALLOW_HEADERS = [
    "Content-Type",
    "Accept",
    "Authorization",
    SESSION_HEADER,
    LAST_EVENT_ID_HEADER,
    "X-Requested-With",
    "Origin",
]
CORS_EXPOSE_HEADERS = ["Content-Type", "Accept", SESSION_HEADER, LAST_EVENT_ID_HEADER]


class FilteringSpanExporter(SpanExporter):
    """
    Wrapper exporter that drops the per-chunk ASGI body spans of streaming
    responses. A long-lived event stream would otherwise produce one span
    per relayed chunk.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") == "http.response.body"
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


def configure_tracing() -> None:
    trace.set_tracer_provider(
        TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    )
    if OTLP_ENDPOINT:
        otlp_exporter = OTLPSpanExporter(
            endpoint=OTLP_ENDPOINT,
            headers=(OTLP_HEADERS.split(",") if OTLP_HEADERS else None),
        )
        trace.get_tracer_provider().add_span_processor(
            BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
        )
        logger.info(f"[Tracing] Exporting spans to {OTLP_ENDPOINT}")


configure_tracing()

# Add app_name to the metrics
app_info = Info("fastapi_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})


def create_app(
    config: Optional[ForwarderConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    enable_metrics: bool = True,
) -> FastAPI:
    """
    Build the forwarder application.

    Args:
        config: Frozen configuration; read from the environment when omitted
        transport: Optional httpx transport for the upstream pool
        enable_metrics: Expose Prometheus metrics on ``/metrics``

    Returns:
        The configured FastAPI app
    """
    config = config or ForwarderConfig.from_env()
    services = ForwarderServices.build(config, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await services.pool.aclose()

    app = FastAPI(title=config.service_name, version=config.service_version, lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=CORS_ALLOW_HEADERS,
        expose_headers=CORS_EXPOSE_HEADERS,
    )
    app.middleware("http")(log_requests)

    if enable_metrics:
        Instrumentator().instrument(app).expose(app)

    FastAPIInstrumentor.instrument_app(app, excluded_urls="/metrics,/health")

    if config.base_path:
        logger.info(f"Using MCP_BASE_PATH: {config.base_path}")
    app.include_router(health_router, prefix=config.base_path)
    app.include_router(sse_router, prefix=config.base_path)
    app.include_router(unary_router, prefix=config.base_path)
    return app


app = create_app()
