"""OpenTelemetry + Prometheus fallback wiring for the ingestion service."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from ccjsonl import config

logger = logging.getLogger("ccjsonl.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_ingestion_counter: Any | None = None
_ingestion_latency_hist: Any | None = None
_parser_failure_counter: Any | None = None
_batch_runs_counter: Any | None = None
_batch_files_counter: Any | None = None

_prom_enabled = False
_prom_ingestion_counter: Any | None = None
_prom_ingestion_latency_hist: Any | None = None
_prom_parser_failure_counter: Any | None = None
_prom_batch_runs_counter: Any | None = None
_prom_batch_files_counter: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    endpoint = endpoint.rstrip("/")
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _prom_labels(*, project_id: str, **extra: str) -> dict[str, str]:
    labels = {"project": project_id or "unknown"}
    for key, value in extra.items():
        labels[key] = (value or "").strip() or "unknown"
    return labels


def _start_prometheus() -> None:
    global _prom_enabled
    global _prom_ingestion_counter, _prom_ingestion_latency_hist, _prom_parser_failure_counter
    global _prom_batch_runs_counter, _prom_batch_files_counter

    try:
        from prometheus_client import Counter, Histogram, start_http_server

        start_http_server(config.PROM_PORT)
        _prom_ingestion_counter = Counter(
            "ccjsonl_ingestion_events_total",
            "Count of log file ingestion operations",
            ["entity", "result", "project"],
        )
        _prom_ingestion_latency_hist = Histogram(
            "ccjsonl_ingestion_latency_ms",
            "Latency for log file ingestion operations",
            ["entity", "result", "project"],
        )
        _prom_parser_failure_counter = Counter(
            "ccjsonl_parser_failures_total",
            "Count of parser failures",
            ["parser", "project"],
        )
        _prom_batch_runs_counter = Counter(
            "ccjsonl_batch_runs_total",
            "Count of batch runs by outcome",
            ["result"],
        )
        _prom_batch_files_counter = Counter(
            "ccjsonl_batch_files_total",
            "Files seen by batch runs by status",
            ["status"],
        )
        _prom_enabled = True
        logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
    except (ImportError, OSError, ValueError) as exc:
        logger.warning("Prometheus fallback not started: %s", exc)
        _prom_enabled = False


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _ingestion_counter, _ingestion_latency_hist, _parser_failure_counter
    global _batch_runs_counter, _batch_files_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (CCJSONL_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "ccjsonl-ingest"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "ccjsonl",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None))
    )
    trace.set_tracer_provider(trace_provider)

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("ccjsonl.ingest")

    _ingestion_counter = meter.create_counter(
        "ccjsonl_ingestion_events_total",
        unit="1",
        description="Count of log file ingestion operations",
    )
    _ingestion_latency_hist = meter.create_histogram(
        "ccjsonl_ingestion_latency_ms",
        unit="ms",
        description="Latency for log file ingestion operations",
    )
    _parser_failure_counter = meter.create_counter(
        "ccjsonl_parser_failures_total",
        unit="1",
        description="Count of parser failures",
    )
    _batch_runs_counter = meter.create_counter(
        "ccjsonl_batch_runs_total",
        unit="1",
        description="Count of batch runs by outcome",
    )
    _batch_files_counter = meter.create_counter(
        "ccjsonl_batch_files_total",
        unit="1",
        description="Files seen by batch runs by status",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = trace.get_tracer("ccjsonl.ingest")
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        _start_prometheus()

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    if app and _fastapi_instrumentor:
        try:
            _fastapi_instrumentor.uninstrument_app(app)
        except Exception as exc:  # noqa: BLE001
            logger.debug("FastAPI uninstrument failed: %s", exc)
    for provider in (_meter_provider, _trace_provider):
        if provider is None:
            continue
        try:
            provider.shutdown()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Telemetry provider shutdown failed: %s", exc)
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_ingestion(entity: str, result: str, duration_ms: float, *, project_id: str) -> None:
    labels = {
        "entity": entity or "unknown",
        "result": result or "unknown",
        "project_id": project_id or "unknown",
    }
    latency = max(0.0, float(duration_ms))
    if _enabled and _ingestion_counter is not None:
        _ingestion_counter.add(1, labels)
    if _enabled and _ingestion_latency_hist is not None:
        _ingestion_latency_hist.record(latency, labels)
    if _prom_enabled and _prom_ingestion_counter is not None:
        prom = _prom_labels(project_id=project_id, entity=entity, result=result)
        _prom_ingestion_counter.labels(**prom).inc()
        if _prom_ingestion_latency_hist is not None:
            _prom_ingestion_latency_hist.labels(**prom).observe(latency)


def record_parser_failure(parser: str, *, project_id: str) -> None:
    labels = {
        "parser": parser or "unknown",
        "project_id": project_id or "unknown",
    }
    if _enabled and _parser_failure_counter is not None:
        _parser_failure_counter.add(1, labels)
    if _prom_enabled and _prom_parser_failure_counter is not None:
        prom = _prom_labels(project_id=project_id, parser=parser)
        _prom_parser_failure_counter.labels(**prom).inc()


def record_batch_run(
    result: str,
    *,
    processed: int = 0,
    skipped: int = 0,
    failed: int = 0,
) -> None:
    counts = {"success": processed, "skipped": skipped, "failed": failed}
    if _enabled and _batch_runs_counter is not None:
        _batch_runs_counter.add(1, {"result": result or "unknown"})
    if _enabled and _batch_files_counter is not None:
        for status, count in counts.items():
            if count > 0:
                _batch_files_counter.add(int(count), {"status": status})
    if _prom_enabled and _prom_batch_runs_counter is not None:
        _prom_batch_runs_counter.labels(result=result or "unknown").inc()
    if _prom_enabled and _prom_batch_files_counter is not None:
        for status, count in counts.items():
            if count > 0:
                _prom_batch_files_counter.labels(status=status).inc(int(count))
