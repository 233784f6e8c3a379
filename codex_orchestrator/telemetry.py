"""OpenTelemetry traces and metrics for orchestrator runs.

Spans cover the run, each phase, each task and each review loop. Metrics
count tasks, phases, review rejections and stacking failures. Export goes
to an OTLP collector only when OTLP_ENABLED=true; otherwise the SDK
providers record in process and nothing leaves the machine.
"""

import logging
import os

from opentelemetry import metrics, trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider

from codex_orchestrator.config import OrchestratorConfig

# Suppress gRPC warnings when collector is unavailable
logging.getLogger("opentelemetry.exporter.otlp.proto.grpc").setLevel(logging.ERROR)

TRACER_NAME = "codex_orchestrator"

# Module-level metric instruments (set by create_metrics)
tasks_counter: metrics.Counter
phases_counter: metrics.Counter
review_rejections_counter: metrics.Counter
stacking_failures_counter: metrics.Counter
task_duration: metrics.Histogram


def _otlp_enabled(config: OrchestratorConfig) -> bool:
    return os.getenv("OTLP_ENABLED", "false").lower() == "true" and bool(
        config.otlp_endpoint
    )


def _build_providers(
    config: OrchestratorConfig, resource: Resource
) -> tuple[TracerProvider, MeterProvider]:
    if not _otlp_enabled(config):
        return TracerProvider(resource=resource), MeterProvider(resource=resource)

    # Exporters live in the optional "otlp" extra
    from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
        OTLPMetricExporter,
    )
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
        OTLPSpanExporter,
    )
    from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=config.otlp_endpoint))
    )
    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=config.otlp_endpoint)
    )
    return tracer_provider, MeterProvider(resource=resource, metric_readers=[reader])


def setup_telemetry(config: OrchestratorConfig) -> tuple[trace.Tracer, metrics.Meter]:
    """Install global tracer and meter providers for this process.

    Args:
        config: Supplies service_name and otlp_endpoint

    Returns:
        Tuple of (tracer, meter) named after the service
    """
    resource = Resource.create({SERVICE_NAME: config.service_name})
    tracer_provider, meter_provider = _build_providers(config, resource)
    trace.set_tracer_provider(tracer_provider)
    metrics.set_meter_provider(meter_provider)

    return trace.get_tracer(config.service_name), metrics.get_meter(config.service_name)


def create_metrics(meter: metrics.Meter) -> None:
    """Create metric instruments for orchestrator tracking.

    Counters: tasks by status, phases by strategy/status, review rejections,
    stacking failures. Histogram: task duration.

    Args:
        meter: OpenTelemetry meter for creating instruments
    """
    global tasks_counter, phases_counter, review_rejections_counter
    global stacking_failures_counter, task_duration

    tasks_counter = meter.create_counter(
        "orchestrator_tasks_total",
        description="Total tasks executed",
    )

    phases_counter = meter.create_counter(
        "orchestrator_phases_total",
        description="Total phases executed",
    )

    review_rejections_counter = meter.create_counter(
        "orchestrator_review_rejections_total",
        description="Total code review rejections",
    )

    stacking_failures_counter = meter.create_counter(
        "orchestrator_stacking_failures_total",
        description="Total stacking failures",
    )

    task_duration = meter.create_histogram(
        "orchestrator_task_duration_seconds",
        description="Task execution duration",
        unit="s",
    )


def record_task(run_id: str, status: str, duration_seconds: float) -> None:
    """Record a task outcome if metrics are initialized."""
    try:
        tasks_counter.add(1, {"run_id": run_id, "status": status})
        task_duration.record(duration_seconds, {"run_id": run_id})
    except (AttributeError, NameError):
        # Counters not initialized - telemetry disabled
        pass


def record_phase(run_id: str, strategy: str, status: str) -> None:
    try:
        phases_counter.add(1, {"run_id": run_id, "strategy": strategy, "status": status})
    except (AttributeError, NameError):
        pass


def record_review_rejection(run_id: str, phase_id: int) -> None:
    try:
        review_rejections_counter.add(1, {"run_id": run_id, "phase": phase_id})
    except (AttributeError, NameError):
        pass


def record_stacking_failure(run_id: str) -> None:
    try:
        stacking_failures_counter.add(1, {"run_id": run_id})
    except (AttributeError, NameError):
        pass


def get_tracer() -> trace.Tracer:
    return trace.get_tracer(TRACER_NAME)
