"""OTLP/HTTP reader: bridges the collector registry to an OpenTelemetry
MeterProvider.

At start() every gauge and counter family currently exposed by the registry
becomes an observable instrument on a meter owned by this reader. Each
instrument callback re-collects the registry, so OTLP exports see exactly
what /metrics and the Pushgateway see. The provider carries the resource
attribute service.name (default "nomad-scraper").

The endpoint is the collector base URL (OTEL_EXPORTER_OTLP_ENDPOINT style,
e.g. http://otel-collector:4318); metrics are posted to {endpoint}/v1/metrics.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterator

from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.metrics import CallbackOptions, Observation
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricExporter, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from prometheus_client import CollectorRegistry

from nomad_scraper.utils.exceptions import PipelineError
from nomad_scraper.version import __version__

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = "nomad-scraper"


def metrics_url(endpoint: str) -> str:
    return endpoint.rstrip('/') + '/v1/metrics'


class OtlpReader:
    name = "otlp"

    def __init__(self, endpoint: str, *, service_name: str = DEFAULT_SERVICE_NAME, interval: float = 60.0,
                 timeout: float | None = None, exporter: MetricExporter | None = None,
                 flush_timeout: float = 10.0) -> None:
        self.endpoint = endpoint
        self.service_name = service_name
        self.interval = interval
        self.timeout = timeout
        self.flush_timeout = flush_timeout
        self._exporter = exporter
        self._registry: CollectorRegistry | None = None
        self._provider: MeterProvider | None = None

    def start(self, registry: CollectorRegistry) -> None:
        self._registry = registry
        exporter = self._exporter
        if exporter is None:
            exporter = OTLPMetricExporter(endpoint=metrics_url(self.endpoint), timeout=self.timeout)
        reader = PeriodicExportingMetricReader(exporter, export_interval_millis=self.interval * 1000)
        self._provider = MeterProvider(
            resource=Resource.create({SERVICE_NAME: self.service_name}),
            metric_readers=[reader],
            shutdown_on_exit=False,
        )
        meter = self._provider.get_meter("nomad_scraper", __version__)
        for family in registry.collect():
            if family.type == "gauge":
                meter.create_observable_gauge(family.name, callbacks=[self._callback(family.name, family.name)],
                                              description=family.documentation)
            elif family.type == "counter":
                # CounterMetricFamily strips "_total" from the family name; samples keep it
                meter.create_observable_counter(family.name,
                                                callbacks=[self._callback(family.name, family.name + "_total")],
                                                description=family.documentation)
            else:
                logger.debug("Skipping %s family %s for OTLP export", family.type, family.name)
        logger.info("Exporting metrics via OTLP to %s as service %s", metrics_url(self.endpoint), self.service_name)

    def _callback(self, family_name: str, sample_name: str) -> Callable[[CallbackOptions], Iterator[Observation]]:
        def _observe(options: CallbackOptions) -> Iterator[Observation]:
            if self._registry is None:
                return
            for family in self._registry.collect():
                if family.name != family_name:
                    continue
                for sample in family.samples:
                    if sample.name == sample_name:
                        yield Observation(sample.value, dict(sample.labels))
        return _observe

    def flush(self) -> None:
        if self._provider is None:
            raise PipelineError(f"reader {self.name} was never started")
        try:
            ok = self._provider.force_flush(timeout_millis=self.flush_timeout * 1000)
        except Exception as e:  # noqa: BLE001 - SDK aggregates reader failures into a bare Exception
            raise PipelineError(f"OTLP export failed: {e}") from e
        if not ok:
            raise PipelineError("OTLP export did not complete in time")

    def shutdown(self) -> None:
        if self._provider is None:
            return
        self._provider.shutdown()
        self._provider = None

__all__ = ["OtlpReader", "DEFAULT_SERVICE_NAME", "metrics_url"]
