"""Metrics pipeline bootstrap and lifecycle.

Owns the CollectorRegistry the job collectors are registered on and the
readers that move data out of the process:

  * HttpExpositionReader - Prometheus /metrics endpoint (pull; nothing to flush)
  * OtlpReader           - OpenTelemetry MeterProvider exporting over OTLP/HTTP
                           (see nomad_scraper.metrics.otlp)
  * PeriodicReader       - background thread exporting every `interval`
                           seconds through an exporter:
                             PushgatewayExporter (push to a Pushgateway)
                             ConsoleExporter     (debug dump to stdout via rich)

Lifecycle is force_flush() then shutdown(). force_flush() synchronously runs
every reader's export once so the latest store contents leave the process
before shutdown() stops the reader threads and closes the HTTP server.

Public API:
  build_pipeline(settings, collectors) -> MetricsPipeline
"""
from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Iterable
from typing import IO, TYPE_CHECKING, Protocol

from prometheus_client import CollectorRegistry, push_to_gateway, start_http_server
from prometheus_client.registry import Collector
from rich.console import Console
from rich.table import Table

from nomad_scraper.utils.exceptions import PipelineError

from .otlp import OtlpReader

if TYPE_CHECKING:  # pragma: no cover
    from nomad_scraper.config.settings import ScraperSettings

logger = logging.getLogger(__name__)


class MetricExporter(Protocol):
    name: str

    def export(self, registry: CollectorRegistry) -> None: ...


class MetricReader(Protocol):
    name: str

    def start(self, registry: CollectorRegistry) -> None: ...

    def flush(self) -> None: ...

    def shutdown(self) -> None: ...


class PushgatewayExporter:
    name = "pushgateway"

    def __init__(self, gateway: str, job: str, timeout: float | None = 30.0) -> None:
        self.gateway = gateway
        self.job = job
        self.timeout = timeout

    def export(self, registry: CollectorRegistry) -> None:
        push_to_gateway(self.gateway, job=self.job, registry=registry, timeout=self.timeout)


class ConsoleExporter:
    """Debug exporter: renders every sample currently published as a table."""

    name = "console"

    def __init__(self, stream: IO[str] | None = None) -> None:
        self._console = Console(file=stream if stream is not None else sys.stdout, soft_wrap=True)

    def export(self, registry: CollectorRegistry) -> None:
        table = Table(title="published metrics", show_lines=False)
        table.add_column("metric")
        table.add_column("labels")
        table.add_column("value", justify="right")
        for family in registry.collect():
            for sample in family.samples:
                labels = ",".join(f'{k}="{v}"' for k, v in sorted(sample.labels.items()))
                table.add_row(sample.name, labels, f"{sample.value:g}")
        self._console.print(table)


class PeriodicReader:
    """Exports through `exporter` every `interval` seconds on a daemon thread."""

    def __init__(self, exporter: MetricExporter, interval: float) -> None:
        self.exporter = exporter
        self.name = f"periodic-{exporter.name}"
        self.interval = interval
        self._registry: CollectorRegistry | None = None
        self._stop = threading.Event()
        self._export_lock = threading.Lock()
        self._thread: threading.Thread | None = None

    def start(self, registry: CollectorRegistry) -> None:
        self._registry = registry
        self._thread = threading.Thread(target=self._run, name=f"metrics-{self.name}", daemon=True)
        self._thread.start()

    def _export(self) -> None:
        if self._registry is None:
            raise PipelineError(f"reader {self.name} was never started")
        # periodic tick and explicit flush must not export concurrently
        with self._export_lock:
            self.exporter.export(self._registry)

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self._export()
            except Exception:  # noqa: BLE001 - keep exporting on the next tick
                logger.exception("Periodic export via %s failed", self.exporter.name)

    def flush(self) -> None:
        self._export()

    def shutdown(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=max(1.0, self.interval))
            if self._thread.is_alive():
                logger.warning("Reader %s did not stop in time", self.name)


class HttpExpositionReader:
    """Serves the registry on /metrics; scrapers pull so flush is a no-op."""

    name = "http"

    def __init__(self, port: int, host: str = "0.0.0.0") -> None:
        self.port = port
        self.host = host
        self._server = None
        self._thread: threading.Thread | None = None

    def start(self, registry: CollectorRegistry) -> None:
        self._server, self._thread = start_http_server(self.port, addr=self.host, registry=registry)
        logger.info("Metrics available at http://%s:%s/metrics", self.host, self.bound_port)

    @property
    def bound_port(self) -> int:
        if self._server is None:
            return self.port
        return self._server.server_address[1]

    def flush(self) -> None:
        return None

    def shutdown(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
        self._server = None


class MetricsPipeline:
    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self._readers: list[MetricReader] = []
        self._lock = threading.Lock()
        self._started = False
        self._closed = False

    @property
    def readers(self) -> list[MetricReader]:
        return list(self._readers)

    @property
    def closed(self) -> bool:
        return self._closed

    def register(self, collector: Collector) -> None:
        self.registry.register(collector)

    def add_reader(self, reader: MetricReader) -> None:
        with self._lock:
            if self._closed:
                raise PipelineError("cannot add a reader to a closed pipeline")
            self._readers.append(reader)
            if self._started:
                reader.start(self.registry)

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            self._started = True
            for reader in self._readers:
                reader.start(self.registry)

    def force_flush(self) -> None:
        """Export once through every reader; raise PipelineError if any failed.

        Every reader is attempted even when an earlier one fails.
        """
        if self._closed:
            raise PipelineError("pipeline already shut down")
        failed: list[str] = []
        for reader in self._readers:
            try:
                reader.flush()
            except Exception as e:  # noqa: BLE001 - aggregated below
                logger.error("Flushing metrics via %s failed: %s", reader.name, e)
                failed.append(reader.name)
        if failed:
            raise PipelineError(f"flush failed for: {', '.join(failed)}")

    def shutdown(self) -> None:
        """Stop every reader. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            readers = list(self._readers)
        for reader in readers:
            try:
                reader.shutdown()
            except Exception:  # noqa: BLE001 - keep closing the remaining readers
                logger.exception("Shutting down reader %s failed", reader.name)
        logger.info("Metrics pipeline is shut down")


def build_pipeline(settings: ScraperSettings, collectors: Iterable[Collector],
                   registry: CollectorRegistry | None = None) -> MetricsPipeline:
    """Create the pipeline described by settings and register collectors.

    Readers are attached but not started; call MetricsPipeline.start().
    """
    pipeline = MetricsPipeline(registry)
    for collector in collectors:
        pipeline.register(collector)
    if settings.metrics_port:
        pipeline.add_reader(HttpExpositionReader(settings.metrics_port, settings.metrics_host))
    if settings.pushgateway_url:
        pipeline.add_reader(PeriodicReader(
            PushgatewayExporter(settings.pushgateway_url, settings.push_job_name, settings.request_timeout or 30.0),
            settings.export_interval,
        ))
    if settings.otlp_endpoint:
        pipeline.add_reader(OtlpReader(
            settings.otlp_endpoint,
            service_name=settings.service_name,
            interval=settings.export_interval,
            timeout=settings.request_timeout,
        ))
    if settings.debug:
        pipeline.add_reader(PeriodicReader(ConsoleExporter(), settings.export_interval))
    if not pipeline.readers:
        logger.warning("No metric readers configured; metrics will not leave the process")
    return pipeline

__all__ = [
    "MetricsPipeline",
    "MetricExporter",
    "MetricReader",
    "PeriodicReader",
    "HttpExpositionReader",
    "OtlpReader",
    "PushgatewayExporter",
    "ConsoleExporter",
    "build_pipeline",
]
