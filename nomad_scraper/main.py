#!/usr/bin/env python3
"""Entrypoint: wire settings, fetcher, store, metrics pipeline, poller and
shutdown coordinator together and run until interrupted.

Exit codes: 0 after a clean drain, 1 when the poll loop failed fatally,
2 on configuration errors.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass

import requests
from prometheus_client import CollectorRegistry

from nomad_scraper.cli import apply_args, parse_args
from nomad_scraper.config.durations import format_duration
from nomad_scraper.config.settings import ScraperSettings, load_settings
from nomad_scraper.metrics.observer import JobStatusCollector, ScraperStatsCollector
from nomad_scraper.metrics.pipeline import MetricsPipeline, build_pipeline
from nomad_scraper.orchestrator.context import RuntimeContext
from nomad_scraper.orchestrator.cycle import run_cycle
from nomad_scraper.orchestrator.loop import LoopState, build_failure_policy, run_poll_loop
from nomad_scraper.orchestrator.shutdown import ShutdownCoordinator
from nomad_scraper.providers.nomad_client import NomadClient
from nomad_scraper.utils.exceptions import ConfigError, PipelineError
from nomad_scraper.utils.logging_utils import setup_logging
from nomad_scraper.version import get_version

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2


@dataclass
class App:
    settings: ScraperSettings
    ctx: RuntimeContext
    client: NomadClient
    pipeline: MetricsPipeline
    poller: threading.Thread | None = None
    loop_state: LoopState | None = None


def build_app(settings: ScraperSettings, *, session: requests.Session | None = None,
              registry: CollectorRegistry | None = None) -> App:
    client = NomadClient(settings.nomad_url, session=session, timeout=settings.request_timeout)
    ctx = RuntimeContext(
        fetcher=client,
        zero_policy=settings.zero_desired,
        stale_ttl=settings.stale_ttl,
    )
    collectors = [
        JobStatusCollector(ctx.store, settings.label_key),
        ScraperStatsCollector(ctx.stats, ctx.store),
    ]
    pipeline = build_pipeline(settings, collectors, registry=registry)
    return App(settings=settings, ctx=ctx, client=client, pipeline=pipeline)


def start_poller(app: App) -> threading.Thread:
    policy = build_failure_policy(app.settings.failure_policy, app.settings.max_consecutive_failures)

    def _target() -> None:
        try:
            app.loop_state = run_poll_loop(
                app.ctx,
                cycle_fn=run_cycle,
                interval=app.settings.poll_interval,
                failure_policy=policy,
                run_immediately=app.settings.run_immediately,
            )
        except Exception as e:  # noqa: BLE001 - unexpected bug in a cycle; stop the process cleanly
            logger.exception("Poll loop crashed")
            app.ctx.fatal_error = e
            app.loop_state = LoopState.FAILED
            app.ctx.cancel.set()

    # daemon: a poller stuck in a request without timeout must not block exit after the drain
    poller = threading.Thread(target=_target, name="nomad-poller", daemon=True)
    app.poller = poller
    poller.start()
    return poller


def run(app: App, *, install_signals: bool = True) -> int:
    coordinator = ShutdownCoordinator(app.ctx.cancel, app.pipeline)
    if install_signals:
        coordinator.install()
    try:
        app.pipeline.start()
    except (OSError, PipelineError) as e:
        logger.error("Unable to start metrics pipeline: %s", e)
        app.ctx.fatal_error = e
        # stops any reader that did start and restores the signal handlers
        coordinator.drain()
        app.client.close()
        return EXIT_FATAL
    poller = start_poller(app)
    try:
        coordinator.wait(poller)
    finally:
        flushed = coordinator.drain(poller)
        app.client.close()
    if app.ctx.fatal_error is not None:
        logger.error("Exiting after fatal poll failure: %s", app.ctx.fatal_error)
        return EXIT_FATAL
    if not flushed:
        logger.warning("Exited without a complete metrics flush")
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = apply_args(load_settings(args.env_file), args).validate()
    except ConfigError as e:
        setup_logging('INFO')
        logger.error("%s", e)
        return EXIT_CONFIG
    setup_logging(settings.log_level, settings.log_file)
    logger.info("nomad-scraper %s polling %s every %s", get_version(), settings.nomad_url,
                format_duration(settings.poll_interval))
    app = build_app(settings)
    code = run(app)
    logger.info("Meter provider is shutdown")
    return code


if __name__ == "__main__":
    raise SystemExit(main())
