"""Command line argument parsing.

Every flag defaults to None so that unset flags fall through to the
environment-derived settings (ScraperSettings.from_env).
"""
from __future__ import annotations

import argparse
from collections.abc import Sequence

from nomad_scraper.config.durations import parse_duration
from nomad_scraper.config.settings import FAILURE_POLICIES, LOG_LEVELS, ScraperSettings
from nomad_scraper.metrics.transform import ZeroDesiredPolicy
from nomad_scraper.utils.exceptions import ConfigError
from nomad_scraper.version import __version__


def _duration(raw: str) -> float:
    try:
        return parse_duration(raw)
    except ConfigError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='nomad-otel-metrics-scraper',
        description='Poll Nomad job scale status and publish it as metrics gauges',
    )
    parser.add_argument('-u', '--nomad-url', dest='nomad_url',
                        help='URL of the nomad instance to contact (default: http://localhost:4646)')
    parser.add_argument('-n', '--nomad-poll-interval', dest='poll_interval', type=_duration,
                        help='How often to query nomad, e.g. 60s, 1m30s (default: 60s)')
    parser.add_argument('--debug', action='store_true', default=None,
                        help='Print the metrics being published to stdout')
    parser.add_argument('--metrics-host', dest='metrics_host', help='Bind address for /metrics')
    parser.add_argument('--metrics-port', dest='metrics_port', type=int,
                        help='Port for /metrics (0 disables the endpoint, default: 9464)')
    parser.add_argument('--pushgateway-url', dest='pushgateway_url',
                        help='Push metrics to this Pushgateway every export interval')
    parser.add_argument('--otlp-endpoint', dest='otlp_endpoint',
                        help='Export metrics over OTLP/HTTP to this collector, e.g. http://localhost:4318')
    parser.add_argument('--service-name', dest='service_name',
                        help='service.name resource attribute for OTLP export (default: nomad-scraper)')
    parser.add_argument('--export-interval', dest='export_interval', type=_duration,
                        help='Period of push, OTLP and debug exports (default: 60s)')
    parser.add_argument('--request-timeout', dest='request_timeout', type=_duration,
                        help='Timeout for each Nomad request (default: none)')
    parser.add_argument('--failure-policy', dest='failure_policy', choices=FAILURE_POLICIES,
                        help='skip: log and skip failed polls; fatal: exit on the first failure')
    parser.add_argument('--max-consecutive-failures', dest='max_consecutive_failures', type=int,
                        help='With --failure-policy skip, exit after N failed polls in a row (0 = never)')
    parser.add_argument('--zero-desired', dest='zero_desired', type=ZeroDesiredPolicy,
                        choices=list(ZeroDesiredPolicy), metavar='{zero,nan,skip}',
                        help='Status ratio for groups with Desired=0: zero, nan or skip (default: zero)')
    parser.add_argument('--stale-ttl', dest='stale_ttl', type=_duration,
                        help='Stop publishing groups not seen for this long (default: retain forever)')
    parser.add_argument('--label-key', dest='label_key',
                        help='Label carrying the task group name (default: nomad_job)')
    parser.add_argument('--run-immediately', dest='run_immediately', action='store_true', default=None,
                        help='Poll once at startup instead of waiting one interval')
    parser.add_argument('--log-level', dest='log_level', type=str.upper, choices=LOG_LEVELS,
                        help='Set the logging level (default: INFO)')
    parser.add_argument('--log-file', dest='log_file', help='Also write logs to this file')
    parser.add_argument('--env-file', dest='env_file', help='Load environment overrides from this .env file')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def apply_args(settings: ScraperSettings, args: argparse.Namespace) -> ScraperSettings:
    """Overlay explicitly-passed CLI flags on env-derived settings."""
    overrides = {k: v for k, v in vars(args).items() if k != 'env_file'}
    return settings.with_overrides(**overrides)

__all__ = ["build_parser", "parse_args", "apply_args"]
