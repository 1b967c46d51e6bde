from __future__ import annotations

import pytest

from nomad_scraper.config.durations import format_duration, parse_duration
from nomad_scraper.config.settings import ScraperSettings, load_settings
from nomad_scraper.metrics.transform import ZeroDesiredPolicy
from nomad_scraper.utils.exceptions import ConfigError


def test_defaults_from_empty_env():
    s = ScraperSettings.from_env({})
    assert s.nomad_url == "http://localhost:4646"
    assert s.poll_interval == 60.0
    assert s.debug is False
    assert s.metrics_port == 9464
    assert s.failure_policy == "skip"
    assert s.zero_desired is ZeroDesiredPolicy.ZERO
    assert s.stale_ttl == 0.0
    assert s.label_key == "nomad_job"
    assert s.run_immediately is False
    assert s.request_timeout is None
    s.validate()


def test_env_values_are_parsed():
    s = ScraperSettings.from_env({
        "NOMAD_URL": "https://nomad.internal:4646",
        "NOMAD_POLL_INTERVAL": "1m30s",
        "NOMAD_SCRAPER_DEBUG": "yes",
        "NOMAD_SCRAPER_METRICS_PORT": "0",
        "NOMAD_SCRAPER_PUSHGATEWAY_URL": "pushgw:9091",
        "NOMAD_SCRAPER_REQUEST_TIMEOUT": "5s",
        "NOMAD_SCRAPER_FAILURE_POLICY": "FATAL",
        "NOMAD_SCRAPER_ZERO_DESIRED": "nan",
        "NOMAD_SCRAPER_STALE_TTL": "10m",
        "NOMAD_SCRAPER_LABEL_KEY": "task_group",
        "NOMAD_SCRAPER_RUN_IMMEDIATELY": "1",
        "NOMAD_SCRAPER_LOG_LEVEL": "debug",
    })
    assert s.nomad_url == "https://nomad.internal:4646"
    assert s.poll_interval == 90.0
    assert s.debug is True
    assert s.metrics_port == 0
    assert s.pushgateway_url == "pushgw:9091"
    assert s.request_timeout == 5.0
    assert s.failure_policy == "fatal"
    assert s.zero_desired is ZeroDesiredPolicy.NAN
    assert s.stale_ttl == 600.0
    assert s.label_key == "task_group"
    assert s.run_immediately is True
    assert s.log_level == "DEBUG"
    assert s.validate() is s


@pytest.mark.parametrize("env", [
    {"NOMAD_SCRAPER_METRICS_PORT": "http"},
    {"NOMAD_POLL_INTERVAL": "soon"},
    {"NOMAD_SCRAPER_ZERO_DESIRED": "infinity"},
])
def test_unparseable_env_raises(env):
    with pytest.raises(ConfigError):
        ScraperSettings.from_env(env)


def test_validate_collects_every_error():
    s = ScraperSettings(nomad_url="localhost", poll_interval=0, metrics_port=70000, label_key="job",
                        failure_policy="retry")
    with pytest.raises(ConfigError) as exc:
        s.validate()
    msg = str(exc.value)
    for fragment in ("nomad_url", "poll_interval", "metrics_port", "label_key", "failure_policy"):
        assert fragment in msg


def test_with_overrides_skips_none_and_rejects_unknown():
    s = ScraperSettings().with_overrides(nomad_url="http://a:1", poll_interval=None)
    assert s.nomad_url == "http://a:1"
    assert s.poll_interval == 60.0
    with pytest.raises(ConfigError):
        s.with_overrides(colour="blue")


def test_load_settings_reads_env_file_without_overriding_env(tmp_path, monkeypatch):
    env_file = tmp_path / "scraper.env"
    env_file.write_text("NOMAD_URL=http://from-file:4646\nNOMAD_POLL_INTERVAL=15s\n")
    # setenv first so the value load_dotenv writes is undone after the test
    monkeypatch.setenv("NOMAD_URL", "placeholder")
    monkeypatch.delenv("NOMAD_URL")
    monkeypatch.setenv("NOMAD_POLL_INTERVAL", "30s")
    s = load_settings(str(env_file))
    assert s.nomad_url == "http://from-file:4646"
    assert s.poll_interval == 30.0


def test_load_settings_with_explicit_env_ignores_process_env(monkeypatch):
    monkeypatch.setenv("NOMAD_URL", "http://process:4646")
    assert load_settings(env={}).nomad_url == "http://localhost:4646"


@pytest.mark.parametrize("raw,expected", [
    ("60", 60.0),
    (45, 45.0),
    ("60s", 60.0),
    ("1m30s", 90.0),
    ("500ms", 0.5),
    ("2h", 7200.0),
    ("1d", 86400.0),
    ("1.5m", 90.0),
])
def test_parse_duration(raw, expected):
    assert parse_duration(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", "-5", "5 fortnights", "s", "1m junk", -1])
def test_parse_duration_rejects(raw):
    with pytest.raises(ConfigError):
        parse_duration(raw)


@pytest.mark.parametrize("seconds,expected", [
    (60, "1m"),
    (90, "1m30s"),
    (0.5, "500ms"),
    (3600, "1h"),
    (5, "5s"),
])
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected
