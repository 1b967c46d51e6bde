"""Metrics package public interface.

Stable import surfaces:
	from nomad_scraper.metrics import SharedStatusStore, JobStatusCollector, build_pipeline
	from nomad_scraper.metrics.transform import to_sample, ZeroDesiredPolicy
"""
from __future__ import annotations

from .observer import JobStatusCollector, Observation, ScraperStatsCollector, observe
from .pipeline import MetricsPipeline, build_pipeline
from .stats import PollStats
from .store import SharedStatusStore
from .transform import JobStatusSample, ZeroDesiredPolicy, to_sample

__all__ = [
	"SharedStatusStore",
	"JobStatusSample",
	"ZeroDesiredPolicy",
	"to_sample",
	"Observation",
	"observe",
	"JobStatusCollector",
	"ScraperStatsCollector",
	"PollStats",
	"MetricsPipeline",
	"build_pipeline",
]
