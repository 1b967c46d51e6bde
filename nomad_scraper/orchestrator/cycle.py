"""One poll cycle: fetch -> transform -> upsert.

The whole fetch completes before the first upsert, so a cycle that fails
part-way through the N+1 requests leaves the store untouched.
"""
from __future__ import annotations

import logging
import time

from nomad_scraper.metrics.transform import to_sample

from .context import RuntimeContext

logger = logging.getLogger(__name__)


def run_cycle(ctx: RuntimeContext) -> int:
    """Execute one cycle; returns the number of groups upserted.

    FetchError propagates to the caller (the loop's failure policy decides).
    """
    start = time.time()
    statuses = ctx.fetcher.fetch_statuses()
    updated = 0
    for group, status in statuses:
        sample = to_sample(status, ctx.zero_policy)
        if sample is None:
            logger.debug("Group %s has Desired=0; skipped by zero-desired policy", group)
            # still reported by Nomad, so it must not age out under stale_ttl
            ctx.store.touch(group)
            continue
        logger.debug("Job %s had status %s", group, sample)
        ctx.store.upsert(group, sample)
        updated += 1
    evicted = ctx.store.evict_older_than(ctx.stale_ttl)
    if evicted:
        logger.info("Evicted %d stale group(s): %s", len(evicted), ", ".join(sorted(evicted)))
    ctx.cycle_count += 1
    logger.debug("Poll cycle %d updated %d group(s) in %.3fs", ctx.cycle_count, updated, time.time() - start)
    return updated

__all__ = ["run_cycle"]
