"""The daily scrape → aggregate → store cycle."""

import logging
from datetime import datetime, timezone
from typing import Optional

from .aggregate import compute_aggregate
from .config import Settings
from .errors import FetchError
from .models import PollRun
from .scraper import scrape_polls
from .store import RunStore

logger = logging.getLogger(__name__)


def run_poll_cycle(
    store: RunStore,
    settings: Settings,
    now: Optional[datetime] = None,
    session=None,
) -> PollRun:
    """Scrape, aggregate and record one run keyed by today's UTC date.

    A fetch failure records a failed run for the day and re-raises; no
    partial poll list is ever stored.
    """
    now = now or datetime.now(timezone.utc)
    run_date = now.astimezone(timezone.utc).date() if now.tzinfo else now.date()

    try:
        result = scrape_polls(
            settings.lookback_months,
            settings=settings,
            session=session,
            today=run_date,
        )
    except FetchError:
        store.record_failure(run_date, settings.source_url)
        raise

    aggregate = compute_aggregate(result.polls, now)
    logger.info(
        "Aggregate for %s: lead %s by %s",
        run_date, aggregate.lead_party, aggregate.lead_value,
    )
    return store.record_run(run_date, result.source_url, result.polls, aggregate)
