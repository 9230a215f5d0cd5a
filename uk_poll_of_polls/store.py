"""In-memory run store with thread-safe access.

One run is kept per calendar day. Recording a run for a day that already
has one replaces it, so a rerun overwrites rather than appends.
"""

import logging
import threading
from datetime import date, datetime, timezone
from typing import Optional

from .models import (
    AggregatePoint,
    AggregateVector,
    NormalizedPoll,
    PollRun,
    StoreStatus,
)

logger = logging.getLogger(__name__)

UNKNOWN_SOURCE = "unknown"
SERIES_LIMIT = 365


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunStore:
    """Thread-safe in-memory store of daily poll runs."""

    def __init__(self) -> None:
        self._runs: dict[date, PollRun] = {}
        self._lock = threading.Lock()

    def record_run(
        self,
        run_date: date,
        source_url: str,
        polls: list[NormalizedPoll],
        aggregate: AggregateVector,
    ) -> PollRun:
        """Store a successful run, replacing any run for the same day."""
        run = PollRun(
            run_date=run_date,
            source_url=source_url,
            success=True,
            polls=list(polls),
            aggregate=aggregate,
            recorded_at=_utcnow(),
        )
        with self._lock:
            replaced = run_date in self._runs
            self._runs[run_date] = run
        logger.info(
            "%s run for %s with %d polls",
            "Replaced" if replaced else "Recorded", run_date, len(polls),
        )
        return run

    def record_failure(
        self, run_date: date, source_url: Optional[str] = None
    ) -> PollRun:
        """Mark the day's run as failed, discarding its polls."""
        with self._lock:
            previous = self._runs.get(run_date)
            url = source_url or (
                previous.source_url if previous else UNKNOWN_SOURCE
            )
            run = PollRun(
                run_date=run_date,
                source_url=url,
                success=False,
                recorded_at=_utcnow(),
            )
            self._runs[run_date] = run
        logger.warning("Recorded failed run for %s", run_date)
        return run

    def get_run(self, run_date: date) -> Optional[PollRun]:
        with self._lock:
            return self._runs.get(run_date)

    def latest_run(self) -> Optional[PollRun]:
        """Most recent successful run."""
        with self._lock:
            successful = [r for r in self._runs.values() if r.success]
        if not successful:
            return None
        return max(successful, key=lambda r: r.run_date)

    def latest_polls(self) -> list[NormalizedPoll]:
        """Polls from the latest successful run, newest first."""
        run = self.latest_run()
        if run is None:
            return []
        return sorted(run.polls, key=lambda p: p.poll_date, reverse=True)

    def latest_aggregate(self) -> Optional[AggregatePoint]:
        series = self.aggregate_series(limit=1)
        return series[0] if series else None

    def aggregate_series(self, limit: int = SERIES_LIMIT) -> list[AggregatePoint]:
        """Daily aggregates, newest first."""
        with self._lock:
            runs = [
                r for r in self._runs.values()
                if r.success and r.aggregate is not None
            ]
        runs.sort(key=lambda r: r.run_date, reverse=True)
        return [
            AggregatePoint(
                aggregate_date=r.run_date, **r.aggregate.model_dump()
            )
            for r in runs[:limit]
        ]

    def get_status(self) -> StoreStatus:
        with self._lock:
            runs = list(self._runs.values())
        if not runs:
            return StoreStatus(
                total_runs=0,
                latest_run_date=None,
                latest_run_success=None,
                poll_count=0,
                last_refreshed=None,
                source_url=None,
            )
        newest = max(runs, key=lambda r: r.run_date)
        return StoreStatus(
            total_runs=len(runs),
            latest_run_date=newest.run_date,
            latest_run_success=newest.success,
            poll_count=len(newest.polls),
            last_refreshed=max(r.recorded_at for r in runs),
            source_url=newest.source_url,
        )

    def clear(self) -> None:
        with self._lock:
            self._runs.clear()


# Singleton instance
run_store = RunStore()
