"""UK Poll of Polls API.

A REST API serving the latest scraped Westminster voting intention polls,
the daily weighted poll-of-polls aggregate, and ward-level local election
projections derived from it.
"""

import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings
from .errors import BaselineError, FetchError
from .models import (
    AggregatePoint,
    BaselineFile,
    LadSummary,
    NormalizedPoll,
    StoreStatus,
    WardProjection,
)
from .pipeline import run_poll_cycle
from .projection import (
    load_baseline,
    project_ward,
    project_wards,
    summarize_by_lad,
)
from .store import run_store

logger = logging.getLogger(__name__)

settings = Settings.from_env()


def refresh_polling_data() -> Optional[int]:
    """Run one scrape cycle. Returns the poll count, or None on failure."""
    try:
        run = run_poll_cycle(run_store, settings)
    except FetchError:
        logger.exception("Failed to fetch polling data")
        return None
    return len(run.polls)


@lru_cache(maxsize=4)
def _cached_baseline(path: str) -> BaselineFile:
    return load_baseline(path)


def get_baseline() -> BaselineFile:
    if not settings.baseline_path:
        raise HTTPException(
            status_code=503, detail="No ward baseline file configured"
        )
    try:
        return _cached_baseline(settings.baseline_path)
    except BaselineError as exc:
        logger.error("%s", exc)
        raise HTTPException(status_code=503, detail=str(exc))


def _require_aggregate() -> AggregatePoint:
    aggregate = run_store.latest_aggregate()
    if aggregate is None:
        raise HTTPException(status_code=404, detail="No aggregate available")
    return aggregate


scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: scrape on startup, schedule refreshes."""
    refresh_polling_data()
    scheduler.add_job(
        refresh_polling_data,
        "interval",
        hours=settings.refresh_hours,
        id="refresh_polls",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler started, refreshing every %d hours", settings.refresh_hours
    )
    yield
    scheduler.shutdown(wait=False)


app = FastAPI(
    title="UK Poll of Polls API",
    description=(
        "Weighted average of recent UK Westminster voting intention polls, "
        "combining recency, pollster reliability and sample size, plus "
        "ward-level local election projections from national swing.\n\n"
        "Polls are scraped daily from Wikipedia's opinion polling page for "
        "the next UK general election."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


# ── Endpoints ──────────────────────────────────────────────────────────


@app.get("/", tags=["info"])
def root():
    """API welcome and link to documentation."""
    return {
        "name": "UK Poll of Polls API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "polls": "/polls",
            "aggregate": "/aggregate",
            "latest_aggregate": "/aggregate/latest",
            "projections": "/local/projections?lad={lad_code}",
            "ward": "/local/projections/{ward_code}",
            "summary": "/local/summary",
            "status": "/status",
        },
    }


@app.get(
    "/polls",
    response_model=list[NormalizedPoll],
    tags=["polls"],
    summary="Polls from the latest run",
)
def get_polls():
    """Return every poll from the latest successful scrape, newest first."""
    return run_store.latest_polls()


@app.get(
    "/aggregate",
    response_model=list[AggregatePoint],
    tags=["aggregate"],
    summary="Daily aggregate series",
)
def get_aggregate_series(
    limit: int = Query(default=365, ge=1, le=365, description="Days to return"),
):
    """Return the daily poll-of-polls aggregates, newest first."""
    return run_store.aggregate_series(limit)


@app.get(
    "/aggregate/latest",
    response_model=AggregatePoint,
    tags=["aggregate"],
    summary="Most recent aggregate",
)
def get_latest_aggregate():
    return _require_aggregate()


@app.get(
    "/local/projections",
    response_model=list[WardProjection],
    tags=["local"],
    summary="Ward projections under the latest aggregate",
)
def get_projections(
    lad: Optional[str] = Query(
        default=None, description="Restrict to one local authority code"
    ),
):
    """Project every ward's vote share from the latest national aggregate."""
    baseline = get_baseline()
    return project_wards(baseline, _require_aggregate(), lad_code=lad)


@app.get(
    "/local/projections/{ward_code}",
    response_model=WardProjection,
    tags=["local"],
    summary="Projection for a single ward",
)
def get_ward_projection(ward_code: str):
    baseline = get_baseline()
    for ward in baseline.wards:
        if ward.ward_code == ward_code:
            return project_ward(
                ward, baseline.baseline_national, _require_aggregate()
            )
    raise HTTPException(
        status_code=404, detail=f"No ward with code '{ward_code}'"
    )


@app.get(
    "/local/summary",
    response_model=list[LadSummary],
    tags=["local"],
    summary="Projected ward winners per local authority",
)
def get_local_summary():
    baseline = get_baseline()
    return summarize_by_lad(project_wards(baseline, _require_aggregate()))


@app.post(
    "/polls/refresh",
    tags=["admin"],
    summary="Trigger a manual data refresh",
)
def trigger_refresh():
    """Manually run a scrape cycle against the source page."""
    count = refresh_polling_data()
    if count is None:
        raise HTTPException(
            status_code=502, detail="Failed to scrape polling data"
        )
    status = run_store.get_status()
    return {
        "message": f"Refreshed {count} polls",
        "source": status.source_url,
        "last_refreshed": status.last_refreshed,
    }


@app.get(
    "/status",
    response_model=StoreStatus,
    tags=["info"],
    summary="Run store status",
)
def get_status():
    """Return metadata about the stored runs."""
    return run_store.get_status()
