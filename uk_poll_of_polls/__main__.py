"""Command line entry point.

Usage:
    python -m uk_poll_of_polls serve --host 0.0.0.0 --port 8080
    python -m uk_poll_of_polls scrape --months 2 --show-polls
    python -m uk_poll_of_polls project --baseline ward-baseline.json
    python -m uk_poll_of_polls project --baseline ward-baseline.json \\
        --aggregate aggregate.json --summary
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

import uvicorn

from .aggregate import compute_aggregate
from .config import Settings
from .errors import PollOfPollsError
from .models import AggregateVector
from .projection import load_baseline, project_wards, summarize_by_lad
from .scraper import scrape_polls


def _serve(args) -> int:
    uvicorn.run(
        "uk_poll_of_polls.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
    return 0


def _latest_aggregate(settings: Settings) -> AggregateVector:
    now = datetime.now(timezone.utc)
    result = scrape_polls(settings=settings, today=now.date())
    return compute_aggregate(result.polls, now)


def _scrape(args, settings: Settings) -> int:
    now = datetime.now(timezone.utc)
    result = scrape_polls(settings=settings, today=now.date())
    output = {
        "source_url": result.source_url,
        "poll_count": len(result.polls),
        "aggregate": compute_aggregate(result.polls, now).model_dump(),
    }
    if args.show_polls:
        output["polls"] = [p.model_dump(mode="json") for p in result.polls]
    print(json.dumps(output, indent=2, default=str))
    return 0


def _project(args, settings: Settings) -> int:
    baseline = load_baseline(args.baseline)
    if args.aggregate:
        raw = json.loads(Path(args.aggregate).read_text(encoding="utf-8"))
        aggregate = AggregateVector.model_validate(raw)
    else:
        aggregate = _latest_aggregate(settings)

    projections = project_wards(baseline, aggregate, lad_code=args.lad)
    if args.summary:
        rows = [s.model_dump() for s in summarize_by_lad(projections)]
    else:
        rows = [p.model_dump() for p in projections]
    print(json.dumps(rows, indent=2))
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="uk_poll_of_polls",
        description="UK poll of polls and local election projections",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the API server")
    serve.add_argument(
        "--host", default="127.0.0.1", help="Bind host (default: 127.0.0.1)"
    )
    serve.add_argument(
        "--port", type=int, default=8000, help="Bind port (default: 8000)"
    )
    serve.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    scrape = sub.add_parser("scrape", help="Scrape once and print the aggregate")
    scrape.add_argument(
        "--months", type=int, default=None, help="Lookback window in months"
    )
    scrape.add_argument(
        "--url", default=None, help="Override the polling page URL"
    )
    scrape.add_argument(
        "--show-polls", action="store_true", help="Include scraped polls"
    )

    project = sub.add_parser("project", help="Project ward results")
    project.add_argument(
        "--baseline", required=True, help="Ward baseline JSON file"
    )
    project.add_argument(
        "--aggregate",
        default=None,
        help="Aggregate JSON file (default: scrape a fresh aggregate)",
    )
    project.add_argument(
        "--lad", default=None, help="Only project wards in this authority"
    )
    project.add_argument(
        "--summary", action="store_true", help="Print winners per authority"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "serve":
        return _serve(args)

    settings = Settings.from_env(
        lookback_months=getattr(args, "months", None),
        source_url=getattr(args, "url", None),
    )
    try:
        if args.command == "scrape":
            return _scrape(args, settings)
        return _project(args, settings)
    except PollOfPollsError as exc:
        logging.getLogger(__name__).error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
