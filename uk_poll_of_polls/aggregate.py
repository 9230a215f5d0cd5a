"""Weighted poll-of-polls aggregation."""

import logging
from datetime import date, datetime
from typing import Iterable, Mapping, Optional, Union

from .config import DEFAULT_POLLSTER_WEIGHTS, PARTY_DISPLAY_NAMES, PARTY_KEYS
from .models import AggregateVector, NormalizedPoll
from .weights import compute_poll_weight

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def _age_days(poll_date: date, as_of: Union[date, datetime]) -> float:
    """Days between fieldwork and *as_of*, clamped at zero."""
    if isinstance(as_of, datetime):
        poll_start = datetime.combine(poll_date, datetime.min.time())
        if as_of.tzinfo is not None:
            poll_start = poll_start.replace(tzinfo=as_of.tzinfo)
        age = (as_of - poll_start).total_seconds() / SECONDS_PER_DAY
    else:
        age = float((as_of - poll_date).days)
    return max(0.0, age)


def _compute_lead(
    averages: Mapping[str, Optional[float]],
) -> tuple[Optional[str], Optional[float]]:
    ranked = [
        (PARTY_DISPLAY_NAMES[key], value)
        for key, value in averages.items()
        if value is not None
    ]
    if len(ranked) < 2:
        return None, None
    ranked.sort(key=lambda item: item[1], reverse=True)
    (top_name, top_value), (_, second_value) = ranked[0], ranked[1]
    return top_name, top_value - second_value


def compute_aggregate(
    polls: Iterable[NormalizedPoll],
    as_of: Union[date, datetime],
    table: Mapping[str, float] = DEFAULT_POLLSTER_WEIGHTS,
) -> AggregateVector:
    """Weighted mean vote share per party across *polls*.

    Each party is averaged independently over the polls that report a
    figure for it, so a party absent from every poll stays None rather
    than averaging to zero. The lead is the margin between the top two
    parties in the resulting average.
    """
    totals = dict.fromkeys(PARTY_KEYS, 0.0)
    weights = dict.fromkeys(PARTY_KEYS, 0.0)
    count = 0

    for poll in polls:
        count += 1
        weight = compute_poll_weight(
            _age_days(poll.poll_date, as_of),
            poll.pollster,
            poll.sample_size,
            table,
        )
        for key, value in poll.party_values().items():
            if value is None:
                continue
            totals[key] += value * weight
            weights[key] += weight

    averages = {
        key: (totals[key] / weights[key] if weights[key] else None)
        for key in PARTY_KEYS
    }
    lead_party, lead_value = _compute_lead(averages)
    logger.debug(
        "Aggregated %d polls as of %s: lead %s %s",
        count, as_of, lead_party, lead_value,
    )
    return AggregateVector(
        **averages, lead_party=lead_party, lead_value=lead_value
    )
