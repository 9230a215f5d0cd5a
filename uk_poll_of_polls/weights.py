"""Poll weighting: recency, pollster reliability and sample size.

A poll's weight is the product of three factors:

- Recency: a step function of fieldwork age in days.
- Pollster: a trust score looked up by (case-insensitive) pollster name.
- Sample size: sqrt of the sample, capped, with a typical default when
  the table gives no sample size.

Every factor is strictly positive, so weighting never zeroes a poll.
"""

import math
from typing import Mapping, Optional

from .config import (
    DEFAULT_POLLSTER_WEIGHTS,
    DEFAULT_SAMPLE_SIZE,
    FLOOR_RECENCY_WEIGHT,
    RECENCY_STEPS,
    SAMPLE_SIZE_CAP,
    UNKNOWN_POLLSTER_WEIGHT,
)


def normalize_pollster(name: str) -> str:
    return name.strip().lower()


def compute_recency_weight(age_days: float) -> float:
    for upper, weight in RECENCY_STEPS:
        if age_days < upper:
            return weight
    return FLOOR_RECENCY_WEIGHT


def compute_pollster_weight(
    pollster: str,
    table: Mapping[str, float] = DEFAULT_POLLSTER_WEIGHTS,
) -> float:
    """Trust score for a pollster; unknown names get a slightly lower score."""
    return table.get(normalize_pollster(pollster), UNKNOWN_POLLSTER_WEIGHT)


def compute_sample_weight(
    sample_size: Optional[int],
    default_sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> float:
    effective = sample_size if sample_size is not None else default_sample_size
    return math.sqrt(min(effective, SAMPLE_SIZE_CAP))


def compute_poll_weight(
    age_days: float,
    pollster: str,
    sample_size: Optional[int],
    table: Mapping[str, float] = DEFAULT_POLLSTER_WEIGHTS,
) -> float:
    return (
        compute_recency_weight(age_days)
        * compute_pollster_weight(pollster, table)
        * compute_sample_weight(sample_size)
    )
