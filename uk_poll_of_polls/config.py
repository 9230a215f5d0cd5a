"""Configuration and fixed lookup tables for the poll-of-polls pipeline."""

import os
from types import MappingProxyType
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

SOURCE_URL = (
    "https://en.wikipedia.org/wiki/"
    "Opinion_polling_for_the_next_United_Kingdom_general_election"
)

USER_AGENT = (
    "UKPollOfPolls/1.0 "
    "(Poll aggregation research project; Python/requests)"
)

REQUEST_TIMEOUT = 30
DEFAULT_LOOKBACK_MONTHS = 2
REFRESH_INTERVAL_HOURS = 24

# ── Weighting ──────────────────────────────────────────────────────────

DEFAULT_SAMPLE_SIZE = 1000
SAMPLE_SIZE_CAP = 3000
UNKNOWN_POLLSTER_WEIGHT = 0.9

# (upper bound in days, weight); anything older gets FLOOR_RECENCY_WEIGHT
RECENCY_STEPS = ((7, 1.0), (14, 0.75), (28, 0.5), (42, 0.25))
FLOOR_RECENCY_WEIGHT = 0.1

DEFAULT_POLLSTER_WEIGHTS: Mapping[str, float] = MappingProxyType({
    # Tier 1
    "survation": 1.1,
    "ipsos mori": 1.1,
    "yougov": 1.1,
    "more in common": 1.1,
    # Standard
    "opinium": 1.0,
    "verian": 1.0,
    "norstat": 1.0,
    "jl partners": 1.0,
    "bmg research": 1.0,
    "deltapoll": 1.0,
    "savanta comres": 1.0,
    "focaldata": 1.0,
    # Lower trust
    "find out now": 0.9,
})

# ── Parties ────────────────────────────────────────────────────────────

PARTY_KEYS = (
    "labour", "conservative", "reform", "libdem",
    "green", "snp", "pc", "others",
)

PARTY_DISPLAY_NAMES: Mapping[str, str] = MappingProxyType({
    "labour": "Labour",
    "conservative": "Conservative",
    "reform": "Reform",
    "libdem": "Liberal Democrat",
    "green": "Green",
    "snp": "SNP",
    "pc": "Plaid Cymru",
    "others": "Other",
})

# Parties tracked by national polling; everything else in a ward is "local"
NATIONAL_PARTIES = (
    "Labour", "Conservative", "Reform", "Liberal Democrat",
    "Green", "SNP", "Plaid Cymru",
)

FALLBACK_WINNER = "Other"


class Settings(BaseModel):
    """Runtime settings, built once at process start."""

    model_config = ConfigDict(frozen=True)

    source_url: str = SOURCE_URL
    lookback_months: int = Field(default=DEFAULT_LOOKBACK_MONTHS, gt=0)
    refresh_hours: int = Field(default=REFRESH_INTERVAL_HOURS, gt=0)
    baseline_path: Optional[str] = None

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        """Read settings from the environment; explicit overrides win."""
        values = {}
        env_map = {
            "source_url": "POLLS_SOURCE_URL",
            "lookback_months": "POLLS_LOOKBACK_MONTHS",
            "refresh_hours": "POLLS_REFRESH_HOURS",
            "baseline_path": "WARD_BASELINE_PATH",
        }
        for field, var in env_map.items():
            if os.environ.get(var):
                values[field] = os.environ[var]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
