"""Data models for polls, aggregates and ward projections."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .config import PARTY_DISPLAY_NAMES, PARTY_KEYS


class PartyShares(BaseModel):
    """Vote share per tracked party; None means no figure, not zero."""

    labour: Optional[float] = Field(default=None, description="Labour %")
    conservative: Optional[float] = Field(
        default=None, description="Conservative %"
    )
    reform: Optional[float] = Field(default=None, description="Reform UK %")
    libdem: Optional[float] = Field(
        default=None, description="Liberal Democrats %"
    )
    green: Optional[float] = Field(default=None, description="Green Party %")
    snp: Optional[float] = Field(
        default=None, description="Scottish National Party %"
    )
    pc: Optional[float] = Field(default=None, description="Plaid Cymru %")
    others: Optional[float] = Field(default=None, description="Other parties %")

    def party_values(self) -> dict[str, Optional[float]]:
        return {key: getattr(self, key) for key in PARTY_KEYS}

    def by_display_name(self) -> dict[str, Optional[float]]:
        return {
            PARTY_DISPLAY_NAMES[key]: getattr(self, key) for key in PARTY_KEYS
        }


class NormalizedPoll(PartyShares):
    """A single opinion poll, as extracted from one table row."""

    model_config = ConfigDict(frozen=True)

    poll_date: date = Field(description="First day of fieldwork")
    pollster: str = Field(min_length=1, description="Polling organisation")
    sample_size: Optional[int] = Field(
        default=None, gt=0, description="Number of respondents"
    )
    area: Optional[str] = Field(default=None, description="Area polled")

    @model_validator(mode="after")
    def _has_party_value(self) -> "NormalizedPoll":
        if all(v is None for v in self.party_values().values()):
            raise ValueError("a poll needs at least one party value")
        return self


class ScrapeResult(BaseModel):
    """Output of one scrape run."""

    source_url: str
    polls: list[NormalizedPoll]


class AggregateVector(PartyShares):
    """Weighted average vote share across recent polls."""

    model_config = ConfigDict(frozen=True)

    lead_party: Optional[str] = Field(
        default=None, description="Party leading the average"
    )
    lead_value: Optional[float] = Field(
        default=None, ge=0, description="Lead over second place in points"
    )

    @model_validator(mode="after")
    def _lead_consistent(self) -> "AggregateVector":
        if (self.lead_party is None) != (self.lead_value is None):
            raise ValueError("lead_party and lead_value must both be set")
        return self


class AggregatePoint(AggregateVector):
    """An aggregate stamped with the day it was computed for."""

    aggregate_date: date


class WardBaseline(BaseModel):
    """Historical local-election result for one ward."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ward_code: str = Field(alias="wardCode")
    ward_name: str = Field(alias="wardName")
    lad_code: str = Field(alias="ladCode")
    lad_name: str = Field(alias="ladName")
    last_year: int = Field(alias="lastYear")
    total_votes: int = Field(alias="totalVotes", gt=0)
    national_shares: dict[str, float] = Field(alias="nationalShares")
    local_shares: dict[str, float] = Field(
        default_factory=dict, alias="localShares"
    )


class BaselineFile(BaseModel):
    """Ward baseline dataset produced by the offline build."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    generated_at: datetime = Field(alias="generatedAt")
    baseline_national: dict[str, float] = Field(alias="baselineNational")
    wards: list[WardBaseline]


class WardProjection(BaseModel):
    """Projected vote share for one ward under the current aggregate."""

    ward_code: str
    ward_name: str
    lad_code: str
    lad_name: str
    shares: dict[str, float] = Field(description="Projected % per party")
    winner: str


class LadSummary(BaseModel):
    """Projected ward winners counted per local authority."""

    lad_code: str
    lad_name: str
    ward_count: int
    winners: dict[str, int]


class PollRun(BaseModel):
    """One scrape/aggregate cycle, keyed by run date."""

    run_date: date
    source_url: str
    success: bool
    polls: list[NormalizedPoll] = Field(default_factory=list)
    aggregate: Optional[AggregateVector] = None
    recorded_at: datetime


class StoreStatus(BaseModel):
    """Status of the run store."""

    total_runs: int
    latest_run_date: Optional[date]
    latest_run_success: Optional[bool]
    poll_count: int
    last_refreshed: Optional[datetime]
    source_url: Optional[str]
