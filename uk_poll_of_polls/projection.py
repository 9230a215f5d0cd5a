"""Ward-level local election projection from national swing."""

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from .config import FALLBACK_WINNER, NATIONAL_PARTIES
from .errors import BaselineError
from .models import (
    AggregateVector,
    BaselineFile,
    LadSummary,
    WardBaseline,
    WardProjection,
)

logger = logging.getLogger(__name__)


def load_baseline(path: Union[str, Path]) -> BaselineFile:
    """Read and validate a ward baseline JSON file."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise BaselineError(f"Cannot read baseline file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise BaselineError(f"Baseline file {path} is not JSON: {exc}") from exc

    try:
        baseline = BaselineFile.model_validate(raw)
    except ValidationError as exc:
        raise BaselineError(f"Invalid baseline file {path}: {exc}") from exc

    logger.info(
        "Loaded %d ward baselines from %s (generated %s)",
        len(baseline.wards), path, baseline.generated_at,
    )
    return baseline


def _pick_winner(shares: Mapping[str, float]) -> str:
    winner = FALLBACK_WINNER
    top = -1.0
    for party, value in shares.items():
        if value > top:
            top = value
            winner = party
    return winner


def project_ward(
    ward: WardBaseline,
    baseline_national: Mapping[str, float],
    aggregate: AggregateVector,
    national_parties: Iterable[str] = NATIONAL_PARTIES,
) -> WardProjection:
    """Apply national swing to one ward's last result.

    Each national party moves by the change between its current aggregate
    and its historical national share, floored at zero. Local parties
    share whatever is left of 100 in their historical proportions. If the
    national parties alone exceed 100, they are scaled back to 100 and
    local parties get nothing.
    """
    current = aggregate.by_display_name()
    adjusted: dict[str, float] = {}
    sum_national = 0.0
    for party in national_parties:
        delta = (current.get(party) or 0.0) - baseline_national.get(party, 0.0)
        value = max(0.0, ward.national_shares.get(party, 0.0) + delta)
        adjusted[party] = value
        sum_national += value

    local_sum = sum(ward.local_shares.values())
    remaining = 100.0 - sum_national

    if remaining <= 0 or local_sum == 0:
        local = {party: 0.0 for party in ward.local_shares}
        if remaining < 0 and sum_national > 0:
            scale = 100.0 / sum_national
            adjusted = {party: v * scale for party, v in adjusted.items()}
    else:
        scale = remaining / local_sum
        local = {party: v * scale for party, v in ward.local_shares.items()}

    # National figures win over a local party carrying the same name
    shares = {**local, **adjusted}
    return WardProjection(
        ward_code=ward.ward_code,
        ward_name=ward.ward_name,
        lad_code=ward.lad_code,
        lad_name=ward.lad_name,
        shares=shares,
        winner=_pick_winner(shares),
    )


def project_wards(
    baseline: BaselineFile,
    aggregate: AggregateVector,
    lad_code: Optional[str] = None,
) -> list[WardProjection]:
    """Project every ward in *baseline*, optionally for one local authority."""
    wards = baseline.wards
    if lad_code:
        wards = [w for w in wards if w.lad_code == lad_code]
    return [
        project_ward(ward, baseline.baseline_national, aggregate)
        for ward in wards
    ]


def summarize_by_lad(projections: Iterable[WardProjection]) -> list[LadSummary]:
    """Count projected ward winners per local authority."""
    names: dict[str, str] = {}
    winners: dict[str, Counter] = {}
    for p in projections:
        names.setdefault(p.lad_code, p.lad_name)
        winners.setdefault(p.lad_code, Counter())[p.winner] += 1

    return [
        LadSummary(
            lad_code=code,
            lad_name=names[code],
            ward_count=sum(counts.values()),
            winners=dict(counts.most_common()),
        )
        for code, counts in sorted(winners.items(), key=lambda kv: names[kv[0]])
    ]
