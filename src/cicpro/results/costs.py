"""Placement cost modelling.

Costs are post-hoc: they never change the simulation, only price the
days each projected period spends in each placement. Every day in a
placement costs that placement's per-day rate.

Financial-year reporting splits episodes that span a year end (31 March)
so that each part is costed in its own year.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from cicpro.core.dates import days_after, financial_year, financial_year_end
from cicpro.model.period import Period


@dataclass(frozen=True)
class PlacementCosts:
    """Per-day cost of each placement.

    Placements without a rate cost nothing.

    Attributes:
        per_day: Placement code -> cost per day.
    """

    per_day: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for placement, cost in self.per_day.items():
            if cost < 0:
                raise ValueError(f"Cost for placement {placement} must be non-negative, got {cost}")

    def rate(self, placement: str) -> float:
        return self.per_day.get(placement, 0.0)

    @classmethod
    def from_frame(
        cls, frame: pd.DataFrame, placement_col: str = "placement", cost_col: str = "cost"
    ) -> "PlacementCosts":
        """Read placement rates from a two-column table."""
        per_day = {
            str(placement): float(cost)
            for placement, cost in zip(frame[placement_col], frame[cost_col])
        }
        return cls(per_day=per_day)


@dataclass(frozen=True)
class EpisodeSegment:
    """Dated stretch of a single placement (start and end inclusive)."""

    placement: str
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


def episode_dates(period: Period, until: Optional[date] = None) -> List[EpisodeSegment]:
    """Start and end dates of each episode.

    Each episode ends the day before the next one starts; the last ends
    with the period. Episodes sharing an offset with their successor last
    no days and are dropped.

    Args:
        period: Period to date.
        until: End date for an open period.

    Raises:
        ValueError: If the period is open and no end date is given.
    """
    end = period.end if period.end is not None else until
    if end is None:
        raise ValueError(f"Open period {period.period_id} needs an end date to be costed")
    segments = []
    episodes = period.episodes
    for i, episode in enumerate(episodes):
        start = days_after(period.beginning, episode.offset)
        if i + 1 < len(episodes):
            following = episodes[i + 1]
            if following.offset == episode.offset:
                continue
            segment_end = days_after(period.beginning, following.offset - 1)
        else:
            segment_end = end
        if segment_end >= start:
            segments.append(EpisodeSegment(episode.placement, start, segment_end))
    return segments


def split_at(day: date, segments: Iterable[EpisodeSegment]) -> Tuple[List[EpisodeSegment], List[EpisodeSegment]]:
    """Split segments into those up to and including day and those after it."""
    before, after = [], []
    for segment in segments:
        if segment.end <= day:
            before.append(segment)
        elif segment.start > day:
            after.append(segment)
        else:
            before.append(EpisodeSegment(segment.placement, segment.start, day))
            after.append(EpisodeSegment(segment.placement, day + timedelta(days=1), segment.end))
    return before, after


def segments_by_financial_year(
    period: Period, until: Optional[date] = None
) -> Dict[int, List[EpisodeSegment]]:
    """Episode segments of a period grouped by financial year."""
    by_year: Dict[int, List[EpisodeSegment]] = {}
    remaining = episode_dates(period, until)
    while remaining:
        year_end = financial_year_end(remaining[0].start)
        before, remaining = split_at(year_end, remaining)
        by_year.setdefault(year_end.year, []).extend(before)
    return by_year


def segment_cost(segment: EpisodeSegment, costs: PlacementCosts) -> float:
    return segment.days * costs.rate(segment.placement)


def cost_between(
    segments: Iterable[EpisodeSegment], costs: PlacementCosts, start: date, stop: date
) -> float:
    """Cost of the segment days falling in [start, stop)."""
    total = 0.0
    last = stop - timedelta(days=1)
    for segment in segments:
        lo = max(segment.start, start)
        hi = min(segment.end, last)
        if hi >= lo:
            total += ((hi - lo).days + 1) * costs.rate(segment.placement)
    return total


@dataclass
class AnnualSummary:
    """Cost and joiners within one financial year of one run.

    Attributes:
        cost: Total placement cost.
        placements: Placement -> cost.
        joiners: Periods admitted in the year.
        joiner_ages: Admission age -> periods admitted in the year.
    """

    cost: float = 0.0
    placements: Dict[str, float] = field(default_factory=dict)
    joiners: int = 0
    joiner_ages: Dict[int, int] = field(default_factory=dict)

    def metrics(self) -> Dict[Tuple, float]:
        """Flatten into (group, name) metric keys for aggregation."""
        result: Dict[Tuple, float] = {("cost",): self.cost, ("joiners",): float(self.joiners)}
        for placement, cost in self.placements.items():
            result[("placements", placement)] = cost
        for age, count in self.joiner_ages.items():
            result[("joiner_ages", age)] = float(count)
        return result


def financial_year_metrics(
    periods: Iterable[Period], costs: PlacementCosts, until: Optional[date] = None
) -> Dict[int, AnnualSummary]:
    """Cost per financial year and joiners by year of admission.

    Args:
        periods: Periods of one run (or history).
        costs: Placement rates.
        until: End date used for any period still open.

    Returns:
        Financial year -> AnnualSummary, ordered by year.
    """
    years: Dict[int, AnnualSummary] = {}
    for period in periods:
        for year, segments in segments_by_financial_year(period, until).items():
            summary = years.setdefault(year, AnnualSummary())
            for segment in segments:
                cost = segment_cost(segment, costs)
                summary.cost += cost
                summary.placements[segment.placement] = summary.placements.get(segment.placement, 0.0) + cost
        summary = years.setdefault(financial_year(period.beginning), AnnualSummary())
        summary.joiners += 1
        if period.birthday is not None:
            age = period.admission_age
            summary.joiner_ages[age] = summary.joiner_ages.get(age, 0) + 1
    return dict(sorted(years.items()))


def joiners_by_financial_year(periods: Iterable[Period], before: Optional[date] = None) -> Mapping[int, int]:
    """Count of admissions per financial year, optionally only before a date."""
    counts: Dict[int, int] = {}
    for period in periods:
        if before is not None and period.beginning >= before:
            continue
        year = financial_year(period.beginning)
        counts[year] = counts.get(year, 0) + 1
    return dict(sorted(counts.items()))
