"""Per-run census summaries.

Each run is reduced to one SummaryRow per report date before it is
folded into the cross-run accumulators, so a run's periods can be
discarded as soon as they are summarised.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, Optional, Sequence, Tuple

from cicpro.core.entities import PLACEMENTS, REPORT_AGES, UNKNOWN_PLACEMENT
from cicpro.model.period import Period, age_on, episode_on, in_care
from cicpro.results.costs import PlacementCosts, cost_between, episode_dates


@dataclass
class SummaryRow:
    """Census of one run on one report date.

    Attributes:
        count: Periods in care on the date.
        cost: Placement cost of the days in [date, date + interval).
        placements: Placement -> periods in that placement.
        ages: Age on the date -> periods.
        placement_ages: "placement-age" -> periods.
    """

    count: int = 0
    cost: float = 0.0
    placements: Dict[str, int] = field(default_factory=dict)
    ages: Dict[int, int] = field(default_factory=dict)
    placement_ages: Dict[str, int] = field(default_factory=dict)

    def metrics(self) -> Dict[Tuple, float]:
        """Flatten into (group, name) metric keys for aggregation."""
        result: Dict[Tuple, float] = {("count",): float(self.count), ("cost",): self.cost}
        for placement, n in self.placements.items():
            result[("placements", placement)] = float(n)
        for age, n in self.ages.items():
            result[("ages", age)] = float(n)
        for key, n in self.placement_ages.items():
            result[("placement_ages", key)] = float(n)
        return result


def empty_row(
    placements: Sequence[str] = PLACEMENTS + (UNKNOWN_PLACEMENT,),
    ages: Iterable[int] = REPORT_AGES,
) -> SummaryRow:
    """Row with zero counts for every placement and age."""
    return SummaryRow(
        placements={p: 0 for p in placements},
        ages={a: 0 for a in ages},
    )


def periods_summary(
    periods: Iterable[Period],
    dates: Sequence[date],
    costs: Optional[PlacementCosts] = None,
    interval_days: int = 7,
) -> Dict[date, SummaryRow]:
    """Summarise the periods in care on each report date.

    Args:
        periods: Periods of one run. Open periods are treated as still in
            care after the last report date.
        dates: Report dates in ascending order.
        costs: Placement rates; cost is zero when omitted.
        interval_days: Days costed from each report date.

    Returns:
        Report date -> SummaryRow.

    Raises:
        ValueError: If a period in care on a report date has no birthday.
    """
    rows = {day: empty_row() for day in dates}
    if not dates:
        return rows
    until = dates[-1] + timedelta(days=interval_days)
    for period in periods:
        segments = episode_dates(period, until) if costs is not None else []
        for day in dates:
            if costs is not None:
                rows[day].cost += cost_between(
                    segments, costs, day, day + timedelta(days=interval_days)
                )
            if not in_care(period, day):
                continue
            row = rows[day]
            placement = episode_on(period, day).placement
            age = age_on(period, day)
            row.count += 1
            row.placements[placement] = row.placements.get(placement, 0) + 1
            row.ages[age] = row.ages.get(age, 0) + 1
            key = f"{placement}-{age}"
            row.placement_ages[key] = row.placement_ages.get(key, 0) + 1
    return rows


def run_metrics(rows: Dict[date, SummaryRow]) -> Dict[date, Dict[Tuple, float]]:
    return {day: row.metrics() for day, row in rows.items()}
