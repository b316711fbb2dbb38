"""Validation helpers comparing projections with what actually happened.

Typical use is a back-test: rewind the history with ``periods_as_at``,
project forward and compare against the census and placement sequences
observed afterwards.
"""

from collections import Counter
from typing import Dict, Iterable, List, Tuple

import pandas as pd

from cicpro.model.period import Period
from cicpro.model.projection import RunResult
from cicpro.results.aggregate import ProjectionRow
from cicpro.results.summary import SummaryRow


def compare_projected(projected: ProjectionRow, actual: SummaryRow) -> pd.DataFrame:
    """Actual census against projected quantiles on one date.

    Args:
        projected: Projected row for the date.
        actual: Historical census on the same date.

    Returns:
        DataFrame with columns: type, metric, actual, lower, q1, median,
        q3, upper. One row for the total, then one per placement and age.
    """
    records = [{"type": "total", "metric": "count", "actual": actual.count,
                **projected.projected.to_dict()}]
    for kind, projected_group, actual_group in (
        ("placement", projected.placements, actual.placements),
        ("age", projected.ages, actual.ages),
    ):
        for metric in sorted(set(projected_group) | set(actual_group)):
            summary = projected_group.get(metric)
            record = {"type": kind, "metric": metric, "actual": actual_group.get(metric, 0)}
            if summary is not None:
                record.update(summary.to_dict())
            else:
                record.update({"lower": 0.0, "q1": 0.0, "median": 0.0, "q3": 0.0, "upper": 0.0})
            records.append(record)
    return pd.DataFrame.from_records(records)


def placement_sequence(period: Period) -> str:
    """Placements a period moved through, joined by '-'.

    Consecutive repeats collapse, so A, A, B reads "A-B".
    """
    sequence: List[str] = []
    for episode in period.episodes:
        if not sequence or sequence[-1] != episode.placement:
            sequence.append(episode.placement)
    return "-".join(sequence)


def placement_sequence_proportions(periods: Iterable[Period]) -> Dict[Tuple[int, str], float]:
    """Share of each placement sequence among periods of each admission age.

    Returns:
        (admission age, sequence) -> proportion of that age's periods.
    """
    counts: Counter = Counter()
    totals: Counter = Counter()
    for period in periods:
        age = period.admission_age
        counts[(age, placement_sequence(period))] += 1
        totals[age] += 1
    return {key: n / totals[key[0]] for key, n in sorted(counts.items())}


def compare_placement_sequences(
    runs: Iterable[RunResult], actual: Iterable[Period]
) -> pd.DataFrame:
    """Placement-sequence mix of projected closes against actual closes.

    Only the periods extended from open ones are compared, since those
    have observed counterparts in a back-test.

    Returns:
        DataFrame with columns: admission_age, sequence, actual, projected.
    """
    projected = placement_sequence_proportions(
        period for run in runs for period in run.extended
    )
    observed = placement_sequence_proportions(actual)
    keys = sorted(set(projected) | set(observed))
    return pd.DataFrame.from_records(
        [
            {
                "admission_age": age,
                "sequence": sequence,
                "actual": observed.get((age, sequence), 0.0),
                "projected": projected.get((age, sequence), 0.0),
            }
            for age, sequence in keys
        ],
        columns=["admission_age", "sequence", "actual", "projected"],
    )
