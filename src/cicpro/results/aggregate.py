"""Streaming aggregation of run summaries.

Runs are folded into the accumulators one at a time, so memory holds the
histograms and the current run only. Histograms count exact values, which
keeps merging associative and commutative: accumulators built on separate
workers and merged give the same quantiles as a single sequential fold.
"""

import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd

QUANTILES = (0.05, 0.25, 0.5, 0.75, 0.95)

Metrics = Mapping[Hashable, float]


@dataclass(frozen=True)
class QuantileSummary:
    """Five-point summary of a metric across runs."""

    lower: float
    q1: float
    median: float
    q3: float
    upper: float

    @classmethod
    def from_values(cls, values: np.ndarray) -> "QuantileSummary":
        if len(values) == 0:
            return cls(0.0, 0.0, 0.0, 0.0, 0.0)
        return cls(*(float(q) for q in np.quantile(values, QUANTILES)))

    def to_dict(self, prefix: str = "") -> Dict[str, float]:
        return {
            f"{prefix}lower": self.lower,
            f"{prefix}q1": self.q1,
            f"{prefix}median": self.median,
            f"{prefix}q3": self.q3,
            f"{prefix}upper": self.upper,
        }


class Histogram:
    """Exact count of each value seen."""

    def __init__(self, counts: Optional[Mapping[float, int]] = None) -> None:
        self._counts: Counter = Counter(counts or {})

    def add(self, value: float, count: int = 1) -> None:
        self._counts[float(value)] += count

    @property
    def n(self) -> int:
        return sum(self._counts.values())

    def merge(self, other: "Histogram") -> "Histogram":
        return Histogram(self._counts + other._counts)

    def values(self, total: Optional[int] = None) -> np.ndarray:
        """Sorted values, padded with zeros up to total observations."""
        counts = Counter(self._counts)
        if total is not None and total > self.n:
            counts[0.0] += total - self.n
        keys = sorted(counts)
        return np.repeat(np.array(keys, dtype=float), [counts[k] for k in keys])

    def quantiles(self, total: Optional[int] = None) -> QuantileSummary:
        return QuantileSummary.from_values(self.values(total))

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Histogram) and self._counts == other._counts


class RunAccumulator:
    """Per (key, metric) histograms over runs.

    Args:
        keys: Fixed set of row keys (report dates or financial years). When
            given, runs reporting any other key are rejected.
    """

    def __init__(self, keys: Optional[Iterable[Hashable]] = None) -> None:
        self.keys = frozenset(keys) if keys is not None else None
        self.n_runs = 0
        self._histograms: Dict[Hashable, Dict[Hashable, Histogram]] = {}

    def _validate(self, rows: Mapping[Hashable, Metrics]) -> None:
        if not isinstance(rows, Mapping):
            raise ValueError(f"Run rows must be a mapping, got {type(rows).__name__}")
        for key, metrics in rows.items():
            if self.keys is not None and key not in self.keys:
                raise ValueError(f"Unexpected row key {key!r}")
            if not isinstance(metrics, Mapping):
                raise ValueError(f"Metrics for {key!r} must be a mapping")
            for metric, value in metrics.items():
                if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
                    raise ValueError(f"Metric {metric!r} for {key!r} is not a number: {value!r}")
                if not math.isfinite(value) or value < 0:
                    raise ValueError(f"Metric {metric!r} for {key!r} must be finite and non-negative, got {value}")

    def add(self, rows: Mapping[Hashable, Metrics]) -> None:
        """Fold in one run.

        The whole run is checked before anything is recorded, so a rejected
        run leaves the accumulator unchanged.

        Raises:
            ValueError: If a key is not expected or a value is negative,
                non-finite or not a number.
        """
        self._validate(rows)
        for key, metrics in rows.items():
            histograms = self._histograms.setdefault(key, {})
            for metric, value in metrics.items():
                histograms.setdefault(metric, Histogram()).add(value)
        self.n_runs += 1

    def merge(self, other: "RunAccumulator") -> "RunAccumulator":
        """Combine two accumulators into a new one.

        Raises:
            ValueError: If the accumulators expect different keys.
        """
        if self.keys != other.keys:
            raise ValueError("Cannot merge accumulators with different keys")
        merged = RunAccumulator(self.keys)
        merged.n_runs = self.n_runs + other.n_runs
        for source in (self._histograms, other._histograms):
            for key, histograms in source.items():
                target = merged._histograms.setdefault(key, {})
                for metric, histogram in histograms.items():
                    target[metric] = target.get(metric, Histogram()).merge(histogram)
        return merged

    def finalize(self) -> Dict[Hashable, Dict[Hashable, QuantileSummary]]:
        """Quantile summary for every key and metric, ordered by key.

        Runs that did not report a metric count as zero for it.
        """
        return {
            key: {
                metric: histogram.quantiles(self.n_runs)
                for metric, histogram in self._histograms[key].items()
            }
            for key in sorted(self._histograms)
        }


def _group(metrics: Mapping[tuple, QuantileSummary], name: str) -> Dict[Any, QuantileSummary]:
    return {
        metric[1]: summary
        for metric, summary in metrics.items()
        if metric[0] == name and len(metric) == 2
    }


_EMPTY = QuantileSummary(0.0, 0.0, 0.0, 0.0, 0.0)


@dataclass
class ProjectionRow:
    """Projected census on one report date."""

    date: date
    projected: QuantileSummary
    projected_cost: QuantileSummary
    placements: Dict[str, QuantileSummary] = field(default_factory=dict)
    ages: Dict[int, QuantileSummary] = field(default_factory=dict)
    placement_ages: Dict[str, QuantileSummary] = field(default_factory=dict)


@dataclass
class AnnualRow:
    """Projected cost and joiners for one financial year."""

    year: int
    projected_cost: QuantileSummary
    projected_joiners: QuantileSummary
    placements: Dict[str, QuantileSummary] = field(default_factory=dict)
    joiner_ages: Dict[int, QuantileSummary] = field(default_factory=dict)


def projection_rows(finalized: Mapping[date, Mapping[tuple, QuantileSummary]]) -> List[ProjectionRow]:
    return [
        ProjectionRow(
            date=day,
            projected=metrics.get(("count",), _EMPTY),
            projected_cost=metrics.get(("cost",), _EMPTY),
            placements=_group(metrics, "placements"),
            ages=_group(metrics, "ages"),
            placement_ages=_group(metrics, "placement_ages"),
        )
        for day, metrics in finalized.items()
    ]


def annual_rows(finalized: Mapping[int, Mapping[tuple, QuantileSummary]]) -> List[AnnualRow]:
    return [
        AnnualRow(
            year=year,
            projected_cost=metrics.get(("cost",), _EMPTY),
            projected_joiners=metrics.get(("joiners",), _EMPTY),
            placements=_group(metrics, "placements"),
            joiner_ages=_group(metrics, "joiner_ages"),
        )
        for year, metrics in finalized.items()
    ]


def projection_table(rows: Iterable[ProjectionRow], actuals: Optional[Mapping[date, Any]] = None) -> pd.DataFrame:
    """Report table of projected quantiles, with actual figures where known.

    Args:
        rows: Projected rows.
        actuals: Report date -> SummaryRow of the historical census. Dates
            without a projection appear with actual figures only.

    Returns:
        One row per date, sorted by date.
    """
    records = []
    for row in rows:
        record: Dict[str, Any] = {"date": row.date}
        record.update(row.projected.to_dict("count_"))
        record.update(row.projected_cost.to_dict("cost_"))
        for placement, summary in sorted(row.placements.items()):
            record[f"placement_{placement}"] = summary.median
        for age, summary in sorted(row.ages.items()):
            record[f"age_{age}"] = summary.median
        records.append(record)
    projected = pd.DataFrame.from_records(records, columns=None if records else ["date"])
    if not actuals:
        return projected.sort_values("date").reset_index(drop=True)

    actual = pd.DataFrame.from_records(
        [{"date": day, "actual": row.count, "actual_cost": row.cost} for day, row in actuals.items()]
    )
    table = actual.merge(projected, on="date", how="outer")
    return table.sort_values("date").reset_index(drop=True)


def annual_table(rows: Iterable[AnnualRow], actual_joiners: Optional[Mapping[int, int]] = None) -> pd.DataFrame:
    """Financial-year table of projected cost and joiners."""
    records = []
    for row in rows:
        record: Dict[str, Any] = {"year": row.year}
        if actual_joiners is not None:
            record["actual_joiners"] = actual_joiners.get(row.year)
        record.update(row.projected_cost.to_dict("cost_"))
        record.update(row.projected_joiners.to_dict("joiners_"))
        for placement, summary in sorted(row.placements.items()):
            record[f"placement_{placement}_cost"] = summary.median
        for age, summary in sorted(row.joiner_ages.items()):
            record[f"joiners_age_{age}"] = summary.median
        records.append(record)
    return pd.DataFrame.from_records(records, columns=None if records else ["year"])
