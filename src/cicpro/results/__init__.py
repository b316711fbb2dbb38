"""Results layer: per-run summaries, cost modelling, cross-run aggregation."""

from cicpro.results.summary import SummaryRow, periods_summary
from cicpro.results.costs import PlacementCosts, financial_year_metrics
from cicpro.results.aggregate import (
    AnnualRow,
    Histogram,
    ProjectionRow,
    QuantileSummary,
    RunAccumulator,
    projection_table,
    annual_table,
)

__all__ = [
    "SummaryRow",
    "periods_summary",
    "PlacementCosts",
    "financial_year_metrics",
    "AnnualRow",
    "Histogram",
    "ProjectionRow",
    "QuantileSummary",
    "RunAccumulator",
    "projection_table",
    "annual_table",
]
