"""Tests for per-run census summaries."""

from datetime import date, timedelta

from cicpro.model.period import Episode, Period
from cicpro.results.summary import SummaryRow, periods_summary, run_metrics


def week_long_period(beginning, placement="A"):
    """Period in care for exactly seven days from its admission."""
    return Period(
        period_id="W",
        beginning=beginning,
        episodes=(Episode(0, placement),),
        birth_year=2010,
        duration=6,
        birthday=date(2010, 2, 2),
    )


class TestPeriodsSummary:
    """Test census and cost by report date."""

    def test_week_cost(self, costs):
        """Seven days at 100 per day cost 700 in that week only."""
        start = date(2021, 1, 4)
        dates = [start - timedelta(days=7), start, start + timedelta(days=7)]

        rows = periods_summary([week_long_period(start)], dates, costs)

        assert rows[dates[0]].cost == 0.0
        assert rows[dates[1]].cost == 700.0
        assert rows[dates[2]].cost == 0.0

    def test_census_breakdowns(self, costs):
        """Counts break down by placement, age and both."""
        start = date(2021, 1, 4)
        periods = [week_long_period(start, "A"), week_long_period(start, "B")]

        row = periods_summary(periods, [start], costs)[start]

        assert row.count == 2
        assert row.placements["A"] == 1
        assert row.placements["B"] == 1
        assert row.placements["Q2"] == 0
        assert row.ages[10] == 2
        assert row.ages[0] == 0
        assert row.placement_ages == {"A-10": 1, "B-10": 1}
        assert row.cost == 700.0 + 350.0

    def test_open_period_costed_to_end(self, costs):
        """Open periods are in care and costed through the last window."""
        start = date(2021, 1, 4)
        period = Period(
            period_id="O",
            beginning=start - timedelta(days=3),
            episodes=(Episode(0, "A"),),
            birth_year=2010,
            duration=3,
            is_open=True,
            birthday=date(2010, 2, 2),
        )

        rows = periods_summary([period], [start, start + timedelta(days=7)], costs)

        assert rows[start].count == 1
        assert rows[start + timedelta(days=7)].cost == 700.0

    def test_no_costs(self):
        """Without rates every cost is zero."""
        start = date(2021, 1, 4)

        rows = periods_summary([week_long_period(start)], [start])

        assert rows[start].count == 1
        assert rows[start].cost == 0.0

    def test_no_dates(self, costs):
        """No report dates give no rows."""
        assert periods_summary([week_long_period(date(2021, 1, 4))], [], costs) == {}


class TestSummaryRowMetrics:
    """Test metric flattening."""

    def test_metrics(self):
        """Rows flatten into grouped keys."""
        row = SummaryRow(count=3, cost=10.5, placements={"A": 3}, ages={4: 3}, placement_ages={"A-4": 3})

        assert row.metrics() == {
            ("count",): 3.0,
            ("cost",): 10.5,
            ("placements", "A"): 3.0,
            ("ages", 4): 3.0,
            ("placement_ages", "A-4"): 3.0,
        }

    def test_run_metrics(self):
        """Each date's row is flattened."""
        day = date(2021, 1, 4)

        assert run_metrics({day: SummaryRow(count=1)}) == {day: {("count",): 1.0, ("cost",): 0.0}}
