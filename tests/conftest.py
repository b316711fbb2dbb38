"""Pytest fixtures for cicpro tests."""

from datetime import date

import pytest

from cicpro.model.duration import DurationParams
from cicpro.model.period import Episode, Period
from cicpro.model.placements import CandidateSpliceModel
from cicpro.model.projection import ProjectionModels
from cicpro.results.costs import PlacementCosts


@pytest.fixture
def default_seed() -> int:
    """Default random seed for reproducible tests."""
    return 42


@pytest.fixture
def project_from() -> date:
    return date(2021, 1, 4)


@pytest.fixture
def closed_periods():
    """Two closed 100-day stays in placement A, both admitted aged 5."""
    return [
        Period(
            period_id=f"C{i}",
            beginning=date(2019, 6, 1),
            episodes=(Episode(0, "A"),),
            birth_year=2014,
            duration=100,
            birthday=date(2014, 1, 1),
        )
        for i in range(2)
    ]


@pytest.fixture
def open_period(project_from):
    """A stay in placement A that began 30 days before the projection, aged 5."""
    return Period(
        period_id="O1",
        beginning=date(2020, 12, 5),
        episodes=(Episode(0, "A"),),
        birth_year=2015,
        duration=30,
        is_open=True,
        birthday=date(2015, 6, 1),
    )


@pytest.fixture
def splice_models(closed_periods):
    """Models with a fixed 150-day duration and no joiners."""
    return ProjectionModels(
        duration=DurationParams.constant(150),
        placements=CandidateSpliceModel.from_periods(closed_periods),
    )


@pytest.fixture
def costs() -> PlacementCosts:
    return PlacementCosts(per_day={"A": 100.0, "B": 50.0})
