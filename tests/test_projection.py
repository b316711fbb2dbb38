"""Tests for single and multi-run projection."""

from dataclasses import replace
from datetime import timedelta

import pytest

from cicpro.core.dates import years_after, years_before
from cicpro.core.entities import ADULT_AGE
from cicpro.core.scenario import ProjectionWindow
from cicpro.core.streams import RandomStream
from cicpro.experiment.runner import project_n_runs
from cicpro.model.duration import DurationParams
from cicpro.model.joiners import JoinerParams
from cicpro.model.projection import project_one_run, project_period_close
from cicpro.results.summary import periods_summary


@pytest.fixture
def window(project_from):
    return ProjectionWindow(project_from, project_from + timedelta(days=365))


class TestProjectPeriodClose:
    """Test extending one open period."""

    def test_duration_and_episodes(self, open_period, splice_models, default_seed):
        """The period closes at the sampled duration in its placement."""
        closed = project_period_close(open_period, splice_models, RandomStream.from_seed(default_seed))

        assert not closed.is_open
        assert closed.duration == 150
        assert closed.end == open_period.beginning + timedelta(days=150)
        assert [e.placement for e in closed.episodes] == ["A"]

    def test_rejects_closed(self, closed_periods, splice_models, default_seed):
        """Closed periods cannot be extended."""
        with pytest.raises(ValueError, match="already closed"):
            project_period_close(closed_periods[0], splice_models, RandomStream.from_seed(default_seed))

    def test_duration_not_below_elapsed(self, open_period, splice_models, default_seed):
        """A period open longer than any sampled duration keeps its elapsed days."""
        long_open = replace(open_period, duration=200)

        closed = project_period_close(long_open, splice_models, RandomStream.from_seed(default_seed))

        assert closed.duration >= 200

    @pytest.mark.parametrize("age", range(18))
    def test_closes_by_18th_birthday(self, open_period, splice_models, age):
        """However long the sampled stay, care ends by the 18th birthday."""
        birthday = years_before(open_period.beginning, age) - timedelta(days=200)
        period = replace(open_period, birthday=birthday, birth_year=birthday.year)
        models = replace(splice_models, duration=DurationParams.constant(9000))

        for stream in RandomStream.from_seed(age).split_n(5):
            closed = project_period_close(period, models, stream)
            assert closed.end == years_after(birthday, ADULT_AGE)


class TestProjectOneRun:
    """Test a single run."""

    def test_census_in_every_run(self, open_period, splice_models, window, default_seed):
        """The open period is in care 140 days after admission in every run."""
        census_day = open_period.beginning + timedelta(days=140)
        runs = project_n_runs([open_period], window, splice_models, default_seed, 10)

        assert len(runs) == 10
        for run in runs:
            summary = periods_summary(run.periods, [census_day])
            assert summary[census_day].count == 1
            assert summary[census_day].placements["A"] == 1
            assert summary[census_day].ages[5] == 1

    def test_imputes_missing_birthday(self, open_period, splice_models, window, default_seed):
        """Open periods without a birthday get one for the run."""
        unknown = replace(open_period, birthday=None)

        run = project_one_run([unknown], window, splice_models, RandomStream.from_seed(default_seed))

        assert run.extended[0].birthday is not None
        assert run.extended[0].birthday.year == 2015

    def test_fills_elapsed_duration(self, open_period, splice_models, window, default_seed):
        """Open periods without an elapsed duration are measured to the window start."""
        unknown = replace(open_period, duration=None)

        run = project_one_run([unknown], window, splice_models, RandomStream.from_seed(default_seed))

        assert run.extended[0].duration == 150

    def test_joiners(self, open_period, splice_models, window, default_seed):
        """Joiners are generated when arrival parameters are given."""
        models = replace(
            splice_models,
            joiners=JoinerParams(coefficient_samples=({"intercept": 3.0},)),
        )

        run = project_one_run([open_period], window, models, RandomStream.from_seed(default_seed))

        assert len(run.joiners) > 0
        assert run.periods == run.extended + run.joiners
        assert all(window.project_from <= j.beginning < window.project_to for j in run.joiners)

    def test_no_joiners_without_params(self, open_period, splice_models, window, default_seed):
        """No arrival parameters means no joiners."""
        run = project_one_run([open_period], window, splice_models, RandomStream.from_seed(default_seed))

        assert run.joiners == ()


class TestReproducibility:
    """Test determinism of multi-run projection."""

    @pytest.fixture
    def joiner_models(self, splice_models):
        return replace(
            splice_models,
            joiners=JoinerParams(
                coefficient_samples=({"intercept": 3.0}, {"intercept": 3.5}),
                dispersion={4: 0.7},
            ),
        )

    def test_same_seed_same_runs(self, open_period, joiner_models, window, default_seed):
        """Repeating a projection with the same seed repeats every run."""
        first = project_n_runs([open_period], window, joiner_models, default_seed, 4)
        second = project_n_runs([open_period], window, joiner_models, default_seed, 4)

        assert first == second

    def test_different_seeds_differ(self, open_period, joiner_models, window):
        """Different seeds give different joiners."""
        first = project_n_runs([open_period], window, joiner_models, 1, 2)
        second = project_n_runs([open_period], window, joiner_models, 2, 2)

        assert first != second

    def test_parallel_matches_sequential(self, open_period, joiner_models, window, default_seed):
        """Worker processes give the same runs as sequential execution."""
        sequential = project_n_runs([open_period], window, joiner_models, default_seed, 4)
        parallel = project_n_runs([open_period], window, joiner_models, default_seed, 4, workers=2)

        assert parallel == sequential

    def test_rejects_bad_workers(self, open_period, splice_models, window, default_seed):
        """Worker counts must be positive."""
        with pytest.raises(ValueError, match="workers"):
            project_n_runs([open_period], window, splice_models, default_seed, 2, workers=0)
