"""Tests for placement sequence models."""

from datetime import date

import pytest

from cicpro.core.scenario import PlacementStrategy
from cicpro.core.streams import RandomStream
from cicpro.model.period import Episode, Period
from cicpro.model.placements import (
    CandidateSpliceModel,
    PhaseMarkovModel,
    PhaseParams,
    build_placement_model,
    duration_years,
)


def history_period(period_id, episodes, duration, birthday=date(2010, 1, 1)):
    return Period(
        period_id=period_id,
        beginning=date(2015, 3, 1),
        episodes=episodes,
        birth_year=birthday.year,
        duration=duration,
        birthday=birthday,
    )


@pytest.fixture
def splice_model():
    """History of age-5 children moving A -> B -> C over two years."""
    episodes = (Episode(0, "A"), Episode(200, "B"), Episode(500, "C"))
    return CandidateSpliceModel.from_periods([history_period("H1", episodes, 730)])


@pytest.fixture
def alternating_params():
    """Phases that alternate between A and B for age 5."""
    return PhaseParams(
        initial_placements={5: {"A": 1.0}},
        persist_probability={5: 0.0},
        phase_duration={5: (2.0, 8.0)},
        transitions={
            (True, 5, "A"): {"B": 1.0},
            (False, 5, "A"): {"B": 1.0},
            (False, 5, "B"): {"A": 1.0},
        },
    )


def test_duration_years():
    """Durations round to the nearest year, halves up."""
    assert duration_years(182) == 0
    assert duration_years(183) == 1
    assert duration_years(730) == 2


class TestCandidateSplice:
    """Test the lookup-based placement model."""

    def test_joiner_copies_history(self, splice_model, default_seed):
        """A joiner takes the episodes of a similar period."""
        episodes = splice_model.joiner_episodes(5, 700, RandomStream.from_seed(default_seed))

        assert episodes == (Episode(0, "A"), Episode(200, "B"), Episode(500, "C"))

    def test_joiner_truncates(self, default_seed):
        """Episodes after the sampled duration are dropped."""
        history = (Episode(0, "A"), Episode(200, "B"), Episode(300, "C"))
        model = CandidateSpliceModel.from_periods([history_period("H2", history, 365)])

        episodes = model.joiner_episodes(5, 250, RandomStream.from_seed(default_seed))

        assert episodes == (Episode(0, "A"), Episode(200, "B"))

    def test_joiner_unknown_fallback(self, splice_model, default_seed):
        """No similar period gives a single unknown placement."""
        episodes = splice_model.joiner_episodes(12, 700, RandomStream.from_seed(default_seed))

        assert episodes == (Episode(0, "UNKNOWN"),)

    def test_extend_splices_future(self, splice_model, default_seed):
        """An open period gains the candidate's later episodes."""
        open_period = Period(
            period_id="O",
            beginning=date(2020, 1, 1),
            episodes=(Episode(0, "A"), Episode(250, "B")),
            birth_year=2014,
            duration=300,
            is_open=True,
            birthday=date(2014, 6, 1),
        )

        episodes = splice_model.extend_episodes(open_period, 5, 700, RandomStream.from_seed(default_seed))

        assert episodes == (Episode(0, "A"), Episode(250, "B"), Episode(500, "C"))

    def test_extend_unknown_fallback(self, splice_model, default_seed):
        """With no candidate the rest of the stay is unknown."""
        open_period = Period(
            period_id="O",
            beginning=date(2020, 1, 1),
            episodes=(Episode(0, "Z"),),
            birth_year=2014,
            duration=40,
            is_open=True,
            birthday=date(2014, 6, 1),
        )

        episodes = splice_model.extend_episodes(open_period, 5, 100, RandomStream.from_seed(default_seed))

        assert episodes == (Episode(0, "Z"), Episode(41, "UNKNOWN"))


class TestPhaseMarkov:
    """Test the phase renewal model."""

    def test_persisting_joiner(self, alternating_params, default_seed):
        """A persisting first phase keeps one placement."""
        params = PhaseParams(
            initial_placements=alternating_params.initial_placements,
            persist_probability={5: 1.0},
            phase_duration=alternating_params.phase_duration,
            transitions=alternating_params.transitions,
        )
        model = PhaseMarkovModel(params)

        assert model.joiner_episodes(5, 400, RandomStream.from_seed(default_seed)) == (Episode(0, "A"),)

    def test_alternating_phases(self, alternating_params):
        """Placements alternate and stay within the duration."""
        model = PhaseMarkovModel(alternating_params)
        for stream in RandomStream.from_seed(7).split_n(20):
            episodes = model.joiner_episodes(5, 400, stream)
            placements = [e.placement for e in episodes]
            offsets = [e.offset for e in episodes]

            assert placements[0] == "A"
            assert all(a != b for a, b in zip(placements, placements[1:]))
            assert offsets == sorted(set(offsets))
            assert offsets[-1] < 400

    def test_missing_transition_stays(self, default_seed):
        """Without transition weights the placement never changes."""
        params = PhaseParams(
            initial_placements={3: {"K2": 1.0}},
            phase_duration={3: (1.0, 4.0)},
        )
        model = PhaseMarkovModel(params)

        assert model.joiner_episodes(3, 900, RandomStream.from_seed(default_seed)) == (Episode(0, "K2"),)

    def test_extend_keeps_history(self, alternating_params, default_seed):
        """Extension keeps existing episodes and only adds later ones."""
        model = PhaseMarkovModel(alternating_params)
        open_period = Period(
            period_id="O",
            beginning=date(2020, 1, 1),
            episodes=(Episode(0, "A"), Episode(20, "B")),
            birth_year=2014,
            duration=60,
            is_open=True,
            birthday=date(2014, 6, 1),
        )

        episodes = model.extend_episodes(open_period, 5, 500, RandomStream.from_seed(default_seed))

        assert episodes[:2] == open_period.episodes
        assert all(60 < e.offset < 500 for e in episodes[2:])

    def test_rejects_bad_probability(self):
        """Persist probabilities lie in [0, 1]."""
        with pytest.raises(ValueError, match="persist"):
            PhaseParams(persist_probability={1: 1.2})


class TestBuildPlacementModel:
    """Test strategy selection."""

    def test_candidate_splice(self):
        """The splice strategy indexes the history."""
        model = build_placement_model(PlacementStrategy.CANDIDATE_SPLICE, [])

        assert isinstance(model, CandidateSpliceModel)

    def test_phase_markov(self, alternating_params):
        """The phase strategy uses the given parameters."""
        model = build_placement_model(PlacementStrategy.PHASE_MARKOV, phase_params=alternating_params)

        assert isinstance(model, PhaseMarkovModel)

    def test_phase_markov_needs_params(self):
        """The phase strategy fails without parameters."""
        with pytest.raises(ValueError, match="PhaseParams"):
            build_placement_model(PlacementStrategy.PHASE_MARKOV)
