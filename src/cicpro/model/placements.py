"""Placement (episode sequence) models.

Two interchangeable strategies sample the placements a child moves
through during a period:

- CandidateSpliceModel draws the episode sequence of a similar historical
  period from a fuzzy lookup index.
- PhaseMarkovModel treats placement changes as a renewal process: phases
  of Beta-distributed length, with the next placement drawn from fitted
  Dirichlet transition weights.

Both are pure functions of (age, duration, existing episodes, stream) and
only read the tables they were built with.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

from cicpro.core.dates import round_half_up
from cicpro.core.distributions import Bernoulli, Beta, DirichletCategorical, choose
from cicpro.core.entities import DAYS_PER_YEAR, UNKNOWN_PLACEMENT, clamp_age
from cicpro.core.scenario import PlacementStrategy
from cicpro.core.streams import RandomStream
from cicpro.model.lookup import FuzzyLookup
from cicpro.model.period import Episode, Period

logger = logging.getLogger(__name__)

Episodes = Tuple[Episode, ...]


def duration_years(days: int) -> int:
    return round_half_up(days / DAYS_PER_YEAR)


class PlacementModel(ABC):
    """Samples episode sequences for new and continuing periods."""

    @abstractmethod
    def joiner_episodes(self, age: int, duration: int, stream: RandomStream) -> Episodes:
        """Episodes for a new period of the given admission age and duration."""

    @abstractmethod
    def extend_episodes(
        self, period: Period, age: int, duration: int, stream: RandomStream
    ) -> Episodes:
        """Existing episodes of an open period followed by sampled future ones.

        Args:
            period: Open period with its elapsed duration.
            age: Admission age.
            duration: New total duration (not less than the elapsed one).
            stream: Random stream for this period.
        """


class CandidateSpliceModel(PlacementModel):
    """Splices episode sequences from similar closed periods.

    Attributes:
        by_duration: Episodes keyed by (admission age, duration in years).
        by_placement: Episodes keyed by (admission age, duration in years,
            placement, episode offset in years) for each episode.
    """

    def __init__(self, by_duration: FuzzyLookup, by_placement: FuzzyLookup) -> None:
        self.by_duration = by_duration
        self.by_placement = by_placement

    @classmethod
    def from_periods(cls, closed_periods: Iterable[Period]) -> "CandidateSpliceModel":
        """Index the episodes of closed historical periods.

        Raises:
            ValueError: If a period has no birthday to take an age from.
        """
        by_duration = FuzzyLookup()
        by_placement = FuzzyLookup()
        for period in closed_periods:
            if period.is_open:
                continue
            age = period.admission_age
            years = period.duration / DAYS_PER_YEAR
            by_duration.add((age, years), period.episodes)
            for episode in period.episodes:
                by_placement.add(
                    (age, years, episode.placement, episode.offset / DAYS_PER_YEAR),
                    period.episodes,
                )
        logger.debug(f"Indexed {len(by_duration)} closed periods for placement sampling")
        return cls(by_duration, by_placement)

    def joiner_episodes(self, age: int, duration: int, stream: RandomStream) -> Episodes:
        key = (clamp_age(age), duration_years(duration))
        candidate, _ = choose(self.by_duration.get(key), stream)
        if candidate is None:
            logger.debug(f"No historical placements near {key}; using unknown placement")
            return (Episode(0, UNKNOWN_PLACEMENT),)
        return tuple(e for e in candidate if e.offset <= duration)

    def extend_episodes(
        self, period: Period, age: int, duration: int, stream: RandomStream
    ) -> Episodes:
        elapsed = period.duration
        last = period.last_episode
        key = (
            clamp_age(age),
            duration_years(duration),
            last.placement,
            duration_years(last.offset),
        )
        candidate, _ = choose(self.by_placement.get(key), stream)
        if candidate is None:
            logger.debug(f"No historical placements near {key}; using unknown placement")
            if elapsed + 1 <= duration:
                return period.episodes + (Episode(elapsed + 1, UNKNOWN_PLACEMENT),)
            return period.episodes
        future = tuple(e for e in candidate if elapsed < e.offset < duration)
        return period.episodes + future


@dataclass(frozen=True)
class PhaseParams:
    """Fitted parameters of the phase model.

    Attributes:
        initial_placements: Admission age -> Dirichlet weights over a
            joiner's first placement.
        persist_probability: Admission age -> probability a joiner's first
            phase lasts the whole period.
        phase_duration: Admission age -> Beta (alpha, beta) of a phase's
            length as a fraction of the period's duration.
        transitions: (first transition?, age, placement) -> Dirichlet
            weights over the next placement.
    """

    initial_placements: Dict[int, Dict[str, float]] = field(default_factory=dict)
    persist_probability: Dict[int, float] = field(default_factory=dict)
    phase_duration: Dict[int, Tuple[float, float]] = field(default_factory=dict)
    transitions: Dict[Tuple[bool, int, str], Dict[str, float]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for age, p in self.persist_probability.items():
            if not 0.0 <= p <= 1.0:
                raise ValueError(f"persist probability for age {age} must be in [0, 1], got {p}")
        for age, (a, b) in self.phase_duration.items():
            if a <= 0 or b <= 0:
                raise ValueError(f"phase duration parameters for age {age} must be positive")


class PhaseMarkovModel(PlacementModel):
    """Renewal process over placement phases."""

    def __init__(self, params: PhaseParams) -> None:
        self.params = params

    def joiner_episodes(self, age: int, duration: int, stream: RandomStream) -> Episodes:
        age = clamp_age(age)
        initial_stream, persist_stream, phase_stream = stream.split_n(3)

        weights = self.params.initial_placements.get(age)
        if weights:
            placement, _ = initial_stream.sample(DirichletCategorical.from_weights(weights))
        else:
            placement = UNKNOWN_PLACEMENT
        episodes = (Episode(0, placement),)

        persist, _ = persist_stream.sample(
            Bernoulli(self.params.persist_probability.get(age, 0.0))
        )
        if persist:
            return episodes
        return self._phases(episodes, age, 0, duration, True, phase_stream)

    def extend_episodes(
        self, period: Period, age: int, duration: int, stream: RandomStream
    ) -> Episodes:
        first = len(period.episodes) == 1
        return self._phases(period.episodes, clamp_age(age), period.duration, duration, first, stream)

    def _phases(
        self,
        episodes: Episodes,
        age: int,
        start: int,
        duration: int,
        first: bool,
        stream: RandomStream,
    ) -> Episodes:
        """Advance phase by phase from start until the duration is used up."""
        shape = self.params.phase_duration.get(age)
        if shape is None:
            return episodes
        phase_length = Beta(*shape)

        result = list(episodes)
        placement = result[-1].placement
        offset = start
        i = 0
        while True:
            length_stream, next_stream = stream.substream(i).split()
            i += 1
            fraction, _ = length_stream.sample(phase_length)
            # Each phase lasts at least a day, so the loop ends within duration steps
            offset += max(1, round_half_up(fraction * duration))
            if offset >= duration:
                break
            current_age = clamp_age(age + offset // DAYS_PER_YEAR)
            weights = self.params.transitions.get((first, current_age, placement))
            if weights:
                next_placement, _ = next_stream.sample(DirichletCategorical.from_weights(weights))
            else:
                next_placement = placement
            if next_placement != placement:
                result.append(Episode(offset, next_placement))
                placement = next_placement
            first = False
        return tuple(result)


def build_placement_model(
    strategy: PlacementStrategy,
    closed_periods: Iterable[Period] = (),
    phase_params: Optional[PhaseParams] = None,
) -> PlacementModel:
    """Create the placement model for a strategy.

    Raises:
        ValueError: If the phase model is requested without parameters.
    """
    if strategy == PlacementStrategy.CANDIDATE_SPLICE:
        return CandidateSpliceModel.from_periods(closed_periods)
    if strategy == PlacementStrategy.PHASE_MARKOV:
        if phase_params is None:
            raise ValueError("The phase model needs fitted PhaseParams")
        return PhaseMarkovModel(phase_params)
    raise ValueError(f"Unknown placement strategy: {strategy}")
