"""Projection scenario configuration dataclass."""

from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import List

from cicpro.core.dates import day_seq
from cicpro.core.streams import RandomStream


class PlacementStrategy(Enum):
    """How future placements are sampled.

    - CANDIDATE_SPLICE: splice episode sequences of similar historical periods
    - PHASE_MARKOV: renewal process over placement phases with fitted transitions
    """
    CANDIDATE_SPLICE = "candidate_splice"
    PHASE_MARKOV = "phase_markov"


@dataclass(frozen=True)
class ProjectionWindow:
    """Dates between which joiners are generated and summaries reported.

    Attributes:
        project_from: First projected day (the snapshot date of the history).
        project_to: End of the projection (exclusive).
    """
    project_from: date
    project_to: date

    def __post_init__(self) -> None:
        if self.project_to <= self.project_from:
            raise ValueError(
                f"project_to ({self.project_to}) must be after project_from ({self.project_from})"
            )

    @property
    def days(self) -> int:
        return (self.project_to - self.project_from).days


@dataclass
class ProjectionScenario:
    """Configuration for a projection.

    Contains everything needed to run a projection besides the fitted
    parameter tables and the historical periods.

    Attributes:
        project_from: Projection start date.
        project_to: Projection end date (exclusive).
        n_runs: Number of independent simulation runs.
        random_seed: Master seed for reproducibility.
        interval_days: Days between report dates.
        placement_strategy: Placement model variant.
        workers: Worker processes for runs (1 = run in-process).
    """

    project_from: date
    project_to: date

    n_runs: int = 100
    random_seed: int = 42

    # Reporting
    interval_days: int = 7

    placement_strategy: PlacementStrategy = PlacementStrategy.CANDIDATE_SPLICE

    # Parallelism
    workers: int = 1

    def __post_init__(self) -> None:
        """Validate settings."""
        if self.project_to <= self.project_from:
            raise ValueError("project_to must be after project_from")
        if self.n_runs < 1:
            raise ValueError(f"n_runs must be at least 1, got {self.n_runs}")
        if self.random_seed < 0:
            raise ValueError(f"random_seed must be non-negative, got {self.random_seed}")
        if self.interval_days < 1:
            raise ValueError(f"interval_days must be at least 1, got {self.interval_days}")
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")

    @property
    def window(self) -> ProjectionWindow:
        return ProjectionWindow(self.project_from, self.project_to)

    @property
    def root_stream(self) -> RandomStream:
        return RandomStream.from_seed(self.random_seed)

    def report_dates(self) -> List[date]:
        """Report dates from project_from every interval_days."""
        return day_seq(self.project_from, self.project_to, self.interval_days)

    def clone_with_seed(self, new_seed: int) -> "ProjectionScenario":
        """Create a copy of this scenario with a different seed.

        Args:
            new_seed: The new random seed to use.

        Returns:
            A new ProjectionScenario with updated seed.
        """
        return replace(self, random_seed=new_seed)
