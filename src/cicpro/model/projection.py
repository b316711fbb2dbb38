"""Single-run projection.

One run extends every open period to a sampled close and generates the
joiners expected over the projection window. Runs share only read-only
models; each owns the stream it was given.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

from cicpro.core.dates import day_interval, years_after
from cicpro.core.entities import ADULT_AGE
from cicpro.core.scenario import ProjectionWindow
from cicpro.core.streams import RandomStream
from cicpro.model.birthdays import JoinerBirthdayParams, impute_birthdays
from cicpro.model.duration import DurationParams, sample_duration
from cicpro.model.joiners import JoinerParams, project_joiners
from cicpro.model.period import Period, with_elapsed_duration
from cicpro.model.placements import PlacementModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectionModels:
    """Fitted models shared by every run.

    Attributes:
        duration: Duration quantile tables.
        placements: Placement strategy (built once from the history).
        joiners: Joiner arrival parameters (None for no joiners).
        joiner_birthdays: Age-in-days quantiles for joiners under one.
    """
    duration: DurationParams
    placements: PlacementModel
    joiners: Optional[JoinerParams] = None
    joiner_birthdays: Optional[JoinerBirthdayParams] = None


@dataclass(frozen=True)
class RunResult:
    """Periods produced by one simulation run.

    Attributes:
        run_id: Index of the run.
        extended: Open periods projected to a close.
        joiners: Periods admitted during the projection window.
    """
    run_id: int
    extended: Tuple[Period, ...]
    joiners: Tuple[Period, ...] = ()

    @property
    def periods(self) -> Tuple[Period, ...]:
        return self.extended + self.joiners


def project_period_close(period: Period, models: ProjectionModels, stream: RandomStream) -> Period:
    """Sample how an open period closes.

    The new duration is at least the elapsed one and ends no later than the
    child's 18th birthday; placements for the added days come from the
    placement strategy.

    Raises:
        ValueError: If the period is closed, lacks an elapsed duration or
            has no birthday.
    """
    if not period.is_open:
        raise ValueError(f"Period {period.period_id} is already closed")
    if period.duration is None:
        raise ValueError(f"Open period {period.period_id} has no elapsed duration")
    age = period.admission_age
    duration_stream, episode_stream = stream.split()
    max_days = day_interval(period.beginning, years_after(period.birthday, ADULT_AGE))
    duration = sample_duration(models.duration, age, period.duration, duration_stream, max_days=max_days)
    episodes = models.placements.extend_episodes(period, age, duration, episode_stream)
    return replace(period, duration=duration, episodes=episodes, is_open=False)


def project_one_run(
    open_periods: Sequence[Period],
    window: ProjectionWindow,
    models: ProjectionModels,
    stream: RandomStream,
    run_id: int = 0,
) -> RunResult:
    """Run one projection.

    The stream is split three ways: birthdays for the open periods, their
    closes, and the joiners over the window.

    Args:
        open_periods: Periods open at the start of the window.
        window: Projection window.
        models: Shared fitted models.
        stream: Stream owned by this run.
        run_id: Index recorded on the result.

    Returns:
        RunResult with every period closed.
    """
    birthday_stream, close_stream, joiner_stream = stream.split_n(3)

    periods = [with_elapsed_duration(p, window.project_from) for p in open_periods]
    periods = impute_birthdays(periods, birthday_stream)
    extended = tuple(
        project_period_close(period, models, period_stream)
        for period, period_stream in zip(periods, close_stream.split_n(len(periods)))
    )

    joiners: Tuple[Period, ...] = ()
    if models.joiners is not None:
        joiners = tuple(project_joiners(
            models.joiners, models.duration, models.placements,
            window, joiner_stream, models.joiner_birthdays,
        ))
    logger.debug(f"Run {run_id}: {len(extended)} extended, {len(joiners)} joiners")
    return RunResult(run_id=run_id, extended=extended, joiners=joiners)
