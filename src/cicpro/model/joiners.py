"""Joiner arrival model.

New admissions arrive as an age-stratified point process. For each
admission age the gap in days to the next joiner is Gamma distributed
(exponential when no dispersion was fitted) with a mean given by a
log-linear model fitted externally:

    log(mean gap) = intercept + age-a + (beginning + beginning:age-a) * day

where ``day`` counts days since 1970-01-01. The arrival rate (1 / mean
gap) is floored at ``min_rate`` so a vanishing rate cannot stall an age.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Mapping, Optional, Tuple, Union

import pandas as pd

from cicpro.core.dates import days_after, days_since_epoch, day_interval, years_after
from cicpro.core.distributions import Exponential, Gamma, choose
from cicpro.core.entities import ADMISSION_AGES, ADULT_AGE
from cicpro.core.scenario import ProjectionWindow
from cicpro.core.streams import RandomStream
from cicpro.model.birthdays import JoinerBirthdayParams, joiner_birthday
from cicpro.model.duration import DurationParams, sample_duration
from cicpro.model.period import Period
from cicpro.model.placements import PlacementModel

logger = logging.getLogger(__name__)

Coefficients = Mapping[str, float]


@dataclass(frozen=True)
class JoinerParams:
    """Fitted joiner arrival parameters.

    Attributes:
        coefficient_samples: Draws of the model coefficients; one is chosen
            per run to carry parameter uncertainty into the projection.
        dispersion: Admission age -> Gamma dispersion (None or absent for
            exponential gaps).
        min_rate: Minimum arrivals per day for any age.
    """

    coefficient_samples: Tuple[Dict[str, float], ...]
    dispersion: Dict[int, Optional[float]] = field(default_factory=dict)
    min_rate: float = 1e-4

    def __post_init__(self) -> None:
        if not self.coefficient_samples:
            raise ValueError("JoinerParams needs at least one coefficient sample")
        for coefs in self.coefficient_samples:
            if "intercept" not in coefs:
                raise ValueError("Joiner coefficients must include an intercept")
        if self.min_rate <= 0:
            raise ValueError(f"min_rate must be positive, got {self.min_rate}")

    def mean_gap(self, coefs: Coefficients, age: int, day: date) -> float:
        """Expected days until the next joiner of this age."""
        t = days_since_epoch(day)
        linear = (
            coefs["intercept"]
            + coefs.get(f"age-{age}", 0.0)
            + (coefs.get("beginning", 0.0) + coefs.get(f"beginning:age-{age}", 0.0)) * t
        )
        return math.exp(min(linear, -math.log(self.min_rate)))

    def gap_distribution(self, coefs: Coefficients, age: int, day: date) -> Union[Gamma, Exponential]:
        mean = self.mean_gap(coefs, age, day)
        dispersion = self.dispersion.get(age)
        if dispersion is None:
            return Exponential(mean)
        return Gamma.from_mean(mean, dispersion)

    @classmethod
    def from_frames(
        cls, coefs: pd.DataFrame, dispersion: Optional[pd.DataFrame] = None, min_rate: float = 1e-4
    ) -> "JoinerParams":
        """Read GLM coefficient samples and per-age dispersion.

        Args:
            coefs: One row per coefficient sample, one column per named
                coefficient.
            dispersion: Rows with admission_age and dispersion columns.
            min_rate: Minimum arrivals per day.
        """
        samples = tuple(
            {str(k): float(v) for k, v in row.items()}
            for row in coefs.to_dict(orient="records")
        )
        dispersions: Dict[int, Optional[float]] = {}
        if dispersion is not None:
            for row in dispersion.itertuples(index=False):
                dispersions[int(row.admission_age)] = float(row.dispersion)
        return cls(coefficient_samples=samples, dispersion=dispersions, min_rate=min_rate)


def joiners_for_age(
    age: int,
    coefs: Coefficients,
    params: JoinerParams,
    duration_params: DurationParams,
    placement_model: PlacementModel,
    window: ProjectionWindow,
    stream: RandomStream,
    birthday_params: Optional[JoinerBirthdayParams] = None,
) -> List[Period]:
    """Joiners admitted at one age between the window's start and end.

    The cursor advances in fractional days by sampled gaps and the loop
    stops as soon as it reaches the end of the window.
    """
    joiners = []
    horizon = window.days
    cursor = 0.0
    i = 0
    while True:
        gap_stream, duration_stream, episode_stream, birthday_stream = (
            stream.substream(i).split_n(4)
        )
        current = days_after(window.project_from, int(cursor))
        gap, _ = gap_stream.sample(params.gap_distribution(coefs, age, current))
        cursor += gap
        if cursor >= horizon:
            break

        beginning = days_after(window.project_from, int(cursor))
        birthday = joiner_birthday(age, beginning, birthday_stream, birthday_params)
        max_days = day_interval(beginning, years_after(birthday, ADULT_AGE))
        duration = sample_duration(duration_params, age, 0, duration_stream, max_days=max_days)
        episodes = placement_model.joiner_episodes(age, duration, episode_stream)
        joiners.append(Period(
            period_id=f"J{age}-{i}",
            beginning=beginning,
            episodes=episodes,
            birth_year=birthday.year,
            duration=duration,
            is_open=False,
            birthday=birthday,
        ))
        i += 1
    return joiners


def project_joiners(
    params: JoinerParams,
    duration_params: DurationParams,
    placement_model: PlacementModel,
    window: ProjectionWindow,
    stream: RandomStream,
    birthday_params: Optional[JoinerBirthdayParams] = None,
) -> List[Period]:
    """Generate joiners of every admission age over the projection window.

    Args:
        params: Joiner arrival parameters.
        duration_params: Duration quantile tables.
        placement_model: Placement strategy for the new periods.
        window: Projection window.
        stream: Random stream for this run's joiners.
        birthday_params: Age-in-days quantiles for joiners under one.

    Returns:
        Joiner periods, grouped by admission age.
    """
    choice_stream, ages_stream = stream.split()
    coefs, _ = choose(params.coefficient_samples, choice_stream)
    joiners: List[Period] = []
    for age, age_stream in zip(ADMISSION_AGES, ages_stream.split_n(len(ADMISSION_AGES))):
        joiners.extend(joiners_for_age(
            age, coefs, params, duration_params, placement_model,
            window, age_stream, birthday_params,
        ))
    logger.debug(f"Generated {len(joiners)} joiners between {window.project_from} and {window.project_to}")
    return joiners
